#!/usr/bin/env python3
"""
Sample data generator for testing the Mileage Log application.

Generates:
- A trip store JSON file with synthetic trips spread over the last months
- A CSV export of the same trips
- A CSV with renamed headers and a few broken rows for import testing
"""

import argparse
import uuid
from datetime import datetime, timedelta
from pathlib import Path

import numpy as np
import pandas as pd

from mileage_log.core.export_handler import to_csv
from mileage_log.core.models import Coordinate, TripRecord
from mileage_log.core.store import TripStore

REASONS = ["Business", "Personal", "DoorDash", "Uber", "Other"]
NOTES = ["Client visit", "Coffee run", "Airport pickup", "Grocery trip", "", "Site survey"]


def generate_route(rng: np.random.Generator, start: Coordinate, samples: int) -> list[Coordinate]:
    """Random walk from a start coordinate."""
    steps = rng.normal(0, 0.002, size=(samples, 2)).cumsum(axis=0)
    return [
        Coordinate(latitude=start.latitude + float(dlat), longitude=start.longitude + float(dlon))
        for dlat, dlon in steps
    ]


def generate_trips(num_trips: int, seed: int = 7) -> list[TripRecord]:
    """
    Generate synthetic trips.

    Trips start at random times in the last 200 days and move at
    plausible urban speeds.
    """
    rng = np.random.default_rng(seed)
    now = datetime.now().astimezone()
    trips = []

    for _ in range(num_trips):
        start_time = now - timedelta(minutes=int(rng.integers(10, 200 * 24 * 60)))
        duration_s = float(rng.uniform(300, 5400))
        speed = float(rng.uniform(5, 30))  # m/s
        start = Coordinate(
            latitude=float(37.3 + rng.normal(0, 0.1)),
            longitude=float(-122.0 + rng.normal(0, 0.1)),
        )
        route = generate_route(rng, start, int(rng.integers(0, 40)))

        trips.append(TripRecord(
            id=uuid.uuid4(),
            date=start_time,
            start_time=start_time,
            end_time=start_time + timedelta(seconds=duration_s),
            distance=round(speed * duration_s, 1),
            notes=str(rng.choice(NOTES)),
            pay=f"{rng.uniform(0, 60):.2f}" if rng.random() < 0.6 else "",
            reason=str(rng.choice(REASONS)),
            start_coordinate=start,
            end_coordinate=route[-1] if route else None,
            route_coordinates=route,
            average_speed=speed,
        ))

    return trips


def generate_messy_csv(output_path: Path, trips: list[TripRecord]):
    """
    Write a CSV with spreadsheet-style headers and some broken rows.
    """
    df = pd.DataFrame({
        "ID": [str(t.id) for t in trips],
        "date": [t.date.isoformat() for t in trips],
        "distance": [f"{t.distance:.4f}" for t in trips],
        "notes": [t.notes for t in trips],
        "reason": [t.reason for t in trips],
        "start_time": [t.start_time.isoformat() for t in trips],
        "end_time": [t.end_time.isoformat() for t in trips],
    })

    # Break every fifth row
    df.loc[df.index % 5 == 0, "distance"] = "n/a"

    df.to_csv(output_path, index=False)
    print(f"Generated: {output_path} ({len(df)} rows, {len(df) - (df['distance'] == 'n/a').sum()} valid)")


def main():
    parser = argparse.ArgumentParser(description="Generate sample data for Mileage Log")
    parser.add_argument(
        "--output-dir", "-o",
        type=Path,
        default=Path("sample_data"),
        help="Output directory for generated files"
    )
    parser.add_argument(
        "--trips", "-n",
        type=int,
        default=250,
        help="Number of trips to generate"
    )

    args = parser.parse_args()

    # Create output directory
    args.output_dir.mkdir(parents=True, exist_ok=True)

    trips = generate_trips(args.trips)

    store_path = args.output_dir / "trips.json"
    TripStore(trips).save(store_path)
    print(f"Generated: {store_path} ({len(trips)} trips)")

    csv_path = args.output_dir / "TripLogs.csv"
    csv_path.write_text(to_csv(trips), encoding="utf-8")
    print(f"Generated: {csv_path}")

    generate_messy_csv(args.output_dir / "messy_import.csv", trips[:50])

    print(f"\nAll files generated in: {args.output_dir.absolute()}")
    print("\nUsage guide:")
    print(f"1. python -m mileage_log --store {store_path} list --range this_month")
    print(f"2. python -m mileage_log --store {store_path} export --format json --out-dir {args.output_dir}")
    print(f"3. python -m mileage_log --store {args.output_dir / 'imported.json'} import {args.output_dir / 'messy_import.csv'}")


if __name__ == "__main__":
    main()
