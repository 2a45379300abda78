"""Module entry point: python -m mileage_log ..."""

from __future__ import annotations

from mileage_log.cli import main


if __name__ == "__main__":
    raise SystemExit(main())
