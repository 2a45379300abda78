"""
Runtime configuration, read once from MILEAGE_LOG_* environment variables.
"""
from __future__ import annotations

import tempfile
from os import environ
from pathlib import Path

from pydantic import BaseModel, ConfigDict

# Trips faster than this (about 671 mph) are treated as corrupt data.
MAX_PLAUSIBLE_SPEED_MPS = 300.0

_TRUE_VALUES = {"1", "true", "yes", "on"}


class Config(BaseModel):
    model_config = ConfigDict(frozen=True)

    export_dir: Path
    store_path: Path
    include_route_in_json: bool = False
    max_plausible_speed_mps: float = MAX_PLAUSIBLE_SPEED_MPS
    first_weekday: int = 0
    use_kilometers: bool = False
    log_level: str = "INFO"


_cached_config: Config | None = None


def _reset_config() -> None:
    """Reset cached config, for testing only."""
    global _cached_config
    _cached_config = None


def _flag(name: str, default: bool) -> bool:
    raw = environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in _TRUE_VALUES


def get_config() -> Config:
    global _cached_config
    if _cached_config is not None:
        return _cached_config

    _cached_config = Config(
        export_dir=Path(environ.get("MILEAGE_LOG_EXPORT_DIR", tempfile.gettempdir())),
        store_path=Path(environ.get(
            "MILEAGE_LOG_STORE_PATH",
            str(Path.home() / ".mileage_log" / "trips.json"),
        )),
        include_route_in_json=_flag("MILEAGE_LOG_JSON_INCLUDE_ROUTE", False),
        max_plausible_speed_mps=float(environ.get("MILEAGE_LOG_MAX_SPEED_MPS", str(MAX_PLAUSIBLE_SPEED_MPS))),
        first_weekday=int(environ.get("MILEAGE_LOG_FIRST_WEEKDAY", "0")),
        use_kilometers=_flag("MILEAGE_LOG_USE_KILOMETERS", False),
        log_level=environ.get("MILEAGE_LOG_LOG_LEVEL", "INFO").upper(),
    )
    return _cached_config
