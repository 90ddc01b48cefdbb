"""hotelwatch package initialization."""

from .config import ConfigError, MonitorConfig, load_config
from .db import Database
from .diff import diff_snapshots
from .extractor import extract_record
from .models import (
    CheckinRecord,
    MatchCandidate,
    PriceDropEvent,
    ReleaseEvent,
    RunSummary,
)
from .runner import HotelWatchRunner
from .state import SnapshotStore, StateStoreError

__all__ = [
    "CheckinRecord",
    "ConfigError",
    "Database",
    "HotelWatchRunner",
    "MatchCandidate",
    "MonitorConfig",
    "PriceDropEvent",
    "ReleaseEvent",
    "RunSummary",
    "SnapshotStore",
    "StateStoreError",
    "diff_snapshots",
    "extract_record",
    "load_config",
]
