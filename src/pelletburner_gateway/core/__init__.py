"""Core application functionality."""

from pelletburner_gateway.core.cache import SnapshotStore
from pelletburner_gateway.core.config import Settings, setup_logging
from pelletburner_gateway.core.models import Options, ResponseItem, Snapshot

__all__ = [
    "SnapshotStore",
    "Options",
    "ResponseItem",
    "Snapshot",
    "Settings",
    "setup_logging",
]
