"""Holder for the last good snapshot and the outcome of the last poll cycle."""

import asyncio
from datetime import datetime

from pelletburner_gateway.core.exceptions import BurnerError
from pelletburner_gateway.core.models import Snapshot

STATUS_UNKNOWN = "unknown"
STATUS_ONLINE = "online"
STATUS_COMMUNICATION_ERROR = "communication_error"


class SnapshotStore:
    """Async-safe store for the burner's latest snapshot.

    A snapshot is replaced as a whole after a successful cycle and never
    modified afterwards. A failed cycle only records the error, so readers keep
    seeing the last good data.
    """

    def __init__(self) -> None:
        self._lock = asyncio.Lock()
        self._snapshot: Snapshot | None = None
        self._last_update: datetime | None = None
        self._status = STATUS_UNKNOWN
        self._last_error: BurnerError | None = None

    async def get(self) -> Snapshot | None:
        """Get the last good snapshot."""
        async with self._lock:
            return self._snapshot

    async def replace(self, snapshot: Snapshot) -> None:
        """Store the snapshot of a successful cycle."""
        async with self._lock:
            self._snapshot = snapshot
            self._last_update = datetime.now()
            self._status = STATUS_ONLINE
            self._last_error = None

    async def mark_failed(self, error: BurnerError) -> None:
        """Record a failed cycle, keeping the previous snapshot."""
        async with self._lock:
            self._status = STATUS_COMMUNICATION_ERROR
            self._last_error = error

    async def clear(self) -> None:
        """Forget the snapshot and status."""
        async with self._lock:
            self._snapshot = None
            self._last_update = None
            self._status = STATUS_UNKNOWN
            self._last_error = None

    @property
    def status(self) -> str:
        """Outcome of the last cycle: unknown, online or communication_error."""
        return self._status

    @property
    def last_error(self) -> BurnerError | None:
        return self._last_error

    @property
    def last_update(self) -> datetime | None:
        """Get timestamp of last successful cycle."""
        return self._last_update

    @property
    def count(self) -> int:
        """Number of items in the current snapshot."""
        return len(self._snapshot.items) if self._snapshot is not None else 0
