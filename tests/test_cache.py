"""Unit tests for the snapshot store."""

import pytest

from pelletburner_gateway.core.cache import (
    STATUS_COMMUNICATION_ERROR,
    STATUS_ONLINE,
    STATUS_UNKNOWN,
    SnapshotStore,
)
from pelletburner_gateway.core.exceptions import BurnerTimeoutError
from pelletburner_gateway.core.models import ResponseItem, Snapshot
from pelletburner_gateway.protocol.constants import RequestCategory


def make_snapshot(count: int = 2) -> Snapshot:
    snapshot = Snapshot(valid=True)
    snapshot.add_items(
        [ResponseItem(group=RequestCategory.OPERATING_DATA, id=f"item{i}", value=str(i)) for i in range(count)]
    )
    return snapshot


class TestSnapshotStore:
    """Tests for SnapshotStore class."""

    @pytest.mark.asyncio
    async def test_init_empty(self):
        """Test store starts empty."""
        store = SnapshotStore()

        assert await store.get() is None
        assert store.count == 0
        assert store.status == STATUS_UNKNOWN
        assert store.last_update is None
        assert store.last_error is None

    @pytest.mark.asyncio
    async def test_replace(self):
        """A successful cycle stores the snapshot and marks the burner online."""
        store = SnapshotStore()
        snapshot = make_snapshot(3)

        await store.replace(snapshot)

        assert await store.get() is snapshot
        assert store.count == 3
        assert store.status == STATUS_ONLINE
        assert store.last_update is not None

    @pytest.mark.asyncio
    async def test_mark_failed_keeps_snapshot(self):
        """A failed cycle keeps the previous snapshot."""
        store = SnapshotStore()
        snapshot = make_snapshot()
        await store.replace(snapshot)
        error = BurnerTimeoutError("no answer")

        await store.mark_failed(error)

        assert await store.get() is snapshot
        assert store.status == STATUS_COMMUNICATION_ERROR
        assert store.last_error is error

    @pytest.mark.asyncio
    async def test_replace_clears_error(self):
        store = SnapshotStore()
        await store.mark_failed(BurnerTimeoutError("no answer"))

        await store.replace(make_snapshot())

        assert store.status == STATUS_ONLINE
        assert store.last_error is None

    @pytest.mark.asyncio
    async def test_clear(self):
        store = SnapshotStore()
        await store.replace(make_snapshot())

        await store.clear()

        assert await store.get() is None
        assert store.count == 0
        assert store.status == STATUS_UNKNOWN
