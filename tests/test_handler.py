"""Unit tests for protocol handler."""

import asyncio
import logging
from unittest.mock import AsyncMock, MagicMock

import pytest
from conftest import TEST_PASSWORD, TEST_SERIAL, reply_payload, running_burner

from pelletburner_gateway.core.cache import STATUS_COMMUNICATION_ERROR, STATUS_ONLINE, SnapshotStore
from pelletburner_gateway.core.exceptions import (
    BurnerTimeoutError,
    ErrorReceivingError,
    InvalidRequestError,
    InvalidResponseError,
    UnknownProtocolError,
)
from pelletburner_gateway.core.models import Options, Snapshot
from pelletburner_gateway.protocol.constants import POLL_CATEGORIES, RequestCategory
from pelletburner_gateway.protocol.frames import RequestFrame, ResponseFrame
from pelletburner_gateway.protocol.handler import ProtocolHandler
from pelletburner_gateway.protocol.variants import NBEV13Protocol
from pelletburner_gateway.transport.connection import UDPSession

# ============================================================================
# Helpers
# ============================================================================


def answer(data: bytes, **overrides) -> bytes:
    """Answer a request the way the burner does, optionally corrupting fields."""
    request = RequestFrame.from_bytes(data)
    response = ResponseFrame.reply_to(request, reply_payload(request))
    for field, value in overrides.items():
        setattr(response, field, value)
    return response.to_bytes()


def make_session(options: Options, *outcomes) -> MagicMock:
    """Mock session whose exchanges play ``outcomes`` in order, then answer normally.

    Each outcome is an exception to raise, raw response bytes, or a dict of
    response field overrides.
    """
    session = MagicMock(spec=UDPSession)
    session.options = options
    pending = list(outcomes)

    async def exchange(data: bytes) -> bytes:
        outcome = pending.pop(0) if pending else {}
        if isinstance(outcome, Exception):
            raise outcome
        if isinstance(outcome, bytes):
            return outcome
        return answer(data, **outcome)

    session.exchange = AsyncMock(side_effect=exchange)
    return session


def garbled_size_response() -> bytes:
    """A response whose size field holds a non-ASCII digit."""
    data = bytearray(ResponseFrame(function_code="04", sequence="00", payload=b"state=5").to_bytes())
    data[24:27] = b"0\xb27"
    return bytes(data)


def make_handler(options: Options, *outcomes, store: SnapshotStore | None = None) -> ProtocolHandler:
    session = make_session(options, *outcomes)
    return ProtocolHandler(
        session=session,
        store=store or SnapshotStore(),
        protocol=NBEV13Protocol(options),
        poll_interval=0.01,
        initial_delay=0,
    )


# ============================================================================
# Construction
# ============================================================================


class TestProtocolHandlerInit:
    """Tests for ProtocolHandler construction."""

    def test_protocol_from_options(self, options):
        """Without an explicit variant the configured one is used."""
        session = make_session(options)

        handler = ProtocolHandler(session=session, store=SnapshotStore())

        assert isinstance(handler.protocol, NBEV13Protocol)
        assert handler.online is False
        assert handler.running is False

    def test_unknown_protocol(self):
        options = Options(remote_address="127.0.0.1", serial=TEST_SERIAL, protocol="NBE_V99")

        with pytest.raises(UnknownProtocolError):
            ProtocolHandler(session=make_session(options), store=SnapshotStore())


# ============================================================================
# Send and Receive
# ============================================================================


class TestSendAndReceive:
    """Tests for ProtocolHandler.send_and_receive."""

    @pytest.mark.asyncio
    async def test_valid_exchange(self, options):
        """A matching response is parsed into items of the category."""
        handler = make_handler(options)

        result = await handler.send_and_receive(RequestCategory.OPERATING_DATA)

        assert result.valid is True
        assert result.request.function_code == "04"
        assert result.response.sequence == result.request.sequence
        assert ("state", "5") in [(i.id, i.value) for i in result.items]
        assert all(i.group == RequestCategory.OPERATING_DATA for i in result.items)

    @pytest.mark.asyncio
    async def test_request_carries_credentials(self, options):
        handler = make_handler(options)

        await handler.send_and_receive(RequestCategory.SETTINGS_HOPPER)

        sent = RequestFrame.from_bytes(handler._session.exchange.await_args.args[0])
        assert sent.serial == "001234"
        assert sent.password == f"{TEST_PASSWORD:0>10}"
        assert sent.payload == "hopper.*"

    @pytest.mark.asyncio
    async def test_garbled_payload_size(self, options):
        """A size field with a non-ASCII digit is a framing error, not a crash."""
        handler = make_handler(options, garbled_size_response())

        with pytest.raises(InvalidResponseError, match="not numeric"):
            await handler.send_and_receive(RequestCategory.OPERATING_DATA)

    @pytest.mark.asyncio
    async def test_empty_payload_is_valid_but_not_ok(self, options, caplog):
        """A matching response without any item is logged."""
        handler = make_handler(options, {"payload": b"total_hours"})

        with caplog.at_level(logging.WARNING, logger="pelletburner_gateway.protocol.handler"):
            result = await handler.send_and_receive(RequestCategory.CONSUMPTION_HOURS)

        assert result.valid is True
        assert result.ok is False
        assert result.items == []
        assert "CONSUMPTION_HOURS response carried no items" in caplog.text

    @pytest.mark.asyncio
    async def test_ok(self, options):
        handler = make_handler(options)

        result = await handler.send_and_receive(RequestCategory.OPERATING_DATA)

        assert result.ok is True

    @pytest.mark.asyncio
    async def test_mismatch_raises(self, options):
        """A response to another request raises, naming the mismatching fields."""
        handler = make_handler(options, {"sequence": "99", "function_code": "01"})

        with pytest.raises(InvalidResponseError, match="function_code, sequence"):
            await handler.send_and_receive(RequestCategory.OPERATING_DATA)

    @pytest.mark.asyncio
    async def test_mismatch_not_strict(self, options):
        handler = make_handler(options, {"serial": "999999"})

        result = await handler.send_and_receive(RequestCategory.OPERATING_DATA, strict=False)

        assert result.valid is False
        assert result.items == []

    @pytest.mark.asyncio
    async def test_transport_error_propagates(self, options):
        handler = make_handler(options, ErrorReceivingError("reset"))

        with pytest.raises(ErrorReceivingError):
            await handler.send_and_receive(RequestCategory.OPERATING_DATA)

    @pytest.mark.asyncio
    async def test_sequence_rotates(self, options):
        """Sequence numbers increase per request and wrap after 99."""
        handler = make_handler(options)
        handler._sequence = 98

        sequences = [(await handler.send_and_receive(RequestCategory.OPERATING_DATA)).request.sequence for _ in range(3)]

        assert sequences == ["98", "99", "00"]


# ============================================================================
# Discovery
# ============================================================================


class TestDiscovery:
    """Tests for burner discovery."""

    @pytest.mark.asyncio
    async def test_discover(self, options):
        handler = make_handler(options)

        assert await handler.discover() is True
        assert handler.online is True
        sent = RequestFrame.from_bytes(handler._session.exchange.await_args.args[0])
        assert sent.function_code == "00"
        assert sent.payload == "NBE_DISCOVERY"

    @pytest.mark.asyncio
    async def test_invalid_then_valid(self, options):
        """One invalid answer is retried once."""
        handler = make_handler(options, {"sequence": "99"})

        assert await handler.discover(retry_on_fail=True) is True
        assert handler._session.exchange.await_count == 2

    @pytest.mark.asyncio
    async def test_invalid_twice(self, options):
        """Only one retry is made."""
        handler = make_handler(options, {"sequence": "99"}, {"sequence": "99"})

        assert await handler.discover(retry_on_fail=True) is False
        assert handler._session.exchange.await_count == 2
        assert handler.online is False

    @pytest.mark.asyncio
    async def test_no_retry(self, options):
        handler = make_handler(options, {"sequence": "99"})

        assert await handler.discover(retry_on_fail=False) is False
        assert handler._session.exchange.await_count == 1

    @pytest.mark.asyncio
    async def test_timeout_propagates(self, options):
        """Transport errors are not turned into a failed discovery."""
        handler = make_handler(options, BurnerTimeoutError("no answer"))

        with pytest.raises(BurnerTimeoutError):
            await handler.discover()

    @pytest.mark.asyncio
    async def test_broadcast_not_supported(self, options):
        handler = make_handler(options)

        with pytest.raises(InvalidRequestError, match="broadcast"):
            await handler.discover_by_broadcast()

        handler._session.exchange.assert_not_awaited()


# ============================================================================
# Retry
# ============================================================================


class TestGetDataWithRetry:
    """Tests for ProtocolHandler.get_data_with_retry."""

    @pytest.mark.asyncio
    async def test_three_timeouts_then_success(self, options):
        """Three timeouts are retried; the fourth attempt succeeds."""
        timeouts = [BurnerTimeoutError("no answer") for _ in range(3)]
        handler = make_handler(options, *timeouts)

        result = await handler.get_data_with_retry(RequestCategory.ADVANCED_DATA)

        assert result.valid is True
        assert handler._session.exchange.await_count == 4

    @pytest.mark.asyncio
    async def test_always_timeout(self, options):
        """After four timeouts the last one propagates."""
        timeouts = [BurnerTimeoutError(f"no answer {i}") for i in range(5)]
        handler = make_handler(options, *timeouts)

        with pytest.raises(BurnerTimeoutError, match="no answer 3"):
            await handler.get_data_with_retry(RequestCategory.ADVANCED_DATA)

        assert handler._session.exchange.await_count == 4

    @pytest.mark.asyncio
    async def test_other_error_not_retried(self, options):
        handler = make_handler(options, ErrorReceivingError("reset"))

        with pytest.raises(ErrorReceivingError):
            await handler.get_data_with_retry(RequestCategory.ADVANCED_DATA)

        assert handler._session.exchange.await_count == 1

    @pytest.mark.asyncio
    async def test_invalid_response_not_retried(self, options):
        handler = make_handler(options, {"serial": "999999"})

        with pytest.raises(InvalidResponseError):
            await handler.get_data_with_retry(RequestCategory.ADVANCED_DATA)

        assert handler._session.exchange.await_count == 1


# ============================================================================
# Data Aggregation
# ============================================================================


class TestFetchAllData:
    """Tests for ProtocolHandler.fetch_all_data."""

    @pytest.mark.asyncio
    async def test_categories_in_order(self, options):
        handler = make_handler(options)

        await handler.fetch_all_data()

        payloads = [RequestFrame.from_bytes(c.args[0]).payload for c in handler._session.exchange.await_args_list]
        assert payloads == ["*", "*", "total_hours", "hopper.*", "boiler.*", "cleaning.*"]
        assert len(payloads) == len(POLL_CATEGORIES)

    @pytest.mark.asyncio
    async def test_snapshot_contents(self, options):
        handler = make_handler(options)

        snapshot = await handler.fetch_all_data()

        assert snapshot.valid is True
        assert snapshot.alarm_code == 5
        assert snapshot.alarm_text == "Boiler is on. No issues"
        assert snapshot.silo_contents == 800.0
        assert snapshot.silo_minimum_contents == 200.0
        assert snapshot.target_temperature == 65.0
        assert snapshot.previous_hour_consumption() == 0.9
        assert snapshot.refill_needed() is False

    @pytest.mark.asyncio
    async def test_error_aborts_cycle(self, options):
        """An error in a later category propagates."""
        handler = make_handler(options, {}, ErrorReceivingError("reset"))

        with pytest.raises(ErrorReceivingError):
            await handler.fetch_all_data()


# ============================================================================
# Poll Cycle
# ============================================================================


class TestPollOnce:
    """Tests for ProtocolHandler.poll_once."""

    @pytest.mark.asyncio
    async def test_discovers_then_fetches(self, options, store):
        handler = make_handler(options, store=store)

        assert await handler.poll_once() is True

        assert handler.online is True
        assert handler._session.exchange.await_count == 1 + len(POLL_CATEGORIES)
        snapshot = await store.get()
        assert snapshot is not None
        assert snapshot.alarm_code == 5
        assert store.status == STATUS_ONLINE

    @pytest.mark.asyncio
    async def test_online_skips_discovery(self, options, store):
        handler = make_handler(options, store=store)
        handler._online = True

        await handler.poll_once()

        assert handler._session.exchange.await_count == len(POLL_CATEGORIES)

    @pytest.mark.asyncio
    async def test_not_discovered(self, options, store):
        """A burner that cannot be discovered leaves the store without data."""
        handler = make_handler(options, {"sequence": "99"}, {"sequence": "99"}, store=store)

        assert await handler.poll_once() is False

        assert await store.get() is None
        assert store.status == STATUS_COMMUNICATION_ERROR
        assert handler._session.exchange.await_count == 2

    @pytest.mark.asyncio
    async def test_garbled_size_after_good_cycle(self, options, store):
        """A garbled frame fails the cycle through the error path and keeps the old data."""
        handler = make_handler(options, store=store)
        assert await handler.poll_once() is True
        previous = await store.get()

        handler._session = make_session(options, garbled_size_response())
        assert await handler.poll_once() is False

        assert await store.get() is previous
        assert store.status == STATUS_COMMUNICATION_ERROR
        assert isinstance(store.last_error, InvalidResponseError)
        assert handler.online is False

    @pytest.mark.asyncio
    async def test_failure_keeps_previous_snapshot(self, options, store):
        previous = Snapshot(valid=True)
        await store.replace(previous)
        handler = make_handler(options, {}, ErrorReceivingError("reset"), store=store)

        assert await handler.poll_once() is False

        assert await store.get() is previous
        assert store.status == STATUS_COMMUNICATION_ERROR
        assert isinstance(store.last_error, ErrorReceivingError)
        assert handler.online is False


# ============================================================================
# Background Polling
# ============================================================================


class TestPolling:
    """Tests for start/stop of background polling."""

    @pytest.mark.asyncio
    async def test_start_stop(self, options):
        handler = make_handler(options)
        handler._initial_delay = 60

        await handler.start()
        assert handler.running is True
        handler._session.open.assert_called_once()

        await handler.stop()
        assert handler.running is False
        handler._session.close.assert_called_once()
        handler._session.exchange.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_start_twice(self, options):
        handler = make_handler(options)
        handler._initial_delay = 60

        await handler.start()
        task = handler._poll_task
        await handler.start()

        assert handler._poll_task is task
        await handler.stop()

    @pytest.mark.asyncio
    async def test_loop_survives_failed_cycle(self, options, store):
        """A failed cycle does not end polling; the next one succeeds."""
        handler = make_handler(options, ErrorReceivingError("reset"), store=store)

        await handler.start()
        for _ in range(100):
            await asyncio.sleep(0.01)
            if await store.get() is not None:
                break
        await handler.stop()

        assert await store.get() is not None
        assert store.status == STATUS_ONLINE


# ============================================================================
# End to End
# ============================================================================


class TestEndToEnd:
    """Full cycle against a burner on a loopback UDP socket."""

    @pytest.mark.asyncio
    async def test_cycle(self, store):
        async with running_burner() as (burner, port):
            options = Options(
                remote_address="127.0.0.1",
                remote_port=port,
                local_port=38683,
                serial=TEST_SERIAL,
                password=TEST_PASSWORD,
            )
            session = UDPSession(options, port_ceiling=38783, pacing_delay=0, receive_timeout=1.0)
            handler = ProtocolHandler(session=session, store=store)

            assert await handler.poll_once() is True

        snapshot = await store.get()
        assert snapshot.alarm_code == 5
        assert snapshot.refill_needed() is False
        assert snapshot.silo_contents == 800.0
        assert [r.payload for r in burner.requests][0] == "NBE_DISCOVERY"
        assert len(burner.requests) == 1 + len(POLL_CATEGORIES)
        assert all(r.serial == "001234" for r in burner.requests)

    @pytest.mark.asyncio
    async def test_cycle_with_dropped_requests(self, store):
        """Two unanswered requests are retried within the cycle."""
        async with running_burner(drop=2) as (burner, port):
            options = Options(remote_address="127.0.0.1", remote_port=port, local_port=38683, serial=TEST_SERIAL)
            session = UDPSession(options, port_ceiling=38783, pacing_delay=0, receive_timeout=0.2)
            handler = ProtocolHandler(session=session, store=store)
            handler._online = True

            assert await handler.poll_once() is True

        assert len(burner.requests) == 2 + len(POLL_CATEGORIES)
