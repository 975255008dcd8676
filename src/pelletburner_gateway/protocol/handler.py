"""Protocol handler for NBE burner communication.

Orchestrates request building, the UDP exchange, response validation,
payload parsing, discovery, timeout retries and the polling cycle that feeds
the snapshot store.
"""

import asyncio
import logging
from typing import NamedTuple

from pelletburner_gateway.core.cache import SnapshotStore
from pelletburner_gateway.core.exceptions import BurnerError, BurnerTimeoutError, InvalidResponseError
from pelletburner_gateway.core.models import ResponseItem, Snapshot
from pelletburner_gateway.protocol.constants import (
    INITIAL_DELAY,
    POLL_INTERVAL,
    RETRY_ATTEMPTS,
    RequestCategory,
)
from pelletburner_gateway.protocol.frames import RequestFrame, ResponseFrame
from pelletburner_gateway.protocol.variants import BurnerProtocol, get_protocol
from pelletburner_gateway.transport.connection import UDPSession

logger = logging.getLogger(__name__)

# Sequence numbers are two decimal digits on the wire
SEQUENCE_MODULO = 100


class ExchangeResult(NamedTuple):
    """Outcome of one request/response exchange."""

    request: RequestFrame
    response: ResponseFrame
    items: list[ResponseItem]
    skipped: list[str]
    valid: bool

    @property
    def ok(self) -> bool:
        """Whether the response matched its request and produced at least one item."""
        return self.valid and bool(self.items)


class ProtocolHandler:
    """Orchestrates communication with one burner.

    Handles request/response correlation, discovery, retries on timeout and
    background polling with snapshot storage.
    """

    def __init__(
        self,
        session: UDPSession,
        store: SnapshotStore,
        protocol: BurnerProtocol | None = None,
        poll_interval: float = POLL_INTERVAL * 60,
        initial_delay: float = INITIAL_DELAY,
        retry_attempts: int = RETRY_ATTEMPTS,
    ):
        """Initialize protocol handler.

        Args:
            session: UDP session with the burner.
            store: Snapshot store to update.
            protocol: Protocol variant; resolved from the session options if omitted.
            poll_interval: Seconds between poll cycles.
            initial_delay: Seconds before the first poll cycle.
            retry_attempts: Total attempts per category when the burner times out.

        Raises:
            UnknownProtocolError: If the configured protocol is not registered.
        """
        self._session = session
        self._store = store
        self._protocol = protocol or get_protocol(session.options.protocol, session.options)
        self._poll_interval = poll_interval
        self._initial_delay = initial_delay
        self._retry_attempts = retry_attempts

        self._sequence = 0
        self._online = False
        self._poll_task: asyncio.Task | None = None
        self._running = False
        self._lock = asyncio.Lock()

    @property
    def protocol(self) -> BurnerProtocol:
        return self._protocol

    @property
    def online(self) -> bool:
        """Whether the burner answered the last discovery and cycle."""
        return self._online

    @property
    def running(self) -> bool:
        """Check if background polling is running."""
        return self._running

    def _next_sequence(self) -> int:
        sequence = self._sequence
        self._sequence = (self._sequence + 1) % SEQUENCE_MODULO
        return sequence

    async def start(self) -> None:
        """Start background polling task."""
        if self._running:
            return

        self._running = True
        self._session.open()
        self._poll_task = asyncio.create_task(self._poll_loop())
        logger.info("Protocol handler started")

    async def stop(self) -> None:
        """Stop background polling task."""
        self._running = False
        self._session.close()

        if self._poll_task is not None:
            self._poll_task.cancel()
            try:
                await self._poll_task
            except asyncio.CancelledError:
                pass
            self._poll_task = None

        logger.info("Protocol handler stopped")

    async def send_and_receive(self, category: RequestCategory, strict: bool = True) -> ExchangeResult:
        """Send one request and parse the burner's answer.

        Args:
            category: Request category to send.
            strict: If True, a response that does not match the request raises;
                otherwise it is returned with ``valid=False`` and no items.

        Returns:
            The exchange result.

        Raises:
            InvalidResponseError: If strict and the response does not match the request.
            BurnerError: Any transport or framing error, unchanged.
        """
        request = self._protocol.build_request(category, self._next_sequence())
        logger.debug("Sending %s: %r", category.name, request)

        data = await self._session.exchange(request.to_bytes())
        response = self._protocol.parse_response(data)
        logger.debug("Received %s: %r", category.name, response)

        mismatches = self._protocol.validate(request, response)
        if mismatches:
            if strict:
                raise InvalidResponseError(f"Invalid response, mismatching fields: {', '.join(mismatches)}")
            logger.warning("Invalid %s response, mismatching fields: %s", category.name, ", ".join(mismatches))
            return ExchangeResult(request, response, [], [], False)

        result = self._protocol.parse_payload(category, response)
        if not result.ok:
            logger.warning("%s response carried no items: %r", category.name, response.payload_text)
        return ExchangeResult(request, response, result.items, result.skipped, True)

    async def discover_by_category(self, category: RequestCategory, retry_on_fail: bool = True) -> bool:
        """Ping the burner with a discovery request.

        An invalid answer is retried once if ``retry_on_fail``. Transport errors,
        including timeouts, propagate.

        Returns:
            True if the final attempt got a valid answer.
        """
        result = await self.send_and_receive(category, strict=False)
        if not result.valid and retry_on_fail:
            logger.debug("Discovery answer invalid, retrying once")
            result = await self.send_and_receive(category, strict=False)

        self._online = result.valid
        return result.valid

    async def discover(self, retry_on_fail: bool = True) -> bool:
        """Discover the burner at its configured address."""
        return await self.discover_by_category(RequestCategory.DISCOVERY, retry_on_fail)

    async def discover_by_broadcast(self, retry_on_fail: bool = True) -> bool:
        """Discover the burner by broadcasting.

        Raises:
            InvalidRequestError: Not supported by any implemented protocol variant.
        """
        return await self.discover_by_category(RequestCategory.DISCOVERY_BROADCAST, retry_on_fail)

    async def get_data_with_retry(self, category: RequestCategory) -> ExchangeResult:
        """Fetch one category, retrying only when the burner times out.

        Raises:
            BurnerTimeoutError: If every attempt timed out.
            BurnerError: Any other error, on its first occurrence.
        """
        for attempt in range(1, self._retry_attempts + 1):
            try:
                return await self.send_and_receive(category)
            except BurnerTimeoutError:
                if attempt >= self._retry_attempts:
                    logger.warning("%s: no answer after %d attempts", category.name, attempt)
                    raise
                logger.info("%s: timeout on attempt %d of %d, retrying", category.name, attempt, self._retry_attempts)

        raise BurnerTimeoutError(f"No attempts made for {category.name}")

    async def fetch_all_data(self) -> Snapshot:
        """Fetch every polled category into a fresh snapshot.

        Returns:
            A valid snapshot with the alarm classified from the operating data.
        """
        snapshot = Snapshot()

        for category in self._protocol.poll_categories:
            result = await self.get_data_with_retry(category)
            snapshot.add_items(result.items)

            if category == RequestCategory.OPERATING_DATA:
                alarm = self._protocol.classify_alarm(snapshot)
                snapshot.alarm_code = alarm.code
                snapshot.alarm_text = alarm.text

        snapshot.valid = True
        logger.debug("Fetched %d items, alarm %d: %s", len(snapshot.items), snapshot.alarm_code, snapshot.alarm_text)
        return snapshot

    async def poll_once(self) -> bool:
        """Run one poll cycle.

        Discovers the burner first unless it is already online, then fetches all
        data and replaces the stored snapshot. On failure the previous snapshot
        stays and the store records the error.

        Returns:
            True if a new snapshot was stored.
        """
        async with self._lock:
            try:
                if not self._online and not await self.discover(retry_on_fail=True):
                    raise InvalidResponseError("Burner was not discovered")

                snapshot = await self.fetch_all_data()
            except BurnerError as e:
                self._online = False
                logger.error("Poll cycle failed: %s", e)
                await self._store.mark_failed(e)
                return False

            await self._store.replace(snapshot)
            return True

    async def _poll_loop(self) -> None:
        """Background polling loop."""
        await asyncio.sleep(self._initial_delay)

        while self._running:
            try:
                await self.poll_once()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error(f"Poll error: {e}")

            try:
                await asyncio.sleep(self._poll_interval)
            except asyncio.CancelledError:
                raise
