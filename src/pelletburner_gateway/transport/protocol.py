"""asyncio.DatagramProtocol implementation for burner datagrams."""

import asyncio
import logging

from pelletburner_gateway.protocol.constants import RECEIVE_BUFFER_SIZE

logger = logging.getLogger(__name__)

_QUEUE_MAXSIZE = 8


class BurnerDatagramProtocol(asyncio.DatagramProtocol):
    """Event-driven receiver for burner datagrams.

    Received datagrams (cut to the receive buffer size) and socket errors are
    placed on an asyncio.Queue for ``receive_datagram()``.
    """

    def __init__(self, buffer_size: int = RECEIVE_BUFFER_SIZE) -> None:
        self._transport: asyncio.DatagramTransport | None = None
        self._buffer_size = buffer_size
        self._queue: asyncio.Queue[bytes | Exception | None] = asyncio.Queue(maxsize=_QUEUE_MAXSIZE)
        self._sending = False
        self._send_error: Exception | None = None
        self._stats = {
            "datagrams_read": 0,
            "datagrams_truncated": 0,
            "bytes_read": 0,
            "datagrams_written": 0,
            "errors": 0,
        }

    # -- asyncio.DatagramProtocol callbacks -----------------------------------

    def connection_made(self, transport: asyncio.DatagramTransport) -> None:  # type: ignore[override]
        self._transport = transport
        logger.debug("BurnerDatagramProtocol: endpoint ready")

    def connection_lost(self, exc: Exception | None) -> None:
        self._transport = None
        # Push sentinel so a pending receive_datagram() unblocks.
        self._put(None)
        logger.debug("BurnerDatagramProtocol: endpoint closed (exc=%s)", exc)

    def datagram_received(self, data: bytes, addr: tuple) -> None:
        self._stats["datagrams_read"] += 1
        self._stats["bytes_read"] += len(data)
        if len(data) > self._buffer_size:
            self._stats["datagrams_truncated"] += 1
            logger.warning("Datagram of %d bytes from %s truncated to %d", len(data), addr, self._buffer_size)
            data = data[: self._buffer_size]
        logger.debug("Datagram from %s: %s", addr, data)
        self._put(data)

    def error_received(self, exc: Exception) -> None:
        self._stats["errors"] += 1
        logger.debug("Socket error: %s", exc)
        # The transport reports sendto() failures here, from inside sendto().
        if self._sending:
            self._send_error = exc
            return
        self._put(exc)

    def _put(self, item: bytes | Exception | None) -> None:
        if self._queue.full():
            # Drop oldest item to make room.
            try:
                self._queue.get_nowait()
            except asyncio.QueueEmpty:
                pass
        try:
            self._queue.put_nowait(item)
        except asyncio.QueueFull:
            pass

    # -- public API ----------------------------------------------------------

    @property
    def connected(self) -> bool:
        return self._transport is not None

    @property
    def stats(self) -> dict:
        return self._stats.copy()

    def send_datagram(self, data: bytes, addr: tuple[str, int]) -> None:
        """Send one datagram to ``addr``.

        Raises:
            ConnectionError: If the endpoint is closed.
        """
        if self._transport is None:
            raise ConnectionError("Datagram endpoint is closed")
        self._sending = True
        self._send_error = None
        try:
            self._transport.sendto(data, addr)
        finally:
            self._sending = False
        if self._send_error is not None:
            raise self._send_error
        self._stats["datagrams_written"] += 1
        logger.debug("Datagram to %s: %s", addr, data)

    async def receive_datagram(self, timeout: float | None = None) -> bytes:
        """Wait for the next datagram.

        Raises:
            TimeoutError: If nothing arrives within ``timeout``.
            OSError: If the socket reported an error.
            ConnectionError: If the endpoint was closed while waiting.
        """
        item = await asyncio.wait_for(self._queue.get(), timeout=timeout)
        if item is None:
            raise ConnectionError("Datagram endpoint closed while receiving")
        if isinstance(item, Exception):
            raise item
        return item
