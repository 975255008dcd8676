"""UDP session with a single burner.

A socket is opened for each exchange and closed again afterwards; it is never
held open between exchanges. The burner is easily overwhelmed, so every send is
preceded by a fixed pacing delay.
"""

import asyncio
import logging
import socket

from pelletburner_gateway.core.exceptions import (
    BurnerTimeoutError,
    ErrorReceivingError,
    ErrorSendingError,
    SleepInterruptedError,
    UnableToBindLocalPortError,
    UnknownLocalHostError,
    UnknownRemoteHostError,
)
from pelletburner_gateway.core.models import Options
from pelletburner_gateway.protocol.constants import PACING_DELAY, PORT_CEILING, RECEIVE_BUFFER_SIZE, RECEIVE_TIMEOUT
from pelletburner_gateway.transport.protocol import BurnerDatagramProtocol

logger = logging.getLogger(__name__)


class UDPSession:
    """Request/response datagram exchange with one burner.

    One session exists per configured burner. Exchanges are serialised, so at
    most one socket is open at any time.
    """

    def __init__(
        self,
        options: Options,
        port_ceiling: int = PORT_CEILING,
        receive_timeout: float = RECEIVE_TIMEOUT,
        pacing_delay: float = PACING_DELAY,
        buffer_size: int = RECEIVE_BUFFER_SIZE,
    ):
        """
        Initialize the session.

        Args:
            options: Connection options for the burner
            port_ceiling: Highest local port to try when the configured one is busy
            receive_timeout: Seconds to wait for a response (default: 3.0)
            pacing_delay: Seconds to wait before every send (default: 2.0)
            buffer_size: Receive buffer size; longer datagrams are truncated
        """
        self.options = options
        self.port_ceiling = port_ceiling
        self.receive_timeout = receive_timeout
        self.pacing_delay = pacing_delay
        self.buffer_size = buffer_size

        self.local_port = options.local_port
        self._lock = asyncio.Lock()
        self._closed = asyncio.Event()

    @property
    def closed(self) -> bool:
        """Whether the session refuses new exchanges."""
        return self._closed.is_set()

    def open(self) -> None:
        """Allow exchanges again after close()."""
        self._closed.clear()

    def close(self) -> None:
        """Interrupt a pending pacing delay and refuse further exchanges.

        A receive already in progress is not interrupted; it ends with its
        timeout.
        """
        self._closed.set()

    def _open_socket(self, address: str, port: int) -> socket.socket:
        """Create a UDP socket bound to (address, port) with broadcast and reuse disabled."""
        sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        try:
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 0)
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_BROADCAST, 0)
            sock.bind((address, port))
        except OSError:
            sock.close()
            raise
        sock.setblocking(False)
        return sock

    def bind_local_port(self) -> socket.socket:
        """
        Bind a UDP socket to the local address, searching upwards for a free port.

        Starts at the last port that worked (initially the configured one). The
        port that binds is kept for the following exchanges.

        Returns:
            Bound, non-blocking socket

        Raises:
            UnknownLocalHostError: If the local address cannot be resolved
            UnableToBindLocalPortError: If no port up to the ceiling can be bound
        """
        address = self.options.bind_address
        initial_port = self.local_port

        while True:
            try:
                sock = self._open_socket(address, self.local_port)
            except socket.gaierror as e:
                raise UnknownLocalHostError(f"Unknown local address {address}") from e
            except OSError as e:
                if self.local_port >= self.port_ceiling:
                    failed_port = self.local_port
                    self.local_port = self.options.local_port
                    raise UnableToBindLocalPortError(
                        f"Unable to use local port between {initial_port} and {failed_port}"
                    ) from e
                logger.debug("Local port %d unavailable (%s), trying %d", self.local_port, e, self.local_port + 1)
                self.local_port += 1
                continue

            logger.debug("Bound to %s:%d", address, self.local_port)
            return sock

    async def _pace(self) -> None:
        """Wait the pacing delay, unless the session is closed first."""
        try:
            await asyncio.wait_for(self._closed.wait(), timeout=self.pacing_delay)
        except TimeoutError:
            return
        raise SleepInterruptedError("Session closed during pacing delay")

    async def _resolve_remote(self) -> tuple[str, int]:
        host = self.options.remote_address
        port = self.options.remote_port
        if not host:
            raise UnknownRemoteHostError("No remote address configured")
        loop = asyncio.get_running_loop()
        try:
            infos = await loop.getaddrinfo(host, port, family=socket.AF_INET, type=socket.SOCK_DGRAM)
        except socket.gaierror as e:
            raise UnknownRemoteHostError(f"Unknown remote address {host}") from e
        if not infos:
            raise UnknownRemoteHostError(f"Unknown remote address {host}")
        return infos[0][4][0], port

    async def exchange(self, request: bytes) -> bytes:
        """
        Send one request datagram and return the response datagram.

        Args:
            request: Complete request frame

        Returns:
            Response datagram, cut to the receive buffer size

        Raises:
            SleepInterruptedError: If the session was closed during pacing
            UnableToBindLocalPortError, UnknownLocalHostError: If binding fails
            UnknownRemoteHostError: If the burner address cannot be resolved
            ErrorSendingError: If sending fails
            BurnerTimeoutError: If no response arrives in time
            ErrorReceivingError: If receiving fails otherwise
        """
        async with self._lock:
            await self._pace()

            sock = self.bind_local_port()
            loop = asyncio.get_running_loop()
            transport: asyncio.DatagramTransport | None = None
            try:
                transport, protocol = await loop.create_datagram_endpoint(
                    lambda: BurnerDatagramProtocol(self.buffer_size),
                    sock=sock,
                )
                remote = await self._resolve_remote()

                try:
                    protocol.send_datagram(request, remote)
                except OSError as e:
                    raise ErrorSendingError(f"Error sending request to {remote[0]}:{remote[1]}") from e

                try:
                    return await protocol.receive_datagram(timeout=self.receive_timeout)
                except TimeoutError as e:
                    raise BurnerTimeoutError(
                        f"Error receiving response because of timeout ({self.receive_timeout}s)"
                    ) from e
                except OSError as e:
                    raise ErrorReceivingError(f"Error receiving response: {e}") from e
            finally:
                if transport is not None:
                    transport.close()
                    # The transport releases the socket on the next loop iteration
                    await asyncio.sleep(0)
                else:
                    sock.close()
