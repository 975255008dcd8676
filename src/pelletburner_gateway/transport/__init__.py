"""UDP transport layer."""

from pelletburner_gateway.transport.connection import UDPSession
from pelletburner_gateway.transport.protocol import BurnerDatagramProtocol

__all__ = ["UDPSession", "BurnerDatagramProtocol"]
