"""Shared test fixtures."""

import asyncio
from contextlib import asynccontextmanager

import pytest

from pelletburner_gateway.core.cache import SnapshotStore
from pelletburner_gateway.core.models import Options
from pelletburner_gateway.protocol.frames import RequestFrame, ResponseFrame

TEST_SERIAL = "1234"
TEST_PASSWORD = "secret"

OPERATING_PAYLOAD = "boiler_temp=64.2;state=5;substate=0;content=800;power_pct=30;power_kw=4.5;time=13.01.26 10:15:00"
ADVANCED_PAYLOAD = "auger_consumption=450;trip_countdown=120"
HOURS_PAYLOAD = "total_hours=" + ",".join(f"{h / 10:.1f}" for h in range(24))
HOPPER_PAYLOAD = "content=800;min_content=200"
BOILER_PAYLOAD = "boiler_setpoint=65;diff_over=5;diff_under=5"
CLEANING_PAYLOAD = "trip_countdown=120"

# Reply payload keyed by the request payload the burner receives
DEVICE_REPLIES = {
    "NBE_DISCOVERY": "serial=1234;ip=192.168.1.50;type=v13;ver=1005",
    "*_04": OPERATING_PAYLOAD,
    "*_05": ADVANCED_PAYLOAD,
    "total_hours": HOURS_PAYLOAD,
    "hopper.*": HOPPER_PAYLOAD,
    "boiler.*": BOILER_PAYLOAD,
    "cleaning.*": CLEANING_PAYLOAD,
}


def reply_payload(request: RequestFrame) -> str:
    """Payload a well-behaved burner answers ``request`` with."""
    if request.payload == "*":
        return DEVICE_REPLIES[f"*_{request.function_code}"]
    return DEVICE_REPLIES.get(request.payload, "")


class FakeBurner(asyncio.DatagramProtocol):
    """UDP endpoint answering requests like an NBE burner.

    ``drop`` requests are ignored before answering starts, to provoke timeouts.
    """

    def __init__(self, drop: int = 0) -> None:
        self.transport: asyncio.DatagramTransport | None = None
        self.requests: list[RequestFrame] = []
        self.drop = drop

    def connection_made(self, transport) -> None:
        self.transport = transport

    def datagram_received(self, data: bytes, addr) -> None:
        request = RequestFrame.from_bytes(data)
        self.requests.append(request)
        if self.drop > 0:
            self.drop -= 1
            return
        response = ResponseFrame.reply_to(request, reply_payload(request))
        self.transport.sendto(response.to_bytes(), addr)


@asynccontextmanager
async def running_burner(drop: int = 0):
    """Run a FakeBurner on an ephemeral loopback port; yields (burner, port)."""
    loop = asyncio.get_running_loop()
    transport, burner = await loop.create_datagram_endpoint(lambda: FakeBurner(drop), local_addr=("127.0.0.1", 0))
    try:
        yield burner, transport.get_extra_info("sockname")[1]
    finally:
        transport.close()


@pytest.fixture
def options() -> Options:
    """Options for a burner on localhost."""
    return Options(remote_address="127.0.0.1", remote_port=8483, serial=TEST_SERIAL, password=TEST_PASSWORD)


@pytest.fixture
def store() -> SnapshotStore:
    return SnapshotStore()
