"""Protocol variants and their registry.

Each burner model/firmware speaks its own dialect. A variant bundles how to
build requests, read responses, check that a response belongs to its request,
parse payloads and classify alarms. Supporting a new firmware means adding
and registering one ``BurnerProtocol`` subclass.
"""

import logging
from abc import ABC, abstractmethod
from collections.abc import Callable

from pelletburner_gateway.core.exceptions import InvalidRequestError, UnknownProtocolError
from pelletburner_gateway.core.models import Options, Snapshot
from pelletburner_gateway.protocol.alarms import AlarmStatus, classify
from pelletburner_gateway.protocol.constants import (
    CATEGORY_SPECS,
    POLL_CATEGORIES,
    PORT_CEILING,
    ProtocolVariant,
    RequestCategory,
)
from pelletburner_gateway.protocol.frames import RequestFrame, ResponseFrame
from pelletburner_gateway.protocol.payload import ParseResult, parse_payload

logger = logging.getLogger(__name__)


class BurnerProtocol(ABC):
    """Interface for a burner protocol variant.

    Example:
        >>> protocol = get_protocol("NBE_V13_1005", options)
        >>> request = protocol.build_request(RequestCategory.OPERATING_DATA, sequence=7)
        >>> response = protocol.parse_response(await session.exchange(request.to_bytes()))
        >>> protocol.validate(request, response)
        []
    """

    name: str = ""
    port_ceiling: int = PORT_CEILING
    poll_categories: tuple[RequestCategory, ...] = ()

    def __init__(self, options: Options):
        self.options = options

    @abstractmethod
    def build_request(self, category: RequestCategory, sequence: int) -> RequestFrame:
        """Build the request frame for a category.

        Raises:
            InvalidRequestError: If the variant cannot issue this category
        """

    @abstractmethod
    def parse_response(self, data: bytes) -> ResponseFrame:
        """Parse a received datagram into a response frame.

        Raises:
            DataAccessError: If the datagram is truncated
            InvalidResponseError: If the datagram is malformed
        """

    @abstractmethod
    def validate(self, request: RequestFrame, response: ResponseFrame) -> list[str]:
        """Compare a response with its request.

        Returns:
            Names of the fields that do not match; empty if the response is valid
        """

    @abstractmethod
    def parse_payload(self, category: RequestCategory, response: ResponseFrame) -> ParseResult:
        """Parse the response payload into items grouped under ``category``."""

    @abstractmethod
    def classify_alarm(self, snapshot: Snapshot) -> AlarmStatus:
        """Derive the alarm status from the operating data in ``snapshot``.

        Raises:
            UnknownBurnerStateError: If state or substate is not numeric
        """


_REGISTRY: dict[str, type[BurnerProtocol]] = {}


def register_protocol(name: str) -> Callable[[type[BurnerProtocol]], type[BurnerProtocol]]:
    """Class decorator registering a protocol variant under ``name``."""

    def decorator(cls: type[BurnerProtocol]) -> type[BurnerProtocol]:
        cls.name = name
        _REGISTRY[name] = cls
        return cls

    return decorator


def available_protocols() -> list[str]:
    """Names of all registered protocol variants."""
    return sorted(_REGISTRY)


def get_protocol(name: str | None, options: Options) -> BurnerProtocol:
    """Instantiate the protocol variant registered under ``name``.

    Raises:
        UnknownProtocolError: If no variant is registered under that name
    """
    cls = _REGISTRY.get(name or "")
    if cls is None:
        raise UnknownProtocolError(f"Unknown protocol: {name or '<none>'}")
    logger.debug("Using protocol %s", name)
    return cls(options)


@register_protocol(ProtocolVariant.NBE_V13_1005.value)
class NBEV13Protocol(BurnerProtocol):
    """NBE protocol version 13, firmware 1005 (plaintext, unencrypted frames)."""

    poll_categories = POLL_CATEGORIES

    def build_request(self, category: RequestCategory, sequence: int) -> RequestFrame:
        if category == RequestCategory.DISCOVERY_BROADCAST:
            # TODO: broadcast discovery needs the sender's ip:port appended after the end byte
            raise InvalidRequestError("Discovery by broadcast is not supported")

        spec = CATEGORY_SPECS[category]
        return RequestFrame(
            serial=self.options.serial,
            password=self.options.password,
            function_code=spec.function_code,
            payload=spec.payload,
            sequence=sequence,
        )

    def parse_response(self, data: bytes) -> ResponseFrame:
        return ResponseFrame.from_bytes(data)

    def validate(self, request: RequestFrame, response: ResponseFrame) -> list[str]:
        checks = {
            "app_id": request.app_id == response.app_id,
            "serial": request.serial == response.serial,
            "start": request.start == response.start,
            "function_code": request.function_code == response.function_code,
            "sequence": request.sequence == response.sequence,
            "end": request.end == response.end,
        }
        return [field for field, matches in checks.items() if not matches]

    def parse_payload(self, category: RequestCategory, response: ResponseFrame) -> ParseResult:
        return parse_payload(response.payload_text, category, CATEGORY_SPECS[category].payload_format)

    def classify_alarm(self, snapshot: Snapshot) -> AlarmStatus:
        return classify(snapshot.burner_state, snapshot.burner_substate)
