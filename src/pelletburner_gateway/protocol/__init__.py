"""NBE burner UDP protocol implementation."""

from pelletburner_gateway.protocol.alarms import AlarmStatus, classify
from pelletburner_gateway.protocol.constants import (
    CATEGORY_SPECS,
    POLL_CATEGORIES,
    FunctionCode,
    PayloadFormat,
    ProtocolVariant,
    RequestCategory,
)
from pelletburner_gateway.protocol.frames import RequestFrame, ResponseFrame, pad_field

# Payload parsing, variants and the handler are imported lazily to avoid a
# circular import with core.models
# (core.models -> protocol.constants -> protocol.__init__ -> payload -> core.models)

_LAZY = {
    "ParseResult": "pelletburner_gateway.protocol.payload",
    "parse_payload": "pelletburner_gateway.protocol.payload",
    "BurnerProtocol": "pelletburner_gateway.protocol.variants",
    "get_protocol": "pelletburner_gateway.protocol.variants",
    "register_protocol": "pelletburner_gateway.protocol.variants",
    "ExchangeResult": "pelletburner_gateway.protocol.handler",
    "ProtocolHandler": "pelletburner_gateway.protocol.handler",
}


def __getattr__(name: str):
    if name in _LAZY:
        import importlib

        return getattr(importlib.import_module(_LAZY[name]), name)
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


__all__ = [
    "AlarmStatus",
    "BurnerProtocol",
    "CATEGORY_SPECS",
    "ExchangeResult",
    "FunctionCode",
    "POLL_CATEGORIES",
    "ParseResult",
    "PayloadFormat",
    "ProtocolHandler",
    "ProtocolVariant",
    "RequestCategory",
    "RequestFrame",
    "ResponseFrame",
    "classify",
    "get_protocol",
    "pad_field",
    "parse_payload",
    "register_protocol",
]
