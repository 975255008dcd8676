"""Exceptions raised by the burner protocol engine.

Every failure carries an :class:`ErrorKind` so callers (the poll loop, the API)
can report what went wrong without matching on exception classes.
"""

from enum import Enum


class ErrorKind(str, Enum):
    """Kinds of failure reported by the protocol engine."""

    UNKNOWN_PROTOCOL = "unknown_protocol"
    UNABLE_TO_BIND_LOCAL_PORT = "unable_to_bind_local_port"
    UNKNOWN_LOCAL_HOST = "unknown_local_host"
    UNKNOWN_REMOTE_HOST = "unknown_remote_host"
    ERROR_SENDING = "error_sending"
    ERROR_RECEIVING = "error_receiving"
    TIMEOUT = "timeout"
    INVALID_REQUEST = "invalid_request"
    INVALID_RESPONSE = "invalid_response"
    DATA_ACCESS = "data_access_error"
    UNKNOWN_BURNER_STATE = "unknown_burner_state"
    UNABLE_TO_DETERMINE_TIME_OF_DAY = "unable_to_determine_time_of_day"
    SLEEP_INTERRUPTED = "sleep_interrupted"


class BurnerError(Exception):
    """Base class for all protocol engine errors."""

    kind: ErrorKind

    def __init__(self, message: str = ""):
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        return f"{self.message} [{self.kind.value}]" if self.message else self.kind.value


class UnknownProtocolError(BurnerError):
    """No protocol implementation is registered under the requested name."""

    kind = ErrorKind.UNKNOWN_PROTOCOL


class UnableToBindLocalPortError(BurnerError):
    """No local UDP port up to the protocol's ceiling could be bound."""

    kind = ErrorKind.UNABLE_TO_BIND_LOCAL_PORT


class UnknownLocalHostError(BurnerError):
    """The configured local address could not be resolved."""

    kind = ErrorKind.UNKNOWN_LOCAL_HOST


class UnknownRemoteHostError(BurnerError):
    """The configured remote address could not be resolved."""

    kind = ErrorKind.UNKNOWN_REMOTE_HOST


class ErrorSendingError(BurnerError):
    """The request datagram could not be sent."""

    kind = ErrorKind.ERROR_SENDING


class ErrorReceivingError(BurnerError):
    """The socket failed while waiting for a response."""

    kind = ErrorKind.ERROR_RECEIVING


class BurnerTimeoutError(BurnerError):
    """No response arrived within the receive timeout."""

    kind = ErrorKind.TIMEOUT


class InvalidRequestError(BurnerError):
    """A request frame could not be built."""

    kind = ErrorKind.INVALID_REQUEST


class InvalidResponseError(BurnerError):
    """A response frame is malformed or does not match its request."""

    kind = ErrorKind.INVALID_RESPONSE


class DataAccessError(BurnerError):
    """A frame field lies outside the received buffer."""

    kind = ErrorKind.DATA_ACCESS


class UnknownBurnerStateError(BurnerError):
    """The burner state or substate is not numeric."""

    kind = ErrorKind.UNKNOWN_BURNER_STATE


class UnableToDetermineTimeOfDayError(BurnerError):
    """The burner's clock value could not be interpreted."""

    kind = ErrorKind.UNABLE_TO_DETERMINE_TIME_OF_DAY


class SleepInterruptedError(BurnerError):
    """The pacing delay before a send was interrupted by closing the session."""

    kind = ErrorKind.SLEEP_INTERRUPTED
