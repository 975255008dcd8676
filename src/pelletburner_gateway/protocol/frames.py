"""Frame construction and parsing for the NBE UDP protocol."""

import time

from pelletburner_gateway.core.exceptions import DataAccessError, InvalidRequestError, InvalidResponseError
from pelletburner_gateway.protocol.constants import (
    APP_ID,
    APP_ID_LEN,
    ENCRYPTION_LEN,
    ENCRYPTION_NONE,
    END_BYTE,
    EXTRA,
    EXTRA_LEN,
    FUNCTION_CODE_LEN,
    MAX_PAYLOAD_LEN,
    PASSWORD_LEN,
    PAYLOAD_SIZE_LEN,
    RESPONSE_APP_ID,
    RESPONSE_CODE,
    RESPONSE_FUNCTION_CODE,
    RESPONSE_PAYLOAD_OFFSET,
    RESPONSE_PAYLOAD_SIZE,
    RESPONSE_SEQUENCE,
    RESPONSE_SERIAL,
    RESPONSE_START,
    SEQUENCE_LEN,
    SERIAL_LEN,
    START_BYTE,
    TIMESTAMP_LEN,
    FunctionCode,
)

# Text fields travel as single-byte characters; latin-1 maps every byte back to
# exactly one character so decoded fields compare byte-for-byte.
_WIRE_DECODING = "latin-1"


def pad_field(value: str, width: int) -> str:
    """Fit a value into a fixed-width field.

    The value is cut to ``width`` characters, right-aligned, and every space
    (padding included) becomes ``0``.

    >>> pad_field("1234", 6)
    '001234'
    """
    return value[:width].rjust(width).replace(" ", "0")


def _code_text(code: FunctionCode | str) -> str:
    return code.value if isinstance(code, FunctionCode) else code


def _slice(data: bytes, start: int, end: int) -> bytes:
    """Return ``data[start:end]``, refusing ranges beyond the buffer."""
    if start < 0 or end > len(data) or start > end:
        raise DataAccessError(f"Unable to access data part between {start}-{end} (frame is {len(data)} bytes)")
    return data[start:end]


def _text(data: bytes, start: int, end: int) -> str:
    return _slice(data, start, end).decode(_WIRE_DECODING)


def _payload_size(text: str, error: type[Exception]) -> int:
    if not (text.isascii() and text.isdigit()):
        raise error(f"Payload size is not numeric: {text!r}")
    return int(text)


class RequestFrame:
    """
    A request sent to the burner.

    Frame structure:
    [APP_ID 12][SERIAL 6][ENC 1][START 1][FUNC 2][SEQ 2][PASSWORD 10]
    [TIMESTAMP 10][EXTRA 4][SIZE 3][PAYLOAD n][END 1]

    Attributes:
        serial: Burner serial, padded to 6 characters
        password: Burner password, padded to 10 characters
        function_code: Two-character function code
        sequence: Two-digit sequence number echoed by the burner
        timestamp: Unix seconds as decimal text
        payload: Request payload text
    """

    def __init__(
        self,
        serial: str,
        password: str,
        function_code: FunctionCode | str,
        payload: str = "",
        sequence: int = 42,
        timestamp: int | None = None,
    ):
        self.app_id = APP_ID
        self.serial = pad_field(serial, SERIAL_LEN)
        self.encryption = ENCRYPTION_NONE
        self.start = START_BYTE
        self.function_code = _code_text(function_code)
        self.sequence = f"{sequence:02d}"
        self.password = pad_field(password, PASSWORD_LEN)
        self.timestamp = str(int(time.time()) if timestamp is None else timestamp)
        self.extra = EXTRA
        self.payload = payload
        self.end = END_BYTE

    def to_bytes(self) -> bytes:
        """
        Convert the request to bytes for transmission.

        Returns:
            Complete frame as bytes

        Raises:
            InvalidRequestError: If a fixed-width field cannot be produced
        """
        widths = {
            "function code": (self.function_code, FUNCTION_CODE_LEN),
            "sequence number": (self.sequence, SEQUENCE_LEN),
            "timestamp": (self.timestamp, TIMESTAMP_LEN),
        }
        for name, (value, width) in widths.items():
            if len(value) != width:
                raise InvalidRequestError(f"Error building request: {name} {value!r} is not {width} characters")

        try:
            payload = self.payload.encode("ascii")
            head = (self.app_id + self.serial + self.encryption).encode("ascii")
            body = (self.function_code + self.sequence + self.password + self.timestamp + self.extra).encode("ascii")
        except UnicodeEncodeError as e:
            raise InvalidRequestError(f"Error building request: {e}") from e

        if len(payload) > MAX_PAYLOAD_LEN:
            raise InvalidRequestError(f"Error building request: payload of {len(payload)} bytes is too long")

        frame = bytearray(head)
        frame.append(self.start)
        frame.extend(body)
        frame.extend(f"{len(payload):03d}".encode("ascii"))
        frame.extend(payload)
        frame.append(self.end)
        return bytes(frame)

    @classmethod
    def from_bytes(cls, data: bytes) -> "RequestFrame":
        """
        Parse a request frame, as a burner would.

        Raises:
            DataAccessError: If the buffer is shorter than a field
            InvalidRequestError: If the payload size is not numeric
        """
        offset = 0

        def take(width: int) -> str:
            nonlocal offset
            value = _text(data, offset, offset + width)
            offset += width
            return value

        app_id = take(APP_ID_LEN)
        serial = take(SERIAL_LEN)
        encryption = take(ENCRYPTION_LEN)
        start = _slice(data, offset, offset + 1)[0]
        offset += 1
        function_code = take(FUNCTION_CODE_LEN)
        sequence = take(SEQUENCE_LEN)
        password = take(PASSWORD_LEN)
        timestamp = take(TIMESTAMP_LEN)
        extra = take(EXTRA_LEN)
        size = _payload_size(take(PAYLOAD_SIZE_LEN), InvalidRequestError)
        payload = take(size)
        end = _slice(data, offset, offset + 1)[0]

        frame = cls(serial=serial, password=password, function_code=function_code, payload=payload)
        frame.app_id = app_id
        frame.encryption = encryption
        frame.start = start
        frame.sequence = sequence
        frame.timestamp = timestamp
        frame.extra = extra
        frame.end = end
        return frame

    def __repr__(self) -> str:
        return f"RequestFrame(serial={self.serial}, func={self.function_code}, seq={self.sequence}, payload={self.payload!r})"


class ResponseFrame:
    """
    A response received from the burner.

    Frame structure:
    [APP_ID 12][SERIAL 6][START 1][FUNC 2][SEQ 2][RESPONSE_CODE 1][SIZE 3][PAYLOAD n][END 1]
    """

    def __init__(
        self,
        function_code: FunctionCode | str,
        sequence: str,
        payload: bytes = b"",
        serial: str = "000000",
        response_code: str = "0",
        app_id: str = APP_ID,
        start: int = START_BYTE,
        end: int = END_BYTE,
    ):
        self.app_id = app_id
        self.serial = serial
        self.start = start
        self.function_code = _code_text(function_code)
        self.sequence = sequence
        self.response_code = response_code
        self.payload = payload
        self.end = end

    @property
    def payload_text(self) -> str:
        """Payload decoded as text."""
        return self.payload.decode(_WIRE_DECODING)

    @classmethod
    def reply_to(cls, request: RequestFrame, payload: str, response_code: str = "0") -> "ResponseFrame":
        """Build the response a well-behaved burner gives to ``request``."""
        return cls(
            function_code=request.function_code,
            sequence=request.sequence,
            payload=payload.encode(_WIRE_DECODING),
            serial=request.serial,
            response_code=response_code,
            app_id=request.app_id,
        )

    def to_bytes(self) -> bytes:
        """Convert the response to bytes, as a burner would send it."""
        if len(self.payload) > MAX_PAYLOAD_LEN:
            raise InvalidResponseError(f"Payload of {len(self.payload)} bytes is too long")
        frame = bytearray((self.app_id + self.serial).encode(_WIRE_DECODING))
        frame.append(self.start)
        frame.extend((self.function_code + self.sequence + self.response_code).encode(_WIRE_DECODING))
        frame.extend(f"{len(self.payload):03d}".encode("ascii"))
        frame.extend(self.payload)
        frame.append(self.end)
        return bytes(frame)

    @classmethod
    def from_bytes(cls, data: bytes) -> "ResponseFrame":
        """
        Parse a response frame from a received datagram.

        Args:
            data: Raw datagram bytes

        Returns:
            Parsed ResponseFrame

        Raises:
            DataAccessError: If the datagram is shorter than a field it must contain
            InvalidResponseError: If the payload size is not numeric
        """
        size = _payload_size(_text(data, *RESPONSE_PAYLOAD_SIZE), InvalidResponseError)
        payload_end = RESPONSE_PAYLOAD_OFFSET + size

        return cls(
            app_id=_text(data, *RESPONSE_APP_ID),
            serial=_text(data, *RESPONSE_SERIAL),
            start=_slice(data, *RESPONSE_START)[0],
            function_code=_text(data, *RESPONSE_FUNCTION_CODE),
            sequence=_text(data, *RESPONSE_SEQUENCE),
            response_code=_text(data, *RESPONSE_CODE),
            payload=_slice(data, RESPONSE_PAYLOAD_OFFSET, payload_end),
            end=_slice(data, payload_end, payload_end + 1)[0],
        )

    def __repr__(self) -> str:
        return (
            f"ResponseFrame(serial={self.serial}, func={self.function_code}, seq={self.sequence}, "
            f"code={self.response_code}, data_len={len(self.payload)})"
        )
