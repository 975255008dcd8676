"""Protocol constants for NBE pellet burner communication."""

from enum import Enum, IntEnum
from typing import NamedTuple

# ============================================================================
# Frame Structure
# ============================================================================

APP_ID = "DeliciousABC"
ENCRYPTION_NONE = " "
START_BYTE = 0x02
END_BYTE = 0x04
EXTRA = "extr"

APP_ID_LEN = 12
SERIAL_LEN = 6
ENCRYPTION_LEN = 1
FUNCTION_CODE_LEN = 2
SEQUENCE_LEN = 2
PASSWORD_LEN = 10
TIMESTAMP_LEN = 10
EXTRA_LEN = 4
PAYLOAD_SIZE_LEN = 3
MAX_PAYLOAD_LEN = 999

# Response field offsets: (start, end) with end exclusive
RESPONSE_APP_ID = (0, 12)
RESPONSE_SERIAL = (12, 18)
RESPONSE_START = (18, 19)
RESPONSE_FUNCTION_CODE = (19, 21)
RESPONSE_SEQUENCE = (21, 23)
RESPONSE_CODE = (23, 24)
RESPONSE_PAYLOAD_SIZE = (24, 27)
RESPONSE_PAYLOAD_OFFSET = 27

# ============================================================================
# Payload Separators
# ============================================================================

PAYLOAD_ITEM_SEPARATOR = ";"
PAYLOAD_VALUEPAIR_SEPARATOR = "="
PAYLOAD_LIST_SEPARATOR = ","

# ============================================================================
# Protocol Variants
# ============================================================================


class ProtocolVariant(str, Enum):
    """Implemented burner protocol variants (model / protocol version / firmware)."""

    NBE_V13_1005 = "NBE_V13_1005"


# ============================================================================
# Function Codes
# ============================================================================


class FunctionCode(str, Enum):
    """Two-character function codes understood by the controller."""

    DISCOVERY = "00"
    SETTINGS = "01"
    OPERATING_DATA = "04"
    ADVANCED_DATA = "05"
    CONSUMPTION_DATA = "06"


# ============================================================================
# Request Categories
# ============================================================================


class RequestCategory(IntEnum):
    """Request categories, each fetching a distinct subset of burner data."""

    DISCOVERY = 0
    DISCOVERY_BROADCAST = 1
    OPERATING_DATA = 11
    ADVANCED_DATA = 12
    CONSUMPTION_HOURS = 13
    CONSUMPTION_DAYS = 14
    CONSUMPTION_MONTHS = 15
    CONSUMPTION_YEARS = 16
    SETTINGS_HOPPER = 17
    SETTINGS_BOILER = 18
    SETTINGS_CLEANING = 19
    SETTINGS_MISC = 20
    SETTINGS_ALARM = 21


class PayloadFormat(str, Enum):
    """How a response payload is laid out."""

    PAIR_LIST = "pair_list"  # id1=v1;id2=v2
    INDEXED_LIST = "indexed_list"  # id=v0,v1,v2


class CategorySpec(NamedTuple):
    """What a request category sends and how its reply is parsed."""

    function_code: FunctionCode
    payload: str
    payload_format: PayloadFormat


CATEGORY_SPECS: dict[RequestCategory, CategorySpec] = {
    RequestCategory.DISCOVERY: CategorySpec(FunctionCode.DISCOVERY, "NBE_DISCOVERY", PayloadFormat.PAIR_LIST),
    RequestCategory.DISCOVERY_BROADCAST: CategorySpec(FunctionCode.DISCOVERY, "NBE Discovery", PayloadFormat.PAIR_LIST),
    RequestCategory.OPERATING_DATA: CategorySpec(FunctionCode.OPERATING_DATA, "*", PayloadFormat.PAIR_LIST),
    RequestCategory.ADVANCED_DATA: CategorySpec(FunctionCode.ADVANCED_DATA, "*", PayloadFormat.PAIR_LIST),
    RequestCategory.CONSUMPTION_HOURS: CategorySpec(
        FunctionCode.CONSUMPTION_DATA, "total_hours", PayloadFormat.INDEXED_LIST
    ),
    RequestCategory.CONSUMPTION_DAYS: CategorySpec(
        FunctionCode.CONSUMPTION_DATA, "total_days", PayloadFormat.INDEXED_LIST
    ),
    RequestCategory.CONSUMPTION_MONTHS: CategorySpec(
        FunctionCode.CONSUMPTION_DATA, "total_months", PayloadFormat.INDEXED_LIST
    ),
    RequestCategory.CONSUMPTION_YEARS: CategorySpec(
        FunctionCode.CONSUMPTION_DATA, "total_years", PayloadFormat.INDEXED_LIST
    ),
    RequestCategory.SETTINGS_HOPPER: CategorySpec(FunctionCode.SETTINGS, "hopper.*", PayloadFormat.PAIR_LIST),
    RequestCategory.SETTINGS_BOILER: CategorySpec(FunctionCode.SETTINGS, "boiler.*", PayloadFormat.PAIR_LIST),
    RequestCategory.SETTINGS_CLEANING: CategorySpec(FunctionCode.SETTINGS, "cleaning.*", PayloadFormat.PAIR_LIST),
    RequestCategory.SETTINGS_MISC: CategorySpec(FunctionCode.SETTINGS, "misc.*", PayloadFormat.PAIR_LIST),
    RequestCategory.SETTINGS_ALARM: CategorySpec(FunctionCode.SETTINGS, "alarm.*", PayloadFormat.PAIR_LIST),
}

# Fetched once per poll cycle, in this order. Days/months/years and the misc/alarm
# settings are defined but nothing consumes them.
POLL_CATEGORIES = (
    RequestCategory.OPERATING_DATA,
    RequestCategory.ADVANCED_DATA,
    RequestCategory.CONSUMPTION_HOURS,
    RequestCategory.SETTINGS_HOPPER,
    RequestCategory.SETTINGS_BOILER,
    RequestCategory.SETTINGS_CLEANING,
)

# ============================================================================
# Item IDs
# ============================================================================

ITEM_STATE = "state"
ITEM_SUBSTATE = "substate"
ITEM_SILO_CONTENTS = "content"
ITEM_SILO_MINIMUM_CONTENTS = "min_content"
ITEM_AUGER_CONSUMPTION = "auger_consumption"
ITEM_TEMPERATURE_CURRENT = "boiler_temp"
ITEM_TEMPERATURE_TARGET = "boiler_setpoint"
ITEM_TEMPERATURE_LIMIT_ABOVE = "diff_over"
ITEM_TEMPERATURE_LIMIT_BELOW = "diff_under"
ITEM_CLEANING_COUNTDOWN = "trip_countdown"
ITEM_POWER_PERCENTAGE = "power_pct"
ITEM_POWER_KILOWATTS = "power_kw"
ITEM_TIME = "time"
ITEM_HOURLY_CONSUMPTION_PREFIX = "total_hours"

# Hour digits inside the burner's "time" value
TIME_HOUR_SLICE = slice(9, 11)

# ============================================================================
# Communication Settings
# ============================================================================

DEFAULT_PORT = 8483
PORT_CEILING = 9999  # NBE V13 firmware 1005 rejects five-digit local ports
RECEIVE_TIMEOUT = 3.0  # seconds
PACING_DELAY = 2.0  # seconds, before every send
# Largest response frame: header + 999-byte payload + end byte
MAX_RESPONSE_LEN = RESPONSE_PAYLOAD_OFFSET + MAX_PAYLOAD_LEN + 1
RECEIVE_BUFFER_SIZE = 2048
RETRY_ATTEMPTS = 4  # total attempts on timeout
POLL_INTERVAL = 15  # minutes
INITIAL_DELAY = 20.0  # seconds
WILDCARD_ADDRESS = "0.0.0.0"
