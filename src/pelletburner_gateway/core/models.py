"""Data models for the pellet burner gateway."""

import logging
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from pelletburner_gateway.core.exceptions import UnableToDetermineTimeOfDayError
from pelletburner_gateway.protocol.constants import (
    DEFAULT_PORT,
    ITEM_AUGER_CONSUMPTION,
    ITEM_CLEANING_COUNTDOWN,
    ITEM_HOURLY_CONSUMPTION_PREFIX,
    ITEM_POWER_KILOWATTS,
    ITEM_POWER_PERCENTAGE,
    ITEM_SILO_CONTENTS,
    ITEM_SILO_MINIMUM_CONTENTS,
    ITEM_STATE,
    ITEM_SUBSTATE,
    ITEM_TEMPERATURE_CURRENT,
    ITEM_TEMPERATURE_LIMIT_ABOVE,
    ITEM_TEMPERATURE_LIMIT_BELOW,
    ITEM_TEMPERATURE_TARGET,
    ITEM_TIME,
    TIME_HOUR_SLICE,
    WILDCARD_ADDRESS,
    RequestCategory,
)

logger = logging.getLogger(__name__)

_LOCALHOST_ALIASES = {"", "127.0.0.1", "localhost"}


class Options(BaseModel):
    """Connection parameters for one burner. Immutable once built."""

    local_address: str = Field("", description="Local address to bind; empty for all interfaces")
    local_port: int = Field(DEFAULT_PORT, ge=1, le=65535, description="First local port to try")
    remote_address: str = Field(..., description="Burner hostname or IP")
    remote_port: int = Field(DEFAULT_PORT, ge=1, le=65535, description="Burner UDP port")
    serial: str = Field(..., description="Burner serial number")
    password: str = Field("", description="Burner password")
    protocol: str = Field("NBE_V13_1005", description="Protocol variant name")

    model_config = ConfigDict(frozen=True)

    @field_validator("password", mode="before")
    @classmethod
    def default_password(cls, v: str | None) -> str:
        """A missing password is sent as an empty (zero padded) field."""
        return "" if v is None else v

    @property
    def bind_address(self) -> str:
        """Local address to bind, with localhost variants mapped to the wildcard address."""
        if self.local_address.strip().lower() in _LOCALHOST_ALIASES:
            return WILDCARD_ADDRESS
        return self.local_address


class ResponseItem(BaseModel):
    """A single value parsed from a burner response.

    Ids are only unique within a group, so the group records which request
    category produced the value.
    """

    group: RequestCategory = Field(..., description="Request category that produced the value")
    id: str = Field(..., description="Item id")
    value: str = Field(..., description="Raw value text")

    model_config = ConfigDict(frozen=True)

    def __str__(self) -> str:
        return f"{self.group.name}: {self.id}={self.value}"


def _as_float(value: str | None) -> float | None:
    if value is None:
        return None
    try:
        return float(value)
    except ValueError:
        return None


def _as_int(value: str | None) -> int | None:
    if value is None:
        return None
    try:
        return int(value)
    except ValueError:
        return None


class Snapshot(BaseModel):
    """Values collected during one poll cycle.

    Items are only ever appended. A new snapshot is built for every cycle so
    values from a previous cycle never leak into the next one.
    """

    timestamp: datetime = Field(default_factory=datetime.now, description="When the cycle started")
    items: list[ResponseItem] = Field(default_factory=list, description="Parsed items, in arrival order")
    valid: bool = Field(False, description="Whether every exchange of the cycle succeeded")
    alarm_code: int = Field(-1, description="Alarm code derived from state/substate")
    alarm_text: str = Field("", description="Alarm text derived from state/substate")

    def add_items(self, items: list[ResponseItem]) -> None:
        """Append parsed items."""
        self.items.extend(items)

    def get_value(self, item_id: str, group: RequestCategory | None = None) -> str | None:
        """Get the first value with the given id (case-insensitive), optionally within a group."""
        wanted = item_id.lower()
        for item in self.items:
            if item.id.lower() == wanted and (group is None or item.group == group):
                return item.value
        return None

    def items_in(self, group: RequestCategory) -> list[ResponseItem]:
        """Get all items produced by one category."""
        return [item for item in self.items if item.group == group]

    # -- operating data -------------------------------------------------------

    @property
    def burner_state(self) -> str | None:
        return self.get_value(ITEM_STATE, RequestCategory.OPERATING_DATA)

    @property
    def burner_substate(self) -> str | None:
        return self.get_value(ITEM_SUBSTATE, RequestCategory.OPERATING_DATA)

    @property
    def silo_contents(self) -> float | None:
        """Pellets left in the silo (kg)."""
        return _as_float(self.get_value(ITEM_SILO_CONTENTS))

    @property
    def current_temperature(self) -> float | None:
        return _as_float(self.get_value(ITEM_TEMPERATURE_CURRENT))

    @property
    def power_output_percentage(self) -> float | None:
        return _as_float(self.get_value(ITEM_POWER_PERCENTAGE))

    @property
    def power_output_kilowatts(self) -> float | None:
        return _as_float(self.get_value(ITEM_POWER_KILOWATTS))

    @property
    def current_time(self) -> str | None:
        """The burner's own clock, as reported."""
        return self.get_value(ITEM_TIME)

    # -- advanced data and settings --------------------------------------------

    @property
    def target_temperature(self) -> float | None:
        return _as_float(self.get_value(ITEM_TEMPERATURE_TARGET))

    @property
    def silo_minimum_contents(self) -> float | None:
        """Silo warning limit (kg)."""
        return _as_float(self.get_value(ITEM_SILO_MINIMUM_CONTENTS))

    @property
    def auger_consumption(self) -> float | None:
        """Auger consumption (g)."""
        return _as_float(self.get_value(ITEM_AUGER_CONSUMPTION))

    @property
    def temperature_limit_above(self) -> float | None:
        """Degrees above target at which the burner stops."""
        return _as_float(self.get_value(ITEM_TEMPERATURE_LIMIT_ABOVE))

    @property
    def temperature_limit_below(self) -> float | None:
        """Degrees below target at which the burner starts."""
        return _as_float(self.get_value(ITEM_TEMPERATURE_LIMIT_BELOW))

    @property
    def cleaning_countdown(self) -> float | None:
        """Pellets (kg) left to burn before the ash tray needs cleaning."""
        return _as_float(self.get_value(ITEM_CLEANING_COUNTDOWN))

    # -- derived values ---------------------------------------------------------

    def previous_hour_consumption(self) -> float | None:
        """Consumption of the previous full hour of the burner's clock.

        At 23:15 burner time this is the consumption for 22:00-22:59; at 00:15
        it wraps around to hour 23.

        Raises:
            UnableToDetermineTimeOfDayError: If the burner time is missing or malformed.
        """
        current_time = self.current_time
        hour_text = (current_time or "")[TIME_HOUR_SLICE]
        if len(hour_text) != 2 or not (hour_text.isascii() and hour_text.isdigit()):
            raise UnableToDetermineTimeOfDayError(
                f"Unable to determine time of day from {current_time!r} for consumption lookup"
            )

        previous_hour = (int(hour_text) - 1) % 24
        return _as_float(self.get_value(f"{ITEM_HOURLY_CONSUMPTION_PREFIX}{previous_hour}"))

    def refill_needed(self) -> bool | None:
        """Whether the silo is below its warning limit.

        Returns None (and logs) when either value is missing or not an integer.
        """
        contents = self.get_value(ITEM_SILO_CONTENTS)
        minimum = self.get_value(ITEM_SILO_MINIMUM_CONTENTS)
        contents_no = _as_int(contents)
        minimum_no = _as_int(minimum)
        if contents_no is None or minimum_no is None:
            logger.warning("Unable to determine if silo should be refilled (content=%r, min_content=%r)", contents, minimum)
            return None
        return contents_no < minimum_no

    def __str__(self) -> str:
        return "\n".join(str(item) for item in self.items)


# ============================================================================
# API Response Models
# ============================================================================


class SnapshotResponse(BaseModel):
    """Response model for GET /api/snapshot."""

    timestamp: datetime = Field(..., description="When the snapshot's cycle started")
    current_temperature: float | None = None
    target_temperature: float | None = None
    temperature_limit_above: float | None = None
    temperature_limit_below: float | None = None
    silo_contents: float | None = None
    silo_minimum_contents: float | None = None
    auger_consumption: float | None = None
    cleaning_countdown: float | None = None
    power_output_percentage: float | None = None
    power_output_kilowatts: float | None = None
    previous_hour_consumption: float | None = None
    refill_needed: bool | None = None
    alarm_code: int = Field(..., description="Alarm code, -1 if unknown")
    alarm_text: str = Field(..., description="Alarm text")

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "timestamp": "2026-01-13T10:30:00",
                "current_temperature": 64.2,
                "target_temperature": 65.0,
                "temperature_limit_above": 5.0,
                "temperature_limit_below": 5.0,
                "silo_contents": 800.0,
                "silo_minimum_contents": 200.0,
                "auger_consumption": 450.0,
                "cleaning_countdown": 120.0,
                "power_output_percentage": 30.0,
                "power_output_kilowatts": 4.5,
                "previous_hour_consumption": 1.2,
                "refill_needed": False,
                "alarm_code": 5,
                "alarm_text": "Boiler is on. No issues",
            }
        }
    )


class ItemsResponse(BaseModel):
    """Response model for GET /api/items."""

    timestamp: datetime = Field(..., description="When the snapshot's cycle started")
    items: list[dict[str, Any]] = Field(..., description="Raw items as group/id/value")


class AlarmResponse(BaseModel):
    """Response model for GET /api/alarm."""

    code: int = Field(..., description="Alarm code")
    text: str = Field(..., description="Alarm text")
    state: str | None = Field(None, description="Raw burner state")
    substate: str | None = Field(None, description="Raw burner substate")


class HealthResponse(BaseModel):
    """Response model for health check."""

    status: str = Field(..., description="Health status (healthy/degraded/unhealthy)")
    burner_online: bool = Field(..., description="Whether the last cycle reached the burner")
    items_count: int = Field(..., ge=0, description="Number of items in the current snapshot")
    last_update: datetime | None = Field(None, description="Last successful update timestamp")
    last_error: str | None = Field(None, description="Error of the last failed cycle")

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "status": "healthy",
                "burner_online": True,
                "items_count": 212,
                "last_update": "2026-01-13T10:30:00",
                "last_error": None,
            }
        }
    )
