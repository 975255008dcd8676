"""Alarm classification from the burner's state and substate."""

from typing import NamedTuple

from pelletburner_gateway.core.exceptions import UnknownBurnerStateError


class AlarmStatus(NamedTuple):
    """Alarm code and its human-readable text."""

    code: int
    text: str


# States whose alarm code is the state itself, regardless of substate
STATE_TEXTS: dict[int, str] = {
    0: "Please wait",
    5: "Boiler is on. No issues",
    11: "Boiler is too hot. Do not restart without fixing the cause!",
    13: "Error igniting!",
    14: "Boiler is manually turned off",
    20: "Boiler failed to ignite fire. Missing pellets?",
}


class SubstateTable(NamedTuple):
    prefix: str
    substates: dict[int, AlarmStatus]
    fallback: AlarmStatus


# States that are refined by their substate. Texts are appended to the prefix.
SUBSTATE_TABLES: dict[int, SubstateTable] = {
    2: SubstateTable(
        "Ignite fire: ",
        {
            1: AlarmStatus(201, "Ventilation of boiler"),
            2: AlarmStatus(202, "Feeding pellets"),
            4: AlarmStatus(204, "Electric ignition"),
            16: AlarmStatus(216, "Using internal auger"),
        },
        AlarmStatus(299, "Unknown action"),
    ),
    9: SubstateTable(
        "Boiler is stopped: ",
        {
            0: AlarmStatus(900, "Temperature reached"),
            8: AlarmStatus(908, "Ash cleaning"),
            13: AlarmStatus(913, "Compressor cleaning valve 3"),
            14: AlarmStatus(914, "Valve 3 is active"),
        },
        AlarmStatus(999, "Unknown action"),
    ),
    23: SubstateTable(
        "Boiler is on. Stopped as per schedule: ",
        {
            0: AlarmStatus(2300, "No issue"),
            8: AlarmStatus(2308, "Unknown (08)"),
            13: AlarmStatus(2313, "Unknown (13)"),
        },
        AlarmStatus(2399, "Unknown action"),
    ),
}


def classify(state: int | str | None, substate: int | str | None) -> AlarmStatus:
    """Map a burner (state, substate) pair to an alarm code and text.

    Args:
        state: Burner state, as an int or decimal text.
        substate: Burner substate, as an int or decimal text.

    Returns:
        AlarmStatus for the pair. Unmapped states keep the state as code.

    Raises:
        UnknownBurnerStateError: If either value is not numeric.

    Example:
        >>> classify("2", "4")
        AlarmStatus(code=204, text='Ignite fire: Electric ignition')
    """
    try:
        state_no = int(state)  # type: ignore[arg-type]
        substate_no = int(substate)  # type: ignore[arg-type]
    except (TypeError, ValueError) as e:
        raise UnknownBurnerStateError(f"Unable to determine state. Received: {state!r} and {substate!r}") from e

    if state_no in STATE_TEXTS:
        return AlarmStatus(state_no, STATE_TEXTS[state_no])

    table = SUBSTATE_TABLES.get(state_no)
    if table is not None:
        status = table.substates.get(substate_no, table.fallback)
        return AlarmStatus(status.code, table.prefix + status.text)

    return AlarmStatus(state_no, f"Unknown state {state_no} and substate {substate_no}")
