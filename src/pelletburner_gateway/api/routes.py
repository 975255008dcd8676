"""API route handlers."""

from fastapi import APIRouter, Depends, HTTPException, Query

from pelletburner_gateway.api.dependencies import get_store
from pelletburner_gateway.core.cache import SnapshotStore
from pelletburner_gateway.core.exceptions import UnableToDetermineTimeOfDayError
from pelletburner_gateway.core.models import AlarmResponse, ItemsResponse, Snapshot, SnapshotResponse
from pelletburner_gateway.protocol.constants import RequestCategory

router = APIRouter(prefix="/api")


async def _require_snapshot(store: SnapshotStore) -> Snapshot:
    snapshot = await store.get()
    if snapshot is None:
        raise HTTPException(status_code=503, detail="No data received from burner yet")
    return snapshot


@router.get("/snapshot", response_model=SnapshotResponse)
async def get_snapshot(store: SnapshotStore = Depends(get_store)):
    """Get the values of the last successful poll cycle."""
    snapshot = await _require_snapshot(store)

    try:
        previous_hour = snapshot.previous_hour_consumption()
    except UnableToDetermineTimeOfDayError:
        previous_hour = None

    return SnapshotResponse(
        timestamp=snapshot.timestamp,
        current_temperature=snapshot.current_temperature,
        target_temperature=snapshot.target_temperature,
        temperature_limit_above=snapshot.temperature_limit_above,
        temperature_limit_below=snapshot.temperature_limit_below,
        silo_contents=snapshot.silo_contents,
        silo_minimum_contents=snapshot.silo_minimum_contents,
        auger_consumption=snapshot.auger_consumption,
        cleaning_countdown=snapshot.cleaning_countdown,
        power_output_percentage=snapshot.power_output_percentage,
        power_output_kilowatts=snapshot.power_output_kilowatts,
        previous_hour_consumption=previous_hour,
        refill_needed=snapshot.refill_needed(),
        alarm_code=snapshot.alarm_code,
        alarm_text=snapshot.alarm_text,
    )


@router.get("/items", response_model=ItemsResponse)
async def get_items(
    group: str | None = Query(None, description="Request category name, e.g. OPERATING_DATA"),
    store: SnapshotStore = Depends(get_store),
):
    """Get the raw items of the last successful poll cycle."""
    snapshot = await _require_snapshot(store)

    if group is None:
        items = snapshot.items
    else:
        try:
            category = RequestCategory[group.upper()]
        except KeyError:
            raise HTTPException(status_code=404, detail=f"Unknown group: {group}") from None
        items = snapshot.items_in(category)

    return ItemsResponse(
        timestamp=snapshot.timestamp,
        items=[{"group": item.group.name, "id": item.id, "value": item.value} for item in items],
    )


@router.get("/alarm", response_model=AlarmResponse)
async def get_alarm(store: SnapshotStore = Depends(get_store)):
    """Get the alarm status derived from the burner's state and substate."""
    snapshot = await _require_snapshot(store)

    return AlarmResponse(
        code=snapshot.alarm_code,
        text=snapshot.alarm_text,
        state=snapshot.burner_state,
        substate=snapshot.burner_substate,
    )
