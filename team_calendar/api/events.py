"""
Calendar API Endpoints

Booking events for the team calendar and for single items.
"""

from typing import List, Optional

from fastapi import APIRouter, HTTPException, Query, status

from .deps import ActorDep, APIKeyDep, DatabaseDep, SchedulerDep
from ..core.database import Database
from ..core.models import (
    Actor,
    APIResponse,
    BookingBind,
    BookingEndUpdate,
    BookingEvent,
    BookingEventCreate,
    BookingTimesUpdate,
    ItemCalendarEvent,
    TeamCalendarEvent,
    check_range,
)

router = APIRouter()


async def _get_team_item(db: Database, actor: Actor, item_id: int) -> dict:
    """Fetch an item of the actor's team or fail with 404"""
    item = await db.get_item(item_id)
    if not item or item["team"] != actor.team_id:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Item {item_id} not found"
        )
    return item


@router.get("/events", response_model=List[TeamCalendarEvent])
async def list_team_events(
    scheduler: SchedulerDep,
    actor: ActorDep
) -> List[TeamCalendarEvent]:
    """List bookings for all items of the team"""
    return await scheduler.read_all_from_team(actor)


@router.get("/events/{event_id}", response_model=BookingEvent)
async def get_event(
    event_id: int,
    scheduler: SchedulerDep,
    actor: ActorDep
) -> BookingEvent:
    """Get a specific booking by ID"""
    return await scheduler.read_from_id(event_id, actor)


@router.get("/items/{item_id}/events", response_model=List[ItemCalendarEvent])
async def list_item_events(
    item_id: int,
    db: DatabaseDep,
    scheduler: SchedulerDep,
    actor: ActorDep
) -> List[ItemCalendarEvent]:
    """List bookings of an item"""
    await _get_team_item(db, actor, item_id)
    return await scheduler.read(actor, item_id)


@router.get("/items/{item_id}/conflicts", response_model=List[BookingEvent])
async def list_item_conflicts(
    item_id: int,
    db: DatabaseDep,
    scheduler: SchedulerDep,
    actor: ActorDep,
    start: str = Query(..., description="Range start"),
    end: str = Query(..., description="Range end"),
    exclude_id: Optional[int] = Query(default=None, description="Booking to ignore")
) -> List[BookingEvent]:
    """List bookings of an item overlapping a time range"""
    await _get_team_item(db, actor, item_id)
    try:
        check_range(start, end)
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e)
        )
    return await scheduler.find_conflicts(actor, item_id, start, end, exclude_id)


@router.post(
    "/items/{item_id}/events",
    response_model=BookingEvent,
    status_code=status.HTTP_201_CREATED
)
async def create_event(
    item_id: int,
    booking: BookingEventCreate,
    db: DatabaseDep,
    scheduler: SchedulerDep,
    actor: ActorDep,
    api_key: APIKeyDep
) -> BookingEvent:
    """Book an item"""
    await _get_team_item(db, actor, item_id)

    event_id = await scheduler.create(
        actor, item_id, booking.start, booking.end, booking.title
    )
    return await scheduler.read_from_id(event_id, actor)


@router.put("/events/{event_id}/start", response_model=BookingEvent)
async def move_event(
    event_id: int,
    updates: BookingTimesUpdate,
    scheduler: SchedulerDep,
    actor: ActorDep,
    api_key: APIKeyDep
) -> BookingEvent:
    """Move a booking to a new start and end"""
    await scheduler.read_from_id(event_id, actor)
    await scheduler.update_start(actor, event_id, updates.start, updates.end)
    return await scheduler.read_from_id(event_id, actor)


@router.put("/events/{event_id}/end", response_model=BookingEvent)
async def resize_event(
    event_id: int,
    updates: BookingEndUpdate,
    scheduler: SchedulerDep,
    actor: ActorDep,
    api_key: APIKeyDep
) -> BookingEvent:
    """Change the end of a booking"""
    event = await scheduler.read_from_id(event_id, actor)
    try:
        check_range(event.start, updates.end)
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e)
        )

    await scheduler.update_end(actor, event_id, updates.end)
    return await scheduler.read_from_id(event_id, actor)


@router.post("/events/{event_id}/bind", response_model=BookingEvent)
async def bind_experiment(
    event_id: int,
    body: BookingBind,
    db: DatabaseDep,
    scheduler: SchedulerDep,
    actor: ActorDep,
    api_key: APIKeyDep
) -> BookingEvent:
    """Bind an experiment of the team to a booking"""
    await scheduler.read_from_id(event_id, actor)

    experiment = await db.get_experiment(body.experiment_id)
    if not experiment or experiment["team"] != actor.team_id:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Experiment {body.experiment_id} not found"
        )

    await scheduler.bind(actor, event_id, body.experiment_id)
    return await scheduler.read_from_id(event_id, actor)


@router.post("/events/{event_id}/unbind", response_model=BookingEvent)
async def unbind_experiment(
    event_id: int,
    scheduler: SchedulerDep,
    actor: ActorDep,
    api_key: APIKeyDep
) -> BookingEvent:
    """Unbind the experiment from a booking"""
    await scheduler.read_from_id(event_id, actor)
    await scheduler.unbind(actor, event_id)
    return await scheduler.read_from_id(event_id, actor)


@router.delete("/events/{event_id}", response_model=APIResponse)
async def delete_event(
    event_id: int,
    scheduler: SchedulerDep,
    actor: ActorDep,
    api_key: APIKeyDep
) -> APIResponse:
    """Delete a booking"""
    await scheduler.destroy(actor, event_id)
    return APIResponse(message=f"Booking {event_id} deleted")
