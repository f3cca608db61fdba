from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status
from loguru import logger

from eventsite.cache import event_view_key, get_view_cache, set_view_cache
from eventsite.crud import booking_crud, event_crud
from eventsite.deps import get_effective_identity, get_effective_role
from eventsite.identity import EffectiveIdentity
from eventsite.roles import Role, can_access
from eventsite.schemas import EventDetail, EventResponse

router = APIRouter(prefix="/events", tags=["events"])


@router.get("/", response_model=list[EventResponse])
async def list_events(
    role: Role = Depends(get_effective_role),
) -> list[EventResponse]:
    """Upcoming and past events the effective role is allowed to see."""
    return await event_crud.list_visible_events(role)


async def _shared_event_view(event_id: UUID) -> dict | None:
    """Event fields plus booking count; identical for every viewer."""
    key = event_view_key(event_id)
    cached = await get_view_cache(key)
    if cached is not None:
        logger.debug("Cache hit for event: event_id={}", event_id)
        return cached

    logger.debug("Cache miss for event: event_id={}", event_id)
    inst = await event_crud.get_event(event_id)
    if inst is None:
        return None
    view = {
        **EventResponse.model_validate(inst).model_dump(mode="json"),
        "booking_count": await booking_crud.count_event_bookings(event_id),
    }
    await set_view_cache(key, view)
    return view


@router.get("/{event_id}", response_model=EventDetail)
async def get_event(
    event_id: UUID,
    identity: EffectiveIdentity | None = Depends(get_effective_identity),
    role: Role = Depends(get_effective_role),
) -> EventDetail:
    view = await _shared_event_view(event_id)
    # hidden events look exactly like missing ones
    if view is None or not can_access(view["min_role"], role):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="Event not found"
        )

    detail = EventDetail(**view)
    if identity is not None:
        detail.my_booking_id = await booking_crud.get_user_booking_id(
            event_id, identity.id
        )
    return detail
