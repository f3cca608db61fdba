from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status
from loguru import logger

from eventsite import booking_service
from eventsite.cache import bookings_view_key, get_view_cache, set_view_cache
from eventsite.crud import booking_crud
from eventsite.deps import get_effective_identity, require_identity
from eventsite.identity import EffectiveIdentity
from eventsite.schemas import ActionResult, BookingCreate, BookingError, MyBooking

router = APIRouter(prefix="/bookings", tags=["bookings"])

_ERROR_STATUS: dict[BookingError, int] = {
    BookingError.UNAUTHENTICATED: status.HTTP_401_UNAUTHORIZED,
    BookingError.UNAUTHORIZED: status.HTTP_403_FORBIDDEN,
    BookingError.DUPLICATE_BOOKING: status.HTTP_409_CONFLICT,
    BookingError.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    BookingError.TRANSIENT_STORAGE_ERROR: status.HTTP_503_SERVICE_UNAVAILABLE,
}


def _raise_for_error(result: ActionResult) -> ActionResult:
    if result.error is not None:
        raise HTTPException(
            status_code=_ERROR_STATUS[result.error],
            detail=result.error.value,
        )
    return result


@router.post("/", response_model=ActionResult, status_code=status.HTTP_201_CREATED)
async def create_booking(
    payload: BookingCreate,
    identity: EffectiveIdentity | None = Depends(get_effective_identity),
) -> ActionResult:
    result = await booking_service.create_booking(payload, identity)
    return _raise_for_error(result)


@router.get("/me", response_model=list[MyBooking])
async def list_my_bookings(
    identity: EffectiveIdentity = Depends(require_identity),
) -> list[MyBooking]:
    key = bookings_view_key(identity.id)
    cached = await get_view_cache(key)
    if cached is not None:
        logger.debug("Cache hit for bookings: user_id={}", identity.id)
        return [MyBooking(**b) for b in cached]

    logger.debug("Cache miss for bookings: user_id={}", identity.id)
    bookings = await booking_crud.list_user_bookings(identity.id)
    await set_view_cache(key, [b.model_dump(mode="json") for b in bookings])
    return bookings


@router.delete("/{booking_id}", response_model=ActionResult)
async def cancel_booking(
    booking_id: UUID,
    identity: EffectiveIdentity | None = Depends(get_effective_identity),
) -> ActionResult:
    result = await booking_service.cancel_booking(booking_id, identity)
    return _raise_for_error(result)
