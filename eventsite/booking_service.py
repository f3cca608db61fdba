"""
Booking lifecycle: ``Unbooked --create--> Booked --cancel--> Unbooked``.

Both operations return an ``ActionResult`` instead of raising. The write always
happens first; the notification message and cache invalidation that follow are
best-effort and never change the reported outcome.
"""

from __future__ import annotations

from uuid import UUID

from loguru import logger
from tortoise.exceptions import BaseORMException, IntegrityError

from eventsite.cache import invalidate_booking_views
from eventsite.crud import booking_crud, event_crud, profile_crud
from eventsite.dates import format_event_start
from eventsite.identity import EffectiveIdentity
from eventsite.roles import can_access
from eventsite.schemas import ActionResult, BookingCreate, BookingError
from eventsite.support import send_system_message


def confirmation_text(title: str, start_at) -> str:
    return (
        f'Your booking for "{title}" on {format_event_start(start_at)} '
        "is confirmed. See you there!"
    )


def cancellation_text(title: str, start_at) -> str:
    return (
        f'Your booking for "{title}" on {format_event_start(start_at)} '
        "has been cancelled."
    )


async def _notify(receiver_id: UUID, build_text, title: str, start_at) -> None:
    try:
        await send_system_message(receiver_id, build_text(title, start_at))
    except Exception:
        logger.opt(exception=True).error("Booking notification to {} failed", receiver_id)


async def _is_duplicate(event_id: UUID, user_id: UUID) -> bool:
    try:
        return await booking_crud.booking_exists(event_id, user_id)
    except BaseORMException:
        logger.opt(exception=True).warning(
            "Could not confirm duplicate for event={} user={}", event_id, user_id
        )
        return False


async def _profile_missing(user_id: UUID) -> bool:
    try:
        return await profile_crud.get_profile(user_id) is None
    except BaseORMException:
        logger.opt(exception=True).warning("Could not look up profile {}", user_id)
        return False


async def create_booking(
    command: BookingCreate,
    identity: EffectiveIdentity | None,
) -> ActionResult:
    if identity is None:
        return ActionResult.fail(BookingError.UNAUTHENTICATED)
    if identity.is_synthetic_preview:
        # preview mode is read-only
        return ActionResult.fail(BookingError.UNAUTHORIZED)

    try:
        event = await event_crud.get_event(command.event_id)
    except BaseORMException:
        logger.opt(exception=True).error("Event lookup failed: {}", command.event_id)
        return ActionResult.fail(BookingError.TRANSIENT_STORAGE_ERROR)

    if event is None:
        return ActionResult.fail(BookingError.NOT_FOUND)
    if not can_access(event.min_role, identity.role):
        return ActionResult.fail(BookingError.UNAUTHORIZED)

    try:
        booking = await booking_crud.create_booking(
            event_id=event.id,
            user_id=identity.id,
            transportation=command.transportation,
            pickup_needed=command.pickup_needed,
        )
    except IntegrityError:
        if await _is_duplicate(event.id, identity.id):
            logger.info("Duplicate booking: event={} user={}", event.id, identity.id)
            return ActionResult.fail(BookingError.DUPLICATE_BOOKING)
        if await _profile_missing(identity.id):
            # signed in at the gateway but never bootstrapped a profile
            logger.warning("Booking rejected, no profile for {}", identity.id)
            return ActionResult.fail(BookingError.UNAUTHENTICATED)
        logger.opt(exception=True).error(
            "Booking insert rejected: event={} user={}", event.id, identity.id
        )
        return ActionResult.fail(BookingError.TRANSIENT_STORAGE_ERROR)
    except BaseORMException:
        logger.opt(exception=True).error(
            "Booking insert failed: event={} user={}", event.id, identity.id
        )
        return ActionResult.fail(BookingError.TRANSIENT_STORAGE_ERROR)

    logger.info("Booking {} created: event={} user={}", booking.id, event.id, identity.id)

    await _notify(identity.id, confirmation_text, event.title, event.start_at)
    await invalidate_booking_views(event.id, identity.id)
    return ActionResult.ok(booking.id)


async def cancel_booking(
    booking_id: UUID,
    identity: EffectiveIdentity | None,
) -> ActionResult:
    """
    Cancel the caller's own booking. Someone else's booking and a missing one
    both come back as ``not_found``.
    """
    if identity is None:
        return ActionResult.fail(BookingError.UNAUTHENTICATED)
    if identity.is_synthetic_preview:
        return ActionResult.fail(BookingError.UNAUTHORIZED)

    try:
        booking = await booking_crud.get_owned_booking(booking_id, identity.id)
    except BaseORMException:
        logger.opt(exception=True).error("Booking lookup failed: {}", booking_id)
        return ActionResult.fail(BookingError.TRANSIENT_STORAGE_ERROR)

    if booking is None:
        return ActionResult.fail(BookingError.NOT_FOUND)

    # read before the delete: the join is gone afterwards
    event_id = booking.event_id
    title = booking.event.title
    start_at = booking.event.start_at

    try:
        deleted = await booking_crud.delete_owned_booking(booking_id, identity.id)
    except BaseORMException:
        logger.opt(exception=True).error("Booking delete failed: {}", booking_id)
        return ActionResult.fail(BookingError.TRANSIENT_STORAGE_ERROR)

    if deleted == 0:
        # cancelled concurrently between the read and the delete
        return ActionResult.fail(BookingError.NOT_FOUND)

    logger.info("Booking {} cancelled by {}", booking_id, identity.id)

    await _notify(identity.id, cancellation_text, title, start_at)
    await invalidate_booking_views(event_id, identity.id)
    return ActionResult.ok()
