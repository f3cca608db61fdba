"""
Booking lifecycle against an in-memory database: uniqueness, ownership,
notification side effect and cache invalidation.
"""

from __future__ import annotations

import asyncio
from datetime import timedelta
from unittest.mock import AsyncMock, patch
from uuid import uuid4

import pytest
from tortoise.exceptions import OperationalError

from eventsite import booking_service
from eventsite.booking_service import cancel_booking, create_booking
from eventsite.cache import bookings_view_key, event_view_key, messages_view_key
from eventsite.models import Booking, Event, Message
from eventsite.roles import Role
from eventsite.schemas import BookingCreate, BookingError

from .factories import (
    NOW,
    create_booking_row,
    create_event,
    create_profile,
    make_generic_viewer,
    make_identity,
    make_preview_identity,
)

pytestmark = pytest.mark.asyncio


def _command(event, **kwargs) -> BookingCreate:
    return BookingCreate(event_id=event.id, **kwargs)


class TestCreateBooking:
    async def test_success_persists_booking(self, db):
        event = await create_event()
        user = await create_profile()

        result = await create_booking(
            _command(event, transportation="car", pickup_needed=True),
            make_identity(user.id),
        )

        assert result.success is True
        assert result.error is None
        booking = await Booking.get(id=result.booking_id)
        assert booking.user_id == user.id
        assert booking.event_id == event.id
        assert booking.transportation == "car"
        assert booking.pickup_needed is True

    async def test_anonymous_is_unauthenticated(self, db):
        event = await create_event()
        result = await create_booking(_command(event), None)
        assert result.error == BookingError.UNAUTHENTICATED
        assert await Booking.all().count() == 0

    async def test_second_booking_is_duplicate(self, db):
        event = await create_event()
        user = await create_profile()
        identity = make_identity(user.id)

        first = await create_booking(_command(event), identity)
        second = await create_booking(_command(event), identity)

        assert first.success is True
        assert second.success is False
        assert second.error == BookingError.DUPLICATE_BOOKING
        assert await Booking.filter(event_id=event.id, user_id=user.id).count() == 1

    async def test_concurrent_bookings_admit_exactly_one(self, db):
        event = await create_event()
        user = await create_profile()
        identity = make_identity(user.id)

        results = await asyncio.gather(
            create_booking(_command(event), identity),
            create_booking(_command(event), identity),
        )

        errors = sorted(str(r.error) for r in results if not r.success)
        assert [r.success for r in results].count(True) == 1
        assert errors == [BookingError.DUPLICATE_BOOKING.value]
        assert await Booking.filter(event_id=event.id, user_id=user.id).count() == 1

    async def test_missing_event_is_not_found(self, db):
        user = await create_profile()
        result = await create_booking(
            BookingCreate(event_id=uuid4()), make_identity(user.id)
        )
        assert result.error == BookingError.NOT_FOUND

    async def test_role_below_event_minimum_is_unauthorized(self, db):
        event = await create_event(min_role=Role.MODERATOR)
        member = await create_profile(Role.MEMBER)
        result = await create_booking(
            _command(event), make_identity(member.id, Role.MEMBER)
        )
        assert result.error == BookingError.UNAUTHORIZED
        assert await Booking.all().count() == 0

    async def test_preview_identities_cannot_book(self, db):
        event = await create_event()
        target = await create_profile()

        for identity in (make_preview_identity(target.id), make_generic_viewer()):
            result = await create_booking(_command(event), identity)
            assert result.error == BookingError.UNAUTHORIZED
        assert await Booking.all().count() == 0

    async def test_other_insert_failure_is_transient(self, db):
        event = await create_event()
        user = await create_profile()
        with patch.object(
            booking_service.booking_crud,
            "create_booking",
            AsyncMock(side_effect=OperationalError("disk I/O error")),
        ):
            result = await create_booking(_command(event), make_identity(user.id))
        assert result.error == BookingError.TRANSIENT_STORAGE_ERROR

    async def test_signed_in_without_profile_is_unauthenticated(self, db):
        event = await create_event()
        await create_profile(Role.ADMIN)

        result = await create_booking(_command(event), make_identity(uuid4()))

        assert result.error == BookingError.UNAUTHENTICATED
        assert await Booking.all().count() == 0
        assert await Message.all().count() == 0


class TestCreateBookingNotification:
    async def test_message_from_earliest_privileged_profile(self, db):
        first_admin = await create_profile(Role.ADMIN, created_at=NOW - timedelta(days=30))
        await create_profile(Role.MODERATOR, created_at=NOW - timedelta(days=1))
        event = await create_event(title="Beach cleanup")
        user = await create_profile()

        result = await create_booking(_command(event), make_identity(user.id))

        assert result.success is True
        messages = await Message.filter(receiver_id=user.id)
        assert len(messages) == 1
        assert messages[0].sender_id == first_admin.id
        assert messages[0].is_read is False
        assert "Beach cleanup" in messages[0].content
        assert "confirmed" in messages[0].content

    async def test_booking_succeeds_without_support_contact(self, db):
        event = await create_event()
        user = await create_profile()

        result = await create_booking(_command(event), make_identity(user.id))

        assert result.success is True
        assert await Message.all().count() == 0
        assert await Booking.all().count() == 1

    async def test_message_failure_does_not_fail_booking(self, db):
        await create_profile(Role.ADMIN)
        event = await create_event()
        user = await create_profile()

        with patch(
            "eventsite.support.Message.create",
            AsyncMock(side_effect=OperationalError("insert failed")),
        ):
            result = await create_booking(_command(event), make_identity(user.id))

        assert result.success is True
        assert await Booking.all().count() == 1

    async def test_duplicate_sends_no_second_message(self, db):
        await create_profile(Role.ADMIN)
        event = await create_event()
        user = await create_profile()
        identity = make_identity(user.id)

        await create_booking(_command(event), identity)
        await create_booking(_command(event), identity)

        assert await Message.filter(receiver_id=user.id).count() == 1

    async def test_views_invalidated_after_write(self, db, fake_redis):
        event = await create_event()
        user = await create_profile()

        await create_booking(_command(event), make_identity(user.id))

        fake_redis.delete.assert_awaited_once_with(
            event_view_key(event.id),
            bookings_view_key(user.id),
            messages_view_key(user.id),
        )

    async def test_cache_failure_does_not_fail_booking(self, db, fake_redis):
        fake_redis.delete = AsyncMock(side_effect=ConnectionError("redis down"))
        event = await create_event()
        user = await create_profile()

        result = await create_booking(_command(event), make_identity(user.id))

        assert result.success is True


class TestCancelBooking:
    async def test_cancel_removes_booking_and_notifies(self, db):
        admin = await create_profile(Role.ADMIN)
        event = await create_event(title="Tennis night")
        user = await create_profile()
        identity = make_identity(user.id)

        created = await create_booking(_command(event), identity)
        result = await cancel_booking(created.booking_id, identity)

        assert result.success is True
        assert await Booking.filter(id=created.booking_id).exists() is False
        assert await Event.filter(id=event.id).exists() is True

        messages = await Message.filter(receiver_id=user.id)
        assert len(messages) == 2
        assert all(m.sender_id == admin.id for m in messages)
        notices = [m.content for m in messages if "cancelled" in m.content]
        assert len(notices) == 1
        assert "Tennis night" in notices[0]

    async def test_cannot_cancel_someone_elses_booking(self, db):
        event = await create_event()
        owner = await create_profile()
        intruder = await create_profile()
        booking = await create_booking_row(event, owner)

        result = await cancel_booking(booking.id, make_identity(intruder.id))

        assert result.error == BookingError.NOT_FOUND
        assert await Booking.filter(id=booking.id).exists() is True

    async def test_other_owner_indistinguishable_from_missing(self, db):
        event = await create_event()
        owner = await create_profile()
        intruder = await create_profile()
        booking = await create_booking_row(event, owner)
        identity = make_identity(intruder.id)

        not_owned = await cancel_booking(booking.id, identity)
        missing = await cancel_booking(uuid4(), identity)

        assert not_owned == missing

    async def test_second_cancel_is_not_found(self, db):
        event = await create_event()
        user = await create_profile()
        identity = make_identity(user.id)
        booking = await create_booking_row(event, user)

        assert (await cancel_booking(booking.id, identity)).success is True
        again = await cancel_booking(booking.id, identity)
        assert again.error == BookingError.NOT_FOUND

    async def test_delete_matching_no_rows_is_not_found(self, db):
        event = await create_event()
        user = await create_profile()
        booking = await create_booking_row(event, user)

        with patch.object(
            booking_service.booking_crud,
            "delete_owned_booking",
            AsyncMock(return_value=0),
        ):
            result = await cancel_booking(booking.id, make_identity(user.id))

        assert result.error == BookingError.NOT_FOUND

    async def test_anonymous_cancel_is_unauthenticated(self, db):
        result = await cancel_booking(uuid4(), None)
        assert result.error == BookingError.UNAUTHENTICATED

    async def test_preview_cannot_cancel_targets_booking(self, db):
        event = await create_event()
        user = await create_profile()
        booking = await create_booking_row(event, user)

        result = await cancel_booking(booking.id, make_preview_identity(user.id))

        assert result.error == BookingError.UNAUTHORIZED
        assert await Booking.filter(id=booking.id).exists() is True

    async def test_rebook_after_cancel(self, db):
        event = await create_event()
        user = await create_profile()
        identity = make_identity(user.id)

        first = await create_booking(_command(event), identity)
        await cancel_booking(first.booking_id, identity)
        second = await create_booking(_command(event), identity)

        assert second.success is True
        assert second.booking_id != first.booking_id
