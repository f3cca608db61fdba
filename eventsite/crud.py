from __future__ import annotations

from uuid import UUID

from tortoise.exceptions import IntegrityError
from tortoise.expressions import Q

from eventsite.models import Booking, Event, Message, Profile
from eventsite.roles import Role, accessible_roles
from eventsite.schemas import (
    BookingResponse,
    Conversation,
    EventResponse,
    MessageResponse,
    MyBooking,
    ProfileResponse,
    ReferralSummary,
)


class ProfileCRUD:
    async def get_profile(self, profile_id: UUID) -> Profile | None:
        return await Profile.get_or_none(id=profile_id)

    async def ensure_profile(
        self,
        profile_id: UUID,
        email: str | None,
        full_name: str | None = None,
        referred_by: UUID | None = None,
    ) -> tuple[Profile, bool]:
        """
        Create the profile on first sign-in. Returns ``(profile, created)``.

        Existing profiles only get an empty ``full_name`` filled in; the
        referrer is recorded once, at creation, and only if it exists.
        """
        existing = await Profile.get_or_none(id=profile_id)
        if existing is not None:
            if not existing.full_name and full_name:
                existing.full_name = full_name
                await existing.save(update_fields=["full_name", "updated_at"])
            return existing, False

        referrer_id: UUID | None = None
        if referred_by is not None and referred_by != profile_id:
            if await Profile.exists(id=referred_by):
                referrer_id = referred_by

        try:
            profile = await Profile.create(
                id=profile_id,
                email=email,
                full_name=full_name,
                role=Role.USER,
                referred_by_id=referrer_id,
            )
        except IntegrityError:
            # a concurrent first sign-in created it between the read and the insert
            return await Profile.get(id=profile_id), False
        return profile, True

    async def list_profiles(self, role: Role | None = None) -> list[ProfileResponse]:
        qs = Profile.all().order_by("-created_at")
        if role is not None:
            qs = qs.filter(role=role)
        return [ProfileResponse.model_validate(p) for p in await qs]

    async def list_referrals(self) -> list[ReferralSummary]:
        """
        One entry per referrer with the profiles they brought in, biggest
        referrers first. Referrers whose own profile is gone are skipped.
        """
        referred = await Profile.filter(referred_by_id__isnull=False).order_by("created_at")

        by_referrer: dict[UUID, list[Profile]] = {}
        for p in referred:
            by_referrer.setdefault(p.referred_by_id, []).append(p)

        referrers = {
            p.id: p for p in await Profile.filter(id__in=list(by_referrer.keys()))
        }

        summaries = [
            ReferralSummary(
                referrer=ProfileResponse.model_validate(referrers[referrer_id]),
                referred=[ProfileResponse.model_validate(p) for p in profiles],
                referred_count=len(profiles),
            )
            for referrer_id, profiles in by_referrer.items()
            if referrer_id in referrers
        ]
        summaries.sort(key=lambda s: (-s.referred_count, s.referrer.created_at))
        return summaries

    async def set_role(self, profile_id: UUID, role: Role) -> ProfileResponse | None:
        inst = await Profile.get_or_none(id=profile_id)
        if not inst:
            return None
        inst.role = role
        await inst.save(update_fields=["role", "updated_at"])
        return ProfileResponse.model_validate(inst)


class EventCRUD:
    async def get_event(self, event_id: UUID) -> Event | None:
        return await Event.get_or_none(id=event_id)

    async def list_visible_events(self, role: Role) -> list[EventResponse]:
        events = await Event.filter(min_role__in=accessible_roles(role)).order_by(
            "start_at"
        )
        return [EventResponse.model_validate(e) for e in events]


class BookingCRUD:
    async def create_booking(
        self,
        event_id: UUID,
        user_id: UUID,
        transportation: str | None,
        pickup_needed: bool,
    ) -> Booking:
        """Raises ``IntegrityError`` when the (event, user) pair is already booked."""
        return await Booking.create(
            event_id=event_id,
            user_id=user_id,
            transportation=transportation,
            pickup_needed=pickup_needed,
        )

    async def booking_exists(self, event_id: UUID, user_id: UUID) -> bool:
        return await Booking.exists(event_id=event_id, user_id=user_id)

    async def get_owned_booking(self, booking_id: UUID, user_id: UUID) -> Booking | None:
        return (
            await Booking.filter(id=booking_id, user_id=user_id)
            .select_related("event")
            .first()
        )

    async def delete_owned_booking(self, booking_id: UUID, user_id: UUID) -> int:
        """Returns the number of rows deleted (0 or 1)."""
        return await Booking.filter(id=booking_id, user_id=user_id).delete()

    async def get_user_booking_id(self, event_id: UUID, user_id: UUID) -> UUID | None:
        inst = await Booking.filter(event_id=event_id, user_id=user_id).first()
        return inst.id if inst else None

    async def count_event_bookings(self, event_id: UUID) -> int:
        return await Booking.filter(event_id=event_id).count()

    async def list_user_bookings(self, user_id: UUID) -> list[MyBooking]:
        bookings = (
            await Booking.filter(user_id=user_id)
            .select_related("event")
            .order_by("-created_at")
        )
        return [
            MyBooking(
                **BookingResponse.model_validate(b).model_dump(),
                event_title=b.event.title,
                event_start_at=b.event.start_at,
            )
            for b in bookings
        ]

    async def list_event_bookings(self, event_id: UUID) -> list[BookingResponse]:
        bookings = await Booking.filter(event_id=event_id).order_by("created_at")
        return [BookingResponse.model_validate(b) for b in bookings]


class MessageCRUD:
    async def create_message(
        self, sender_id: UUID, receiver_id: UUID, content: str
    ) -> MessageResponse:
        inst = await Message.create(
            sender_id=sender_id, receiver_id=receiver_id, content=content
        )
        return MessageResponse.model_validate(inst)

    async def list_thread(self, user_a: UUID, user_b: UUID) -> list[MessageResponse]:
        messages = await Message.filter(
            Q(sender_id=user_a, receiver_id=user_b)
            | Q(sender_id=user_b, receiver_id=user_a)
        ).order_by("created_at")
        return [MessageResponse.model_validate(m) for m in messages]

    async def mark_thread_read(self, receiver_id: UUID, sender_id: UUID) -> int:
        return await Message.filter(
            receiver_id=receiver_id, sender_id=sender_id, is_read=False
        ).update(is_read=True)

    async def list_inbox(self, owner_id: UUID) -> list[Conversation]:
        """
        Rebuild one conversation per counterpart from every message touching
        ``owner_id``, most recently active first.
        """
        messages = await Message.filter(
            Q(sender_id=owner_id) | Q(receiver_id=owner_id)
        ).order_by("created_at")

        latest: dict[UUID, Message] = {}
        unread: dict[UUID, int] = {}
        for m in messages:
            other = m.receiver_id if m.sender_id == owner_id else m.sender_id
            if other == owner_id:
                continue
            latest[other] = m
            unread.setdefault(other, 0)
            if m.receiver_id == owner_id and not m.is_read:
                unread[other] += 1

        profiles = {
            p.id: p for p in await Profile.filter(id__in=list(latest.keys()))
        }

        conversations = []
        for other, last in latest.items():
            profile = profiles.get(other)
            conversations.append(
                Conversation(
                    participant_id=other,
                    participant_email=profile.email if profile else None,
                    participant_name=profile.full_name if profile else None,
                    last_message=MessageResponse.model_validate(last),
                    unread_count=unread[other],
                )
            )
        conversations.sort(key=lambda c: c.last_message.created_at, reverse=True)
        return conversations


profile_crud = ProfileCRUD()
event_crud = EventCRUD()
booking_crud = BookingCRUD()
message_crud = MessageCRUD()
