from __future__ import annotations

from datetime import datetime
from enum import StrEnum
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from eventsite.roles import Role


class Transportation(StrEnum):
    OWN = "own"  # arrives on their own
    CAR = "car"
    TRAIN = "train"
    BUS = "bus"
    OTHER = "other"


class BookingError(StrEnum):
    UNAUTHENTICATED = "unauthenticated"
    UNAUTHORIZED = "unauthorized"
    DUPLICATE_BOOKING = "duplicate_booking"
    NOT_FOUND = "not_found"
    TRANSIENT_STORAGE_ERROR = "transient_storage_error"


class ActionResult(BaseModel):
    """Outcome of a booking operation: ``{success: true}`` or ``{error: reason}``."""

    success: bool = False
    error: BookingError | None = None
    booking_id: UUID | None = None

    @classmethod
    def ok(cls, booking_id: UUID | None = None) -> ActionResult:
        return cls(success=True, booking_id=booking_id)

    @classmethod
    def fail(cls, error: BookingError) -> ActionResult:
        return cls(success=False, error=error)


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


class BookingCreate(BaseModel):
    event_id: UUID
    transportation: Transportation | None = None
    pickup_needed: bool = False


class MessageCreate(BaseModel):
    content: str = Field(min_length=1, max_length=4000)
    # omitted by regular users: the message goes to the support contact
    receiver_id: UUID | None = None

    @field_validator("content", mode="after")
    @classmethod
    def strip_content(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("message content must not be blank")
        return v


class ProfileBootstrap(BaseModel):
    full_name: str | None = Field(default=None, max_length=255)
    referred_by: UUID | None = None


class RoleUpdate(BaseModel):
    role: Role


class PreviewStart(BaseModel):
    # no target: browse as the generic base-level viewer
    target_id: UUID | None = None


# ---------------------------------------------------------------------------
# Responses
# ---------------------------------------------------------------------------


class ProfileResponse(BaseModel):
    id: UUID
    email: str | None
    full_name: str | None
    role: Role
    referred_by_id: UUID | None = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class EventResponse(BaseModel):
    id: UUID
    title: str
    description: str | None
    start_at: datetime
    end_at: datetime | None
    location: str | None
    capacity: int | None
    min_role: Role

    model_config = ConfigDict(from_attributes=True)


class EventDetail(EventResponse):
    booking_count: int = 0
    my_booking_id: UUID | None = None


class BookingResponse(BaseModel):
    id: UUID
    event_id: UUID
    user_id: UUID
    transportation: Transportation | None
    pickup_needed: bool
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class MyBooking(BookingResponse):
    event_title: str
    event_start_at: datetime


class MessageResponse(BaseModel):
    id: UUID
    sender_id: UUID
    receiver_id: UUID
    content: str
    is_read: bool
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class Conversation(BaseModel):
    """One thread in the support inbox, keyed by the other participant."""

    participant_id: UUID
    participant_email: str | None = None
    participant_name: str | None = None
    last_message: MessageResponse
    unread_count: int = 0


class ReferralSummary(BaseModel):
    referrer: ProfileResponse
    referred: list[ProfileResponse]
    referred_count: int


class MeResponse(BaseModel):
    id: UUID
    email: str | None
    role: Role
    is_synthetic_preview: bool
    real_id: UUID
