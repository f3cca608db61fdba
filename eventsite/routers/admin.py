from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Response, status
from loguru import logger

from eventsite import settings
from eventsite.crud import booking_crud, event_crud, profile_crud
from eventsite.deps import require_admin, require_manager, require_real_manager
from eventsite.identity import EffectiveIdentity
from eventsite.roles import Role
from eventsite.schemas import (
    BookingResponse,
    PreviewStart,
    ProfileResponse,
    ReferralSummary,
    RoleUpdate,
)

router = APIRouter(prefix="/admin", tags=["admin"])


# ---------------------------------------------------------------------------
# Preview mode
# ---------------------------------------------------------------------------


def _set_preview_cookie(response: Response, key: str, value: str) -> None:
    response.set_cookie(
        key,
        value,
        max_age=settings.PREVIEW_COOKIE_MAX_AGE,
        path="/",
        samesite="lax",
    )


@router.post("/preview", status_code=status.HTTP_204_NO_CONTENT)
async def start_preview(
    payload: PreviewStart,
    response: Response,
    real: EffectiveIdentity = Depends(require_real_manager),
) -> None:
    """
    Browse the site as a base-level user, optionally rendered as ``target_id``.
    Only sets the flags: the real role is re-checked on every later request.
    """
    _set_preview_cookie(response, settings.VIEW_AS_USER_COOKIE, "true")
    if payload.target_id is not None:
        _set_preview_cookie(response, settings.IMPERSONATE_ID_COOKIE, str(payload.target_id))
    else:
        response.delete_cookie(settings.IMPERSONATE_ID_COOKIE, path="/")
    logger.info("Preview enabled by {} (target={})", real.id, payload.target_id)


@router.delete("/preview", status_code=status.HTTP_204_NO_CONTENT)
async def stop_preview(
    response: Response,
    real: EffectiveIdentity = Depends(require_real_manager),
) -> None:
    _set_preview_cookie(response, settings.VIEW_AS_USER_COOKIE, "false")
    response.delete_cookie(settings.IMPERSONATE_ID_COOKIE, path="/")
    logger.info("Preview disabled by {}", real.id)


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------


@router.get("/users", response_model=list[ProfileResponse])
async def list_users(
    role: Role | None = None,
    _: EffectiveIdentity = Depends(require_manager),
) -> list[ProfileResponse]:
    return await profile_crud.list_profiles(role=role)


@router.patch("/users/{profile_id}/role", response_model=ProfileResponse)
async def change_role(
    profile_id: UUID,
    payload: RoleUpdate,
    admin: EffectiveIdentity = Depends(require_admin),
) -> ProfileResponse:
    updated = await profile_crud.set_role(profile_id, payload.role)
    if not updated:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="Profile not found"
        )
    logger.info("Role of {} set to {} by {}", profile_id, payload.role, admin.id)
    return updated


@router.get("/referrals", response_model=list[ReferralSummary])
async def list_referrals(
    _: EffectiveIdentity = Depends(require_admin),
) -> list[ReferralSummary]:
    return await profile_crud.list_referrals()


# ---------------------------------------------------------------------------
# Event bookings
# ---------------------------------------------------------------------------


@router.get("/events/{event_id}/bookings", response_model=list[BookingResponse])
async def list_event_bookings(
    event_id: UUID,
    _: EffectiveIdentity = Depends(require_manager),
) -> list[BookingResponse]:
    if await event_crud.get_event(event_id) is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="Event not found"
        )
    return await booking_crud.list_event_bookings(event_id)
