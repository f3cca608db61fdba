from uuid import UUID

from fastapi import Cookie, Depends, Header, HTTPException, status
from loguru import logger

from eventsite import settings
from eventsite.identity import (
    EffectiveIdentity,
    ImpersonationContext,
    RealSession,
    resolve_from_context,
)
from eventsite.roles import Role, can_manage, is_admin_strict

# ---------------------------------------------------------------------------
# Real identity: headers injected by the auth gateway
# ---------------------------------------------------------------------------


def get_real_session(
    x_user_id: str | None = Header(default=None),
    x_user_email: str | None = Header(default=None),
) -> RealSession | None:
    """
    Reads the headers injected by the gateway after it validated the session.
    No headers means an anonymous visitor; a malformed id is rejected.
    """
    if not x_user_id:
        return None
    try:
        user_id = UUID(x_user_id)
    except (ValueError, TypeError):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid user identity from gateway",
        ) from None
    return RealSession(id=user_id, email=x_user_email or None)


# ---------------------------------------------------------------------------
# Preview flags: two cookies, rebuilt on every request
# ---------------------------------------------------------------------------


def _parse_target(raw: str | None) -> UUID | None:
    if not raw:
        return None
    try:
        return UUID(raw)
    except ValueError:
        logger.debug("Ignoring malformed {} cookie: {!r}", settings.IMPERSONATE_ID_COOKIE, raw)
        return None


def get_impersonation_context(
    real_session: RealSession | None = Depends(get_real_session),
    view_as_user: str | None = Cookie(default=None),
    impersonate_id: str | None = Cookie(default=None),
) -> ImpersonationContext:
    return ImpersonationContext(
        real_session=real_session,
        preview_enabled=view_as_user == "true",
        target_id=_parse_target(impersonate_id),
    )


async def get_effective_identity(
    ctx: ImpersonationContext = Depends(get_impersonation_context),
) -> EffectiveIdentity | None:
    """
    Resolved once per request: FastAPI caches dependency results for the
    lifetime of a single request only.
    """
    return await resolve_from_context(ctx)


def get_effective_role(
    identity: EffectiveIdentity | None = Depends(get_effective_identity),
) -> Role:
    """Anonymous visitors see what a base-level user sees."""
    return identity.role if identity else Role.USER


# ---------------------------------------------------------------------------
# Permission gates
# ---------------------------------------------------------------------------


async def require_identity(
    identity: EffectiveIdentity | None = Depends(get_effective_identity),
) -> EffectiveIdentity:
    if identity is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Sign-in required",
        )
    return identity


async def require_manager(
    identity: EffectiveIdentity = Depends(require_identity),
) -> EffectiveIdentity:
    """Moderators and admins. Evaluated against the effective identity."""
    if not can_manage(identity.role):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Requires moderator or admin role",
        )
    return identity


async def require_admin(
    identity: EffectiveIdentity = Depends(require_identity),
) -> EffectiveIdentity:
    """Shorthand for admin-only endpoints. Moderators are rejected."""
    if not is_admin_strict(identity.role):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Requires admin role",
        )
    return identity


async def require_real_manager(
    real_session: RealSession | None = Depends(get_real_session),
) -> EffectiveIdentity:
    """
    Gate for switching preview on and off. Checks the REAL role so that an
    admin currently previewing as a base-level user can still leave preview.
    """
    if real_session is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Sign-in required",
        )
    real = await resolve_from_context(ImpersonationContext(real_session=real_session))
    if real is None or not can_manage(real.role):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Requires moderator or admin role",
        )
    return real
