"""
Effective-identity resolution.

The gateway tells us who is really signed in. Admins and moderators may switch
on a preview mode (two cookies) to browse the site as a base-level user,
optionally rendered as a specific profile. Preview never borrows the target's
privileges: a previewed identity always carries ``Role.USER``.

The real identity's role is re-read from ``profiles`` on every request. Nothing
here is cached beyond the request that produced it.
"""

from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID

from loguru import logger

from eventsite.models import Profile
from eventsite.roles import Role, can_manage

# Stand-in for "a generic signed-in user". Never persisted, never writable.
GENERIC_VIEWER_ID = UUID(int=0)
GENERIC_VIEWER_EMAIL = "preview@example.invalid"


@dataclass(frozen=True)
class RealSession:
    id: UUID
    email: str | None = None


@dataclass(frozen=True)
class ImpersonationContext:
    real_session: RealSession | None
    preview_enabled: bool = False
    target_id: UUID | None = None


@dataclass(frozen=True)
class EffectiveIdentity:
    id: UUID
    email: str | None
    role: Role
    real_id: UUID
    is_synthetic_preview: bool = False

    @property
    def is_generic_viewer(self) -> bool:
        return self.id == GENERIC_VIEWER_ID


async def _lookup_role(profile_id: UUID) -> Role:
    profile = await Profile.get_or_none(id=profile_id)
    if profile is None:
        return Role.USER
    return Role(profile.role)


async def _real_identity(session: RealSession) -> EffectiveIdentity:
    try:
        role = await _lookup_role(session.id)
    except Exception:
        logger.opt(exception=True).warning(
            "Role lookup failed for {}, treating as user", session.id
        )
        role = Role.USER
    return EffectiveIdentity(
        id=session.id, email=session.email, role=role, real_id=session.id
    )


def _preview_identity(real_id: UUID, profile: Profile | None) -> EffectiveIdentity:
    if profile is None:
        return EffectiveIdentity(
            id=GENERIC_VIEWER_ID,
            email=GENERIC_VIEWER_EMAIL,
            role=Role.USER,
            real_id=real_id,
            is_synthetic_preview=True,
        )
    return EffectiveIdentity(
        id=profile.id,
        email=profile.email,
        role=Role.USER,
        real_id=real_id,
        is_synthetic_preview=True,
    )


async def resolve_effective_identity(
    real_session: RealSession | None,
    preview_enabled: bool,
    target_id: UUID | None,
) -> EffectiveIdentity | None:
    """
    Return the identity that governs this request, or ``None`` for anonymous.

    Never raises: any lookup failure degrades to the real identity.
    """
    if real_session is None:
        return None

    real = await _real_identity(real_session)
    if not preview_enabled:
        return real

    if not can_manage(real.role):
        logger.warning(
            "Preview requested by non-manager {} (role={}), ignored",
            real_session.id,
            real.role,
        )
        return real

    target: Profile | None = None
    if target_id is not None:
        try:
            target = await Profile.get_or_none(id=target_id)
        except Exception:
            logger.opt(exception=True).warning(
                "Preview target lookup failed for {}, using real identity",
                target_id,
            )
            return real

    identity = _preview_identity(real_session.id, target)
    logger.debug(
        "Preview mode: {} viewing as {} (generic={})",
        real_session.id,
        identity.id,
        identity.is_generic_viewer,
    )
    return identity


async def resolve_from_context(ctx: ImpersonationContext) -> EffectiveIdentity | None:
    return await resolve_effective_identity(
        ctx.real_session, ctx.preview_enabled, ctx.target_id
    )
