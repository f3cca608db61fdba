from enum import StrEnum


class Role(StrEnum):
    USER = "user"  # default for every new sign-in
    LEAD = "lead"
    MEMBER = "member"
    MODERATOR = "moderator"  # can manage events, bookings and the support inbox
    ADMIN = "admin"  # moderator powers + role changes


ROLE_LEVELS: dict[str, int] = {
    Role.USER: 1,
    Role.LEAD: 2,
    Role.MEMBER: 3,
    Role.MODERATOR: 4,
    Role.ADMIN: 5,
}

MANAGER_ROLES = frozenset({Role.MODERATOR, Role.ADMIN})


def level_of(role: str | None) -> int:
    """Unknown or missing roles rank as the lowest level (fail closed)."""
    if role is None:
        return ROLE_LEVELS[Role.USER]
    return ROLE_LEVELS.get(role, ROLE_LEVELS[Role.USER])


def can_access(min_required_role: str | None, actual_role: str | None) -> bool:
    return level_of(actual_role) >= level_of(min_required_role)


def can_manage(actual_role: str | None) -> bool:
    return actual_role in MANAGER_ROLES


def is_admin_strict(actual_role: str | None) -> bool:
    """Admin only. Moderators are excluded (e.g. from changing roles)."""
    return actual_role == Role.ADMIN


def accessible_roles(actual_role: str | None) -> list[Role]:
    """Every ``min_role`` value an identity with ``actual_role`` may see."""
    level = level_of(actual_role)
    return [role for role in Role if ROLE_LEVELS[role] <= level]
