from uuid import UUID

from loguru import logger

from eventsite.models import Message, Profile
from eventsite.roles import MANAGER_ROLES


async def resolve_support_contact() -> Profile | None:
    """
    The single privileged profile every end user talks to.

    Earliest-created admin or moderator; ``id`` breaks timestamp ties so the
    choice stays stable.
    """
    return (
        await Profile.filter(role__in=list(MANAGER_ROLES))
        .order_by("created_at", "id")
        .first()
    )


async def send_system_message(receiver_id: UUID, content: str) -> bool:
    """
    Send ``content`` to ``receiver_id`` from the support contact.
    Returns True on success, False on any error (silently degraded).
    """
    try:
        contact = await resolve_support_contact()
        if contact is None:
            logger.error(
                "No admin/moderator profile found, cannot notify {}", receiver_id
            )
            return False

        await Message.create(
            sender_id=contact.id,
            receiver_id=receiver_id,
            content=content,
            is_read=False,
        )
    except Exception:
        logger.opt(exception=True).error(
            "System message to {} failed", receiver_id
        )
        return False

    logger.info("System message sent to {} from {}", receiver_id, contact.id)
    return True
