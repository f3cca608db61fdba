from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status
from loguru import logger

from eventsite.cache import invalidate_views, messages_view_key
from eventsite.crud import message_crud, profile_crud
from eventsite.deps import require_identity, require_manager
from eventsite.identity import EffectiveIdentity
from eventsite.models import Profile
from eventsite.roles import can_manage
from eventsite.schemas import Conversation, MessageCreate, MessageResponse
from eventsite.support import resolve_support_contact

router = APIRouter(prefix="/messages", tags=["messages"])


async def _support_contact_or_404() -> Profile:
    contact = await resolve_support_contact()
    if contact is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Support contact not found",
        )
    return contact


@router.get("/", response_model=list[MessageResponse])
async def my_thread(
    identity: EffectiveIdentity = Depends(require_identity),
) -> list[MessageResponse]:
    """The caller's conversation with the support inbox."""
    contact = await _support_contact_or_404()
    messages = await message_crud.list_thread(identity.id, contact.id)
    if not identity.is_synthetic_preview:
        if await message_crud.mark_thread_read(identity.id, contact.id):
            await invalidate_views(messages_view_key(identity.id))
    return messages


@router.post("/", response_model=MessageResponse, status_code=status.HTTP_201_CREATED)
async def send_message(
    payload: MessageCreate,
    identity: EffectiveIdentity = Depends(require_identity),
) -> MessageResponse:
    """
    Users always write to the support inbox. Managers answer from it, so every
    conversation stays attached to the one support contact.
    """
    if identity.is_synthetic_preview:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Preview mode is read-only",
        )

    contact = await _support_contact_or_404()

    if can_manage(identity.role) and payload.receiver_id is not None:
        if await profile_crud.get_profile(payload.receiver_id) is None:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND, detail="Receiver not found"
            )
        sender_id, receiver_id = contact.id, payload.receiver_id
    elif payload.receiver_id is None or payload.receiver_id == contact.id:
        if await profile_crud.get_profile(identity.id) is None:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Profile not set up",
            )
        sender_id, receiver_id = identity.id, contact.id
    else:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Messages can only be sent to support",
        )

    if sender_id == receiver_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Support cannot message itself",
        )

    message = await message_crud.create_message(sender_id, receiver_id, payload.content)
    logger.info("Message {} sent: {} -> {}", message.id, sender_id, receiver_id)
    await invalidate_views(messages_view_key(sender_id), messages_view_key(receiver_id))
    return message


@router.get("/inbox", response_model=list[Conversation])
async def support_inbox(
    _: EffectiveIdentity = Depends(require_manager),
) -> list[Conversation]:
    contact = await _support_contact_or_404()
    return await message_crud.list_inbox(contact.id)


@router.get("/with/{user_id}", response_model=list[MessageResponse])
async def conversation_with(
    user_id: UUID,
    _: EffectiveIdentity = Depends(require_manager),
) -> list[MessageResponse]:
    contact = await _support_contact_or_404()
    messages = await message_crud.list_thread(contact.id, user_id)
    if await message_crud.mark_thread_read(contact.id, user_id):
        await invalidate_views(messages_view_key(contact.id))
    return messages
