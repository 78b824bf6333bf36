"""Message history, posting, deletion and read markers.

Reading or posting requires channel membership. New and deleted messages
are broadcast to every live connection.
"""

from fastapi import APIRouter, HTTPException, status

from huddle.realtime import BroadcastEnvelope
from huddle.server._deps import Context, CurrentIdentity
from huddle.server._schemas import CreateMessageRequest, MarkReadRequest, MessageResponse
from huddle.storage import ChatMessage

router = APIRouter(prefix="/messages", tags=["messages"])


async def _require_member(context: Context, channel_id: int, user_id: int) -> None:
    allowed = await context.store.run(
        context.store.db.is_channel_member, channel_id, user_id
    )
    if not allowed:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"No access to channel {channel_id}",
        )


@router.get("/unread-counts")
async def get_unread_counts(
    identity: CurrentIdentity, context: Context
) -> dict[int, int]:
    return await context.store.run(context.store.db.unread_counts, identity.user_id)


@router.get("/{channel_id}")
async def list_messages(
    channel_id: int, identity: CurrentIdentity, context: Context
) -> list[ChatMessage]:
    await _require_member(context, channel_id, identity.user_id)
    return await context.store.run(context.store.db.list_messages, channel_id)


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_message(
    body: CreateMessageRequest, identity: CurrentIdentity, context: Context
) -> ChatMessage:
    await _require_member(context, body.channel_id, identity.user_id)
    message = await context.store.run(
        context.store.db.create_message,
        body.channel_id,
        identity.user_id,
        identity.username,
        body.text,
        body.reply_to_id,
    )
    _ = context.registry.broadcast(
        BroadcastEnvelope.new_message(message.model_dump(mode="json"))
    )
    return message


@router.delete("/{message_id}")
async def delete_message(
    message_id: int, identity: CurrentIdentity, context: Context
) -> MessageResponse:
    message = await context.store.run(context.store.db.get_message, message_id)
    if message is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Message {message_id} not found",
        )
    if message.user_id != identity.user_id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only the author may delete a message",
        )
    _ = await context.store.run(context.store.db.delete_message, message_id)
    _ = context.registry.broadcast(
        BroadcastEnvelope.message_deleted(message_id, message.channel_id)
    )
    return MessageResponse(message="Message deleted")


@router.post("/{channel_id}/read")
async def mark_read(
    channel_id: int,
    body: MarkReadRequest,
    identity: CurrentIdentity,
    context: Context,
) -> MessageResponse:
    await context.store.run(
        context.store.db.mark_read, identity.user_id, channel_id, body.last_message_id
    )
    return MessageResponse(message="Read status updated")
