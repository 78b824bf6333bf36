"""Channel and membership endpoints.

Every successful write is followed by an envelope to live connections.
Public channel events go to everyone; group channel creation is only
announced to its members.
"""

from fastapi import APIRouter, HTTPException, status

from huddle.realtime import BroadcastEnvelope
from huddle.server._deps import Context, CurrentIdentity
from huddle.server._schemas import (
    CreateChannelRequest,
    CreateGroupRequest,
    LastReadResponse,
    MembersRequest,
    MessageResponse,
    RenameChannelRequest,
)
from huddle.storage import Channel, UserSummary

router = APIRouter(prefix="/channels", tags=["channels"])


def _not_found(channel_id: int) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail=f"Channel {channel_id} not found",
    )


async def _require_channel(context: Context, channel_id: int) -> Channel:
    channel = await context.store.run(context.store.db.get_channel, channel_id)
    if channel is None:
        raise _not_found(channel_id)
    return channel


@router.get("")
async def list_channels(identity: CurrentIdentity, context: Context) -> list[Channel]:
    return await context.store.run(context.store.db.list_channels, identity.user_id)


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_channel(
    body: CreateChannelRequest, identity: CurrentIdentity, context: Context
) -> Channel:
    channel = await context.store.run(context.store.db.create_channel, body.name)
    context.logger.info("channel_created", channel_id=channel.id, by=identity.key)
    _ = context.registry.broadcast(
        BroadcastEnvelope.channel_created(channel.model_dump(mode="json"))
    )
    return channel


@router.post("/group", status_code=status.HTTP_201_CREATED)
async def create_group(
    body: CreateGroupRequest, identity: CurrentIdentity, context: Context
) -> Channel:
    channel = await context.store.run(
        context.store.db.create_group, body.name, identity.user_id, body.member_ids
    )
    members = await context.store.run(context.store.db.list_members, channel.id)
    context.logger.info(
        "group_created", channel_id=channel.id, by=identity.key, members=len(members)
    )
    _ = context.registry.notify(
        [str(member.id) for member in members],
        BroadcastEnvelope.channel_created(channel.model_dump(mode="json")),
    )
    return channel


@router.put("/{channel_id}/name")
async def rename_channel(
    channel_id: int,
    body: RenameChannelRequest,
    identity: CurrentIdentity,
    context: Context,
) -> Channel:
    channel = await context.store.run(
        context.store.db.rename_channel, channel_id, body.name
    )
    if channel is None:
        raise _not_found(channel_id)
    context.logger.info("channel_renamed", channel_id=channel_id, by=identity.key)
    _ = context.registry.broadcast(
        BroadcastEnvelope.channel_updated(channel.model_dump(mode="json"))
    )
    return channel


@router.delete("/{channel_id}")
async def delete_channel(
    channel_id: int, identity: CurrentIdentity, context: Context
) -> MessageResponse:
    channel = await _require_channel(context, channel_id)
    if not channel.is_deletable:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"Channel {channel_id} cannot be deleted",
        )
    deleted = await context.store.run(context.store.db.delete_channel, channel_id)
    if not deleted:
        raise _not_found(channel_id)
    context.logger.info("channel_deleted", channel_id=channel_id, by=identity.key)
    _ = context.registry.broadcast(BroadcastEnvelope.channel_deleted(channel_id))
    return MessageResponse(message="Channel deleted")


@router.get("/{channel_id}/members")
async def list_members(
    channel_id: int, _identity: CurrentIdentity, context: Context
) -> list[UserSummary]:
    _ = await _require_channel(context, channel_id)
    return await context.store.run(context.store.db.list_members, channel_id)


@router.post("/{channel_id}/members")
async def add_members(
    channel_id: int, body: MembersRequest, identity: CurrentIdentity, context: Context
) -> MessageResponse:
    _ = await _require_channel(context, channel_id)
    added = await context.store.run(
        context.store.db.add_members, channel_id, body.user_ids
    )
    context.logger.info(
        "members_added", channel_id=channel_id, by=identity.key, added=added
    )
    _notify_membership_change(context, channel_id, body.user_ids)
    return MessageResponse(message=f"Added {added} member(s)")


@router.delete("/{channel_id}/members")
async def remove_members(
    channel_id: int, body: MembersRequest, identity: CurrentIdentity, context: Context
) -> MessageResponse:
    _ = await _require_channel(context, channel_id)
    removed = await context.store.run(
        context.store.db.remove_members, channel_id, body.user_ids
    )
    context.logger.info(
        "members_removed", channel_id=channel_id, by=identity.key, removed=removed
    )
    _notify_membership_change(context, channel_id, body.user_ids)
    return MessageResponse(message=f"Removed {removed} member(s)")


@router.get("/{channel_id}/last-read")
async def get_last_read(
    channel_id: int, identity: CurrentIdentity, context: Context
) -> LastReadResponse:
    last_read = await context.store.run(
        context.store.db.last_read, identity.user_id, channel_id
    )
    return LastReadResponse(last_read_message_id=last_read)


def _notify_membership_change(
    context: Context, channel_id: int, user_ids: list[int]
) -> None:
    _ = context.registry.broadcast(BroadcastEnvelope.members_updated(channel_id))
    _ = context.registry.notify(
        [str(user_id) for user_id in user_ids], BroadcastEnvelope.refetch_channels()
    )
