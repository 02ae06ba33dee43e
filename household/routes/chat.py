"""
Family chat: messages with attachments, presence and the family event socket.
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import (
    APIRouter,
    Depends,
    File,
    Form,
    HTTPException,
    Query,
    UploadFile,
    WebSocket,
)
from starlette.concurrency import run_in_threadpool

from household.config import get_settings
from household.db import MessageRow, ProfileRow, SqlDbClient
from household.dependencies import (
    get_broker,
    get_db_client,
    get_family_profile,
    get_push_notifier,
    get_storage_client,
    resolve_token,
)
from household.push import PushNotifier, chat_push_payload
from household.realtime import Broker, family_channel
from household.routes.common import (
    epoch_ms,
    get_family_row,
    publish_event,
    read_upload,
    relay,
    safe_filename,
)
from household.schemas import MessageResponse, PresenceResponse, StatusResponse
from household.shared.types import UNKNOWN_USERNAME
from household.storage import StorageClient

logger = logging.getLogger(__name__)

router = APIRouter()
socket_router = APIRouter()


def message_response(message: MessageRow, usernames: dict[str, str]) -> MessageResponse:
    response = MessageResponse.model_validate(message)
    response.sender_username = usernames.get(message.sender_id, UNKNOWN_USERNAME)
    return response


def post_message(
    db: SqlDbClient,
    broker: Broker,
    notifier: PushNotifier,
    profile: ProfileRow,
    content: str,
    attachment: Optional[dict] = None,
) -> MessageResponse:
    """
    Store a chat message, fan it out on the family channel and push it to the
    other members' browsers.
    """
    message = db.add(
        MessageRow,
        {
            "family_group": profile.family_group,
            "sender_id": profile.id,
            "content": content,
            **(attachment or {}),
        },
    )
    response = message_response(message, {profile.id: profile.username})
    publish_event(
        broker, profile.family_group, "message", message=response.model_dump(mode="json")
    )
    notifier.notify_family(
        db,
        profile.family_group,
        chat_push_payload(profile.username),
        exclude_user_id=profile.id,
    )
    return response


@router.get("/messages", response_model=list[MessageResponse])
def list_messages(
    profile: ProfileRow = Depends(get_family_profile),
    db: SqlDbClient = Depends(get_db_client),
):
    usernames = {
        member.id: member.username
        for member in db.list_family_profiles(profile.family_group)
    }
    return [
        message_response(message, usernames)
        for message in db.list_messages(profile.family_group)
    ]


@router.post("/messages", response_model=MessageResponse, status_code=201)
async def send_message(
    content: str = Form(""),
    file: Optional[UploadFile] = File(None),
    profile: ProfileRow = Depends(get_family_profile),
    db: SqlDbClient = Depends(get_db_client),
    storage: StorageClient = Depends(get_storage_client),
    broker: Broker = Depends(get_broker),
    notifier: PushNotifier = Depends(get_push_notifier),
):
    content = content.strip()
    if not content and file is None:
        raise HTTPException(status_code=400, detail="Message is empty")

    attachment = None
    if file is not None:
        data = await read_upload(file, get_settings().max_upload_bytes)
        file_name = file.filename or "file"
        path = f"chat_files/{profile.family_group}/{epoch_ms()}-{safe_filename(file_name)}"
        await run_in_threadpool(storage.upload_bytes, path, data, file.content_type)
        attachment = {
            "file_url": storage.public_url(path),
            "file_name": file_name,
            "file_type": file.content_type,
            "storage_path": path,
        }
    return await run_in_threadpool(
        post_message, db, broker, notifier, profile, content, attachment
    )


@router.delete("/messages/{message_id}", response_model=StatusResponse)
def delete_message(
    message_id: int,
    profile: ProfileRow = Depends(get_family_profile),
    db: SqlDbClient = Depends(get_db_client),
    storage: StorageClient = Depends(get_storage_client),
    broker: Broker = Depends(get_broker),
):
    message = get_family_row(db, MessageRow, message_id, profile, "Message not found")
    if message.sender_id != profile.id:
        raise HTTPException(status_code=403, detail="You can only delete your own messages")
    db.delete(MessageRow, message_id)
    if message.storage_path:
        try:
            storage.delete(message.storage_path)
        except Exception:
            logger.exception("Failed to delete attachment %s", message.storage_path)
    publish_event(broker, profile.family_group, "message_deleted", id=message_id)
    return StatusResponse()


def announce_presence(broker: Broker, family_group: str) -> None:
    try:
        online = broker.members(family_group)
    except Exception:
        logger.exception("Failed to read presence for family %s", family_group)
        return
    publish_event(broker, family_group, "presence", online=online)


@router.get("/presence", response_model=PresenceResponse)
def presence(
    profile: ProfileRow = Depends(get_family_profile),
    broker: Broker = Depends(get_broker),
):
    return PresenceResponse(online=broker.members(profile.family_group))


@socket_router.websocket("/family")
async def family_socket(
    websocket: WebSocket,
    token: Optional[str] = Query(None),
    db: SqlDbClient = Depends(get_db_client),
    broker: Broker = Depends(get_broker),
):
    """
    Forward every event of the caller's family channel to the socket.

    The first frame is always a ``presence`` event that includes the caller.
    """
    profile = await run_in_threadpool(resolve_token, db, token)
    if profile is None or not profile.family_group:
        await websocket.close(code=4401)
        return

    await websocket.accept()
    group = profile.family_group
    subscription = await broker.subscribe(family_channel(group))
    await run_in_threadpool(broker.join, group, profile.id)
    await run_in_threadpool(announce_presence, broker, group)

    async def ignore_frame(text: str) -> bool:
        return True

    try:
        await relay(websocket, subscription, ignore_frame)
    finally:
        await subscription.close()
        await run_in_threadpool(broker.leave, group, profile.id)
        await run_in_threadpool(announce_presence, broker, group)
        logger.info("Profile %s left family socket %s", profile.id, group)
