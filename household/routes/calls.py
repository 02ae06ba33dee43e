"""
Peer-to-peer video calls: ICE servers, ringing and the signaling relay.

Media never touches this service. Browsers exchange SDP offers/answers and ICE
candidates through ``/ws/calls/{user_id}``, which relays JSON frames between
the two members over their pair channel.
"""

from __future__ import annotations

import json
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, WebSocket
from starlette.concurrency import run_in_threadpool

from household.config import get_settings
from household.db import ProfileRow, SqlDbClient
from household.dependencies import (
    get_broker,
    get_db_client,
    get_family_profile,
    get_push_notifier,
    resolve_token,
)
from household.push import PushNotifier
from household.realtime import Broker, call_channel
from household.routes.chat import post_message
from household.routes.common import publish_event, relay
from household.schemas import CallRingResponse, IceServer, IceServersResponse
from household.shared.types import SignalType

logger = logging.getLogger(__name__)

router = APIRouter()
socket_router = APIRouter()

SIGNAL_TYPES = {signal.value for signal in SignalType}


def _family_peer(
    db: SqlDbClient, profile: ProfileRow, user_id: str
) -> Optional[ProfileRow]:
    peer = db.get(ProfileRow, user_id)
    if peer is None or peer.family_group != profile.family_group:
        return None
    return peer


@router.get("/ice-servers", response_model=IceServersResponse)
def ice_servers():
    return IceServersResponse(
        ice_servers=[IceServer(urls=url) for url in get_settings().ice_server_urls()]
    )


@router.post("/{user_id}/ring", response_model=CallRingResponse)
def ring(
    user_id: str,
    profile: ProfileRow = Depends(get_family_profile),
    db: SqlDbClient = Depends(get_db_client),
    broker: Broker = Depends(get_broker),
    notifier: PushNotifier = Depends(get_push_notifier),
):
    callee = _family_peer(db, profile, user_id)
    if callee is None:
        raise HTTPException(status_code=404, detail="Family member not found")
    if callee.id == profile.id:
        raise HTTPException(status_code=400, detail="You cannot call yourself")

    channel = call_channel(profile.id, callee.id)
    publish_event(
        broker,
        profile.family_group,
        "direct-call-signal",
        senderId=profile.id,
        recipientId=callee.id,
        callerUsername=profile.username,
        channel=channel,
    )
    message = post_message(
        db,
        broker,
        notifier,
        profile,
        f"{profile.username} sta provando a videochiamare {callee.username}",
    )
    logger.info("Profile %s ringing %s on %s", profile.id, callee.id, channel)
    return CallRingResponse(channel=channel, message=message)


@socket_router.websocket("/calls/{user_id}")
async def call_socket(
    websocket: WebSocket,
    user_id: str,
    token: Optional[str] = Query(None),
    db: SqlDbClient = Depends(get_db_client),
    broker: Broker = Depends(get_broker),
):
    """
    Relay signaling frames between the caller and ``user_id``.

    After subscribing the server sends ``{"type": "ready", "channel": ...}``.
    Frames must be JSON objects with a ``type`` of offer, answer,
    ice-candidate or hangup; anything else gets an ``error`` frame back.
    """
    profile = await run_in_threadpool(resolve_token, db, token)
    peer = None
    if profile is not None and profile.family_group:
        peer = await run_in_threadpool(_family_peer, db, profile, user_id)
    if peer is None or peer.id == profile.id:
        await websocket.close(code=4403)
        return

    await websocket.accept()
    channel = call_channel(profile.id, peer.id)
    subscription = await broker.subscribe(channel)
    await websocket.send_json({"type": "ready", "channel": channel})

    async def forward(text: str) -> bool:
        try:
            frame = json.loads(text)
        except ValueError:
            frame = None
        if not isinstance(frame, dict) or frame.get("type") not in SIGNAL_TYPES:
            await websocket.send_json(
                {"type": "error", "detail": "Invalid signaling frame"}
            )
            return True
        frame["senderId"] = profile.id
        frame["recipientId"] = peer.id
        try:
            await run_in_threadpool(broker.publish, channel, frame)
        except Exception:
            logger.exception("Failed to relay %s frame on %s", frame["type"], channel)
            await websocket.send_json(
                {"type": "error", "detail": "Signaling relay unavailable"}
            )
            return True
        return frame["type"] != SignalType.HANGUP.value

    try:
        await relay(websocket, subscription, forward, skip_sender=profile.id)
    finally:
        await subscription.close()
