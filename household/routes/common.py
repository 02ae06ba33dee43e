"""
Helpers shared by the route modules.
"""

from __future__ import annotations

import asyncio
import logging
import re
import time
from typing import Any, Awaitable, Callable, Optional, Type, TypeVar

from fastapi import HTTPException, UploadFile, WebSocket, WebSocketDisconnect

from household.db import ProfileRow, SqlDbClient
from household.realtime import Broker, Subscription, family_channel

logger = logging.getLogger(__name__)

RowT = TypeVar("RowT")


def get_family_row(
    db: SqlDbClient,
    model: Type[RowT],
    row_id: Any,
    profile: ProfileRow,
    detail: str = "Not found",
) -> RowT:
    """Load a row of the caller's family; other families' rows look missing."""
    row = db.get(model, row_id)
    if row is None or row.family_group != profile.family_group:
        raise HTTPException(status_code=404, detail=detail)
    return row


def publish_event(broker: Broker, family_group: str, event: str, **fields: Any) -> None:
    payload = {"event": event, **fields}
    try:
        broker.publish(family_channel(family_group), payload)
    except Exception:
        logger.exception("Failed to publish '%s' for family %s", event, family_group)


def epoch_ms() -> int:
    return int(time.time() * 1000)


def safe_filename(name: str | None, fallback: str = "file") -> str:
    cleaned = re.sub(r"[^A-Za-z0-9._-]+", "_", name or "").strip("._")
    return cleaned or fallback


async def read_upload(file: UploadFile, max_bytes: int) -> bytes:
    data = await file.read()
    if len(data) > max_bytes:
        raise HTTPException(status_code=413, detail="File too large")
    return data


async def relay(
    websocket: WebSocket,
    subscription: Subscription,
    on_frame: Callable[[str], Awaitable[bool]],
    skip_sender: Optional[str] = None,
) -> None:
    """
    Pump broker payloads to the socket while handing client frames to
    ``on_frame``, until the client disconnects or ``on_frame`` returns False.
    Payloads stamped with ``senderId == skip_sender`` are not echoed back.
    """
    receive_task: Optional[asyncio.Task] = None
    broker_task: Optional[asyncio.Task] = None
    try:
        while True:
            if receive_task is None:
                receive_task = asyncio.ensure_future(websocket.receive_text())
            if broker_task is None:
                broker_task = asyncio.ensure_future(subscription.get())
            done, _ = await asyncio.wait(
                {receive_task, broker_task}, return_when=asyncio.FIRST_COMPLETED
            )
            if broker_task in done:
                payload = broker_task.result()
                broker_task = None
                if payload is not None and (
                    skip_sender is None or payload.get("senderId") != skip_sender
                ):
                    await websocket.send_json(payload)
            if receive_task in done:
                text = receive_task.result()
                receive_task = None
                if not await on_frame(text):
                    await websocket.close()
                    return
    except WebSocketDisconnect:
        pass
    finally:
        for task in (receive_task, broker_task):
            if task is not None and not task.done():
                task.cancel()
