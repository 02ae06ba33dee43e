"""
Browser push subscriptions for chat and reminder notifications.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends

from household.config import get_settings
from household.db import ProfileRow, SqlDbClient
from household.dependencies import get_current_profile, get_db_client, get_family_profile
from household.schemas import (
    PushSubscriptionPayload,
    PushSubscriptionResponse,
    StatusResponse,
    VapidKeyResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/vapid-public-key", response_model=VapidKeyResponse)
def vapid_public_key():
    return VapidKeyResponse(public_key=get_settings().vapid_public_key)


@router.post("/subscriptions", response_model=PushSubscriptionResponse, status_code=201)
def subscribe(
    payload: PushSubscriptionPayload,
    profile: ProfileRow = Depends(get_family_profile),
    db: SqlDbClient = Depends(get_db_client),
):
    row = db.upsert_push_subscription(
        profile.id, profile.family_group, payload.model_dump()
    )
    logger.info("Stored push subscription for profile %s", profile.id)
    return row


@router.delete("/subscriptions", response_model=StatusResponse)
def unsubscribe(
    profile: ProfileRow = Depends(get_current_profile),
    db: SqlDbClient = Depends(get_db_client),
):
    db.delete_push_subscription(profile.id)
    return StatusResponse()
