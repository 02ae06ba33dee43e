"""
Profile administration: family members, avatars and family group assignment.
"""

from __future__ import annotations

import logging
from uuid import uuid4

from fastapi import APIRouter, Depends, HTTPException

from household.db import ProfileRow, SqlDbClient
from household.dependencies import get_current_profile, get_db_client, get_family_profile
from household.schemas import AvatarUpdate, FamilyMemberResponse, ProfileResponse
from household.shared.types import AVAILABLE_AVATARS

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/me", response_model=ProfileResponse)
def read_me(profile: ProfileRow = Depends(get_current_profile)):
    return profile


@router.get("", response_model=list[FamilyMemberResponse])
def list_family_members(
    profile: ProfileRow = Depends(get_family_profile),
    db: SqlDbClient = Depends(get_db_client),
):
    members = []
    for member in db.list_family_profiles(profile.family_group):
        response = FamilyMemberResponse.model_validate(member)
        response.is_current_user = member.id == profile.id
        members.append(response)
    return members


@router.put("/{profile_id}/avatar", response_model=ProfileResponse)
def update_avatar(
    profile_id: str,
    payload: AvatarUpdate,
    profile: ProfileRow = Depends(get_current_profile),
    db: SqlDbClient = Depends(get_db_client),
):
    if profile_id != profile.id:
        raise HTTPException(status_code=403, detail="You can only change your own avatar")
    if payload.avatar not in AVAILABLE_AVATARS:
        raise HTTPException(status_code=400, detail="Unknown avatar")
    return db.update(ProfileRow, profile.id, {"avatar": payload.avatar})


@router.post("/me/family-group", response_model=ProfileResponse)
def ensure_family_group(
    profile: ProfileRow = Depends(get_current_profile),
    db: SqlDbClient = Depends(get_db_client),
):
    """Assign a fresh family group to profiles created without one."""
    if profile.family_group:
        return profile
    family_group = str(uuid4())
    logger.info("Assigning family group %s to profile %s", family_group, profile.id)
    return db.update(ProfileRow, profile.id, {"family_group": family_group})
