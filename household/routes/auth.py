"""
Registration, login and logout.
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.exc import IntegrityError

from household.config import get_settings
from household.db import ProfileRow, SessionRow, SqlDbClient
from household.dependencies import get_db_client, get_session_token
from household.schemas import (
    LoginRequest,
    LoginResponse,
    ProfileResponse,
    RegisterRequest,
    StatusResponse,
)
from household.security import (
    generate_session_token,
    hash_password,
    hash_session_token,
    verify_password,
)
from household.shared.types import DEFAULT_AVATAR

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/register", response_model=ProfileResponse, status_code=201)
def register(payload: RegisterRequest, db: SqlDbClient = Depends(get_db_client)):
    email = payload.email.strip().lower()
    if db.get_profile_by_email(email):
        raise HTTPException(status_code=409, detail="Email already registered")
    try:
        profile = db.add(
            ProfileRow,
            {
                "email": email,
                "username": payload.username.strip(),
                "family_group": payload.family_group.strip(),
                "avatar": DEFAULT_AVATAR,
                "password_hash": hash_password(payload.password),
            },
        )
    except IntegrityError as exc:
        raise HTTPException(status_code=409, detail="Email already registered") from exc
    logger.info("Registered profile %s in family %s", profile.id, profile.family_group)
    return profile


@router.post("/login", response_model=LoginResponse)
def login(payload: LoginRequest, db: SqlDbClient = Depends(get_db_client)):
    profile = db.get_profile_by_email(payload.email.strip().lower())
    if profile is None or not verify_password(payload.password, profile.password_hash):
        raise HTTPException(status_code=401, detail="Invalid email or password")

    token = generate_session_token()
    db.create_session(
        hash_session_token(token), profile.id, get_settings().session_ttl_seconds
    )
    return LoginResponse(
        access_token=token, profile=ProfileResponse.model_validate(profile)
    )


@router.post("/logout", response_model=StatusResponse)
def logout(
    token: Optional[str] = Depends(get_session_token),
    db: SqlDbClient = Depends(get_db_client),
):
    if not token or not db.delete(SessionRow, hash_session_token(token)):
        raise HTTPException(status_code=401, detail="Not authenticated")
    return StatusResponse()
