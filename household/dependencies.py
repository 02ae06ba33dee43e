"""
Dependency wiring for the FastAPI app.
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import Depends, Header, HTTPException, Query

from household.config import get_settings
from household.db import ProfileRow, SqlDbClient
from household.push import InMemoryPushNotifier, PushNotifier, WebPushNotifier
from household.realtime import Broker, InMemoryBroker, RedisBroker
from household.security import hash_session_token
from household.storage import InMemoryStorageClient, S3StorageClient, StorageClient

logger = logging.getLogger(__name__)

IN_MEMORY_DATABASE_URL = "sqlite+pysqlite:///:memory:"

_db_client: SqlDbClient | None = None
_storage_client: StorageClient | None = None
_broker: Broker | None = None
_push_notifier: PushNotifier | None = None


def get_db_client() -> SqlDbClient:
    """
    Return a singleton DB client so state persists across requests.
    """
    global _db_client
    if _db_client:
        return _db_client

    settings = get_settings()
    if settings.use_in_memory_backends or not settings.database_url:
        _db_client = SqlDbClient(IN_MEMORY_DATABASE_URL)
    else:
        _db_client = SqlDbClient(settings.database_url)
    logger.info("Database backend: %s", _db_client.engine.url.get_backend_name())
    return _db_client


def get_storage_client() -> StorageClient:
    global _storage_client
    if _storage_client:
        return _storage_client

    settings = get_settings()
    if settings.use_in_memory_backends or not settings.storage_bucket:
        _storage_client = InMemoryStorageClient()
    else:
        _storage_client = S3StorageClient(
            bucket=settings.storage_bucket,
            region=settings.storage_region or "",
            endpoint=settings.storage_endpoint or "",
            access_key_id=settings.aws_access_key_id or "",
            secret_access_key=settings.aws_secret_access_key or "",
            public_base_url=settings.storage_public_base_url,
        )
    return _storage_client


def get_broker() -> Broker:
    """
    Return a singleton broker for realtime fan-out and presence.
    """
    global _broker
    if _broker:
        return _broker

    settings = get_settings()
    if settings.redis_url and not settings.use_in_memory_backends:
        _broker = RedisBroker(
            url=settings.redis_url,
            presence_prefix=settings.redis_presence_prefix,
        )
    else:
        _broker = InMemoryBroker()
    return _broker


def get_push_notifier() -> PushNotifier:
    global _push_notifier
    if _push_notifier:
        return _push_notifier

    settings = get_settings()
    if settings.use_in_memory_backends or not settings.vapid_private_key:
        _push_notifier = InMemoryPushNotifier()
    else:
        _push_notifier = WebPushNotifier(
            private_key=settings.vapid_private_key,
            subject=settings.vapid_subject,
        )
    return _push_notifier


def resolve_token(db: SqlDbClient, token: Optional[str]) -> Optional[ProfileRow]:
    if not token:
        return None
    return db.get_session_profile(hash_session_token(token))


def _bearer_token(authorization: Optional[str]) -> Optional[str]:
    if not authorization:
        return None
    scheme, _, value = authorization.partition(" ")
    if scheme.lower() != "bearer" or not value.strip():
        return None
    return value.strip()


def get_current_profile(
    authorization: Optional[str] = Header(None),
    db: SqlDbClient = Depends(get_db_client),
) -> ProfileRow:
    profile = resolve_token(db, _bearer_token(authorization))
    if profile is None:
        raise HTTPException(status_code=401, detail="Not authenticated")
    return profile


def get_family_profile(
    profile: ProfileRow = Depends(get_current_profile),
) -> ProfileRow:
    """Current profile, required to belong to a family group."""
    if not profile.family_group:
        raise HTTPException(status_code=400, detail="Profile has no family group")
    return profile


def get_session_token(
    authorization: Optional[str] = Header(None),
    token: Optional[str] = Query(None),
) -> Optional[str]:
    return _bearer_token(authorization) or token
