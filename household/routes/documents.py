"""
Family document archive backed by object storage.
"""

from __future__ import annotations

import logging
import os
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, UploadFile
from starlette.concurrency import run_in_threadpool

from household.config import get_settings
from household.db import DocumentRow, ProfileRow, SqlDbClient
from household.dependencies import get_db_client, get_family_profile, get_storage_client
from household.routes.common import epoch_ms, get_family_row, read_upload, safe_filename
from household.schemas import DocumentResponse, SignUrlResponse, StatusResponse
from household.storage import StorageClient

logger = logging.getLogger(__name__)

router = APIRouter()

LINK_FILE_TYPE = "link"


def _storage_path(family_group: str, file_name: str, upload_name: Optional[str]) -> str:
    _, ext = os.path.splitext(upload_name or "")
    stem = safe_filename(os.path.splitext(file_name)[0] if ext else file_name, "document")
    return f"documents/{family_group}/{epoch_ms()}-{stem}{ext.lower()}"


@router.post("", response_model=DocumentResponse, status_code=201)
async def upload_document(
    file_name: str = Form(...),
    file: Optional[UploadFile] = File(None),
    file_url: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    reference_date: Optional[date] = Form(None),
    profile: ProfileRow = Depends(get_family_profile),
    db: SqlDbClient = Depends(get_db_client),
    storage: StorageClient = Depends(get_storage_client),
):
    """
    Archive an uploaded file, or a link (for example a chat attachment) when
    only ``file_url`` is given.
    """
    file_name = file_name.strip()
    if not file_name:
        raise HTTPException(status_code=400, detail="File name is required")

    values = {
        "family_group": profile.family_group,
        "uploaded_by": profile.id,
        "username": profile.username,
        "file_name": file_name,
        "description": (description or "").strip() or None,
        "reference_date": reference_date or date.today(),
    }
    if file is not None:
        data = await read_upload(file, get_settings().max_upload_bytes)
        path = _storage_path(profile.family_group, file_name, file.filename)
        await run_in_threadpool(storage.upload_bytes, path, data, file.content_type)
        values.update(
            file_url=storage.public_url(path),
            file_type=file.content_type or "application/octet-stream",
            storage_path=path,
        )
    elif file_url and file_url.strip():
        values.update(file_url=file_url.strip(), file_type=LINK_FILE_TYPE)
    else:
        raise HTTPException(status_code=400, detail="A file or a file_url is required")

    return await run_in_threadpool(db.add, DocumentRow, values)


@router.get("", response_model=list[DocumentResponse])
def list_documents(
    usernames: Optional[str] = Query(None, description="Comma separated usernames"),
    year: Optional[int] = Query(None, ge=1900, le=9999),
    q: Optional[str] = Query(None),
    sort: str = Query("created_at", pattern="^(created_at|file_name|reference_date|username)$"),
    direction: str = Query("desc", pattern="^(asc|desc)$"),
    profile: ProfileRow = Depends(get_family_profile),
    db: SqlDbClient = Depends(get_db_client),
):
    uploader_ids = None
    if usernames:
        wanted = {name.strip().lower() for name in usernames.split(",") if name.strip()}
        uploader_ids = [
            member.id
            for member in db.list_family_profiles(profile.family_group)
            if member.username.lower() in wanted
        ]
        if wanted and not uploader_ids:
            return []
    return db.list_documents(
        profile.family_group,
        uploader_ids=uploader_ids,
        year=year,
        query=(q or "").strip() or None,
        sort=sort,
        ascending=direction == "asc",
    )


@router.delete("/{document_id}", response_model=StatusResponse)
def delete_document(
    document_id: int,
    profile: ProfileRow = Depends(get_family_profile),
    db: SqlDbClient = Depends(get_db_client),
    storage: StorageClient = Depends(get_storage_client),
):
    """Delete the row first; a failing storage cleanup is only logged."""
    document = get_family_row(db, DocumentRow, document_id, profile, "Document not found")
    db.delete(DocumentRow, document_id)
    if document.storage_path:
        try:
            storage.delete(document.storage_path)
        except Exception:
            logger.exception("Failed to delete stored object %s", document.storage_path)
    return StatusResponse()


@router.get("/{document_id}/url", response_model=SignUrlResponse)
def document_url(
    document_id: int,
    expires_in: int = Query(3600, ge=60, le=86400),
    profile: ProfileRow = Depends(get_family_profile),
    db: SqlDbClient = Depends(get_db_client),
    storage: StorageClient = Depends(get_storage_client),
):
    document = get_family_row(db, DocumentRow, document_id, profile, "Document not found")
    if not document.storage_path:
        return SignUrlResponse(url=document.file_url)
    return SignUrlResponse(url=storage.presign_get(document.storage_path, expires_in=expires_in))
