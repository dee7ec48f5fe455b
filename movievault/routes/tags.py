# movievault/routes/tags.py
from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Body, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from movievault.core import responses
from movievault.database import get_async_db
from movievault.schemas import TagCreate
from movievault.security import require_admin, require_user
from movievault.services import tag_service

router = APIRouter(prefix="/tags", tags=["tags"])


@router.post("", summary="Create a tag (admin only)")
async def create_tag(
    payload: TagCreate = Body(...),
    _admin: Any = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    tag = await tag_service.create(db, payload.name)
    return responses.success(tag, "Tag created", status_code=201)


@router.get("", summary="All tags, oldest first")
async def list_tags(
    _: Any = Depends(require_user),
    db: AsyncSession = Depends(get_async_db),
):
    return responses.success(await tag_service.find_all(db), "Query successful")
