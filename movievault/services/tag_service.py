# movievault/services/tag_service.py
from __future__ import annotations

import logging
from typing import Any, Dict, List

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from movievault.core.errors import ConflictError, ValidationError
from movievault.db.crud import tags as tag_repo

log = logging.getLogger(__name__)


async def create(db: AsyncSession, name: str) -> Dict[str, Any]:
    name = (name or "").strip()
    if not name:
        raise ValidationError("Tag name must not be empty")

    if await tag_repo.find_by_name(db, name):
        raise ConflictError("Tag already exists")

    try:
        tag = await tag_repo.create_tag(db, name)
    except IntegrityError:
        # lost a race against a concurrent create of the same name
        raise ConflictError("Tag already exists")

    log.info("Tag created: %s (id=%s)", tag.name, tag.id)
    return tag_repo.serialize_tag(tag)


async def find_all(db: AsyncSession) -> List[Dict[str, Any]]:
    return [tag_repo.serialize_tag(t) for t in await tag_repo.find_all(db)]
