# movievault/db/crud/tags.py
from __future__ import annotations

from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from movievault.db_models import Tag


def serialize_tag(t: Tag) -> Dict[str, Any]:
    return {"id": t.id, "name": t.name, "createdAt": t.created_at}


async def create_tag(db: AsyncSession, name: str) -> Tag:
    """Insert and commit. IntegrityError (duplicate name) is left to the caller."""
    obj = Tag(name=name)
    db.add(obj)
    try:
        await db.commit()
    except Exception:
        await db.rollback()
        raise
    await db.refresh(obj)
    return obj


async def find_all(db: AsyncSession) -> List[Tag]:
    res = await db.execute(select(Tag).order_by(Tag.created_at.asc(), Tag.id.asc()))
    return list(res.scalars().all())


async def find_by_name(db: AsyncSession, name: str) -> Optional[Tag]:
    res = await db.execute(select(Tag).where(Tag.name == name))
    return res.scalar_one_or_none()


async def find_by_ids(db: AsyncSession, ids: Sequence[int]) -> List[Tag]:
    """
    Exact-id batch lookup. Callers compare len(result) with the number of
    distinct ids they asked for to detect missing tags.
    """
    if not ids:
        return []
    res = await db.execute(select(Tag).where(Tag.id.in_(list(ids))))
    return list(res.scalars().all())
