import pytest

from movievault.core.errors import ConflictError, ValidationError
from movievault.db.crud import tags as tag_repo
from movievault.services import tag_service
from movievault.tools.seed import PREDEFINED_TAGS, ensure_tags


@pytest.mark.asyncio
async def test_create_trims_name(db):
    out = await tag_service.create(db, "  Noir  ")
    assert out["name"] == "Noir"
    assert out["id"] > 0
    assert out["createdAt"] is not None


@pytest.mark.asyncio
@pytest.mark.parametrize("name", ["", "   ", None])
async def test_create_rejects_blank(db, name):
    with pytest.raises(ValidationError):
        await tag_service.create(db, name)
    assert await tag_service.find_all(db) == []


@pytest.mark.asyncio
async def test_create_duplicate_is_conflict(db):
    await tag_service.create(db, "Drama")
    with pytest.raises(ConflictError):
        await tag_service.create(db, " Drama ")
    assert len(await tag_service.find_all(db)) == 1


@pytest.mark.asyncio
async def test_names_are_case_sensitive(db):
    await tag_service.create(db, "Drama")
    await tag_service.create(db, "drama")
    assert [t["name"] for t in await tag_service.find_all(db)] == ["Drama", "drama"]


@pytest.mark.asyncio
async def test_find_all_oldest_first(db):
    for name in ("Horror", "Action", "Comedy"):
        await tag_service.create(db, name)
    assert [t["name"] for t in await tag_service.find_all(db)] == ["Horror", "Action", "Comedy"]


@pytest.mark.asyncio
async def test_find_by_ids_only_existing(db, tags):
    found = await tag_repo.find_by_ids(db, [tags[0].id, tags[2].id, 77])
    assert sorted(t.name for t in found) == ["Comedy", "Sci-Fi"]
    assert await tag_repo.find_by_ids(db, []) == []


@pytest.mark.asyncio
async def test_seed_tags_is_idempotent(db):
    assert await ensure_tags(db) == len(PREDEFINED_TAGS)
    assert await ensure_tags(db) == 0
    assert len(await tag_service.find_all(db)) == len(PREDEFINED_TAGS)
