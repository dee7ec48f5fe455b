import pytest
from sqlalchemy import delete, func, select

from movievault.core.errors import NotFoundError, StorageError
from movievault.db.crud import movies as movie_repo
from movievault.db_models import Image, Movie, MovieTag, Tag
from movievault.services.movie_service import build_conditions
from movievault.schemas import MovieFilter


async def _new(db, title="Paprika", images=(), tag_ids=()):
    return await movie_repo.create_movie(
        db,
        title=title,
        type="anime_movie",
        rating=None,
        release_year=2006,
        comment=None,
        images=list(images),
        tag_ids=list(tag_ids),
    )


def _imgs(*covers):
    return [{"path": f"movies/{i}.jpg", "is_cover": c} for i, c in enumerate(covers)]


@pytest.mark.asyncio
async def test_create_loads_relations(db, tags):
    m = await _new(db, images=_imgs(True, False), tag_ids=[tags[1].id])
    assert m.id is not None
    assert len(m.images) == 2
    assert [mt.tag.name for mt in m.movie_tags] == ["Drama"]
    assert m.created_at is not None and m.updated_at is not None


@pytest.mark.asyncio
async def test_set_cover_image_leaves_exactly_one(db):
    m = await _new(db, images=_imgs(True, False, False))
    target = sorted(m.images, key=lambda i: i.id)[2]

    await movie_repo.set_cover_image(db, m.id, target.id)

    res = await db.execute(select(Image.id).where(Image.movie_id == m.id, Image.is_cover.is_(True)))
    assert res.scalars().all() == [target.id]


@pytest.mark.asyncio
async def test_set_cover_rejects_foreign_image(db):
    a = await _new(db, title="A", images=_imgs(True, False))
    b = await _new(db, title="B", images=_imgs(True))
    a_id, a_cover = a.id, next(i.id for i in a.images if i.is_cover)
    b_image = b.images[0].id

    with pytest.raises(NotFoundError):
        await movie_repo.set_cover_image(db, a_id, b_image)

    res = await db.execute(select(Image.id).where(Image.movie_id == a_id, Image.is_cover.is_(True)))
    assert res.scalars().all() == [a_cover]
    res = await db.execute(select(Image.is_cover).where(Image.id == b_image))
    assert res.scalar_one() is True


@pytest.mark.asyncio
async def test_update_movie_tag_diff_keeps_unchanged_links(db, tags):
    scifi, drama, comedy = tags
    m = await _new(db, tag_ids=[scifi.id, drama.id])

    updated = await movie_repo.update_movie(db, m.id, {"title": "Perfect Blue"}, [drama.id, comedy.id])

    assert updated.title == "Perfect Blue"
    assert sorted(mt.tag_id for mt in updated.movie_tags) == [drama.id, comedy.id]
    res = await db.execute(select(func.count()).select_from(MovieTag).where(MovieTag.movie_id == m.id))
    assert res.scalar_one() == 2


@pytest.mark.asyncio
async def test_update_movie_without_tags_leaves_links(db, tags):
    m = await _new(db, tag_ids=[tags[0].id])
    updated = await movie_repo.update_movie(db, m.id, {"rating": 8.0})
    assert updated.rating == 8.0
    assert [mt.tag_id for mt in updated.movie_tags] == [tags[0].id]


@pytest.mark.asyncio
async def test_deleting_tag_cascades_to_links(db, tags):
    m = await _new(db, tag_ids=[tags[0].id, tags[1].id])

    await db.execute(delete(Tag).where(Tag.id == tags[0].id))
    await db.commit()

    again = await movie_repo.get_movie(db, m.id)
    assert [mt.tag_id for mt in again.movie_tags] == [tags[1].id]


@pytest.mark.asyncio
async def test_delete_movie_cascades(db, tags):
    m = await _new(db, images=_imgs(True, False), tag_ids=[tags[0].id])
    await movie_repo.delete_movie(db, m.id)

    assert await movie_repo.get_movie(db, m.id) is None
    for model in (Image, MovieTag):
        res = await db.execute(select(func.count()).select_from(model))
        assert res.scalar_one() == 0
    res = await db.execute(select(func.count()).select_from(Tag))
    assert res.scalar_one() == 3


@pytest.mark.asyncio
async def test_add_images_clears_old_cover_only_when_new_cover(db):
    m = await _new(db, images=_imgs(True))

    await movie_repo.add_images(db, m.id, [{"path": "movies/extra.jpg", "is_cover": False}])
    res = await db.execute(select(Image.path).where(Image.movie_id == m.id, Image.is_cover.is_(True)))
    assert res.scalars().all() == ["movies/0.jpg"]

    rows = await movie_repo.add_images(db, m.id, [{"path": "movies/new.jpg", "is_cover": True}])
    res = await db.execute(select(Image.id).where(Image.movie_id == m.id, Image.is_cover.is_(True)))
    assert res.scalars().all() == [rows[0].id]


@pytest.mark.asyncio
async def test_delete_image_returns_promoted_id(db):
    m = await _new(db, images=_imgs(False, True, False))
    by_id = sorted(m.images, key=lambda i: i.id)
    cover = by_id[1]

    promoted = await movie_repo.delete_image(db, cover)
    assert promoted == by_id[0].id

    assert await movie_repo.delete_image(db, by_id[2]) is None


@pytest.mark.asyncio
async def test_count_and_page_share_predicate(db, tags):
    for i in range(7):
        await _new(db, title=f"keep {i}", tag_ids=[tags[0].id] if i % 2 else [])

    conds = build_conditions(MovieFilter(keyword="KEEP", tag_ids=[tags[0].id]))
    total = await movie_repo.count_movies(db, conds)
    page = await movie_repo.list_movies(db, conds, [Movie.id.asc()], 0, 100)
    assert total == len(page) == 3
    assert all(m.movie_tags for m in page)


@pytest.mark.asyncio
async def test_create_movie_rolls_back_on_missing_tag(db, tags):
    with pytest.raises(StorageError):
        await _new(db, images=_imgs(True, False), tag_ids=[tags[0].id, 999])

    for model in (Movie, Image, MovieTag):
        res = await db.execute(select(func.count()).select_from(model))
        assert res.scalar_one() == 0


@pytest.mark.asyncio
async def test_update_movie_rolls_back_on_missing_tag(db, tags):
    tag_id = tags[0].id
    movie_id = (await _new(db, title="Orig", tag_ids=[tag_id])).id

    # rollback expires loaded objects, so only plain ids are used below
    with pytest.raises(StorageError):
        await movie_repo.update_movie(db, movie_id, {"title": "Changed"}, [999])

    again = await movie_repo.get_movie(db, movie_id)
    assert again.title == "Orig"
    assert [mt.tag_id for mt in again.movie_tags] == [tag_id]
