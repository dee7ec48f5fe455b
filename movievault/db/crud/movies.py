# movievault/db/crud/movies.py
"""
Catalog repository: every read and write touching movies, images and
movie_tags.

Write helpers commit exactly once. Anything touching more than one row or
table runs inside `_atomic`, so a failure part-way rolls the whole unit back
and surfaces as StorageError.
"""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy import delete, func, insert, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import defer, selectinload

from movievault.core.errors import NotFoundError, StorageError
from movievault.db_models import Image, Movie, MovieTag

log = logging.getLogger(__name__)


@asynccontextmanager
async def _atomic(db: AsyncSession, what: str):
    try:
        yield
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        log.error("%s failed, rolled back: %r", what, e)
        raise StorageError() from e
    except Exception:
        await db.rollback()
        raise


def _detail_options():
    return (
        selectinload(Movie.images),
        selectinload(Movie.movie_tags).selectinload(MovieTag.tag),
    )


async def _touch(db: AsyncSession, movie_id: int) -> None:
    await db.execute(
        update(Movie)
        .where(Movie.id == movie_id)
        .values(updated_at=func.now())
        .execution_options(synchronize_session=False)
    )


async def _clear_covers(db: AsyncSession, movie_id: int) -> None:
    await db.execute(
        update(Image)
        .where(Image.movie_id == movie_id)
        .values(is_cover=False)
        .execution_options(synchronize_session=False)
    )


async def _apply_cover(db: AsyncSession, movie_id: int, image_id: int) -> None:
    await _clear_covers(db, movie_id)
    res = await db.execute(
        update(Image)
        .where(Image.id == image_id, Image.movie_id == movie_id)
        .values(is_cover=True)
        .execution_options(synchronize_session=False)
    )
    if res.rowcount == 0:
        # raised inside _atomic, so the clear above is rolled back
        raise NotFoundError("Image not found or does not belong to this movie")


# ----------------------------
# Reads
# ----------------------------
async def get_movie(db: AsyncSession, movie_id: int) -> Optional[Movie]:
    """Movie with all images and tags loaded, or None."""
    res = await db.execute(
        select(Movie)
        .where(Movie.id == movie_id)
        .options(*_detail_options())
        .execution_options(populate_existing=True)
    )
    return res.scalar_one_or_none()


async def list_movies(
    db: AsyncSession,
    conditions: Sequence[Any],
    order_by: Sequence[Any],
    offset: int,
    limit: int,
) -> List[Movie]:
    """
    One page of movies for the list projection: only the cover image is
    loaded and the comment column is left out.
    """
    stmt = (
        select(Movie)
        .where(*conditions)
        .options(
            defer(Movie.comment),
            selectinload(Movie.images.and_(Image.is_cover.is_(True))),
            selectinload(Movie.movie_tags).selectinload(MovieTag.tag),
        )
        .order_by(*order_by)
        .offset(offset)
        .limit(limit)
        .execution_options(populate_existing=True)
    )
    res = await db.execute(stmt)
    return list(res.scalars().all())


async def count_movies(db: AsyncSession, conditions: Sequence[Any]) -> int:
    res = await db.execute(select(func.count()).select_from(Movie).where(*conditions))
    return int(res.scalar_one())


async def find_image(db: AsyncSession, image_id: int, movie_id: int) -> Optional[Image]:
    """Image by id, only if it belongs to movie_id."""
    res = await db.execute(
        select(Image)
        .where(Image.id == image_id, Image.movie_id == movie_id)
        .execution_options(populate_existing=True)
    )
    return res.scalar_one_or_none()


async def get_first_image(db: AsyncSession, movie_id: int) -> Optional[Image]:
    res = await db.execute(
        select(Image)
        .where(Image.movie_id == movie_id)
        .order_by(Image.created_at.asc(), Image.id.asc())
        .limit(1)
        .execution_options(populate_existing=True)
    )
    return res.scalar_one_or_none()


# ----------------------------
# Writes
# ----------------------------
async def create_movie(
    db: AsyncSession,
    *,
    title: str,
    type: str,
    rating: Optional[float],
    release_year: Optional[int],
    comment: Optional[str],
    images: Sequence[Dict[str, Any]],
    tag_ids: Sequence[int],
) -> Movie:
    """Insert the movie, its images and its tag links as one unit."""
    movie = Movie(
        title=title,
        type=type,
        rating=rating,
        release_year=release_year,
        comment=comment,
        images=[Image(path=i["path"], is_cover=bool(i["is_cover"])) for i in images],
        movie_tags=[MovieTag(tag_id=t) for t in tag_ids],
    )
    async with _atomic(db, "create movie"):
        db.add(movie)
        await db.flush()
    created = await get_movie(db, movie.id)
    if created is None:
        raise StorageError("Movie vanished right after insert")
    return created


async def update_movie(
    db: AsyncSession,
    movie_id: int,
    fields: Dict[str, Any],
    tag_ids: Optional[Sequence[int]] = None,
) -> Movie:
    """
    Apply column changes and, when tag_ids is given, make the movie's tag set
    exactly tag_ids. Links that stay are not touched, so the movie never has
    an empty tag set mid-transaction unless that is the target.
    """
    async with _atomic(db, f"update movie {movie_id}"):
        await db.execute(
            update(Movie)
            .where(Movie.id == movie_id)
            .values(**fields, updated_at=func.now())
            .execution_options(synchronize_session=False)
        )
        if tag_ids is not None:
            res = await db.execute(select(MovieTag.tag_id).where(MovieTag.movie_id == movie_id))
            current = set(res.scalars().all())
            wanted = set(tag_ids)

            stale = current - wanted
            if stale:
                await db.execute(
                    delete(MovieTag)
                    .where(MovieTag.movie_id == movie_id, MovieTag.tag_id.in_(stale))
                    .execution_options(synchronize_session=False)
                )
            fresh = [t for t in tag_ids if t not in current]
            if fresh:
                await db.execute(
                    insert(MovieTag),
                    [{"movie_id": movie_id, "tag_id": t} for t in fresh],
                )

    updated = await get_movie(db, movie_id)
    if updated is None:
        raise NotFoundError("Movie not found")
    return updated


async def delete_movie(db: AsyncSession, movie_id: int) -> None:
    # images / movie_tags go with it (ON DELETE CASCADE)
    async with _atomic(db, f"delete movie {movie_id}"):
        await db.execute(
            delete(Movie).where(Movie.id == movie_id).execution_options(synchronize_session=False)
        )


async def add_images(db: AsyncSession, movie_id: int, images: Sequence[Dict[str, Any]]) -> List[Image]:
    """
    Insert new image rows. If one of them is a cover, every existing cover of
    the movie is cleared in the same transaction first.
    """
    rows = [Image(movie_id=movie_id, path=i["path"], is_cover=bool(i["is_cover"])) for i in images]
    async with _atomic(db, f"add images to movie {movie_id}"):
        if any(r.is_cover for r in rows):
            await _clear_covers(db, movie_id)
        db.add_all(rows)
        await db.flush()
        await _touch(db, movie_id)
    return rows


async def set_cover_image(db: AsyncSession, movie_id: int, image_id: int) -> None:
    """Make image_id the only cover of movie_id."""
    async with _atomic(db, f"set cover {image_id} on movie {movie_id}"):
        await _apply_cover(db, movie_id, image_id)
        await _touch(db, movie_id)


async def delete_image(db: AsyncSession, image: Image) -> Optional[int]:
    """
    Delete one image row. When it was the cover, the earliest remaining image
    of the movie becomes the cover in the same transaction.
    Returns the id of the promoted image, if any.
    """
    movie_id = image.movie_id
    was_cover = bool(image.is_cover)
    promoted: Optional[int] = None

    async with _atomic(db, f"delete image {image.id}"):
        await db.execute(
            delete(Image).where(Image.id == image.id).execution_options(synchronize_session=False)
        )
        if was_cover:
            first = await get_first_image(db, movie_id)
            if first is not None:
                await _apply_cover(db, movie_id, first.id)
                promoted = first.id
        await _touch(db, movie_id)

    return promoted


__all__ = [
    "get_movie",
    "list_movies",
    "count_movies",
    "find_image",
    "get_first_image",
    "create_movie",
    "update_movie",
    "delete_movie",
    "add_images",
    "set_cover_image",
    "delete_image",
]
