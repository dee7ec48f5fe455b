# movievault/services/movie_service.py
"""
Catalog business rules.

This layer decides whether a write is allowed (enum / range / tag checks),
orchestrates the repository and the file store, and shapes the list and
detail projections returned to the routes.

Files handed in by the upload boundary are already on disk. Whenever an
operation that received files fails, for whatever reason, those files are
deleted again before the error propagates.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Optional, Sequence

from sqlalchemy import or_
from sqlalchemy.ext.asyncio import AsyncSession

from movievault.core.errors import NotFoundError, ValidationError
from movievault.core.responses import total_pages
from movievault.db.crud import movies as movie_repo
from movievault.db.crud import tags as tag_repo
from movievault.db_models import MEDIA_TYPES, Image, Movie, MovieTag
from movievault.schemas import MovieFilter
from movievault.services import files as file_store
from movievault.services.files import ReceivedFile

log = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 10
MAX_PAGE_SIZE = 100

SORT_COLUMNS = {
    "createdAt": Movie.created_at,
    "rating": Movie.rating,
    "releaseYear": Movie.release_year,
}

UPDATABLE_FIELDS = ("title", "type", "rating", "release_year", "comment")


# ---------------------------------------------------------
# SERIALISERS
# ---------------------------------------------------------

def _image_out(img: Image) -> Dict[str, Any]:
    return {"id": img.id, "path": img.path, "isCover": bool(img.is_cover)}


def _tags_out(movie: Movie) -> List[Dict[str, Any]]:
    links = sorted(movie.movie_tags, key=lambda mt: mt.tag_id)
    return [{"id": mt.tag.id, "name": mt.tag.name} for mt in links]


def format_detail(movie: Movie) -> Dict[str, Any]:
    """Full projection: every image (cover first, then oldest first) and every tag."""
    images = sorted(movie.images, key=lambda i: (not i.is_cover, i.created_at, i.id))
    return {
        "id": movie.id,
        "title": movie.title,
        "type": movie.type,
        "rating": movie.rating,
        "releaseYear": movie.release_year,
        "comment": movie.comment,
        "images": [_image_out(i) for i in images],
        "tags": _tags_out(movie),
        "createdAt": movie.created_at,
        "updatedAt": movie.updated_at,
    }


def format_list_item(movie: Movie) -> Dict[str, Any]:
    """List projection: cover image only, no comment."""
    cover = next((i for i in movie.images if i.is_cover), None)
    return {
        "id": movie.id,
        "title": movie.title,
        "type": movie.type,
        "rating": movie.rating,
        "releaseYear": movie.release_year,
        "coverImage": {"id": cover.id, "path": cover.path} if cover else None,
        "tags": _tags_out(movie),
        "createdAt": movie.created_at,
    }


# ---------------------------------------------------------
# VALIDATION
# ---------------------------------------------------------

def _require_title(title: Optional[str]) -> str:
    if title is None or not str(title).strip():
        raise ValidationError("Title must not be empty")
    return str(title).strip()


def _check_type(media_type: Optional[str]) -> None:
    if media_type not in MEDIA_TYPES:
        raise ValidationError(f"Invalid media type: {media_type}")


def _check_rating(rating: Optional[float]) -> None:
    if rating is None:
        return
    if not 0 <= rating <= 10:
        raise ValidationError("Rating must be between 0 and 10")


def _distinct_ids(ids: Optional[Iterable[int]]) -> List[int]:
    return list(dict.fromkeys(int(i) for i in (ids or [])))


async def _check_tags_exist(db: AsyncSession, tag_ids: Sequence[int]) -> None:
    if not tag_ids:
        return
    found = await tag_repo.find_by_ids(db, tag_ids)
    if len(found) != len(tag_ids):
        missing = sorted(set(tag_ids) - {t.id for t in found})
        raise ValidationError(f"Some tags do not exist: {missing}")


def build_conditions(params: MovieFilter) -> List[Any]:
    """WHERE clauses for every filter that was supplied; omitted filters add nothing."""
    conds: List[Any] = []

    if params.type:
        conds.append(Movie.type == params.type)

    if params.min_rating is not None:
        conds.append(Movie.rating >= params.min_rating)
    if params.max_rating is not None:
        conds.append(Movie.rating <= params.max_rating)

    if params.min_year is not None:
        conds.append(Movie.release_year >= params.min_year)
    if params.max_year is not None:
        conds.append(Movie.release_year <= params.max_year)

    if params.keyword:
        conds.append(
            or_(
                Movie.title.icontains(params.keyword, autoescape=True),
                Movie.comment.icontains(params.keyword, autoescape=True),
            )
        )

    if params.tag_ids:
        # any-of: one matching link is enough
        conds.append(Movie.movie_tags.any(MovieTag.tag_id.in_(list(params.tag_ids))))

    return conds


# ---------------------------------------------------------
# OPERATIONS
# ---------------------------------------------------------

async def create(
    db: AsyncSession,
    *,
    title: Optional[str],
    type: Optional[str],
    rating: Optional[float] = None,
    release_year: Optional[int] = None,
    comment: Optional[str] = None,
    tag_ids: Optional[Sequence[int]] = None,
    files: Sequence[ReceivedFile] = (),
    cover_index: Optional[int] = 0,
) -> Dict[str, Any]:
    files = list(files or [])
    try:
        title = _require_title(title)
        _check_type(type)
        _check_rating(rating)

        ids = _distinct_ids(tag_ids)
        await _check_tags_exist(db, ids)

        images: List[Dict[str, Any]] = []
        if files:
            cover = 0 if cover_index is None else cover_index
            if not 0 <= cover < len(files):
                raise ValidationError(f"coverIndex {cover} is out of range for {len(files)} image(s)")
            images = [
                {"path": file_store.relative_path_of(f), "is_cover": idx == cover}
                for idx, f in enumerate(files)
            ]

        movie = await movie_repo.create_movie(
            db,
            title=title,
            type=type,
            rating=rating,
            release_year=release_year,
            comment=comment,
            images=images,
            tag_ids=ids,
        )
    except Exception:
        await file_store.discard(files)
        raise

    log.info("Movie created: id=%s title=%r images=%d tags=%d", movie.id, movie.title, len(images), len(ids))
    return format_detail(movie)


async def find_many(db: AsyncSession, params: MovieFilter) -> Dict[str, Any]:
    page = max(params.page or 1, 1)
    limit = min(max(params.limit or DEFAULT_PAGE_SIZE, 1), MAX_PAGE_SIZE)

    sort_by = params.sort_by or "createdAt"
    order = (params.order or "desc").lower()
    if sort_by not in SORT_COLUMNS:
        raise ValidationError(f"sortBy must be one of {', '.join(SORT_COLUMNS)}")
    if order not in ("asc", "desc"):
        raise ValidationError("order must be 'asc' or 'desc'")

    column = SORT_COLUMNS[sort_by]
    if order == "asc":
        order_by = [column.asc(), Movie.id.asc()]
    else:
        order_by = [column.desc(), Movie.id.desc()]

    conditions = build_conditions(params)
    # Two independent reads; total may drift from the page under concurrent writes.
    total = await movie_repo.count_movies(db, conditions)
    movies = await movie_repo.list_movies(db, conditions, order_by, (page - 1) * limit, limit)

    return {
        "data": [format_list_item(m) for m in movies],
        "pagination": {
            "page": page,
            "limit": limit,
            "total": total,
            "totalPages": total_pages(total, limit),
        },
    }


async def find_by_id(db: AsyncSession, movie_id: int) -> Dict[str, Any]:
    movie = await movie_repo.get_movie(db, movie_id)
    if not movie:
        raise NotFoundError("Movie not found")
    return format_detail(movie)


async def update(db: AsyncSession, movie_id: int, fields: Dict[str, Any]) -> Dict[str, Any]:
    """
    Partial update. Only keys present in `fields` are validated and written.
    `tag_ids` present (even empty) replaces the tag set; absent or None keeps it.
    """
    if not await movie_repo.get_movie(db, movie_id):
        raise NotFoundError("Movie not found")

    changes = {k: fields[k] for k in UPDATABLE_FIELDS if k in fields}
    if "title" in changes:
        changes["title"] = _require_title(changes["title"])
    if "type" in changes:
        _check_type(changes["type"])
    if "rating" in changes:
        _check_rating(changes["rating"])

    tag_ids: Optional[List[int]] = None
    if fields.get("tag_ids") is not None:
        tag_ids = _distinct_ids(fields["tag_ids"])
        await _check_tags_exist(db, tag_ids)

    movie = await movie_repo.update_movie(db, movie_id, changes, tag_ids)
    log.info("Movie updated: id=%s fields=%s tags_replaced=%s", movie_id, sorted(changes), tag_ids is not None)
    return format_detail(movie)


async def delete(db: AsyncSession, movie_id: int) -> None:
    movie = await movie_repo.get_movie(db, movie_id)
    if not movie:
        raise NotFoundError("Movie not found")

    await file_store.delete_files(file_store.absolute_path_of(img.path) for img in movie.images)
    await movie_repo.delete_movie(db, movie_id)
    log.info("Movie deleted: id=%s (%d image file(s))", movie_id, len(movie.images))


async def add_images(
    db: AsyncSession,
    movie_id: int,
    files: Sequence[ReceivedFile],
    set_cover: bool = False,
) -> Dict[str, Any]:
    """
    Attach uploaded images. With set_cover the first new file becomes the
    cover; a movie that had no images gets its first one as cover regardless.
    """
    files = list(files or [])
    try:
        movie = await movie_repo.get_movie(db, movie_id)
        if not movie:
            raise NotFoundError("Movie not found")
        if not files:
            raise ValidationError("Please upload at least one image")

        first_is_cover = set_cover or not movie.images
        images = [
            {"path": file_store.relative_path_of(f), "is_cover": first_is_cover and idx == 0}
            for idx, f in enumerate(files)
        ]
        rows = await movie_repo.add_images(db, movie_id, images)
    except Exception:
        await file_store.discard(files)
        raise

    log.info("Added %d image(s) to movie %s (new cover: %s)", len(rows), movie_id, first_is_cover)
    return {"message": "Images added", "images": [_image_out(r) for r in rows]}


async def delete_image(db: AsyncSession, movie_id: int, image_id: int) -> None:
    image = await movie_repo.find_image(db, image_id, movie_id)
    if not image:
        raise NotFoundError("Image not found or does not belong to this movie")

    await file_store.delete_file(file_store.absolute_path_of(image.path))
    promoted = await movie_repo.delete_image(db, image)
    if promoted is not None:
        log.info("Image %s promoted to cover of movie %s", promoted, movie_id)
