# movievault/routes/movies.py
from __future__ import annotations

import json
from typing import Any, List, Optional

from fastapi import APIRouter, Body, Depends, File, Form, Path, Query, UploadFile
from sqlalchemy.ext.asyncio import AsyncSession

from movievault.core import responses
from movievault.core.errors import ValidationError
from movievault.database import get_async_db
from movievault.schemas import MovieFilter, MovieUpdate
from movievault.security import require_user
from movievault.services import files as file_store
from movievault.services import movie_service

router = APIRouter(prefix="/movies", tags=["movies"])


# ──────────────────────────────────────────────────────────────────────
# Form / query parsing helpers
# ──────────────────────────────────────────────────────────────────────

def _opt_float(value: Optional[str], name: str) -> Optional[float]:
    if value is None or value == "":
        return None
    try:
        return float(value)
    except ValueError:
        raise ValidationError(f"{name} must be a number")


def _opt_int(value: Optional[str], name: str) -> Optional[int]:
    if value is None or value == "":
        return None
    try:
        return int(value)
    except ValueError:
        raise ValidationError(f"{name} must be an integer")


def _json_id_list(value: Optional[str]) -> Optional[List[int]]:
    """tagIds on multipart forms: a JSON array of ints sent as a string."""
    if value is None or value == "":
        return None
    try:
        parsed = json.loads(value)
    except ValueError:
        parsed = None
    if not isinstance(parsed, list) or not all(isinstance(i, int) and not isinstance(i, bool) for i in parsed):
        raise ValidationError("tagIds must be a JSON array of integers, e.g. [1,2]")
    return parsed


def _csv_id_list(value: Optional[str]) -> Optional[List[int]]:
    """tagIds on the query string: `1,2,3`."""
    if not value:
        return None
    try:
        return [int(p) for p in value.split(",") if p.strip()]
    except ValueError:
        raise ValidationError("tagIds must be a comma separated list of integers")


def _truthy(value: Optional[str]) -> bool:
    return (value or "").strip().lower() in ("true", "1", "yes", "on")


# ──────────────────────────────────────────────────────────────────────
# Routes
# ──────────────────────────────────────────────────────────────────────

@router.post("", summary="Create a movie (multipart, optional images)")
async def create_movie(
    title: Optional[str] = Form(None),
    type: Optional[str] = Form(None),
    media_type: Optional[str] = Form(None, alias="mediaType"),
    rating: Optional[str] = Form(None),
    release_year: Optional[str] = Form(None, alias="releaseYear"),
    comment: Optional[str] = Form(None),
    tag_ids: Optional[str] = Form(None, alias="tagIds"),
    cover_index: Optional[str] = Form(None, alias="coverIndex"),
    images: Optional[List[UploadFile]] = File(None),
    _: Any = Depends(require_user),
    db: AsyncSession = Depends(get_async_db),
):
    # Everything parseable is parsed before a single byte is written.
    fields = dict(
        title=title,
        type=type or media_type,
        rating=_opt_float(rating, "rating"),
        release_year=_opt_int(release_year, "releaseYear"),
        comment=comment,
        tag_ids=_json_id_list(tag_ids),
        cover_index=_opt_int(cover_index, "coverIndex"),
    )
    received = await file_store.save_uploads(images or [])
    movie = await movie_service.create(db, files=received, **fields)
    return responses.success(movie, "Movie created", status_code=201)


@router.get("", summary="List movies (filters, sorting, pagination)")
async def list_movies(
    page: Optional[int] = Query(None),
    limit: Optional[int] = Query(None),
    type: Optional[str] = Query(None),
    media_type: Optional[str] = Query(None, alias="mediaType"),
    tag_ids: Optional[str] = Query(None, alias="tagIds"),
    min_rating: Optional[float] = Query(None, alias="minRating"),
    max_rating: Optional[float] = Query(None, alias="maxRating"),
    min_year: Optional[int] = Query(None, alias="minYear"),
    max_year: Optional[int] = Query(None, alias="maxYear"),
    keyword: Optional[str] = Query(None),
    sort_by: Optional[str] = Query(None, alias="sortBy"),
    order: Optional[str] = Query(None),
    _: Any = Depends(require_user),
    db: AsyncSession = Depends(get_async_db),
):
    params = MovieFilter(
        page=page,
        limit=limit,
        type=type or media_type,
        tag_ids=_csv_id_list(tag_ids),
        min_rating=min_rating,
        max_rating=max_rating,
        min_year=min_year,
        max_year=max_year,
        keyword=keyword,
        sort_by=sort_by,
        order=order,
    )
    result = await movie_service.find_many(db, params)
    p = result["pagination"]
    return responses.paginated(result["data"], p["page"], p["limit"], p["total"], "Query successful")


@router.get("/{movie_id}", summary="Movie detail")
async def get_movie(
    movie_id: int = Path(...),
    _: Any = Depends(require_user),
    db: AsyncSession = Depends(get_async_db),
):
    return responses.success(await movie_service.find_by_id(db, movie_id), "Query successful")


@router.put("/{movie_id}", summary="Update movie fields and/or replace its tags")
async def update_movie(
    movie_id: int = Path(...),
    payload: MovieUpdate = Body(...),
    _: Any = Depends(require_user),
    db: AsyncSession = Depends(get_async_db),
):
    movie = await movie_service.update(db, movie_id, payload.model_dump(exclude_unset=True))
    return responses.success(movie, "Movie updated")


@router.delete("/{movie_id}", summary="Delete a movie with its images")
async def delete_movie(
    movie_id: int = Path(...),
    _: Any = Depends(require_user),
    db: AsyncSession = Depends(get_async_db),
):
    await movie_service.delete(db, movie_id)
    return responses.success(None, "Movie deleted")


@router.post("/{movie_id}/images", summary="Add images to a movie")
async def add_images(
    movie_id: int = Path(...),
    set_cover: Optional[str] = Form(None, alias="setCover"),
    images: Optional[List[UploadFile]] = File(None),
    _: Any = Depends(require_user),
    db: AsyncSession = Depends(get_async_db),
):
    received = await file_store.save_uploads(images or [])
    result = await movie_service.add_images(db, movie_id, received, _truthy(set_cover))
    return responses.success(result, result["message"])


@router.delete("/{movie_id}/images/{image_id}", summary="Delete one image of a movie")
async def delete_image(
    movie_id: int = Path(...),
    image_id: int = Path(...),
    _: Any = Depends(require_user),
    db: AsyncSession = Depends(get_async_db),
):
    await movie_service.delete_image(db, movie_id, image_id)
    return responses.success(None, "Image deleted")
