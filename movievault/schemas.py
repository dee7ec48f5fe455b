# movievault/schemas.py
from __future__ import annotations

from typing import List, Literal, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


# =========================
# Auth
# =========================

class LoginIn(BaseModel):
    username: str = Field(min_length=1, max_length=64)
    password: str = Field(min_length=1, max_length=128)


class UserOut(BaseModel):
    id: int
    username: str
    role: str

    model_config = ConfigDict(from_attributes=True)


class TokenOut(BaseModel):
    token: str
    token_type: Literal["bearer"] = "bearer"
    user: UserOut


# =========================
# Tags
# =========================

class TagCreate(BaseModel):
    name: str = ""


# =========================
# Movies
# =========================

class MovieUpdate(BaseModel):
    """
    PUT body. Every field is optional; only the keys actually sent are applied
    (use model_dump(exclude_unset=True)).
    """
    title: Optional[str] = None
    type: Optional[str] = Field(default=None, validation_alias=AliasChoices("type", "mediaType"))
    rating: Optional[float] = None
    release_year: Optional[int] = Field(
        default=None, validation_alias=AliasChoices("releaseYear", "release_year")
    )
    comment: Optional[str] = None
    tag_ids: Optional[List[int]] = Field(default=None, validation_alias=AliasChoices("tagIds", "tag_ids"))

    model_config = ConfigDict(extra="ignore")


class MovieFilter(BaseModel):
    """Query for the paginated movie list. None means "no constraint"."""
    page: Optional[int] = 1
    limit: Optional[int] = 10
    type: Optional[str] = None
    tag_ids: Optional[List[int]] = None
    min_rating: Optional[float] = None
    max_rating: Optional[float] = None
    min_year: Optional[int] = None
    max_year: Optional[int] = None
    keyword: Optional[str] = None
    sort_by: Optional[str] = "createdAt"
    order: Optional[str] = "desc"
