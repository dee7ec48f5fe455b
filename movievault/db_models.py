# movievault/db_models.py
from __future__ import annotations

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    false,
    func,
)
from sqlalchemy.orm import relationship

# CRITICAL: import Base from models_auth so ALL tables share the same MetaData
from movievault.models_auth import Base


MEDIA_TYPES = ("movie", "tv", "anime", "anime_movie")


# ----------------------------
# Catalogue
# ----------------------------
class Movie(Base):
    """
    A catalogued movie / show / anime.
    Images and tag links are owned by the movie and go away with it
    (ON DELETE CASCADE on both child tables).
    """
    __tablename__ = "movies"

    id = Column(Integer, primary_key=True, autoincrement=True)
    title = Column(Text, nullable=False)
    type = Column(String(32), nullable=False, index=True)
    rating = Column(Float, nullable=True, index=True)  # 0.0–10.0
    release_year = Column(Integer, nullable=True, index=True)
    comment = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )

    images = relationship(
        "Image",
        back_populates="movie",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    movie_tags = relationship(
        "MovieTag",
        back_populates="movie",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )


class Image(Base):
    """
    A stored picture of a movie. `path` is relative to the upload root.
    At most one image per movie has is_cover set; the service keeps exactly
    one whenever the movie has any image.
    """
    __tablename__ = "images"

    id = Column(Integer, primary_key=True, autoincrement=True)
    movie_id = Column(
        Integer,
        ForeignKey("movies.id", ondelete="CASCADE", onupdate="CASCADE"),
        nullable=False,
        index=True,
    )
    path = Column(Text, nullable=False)
    is_cover = Column(Boolean, nullable=False, default=False, server_default=false())
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    movie = relationship("Movie", back_populates="images")


class Tag(Base):
    __tablename__ = "tags"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    movie_tags = relationship("MovieTag", back_populates="tag", passive_deletes=True)

    __table_args__ = (
        UniqueConstraint("name", name="uq_tags_name"),
    )


class MovieTag(Base):
    """Join row movie <-> tag. The (movie_id, tag_id) pair is the primary key."""
    __tablename__ = "movie_tags"

    movie_id = Column(
        Integer,
        ForeignKey("movies.id", ondelete="CASCADE", onupdate="CASCADE"),
        primary_key=True,
    )
    tag_id = Column(
        Integer,
        ForeignKey("tags.id", ondelete="CASCADE", onupdate="CASCADE"),
        primary_key=True,
    )
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    movie = relationship("Movie", back_populates="movie_tags")
    tag = relationship("Tag", back_populates="movie_tags")


__all__ = [
    "Base",
    "MEDIA_TYPES",
    "Movie",
    "Image",
    "Tag",
    "MovieTag",
]
