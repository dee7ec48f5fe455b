# movievault/services/files.py
"""
Image storage on the local filesystem.

Callers only ever see paths relative to the upload root
(`movies/<uuid>-<ms>.<ext>`); the absolute location is derived from
settings.upload_dir on demand. Deletes are best-effort: they log and carry on,
never raise.
"""
from __future__ import annotations

import logging
import os
import time
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Optional, Sequence

import anyio
from fastapi import UploadFile

from movievault.core.errors import ValidationError
from movievault.core.settings import settings

log = logging.getLogger(__name__)

MOVIES_SUBDIR = "movies"
CHUNK_SIZE = 64 * 1024

# declared MIME type -> stored extension
ALLOWED_IMAGE_TYPES = {
    "image/jpeg": ".jpg",
    "image/jpg": ".jpg",
    "image/png": ".png",
    "image/webp": ".webp",
}


@dataclass(frozen=True)
class ReceivedFile:
    """A file already written to storage for the current request."""
    path: str  # absolute, server-assigned
    mimetype: str
    size: int = 0
    original_name: Optional[str] = None


def upload_root() -> Path:
    return Path(settings.upload_dir).resolve()


def relative_path_of(received: ReceivedFile) -> str:
    """`/srv/app/uploads/movies/x.jpg` -> `movies/x.jpg`"""
    root = upload_root()
    p = Path(received.path).resolve()
    try:
        return p.relative_to(root).as_posix()
    except ValueError:
        # Not under the configured root: cut at the root's own segment name.
        posix = str(received.path).replace("\\", "/")
        marker = f"{root.name}/"
        if marker not in posix:
            raise ValueError(f"{received.path} is not inside the upload root {root}")
        return posix.split(marker, 1)[1]


def absolute_path_of(relative_path: str) -> str:
    return str(upload_root() / relative_path)


# ----------------------------
# Best-effort deletes
# ----------------------------
def _unlink(path: str) -> bool:
    try:
        os.remove(path)
        return True
    except FileNotFoundError:
        return False


async def delete_file(path: str) -> None:
    try:
        removed = await anyio.to_thread.run_sync(_unlink, path)
    except OSError as e:
        log.error("Failed to delete file %s: %r", path, e)
        return
    if removed:
        log.debug("File deleted: %s", path)


async def delete_files(paths: Iterable[str]) -> None:
    for p in paths:
        await delete_file(p)


async def discard(received: Sequence[ReceivedFile]) -> None:
    """Remove every file written for a request that did not make it."""
    if received:
        log.warning("Discarding %d uploaded file(s)", len(received))
        await delete_files(r.path for r in received)


# ----------------------------
# Upload receiving
# ----------------------------
def _extension_for(mimetype: Optional[str]) -> str:
    ext = ALLOWED_IMAGE_TYPES.get((mimetype or "").lower())
    if not ext:
        raise ValidationError(f"Unsupported file type: {mimetype}. Only JPG, PNG and WEBP are allowed")
    return ext


def _new_name(ext: str) -> str:
    return f"{uuid.uuid4().hex}-{int(time.time() * 1000)}{ext}"


async def _save_one(upload: UploadFile, target_dir: Path) -> ReceivedFile:
    ext = _extension_for(upload.content_type)
    target = target_dir / _new_name(ext)
    size = 0
    try:
        async with await anyio.open_file(target, "wb") as out:
            while True:
                chunk = await upload.read(CHUNK_SIZE)
                if not chunk:
                    break
                size += len(chunk)
                if size > settings.max_file_size:
                    raise ValidationError(
                        f"File {upload.filename or ''} exceeds the {settings.max_file_size} byte limit"
                    )
                await out.write(chunk)
    except Exception:
        await delete_file(str(target))
        raise
    return ReceivedFile(
        path=str(target),
        mimetype=(upload.content_type or "").lower(),
        size=size,
        original_name=upload.filename,
    )


async def save_uploads(uploads: Sequence[UploadFile]) -> List[ReceivedFile]:
    """
    Write every upload under <upload_root>/movies with a fresh name.
    All MIME types are checked before anything touches the disk; if one file
    fails mid-way the ones already written are removed again.
    """
    for u in uploads:
        _extension_for(u.content_type)
    if not uploads:
        return []

    target_dir = upload_root() / MOVIES_SUBDIR
    await anyio.Path(target_dir).mkdir(parents=True, exist_ok=True)

    saved: List[ReceivedFile] = []
    try:
        for u in uploads:
            saved.append(await _save_one(u, target_dir))
    except Exception:
        await discard(saved)
        raise
    return saved
