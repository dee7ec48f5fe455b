# movievault/tools/seed.py

from __future__ import annotations

import argparse
import asyncio
import logging
from typing import Sequence

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from movievault.core.settings import settings
from movievault.database import AsyncSessionLocal
from movievault.db.crud import tags as tag_repo
from movievault.models_auth import ROLE_ADMIN, AuthUser
from movievault.routes.auth import hash_password

log = logging.getLogger(__name__)

PREDEFINED_TAGS = (
    "Sci-Fi",
    "Mystery",
    "Action",
    "Romance",
    "Comedy",
    "Horror",
    "Drama",
    "Animation",
    "Adventure",
    "Crime",
    "History",
    "War",
    "Documentary",
    "Music",
    "Family",
    "Top Rated",
    "Classic",
    "Feel-Good",
    "Mind-Bending",
    "Tearjerker",
)


async def ensure_admin(session: AsyncSession, username: str, password: str) -> bool:
    """Create the admin account unless a user with that name exists. True if created."""
    res = await session.execute(select(AuthUser).where(AuthUser.username == username))
    if res.scalar_one_or_none():
        log.info("Admin account %r already exists, skipping", username)
        return False

    session.add(AuthUser(username=username, password_hash=hash_password(password), role=ROLE_ADMIN))
    await session.commit()
    log.info("Admin account created: %s", username)
    return True


async def ensure_tags(session: AsyncSession, names: Sequence[str] = PREDEFINED_TAGS) -> int:
    """Create each missing tag; existing names are left alone. Returns how many were created."""
    created = 0
    for name in names:
        if await tag_repo.find_by_name(session, name):
            log.info("Tag exists: %s", name)
            continue
        await tag_repo.create_tag(session, name)
        created += 1
        log.info("Tag created: %s", name)
    return created


async def _run(username: str, password: str, skip_tags: bool) -> None:
    async with AsyncSessionLocal() as session:
        await ensure_admin(session, username, password)
        if not skip_tags:
            n = await ensure_tags(session)
            print(f"Seeded {n} new tag(s).")


def main() -> None:
    logging.basicConfig(level=logging.INFO)
    parser = argparse.ArgumentParser(
        description="Create the default admin account and the predefined tag vocabulary."
    )
    parser.add_argument(
        "--username",
        default=settings.default_admin_username,
        help="Admin username (default from DEFAULT_ADMIN_USERNAME).",
    )
    parser.add_argument(
        "--password",
        default=settings.default_admin_password,
        help="Admin password (default from DEFAULT_ADMIN_PASSWORD).",
    )
    parser.add_argument(
        "--skip-tags",
        action="store_true",
        help="Only create the admin account.",
    )

    args = parser.parse_args()
    asyncio.run(_run(args.username, args.password, args.skip_tags))


if __name__ == "__main__":
    main()
