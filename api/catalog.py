"""
Table operations for the video catalog.

Each function is a single statement against the backend; nothing here wraps
multiple statements in a transaction. Errors from the backend propagate
unchanged so callers can decide what is fatal.
"""

from collections import defaultdict
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional

import sqlalchemy as sa
from databases import Database

from api.database import sections, tags, videos

# Columns a caller may write on a video row
VIDEO_WRITABLE_FIELDS = (
    "title",
    "description",
    "video_ref",
    "section_title",
    "duration",
    "skill",
    "watched_fully",
    "ott",
    "app",
    "arg",
    "putt",
)

SECTION_WRITABLE_FIELDS = ("name", "description", "skill")


def _row_to_dict(row) -> dict:
    return dict(row._mapping)


def _writable(values: dict, fields: Iterable[str]) -> dict:
    return {key: values[key] for key in fields if key in values}


async def fetch_videos(database: Database) -> List[dict]:
    """All videos, newest id first."""
    rows = await database.fetch_all(videos.select().order_by(videos.c.id.desc()))
    return [_row_to_dict(row) for row in rows]


async def fetch_video(database: Database, video_id: int) -> Optional[dict]:
    row = await database.fetch_one(videos.select().where(videos.c.id == video_id))
    return _row_to_dict(row) if row else None


async def insert_video(database: Database, values: dict) -> int:
    """Insert a video row and return the id the backend assigned."""
    data = _writable(values, VIDEO_WRITABLE_FIELDS)
    data["created_at"] = datetime.now(timezone.utc)
    return await database.execute(videos.insert().values(**data))


async def update_video(database: Database, video_id: int, values: dict) -> None:
    data = _writable(values, VIDEO_WRITABLE_FIELDS)
    if data:
        await database.execute(videos.update().where(videos.c.id == video_id).values(**data))


async def fetch_existing_video_ids(database: Database, video_ids: Iterable[int]) -> List[int]:
    query = sa.select(videos.c.id).where(videos.c.id.in_(list(video_ids)))
    rows = await database.fetch_all(query)
    return [row["id"] for row in rows]


async def delete_videos(database: Database, video_ids: Iterable[int]) -> None:
    """
    Delete video rows by id.

    Tag and section-link rows that reference these ids are NOT removed.
    """
    await database.execute(videos.delete().where(videos.c.id.in_(list(video_ids))))


async def fetch_sections(database: Database) -> List[dict]:
    rows = await database.fetch_all(sections.select().order_by(sections.c.id))
    return [_row_to_dict(row) for row in rows]


async def fetch_section(database: Database, section_id: int) -> Optional[dict]:
    row = await database.fetch_one(sections.select().where(sections.c.id == section_id))
    return _row_to_dict(row) if row else None


async def insert_section(database: Database, values: dict) -> int:
    data = _writable(values, SECTION_WRITABLE_FIELDS)
    data["created_at"] = datetime.now(timezone.utc)
    return await database.execute(sections.insert().values(**data))


async def fetch_tags_for_videos(database: Database, video_ids: Iterable[int]) -> Dict[int, List[str]]:
    """Tags for many videos in one query, keyed by video id (insertion order kept)."""
    ids = list(video_ids)
    if not ids:
        return {}
    query = tags.select().where(tags.c.video_id.in_(ids)).order_by(tags.c.id)
    rows = await database.fetch_all(query)
    grouped: Dict[int, List[str]] = defaultdict(list)
    for row in rows:
        grouped[row["video_id"]].append(row["tag"])
    return dict(grouped)
