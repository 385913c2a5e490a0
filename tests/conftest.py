"""
Pytest fixtures for vidcat tests.
Provides a test database, the admin test client, and sample data.

Uses a file-backed SQLite database per test so the async fixtures and the
app under TestClient see the same rows.
"""

import os
from datetime import datetime, timezone
from pathlib import Path
from typing import AsyncGenerator

import pytest
from databases import Database

# Set up the environment BEFORE importing config
os.environ["VIDCAT_TEST_MODE"] = "1"
os.environ["VIDCAT_RATE_LIMIT_ENABLED"] = "false"

from api.database import create_tables, section_videos, sections, tags, videos  # noqa: E402


@pytest.fixture(scope="function")
def test_db_url(tmp_path: Path) -> str:
    """Create a fresh SQLite database file with all tables and return its URL."""
    db_url = f"sqlite:///{tmp_path / 'vidcat_test.db'}"
    create_tables(db_url)
    return db_url


@pytest.fixture(scope="function")
async def test_database(test_db_url: str) -> AsyncGenerator[Database, None]:
    """Connected database for each test."""
    database = Database(test_db_url)
    await database.connect()

    yield database

    await database.disconnect()


@pytest.fixture(scope="function")
async def sample_section(test_database: Database) -> dict:
    """Create a sample section for testing."""
    now = datetime.now(timezone.utc)
    result = await test_database.execute(
        sections.insert().values(
            name="Short Game",
            description="Chipping and pitching",
            skill="beginner",
            created_at=now,
        )
    )
    return {
        "id": result,
        "name": "Short Game",
        "description": "Chipping and pitching",
        "skill": "beginner",
    }


@pytest.fixture(scope="function")
async def second_section(test_database: Database) -> dict:
    """Create another section for multi-section tests."""
    result = await test_database.execute(
        sections.insert().values(name="Putting", description="", skill="advanced", created_at=datetime.now(timezone.utc))
    )
    return {"id": result, "name": "Putting"}


@pytest.fixture(scope="function")
async def sample_video(test_database: Database) -> dict:
    """Create a sample video for testing."""
    now = datetime.now(timezone.utc)
    values = {
        "title": "Bunker Basics",
        "description": "Getting out of greenside sand",
        "video_ref": "dQw4w9WgXcQ",
        "section_title": "Short Game",
        "duration": "00:05:00",
        "skill": 2,
        "watched_fully": False,
        "arg": True,
    }
    result = await test_database.execute(videos.insert().values(created_at=now, **values))
    return {"id": result, "created_at": now, **values}


@pytest.fixture(scope="function")
async def sample_video_with_tags(test_database: Database, sample_video: dict, sample_section: dict) -> dict:
    """Sample video with two tags and one section link."""
    video_id = sample_video["id"]
    for tag in ("sand", "wedge"):
        await test_database.execute(tags.insert().values(video_id=video_id, tag=tag))
    await test_database.execute(section_videos.insert().values(video_id=video_id, section_id=sample_section["id"]))
    return {**sample_video, "tags": ["sand", "wedge"], "section_ids": [sample_section["id"]]}


@pytest.fixture(scope="function")
def admin_client(test_db_url: str):
    """
    Create a test client for the admin API.
    The backend client is injected into the app factory; the app connects and
    disconnects it through its lifespan.
    """
    from fastapi.testclient import TestClient

    from api.admin import create_app

    app = create_app(database=Database(test_db_url))

    with TestClient(app, raise_server_exceptions=True) as client:
        yield client
