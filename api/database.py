from datetime import datetime, timezone

import sqlalchemy as sa
from databases import Database
from sqlalchemy.engine import make_url

metadata = sa.MetaData()


def build_backend_url(endpoint: str, access_key: str = "") -> str:
    """
    Combine the backend endpoint and access key into one connection URL.

    The key is injected as the connection password for network backends.
    File-based SQLite URLs have no host and are returned unchanged.
    """
    url = make_url(endpoint)
    if access_key and url.host:
        url = url.set(password=access_key)
    return url.render_as_string(hide_password=False)


def create_database(endpoint: str, access_key: str = "") -> Database:
    """
    Construct (but do not connect) the backend client.

    The caller owns the returned object's lifecycle: connect it at startup,
    disconnect it at shutdown, and pass it to whatever needs remote access.
    """
    return Database(build_backend_url(endpoint, access_key))


sections = sa.Table(
    "sections",
    metadata,
    sa.Column("id", sa.Integer, primary_key=True),
    sa.Column("name", sa.String(100), nullable=False),
    sa.Column("description", sa.Text, default=""),
    sa.Column("skill", sa.String(20), default=""),
    sa.Column("created_at", sa.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)),
)

videos = sa.Table(
    "videos",
    metadata,
    sa.Column("id", sa.Integer, primary_key=True),
    sa.Column("title", sa.String(255), nullable=False),
    sa.Column("description", sa.Text, default=""),
    sa.Column("video_ref", sa.String(255), nullable=False),  # YouTube id or link
    sa.Column("section_title", sa.String(255), nullable=True),  # free text label shown in the table
    sa.Column("duration", sa.String(20), nullable=True),  # e.g. "00:05:00"
    # Widget bounds keep skill in 1..3; the column itself is unconstrained
    sa.Column("skill", sa.Integer, default=1),
    sa.Column("watched_fully", sa.Boolean, default=False),
    # Optional category flags (off the tee, approach, around the green, putting)
    sa.Column("ott", sa.Boolean, nullable=True),
    sa.Column("app", sa.Boolean, nullable=True),
    sa.Column("arg", sa.Boolean, nullable=True),
    sa.Column("putt", sa.Boolean, nullable=True),
    sa.Column("created_at", sa.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)),
)

# Free-text tags, one row per (video, tag).
# No FK to videos: deleting a video leaves its tag rows behind.
tags = sa.Table(
    "tags",
    metadata,
    sa.Column("id", sa.Integer, primary_key=True),
    sa.Column("video_id", sa.Integer, nullable=False),
    sa.Column("tag", sa.String(50), nullable=False),
    sa.Index("ix_tags_video_id", "video_id"),
)

# Many-to-many: videos <-> sections. The (video_id, section_id) pair is the identity.
section_videos = sa.Table(
    "section_videos",
    metadata,
    sa.Column("video_id", sa.Integer, nullable=False),
    sa.Column("section_id", sa.Integer, nullable=False),
    sa.PrimaryKeyConstraint("video_id", "section_id"),
    sa.Index("ix_section_videos_section_id", "section_id"),
)


def create_tables(backend_url: str):
    """
    Create database tables directly using SQLAlchemy metadata.
    This creates all tables if they don't exist; existing tables are never altered.
    """
    engine = sa.create_engine(backend_url)
    metadata.create_all(engine)
    engine.dispose()


if __name__ == "__main__":
    from config import require_backend_config

    create_tables(build_backend_url(*require_backend_config()))
    print("Database tables created successfully!")
