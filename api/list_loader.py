"""
List loader - keeps the full video and section collections for the admin table.

Every successful fetch replaces the whole collection; there is no pagination,
partial refresh, caching beyond this object, or retry. A failed fetch keeps the
previous collection and records the error in ``last_error``.
"""

import logging
from typing import Dict, List, Optional

from databases import Database

from api import catalog
from api.errors import backend_error_message
from api.relation_sync import RelationSyncer

logger = logging.getLogger(__name__)


class ListLoader:
    def __init__(self, database: Database, syncer: Optional[RelationSyncer] = None):
        self.database = database
        self.syncer = syncer or RelationSyncer(database)
        self.videos: List[dict] = []
        self.sections: List[dict] = []
        self.loading = False
        self.last_error: Optional[str] = None

    async def refresh(self) -> bool:
        """Reload videos and sections. Returns True when both fetches succeeded."""
        self.loading = True
        self.last_error = None
        try:
            videos_ok = await self.refresh_videos()
            sections_ok = await self.refresh_sections()
        finally:
            self.loading = False
        return videos_ok and sections_ok

    async def refresh_videos(self) -> bool:
        try:
            self.videos = await catalog.fetch_videos(self.database)
        except Exception as e:
            self._record_failure("videos", e)
            return False
        return True

    async def refresh_sections(self) -> bool:
        try:
            self.sections = await catalog.fetch_sections(self.database)
        except Exception as e:
            self._record_failure("sections", e)
            return False
        return True

    async def tags_for(self, video_id: int) -> List[str]:
        """Tags for one table row, fetched on demand. Empty on failure."""
        try:
            return await self.syncer.fetch_tags(video_id)
        except Exception as e:
            self._record_failure(f"tags for video {video_id}", e)
            return []

    async def tags_for_all(self) -> Dict[int, List[str]]:
        """Tags for every loaded video in one query. Empty on failure."""
        try:
            return await catalog.fetch_tags_for_videos(self.database, [v["id"] for v in self.videos])
        except Exception as e:
            self._record_failure("tags", e)
            return {}

    def _record_failure(self, what: str, exc: Exception) -> None:
        message = backend_error_message(exc)
        logger.error(f"Failed to fetch {what}: {message}")
        self.last_error = message
