"""
Relation syncer - makes the stored child rows for one video match a target set.

Two child tables hang off a video:
    tags            (video_id, tag)         ordered free-text tags
    section_videos  (video_id, section_id)  section membership

REPLACE strategy (default):
    1. DELETE every row whose video_id equals the owner id
    2. INSERT one row per distinct target value (skipped when the target is empty)

DIFF strategy:
    1. SELECT the current values
    2. DELETE values no longer wanted, plus wanted values stored more than once
    3. INSERT values not yet stored, plus one copy of each value collapsed in 2

Each statement commits on its own. There is no transaction around the steps and
no locking, so a failure part-way leaves whatever the completed steps wrote:

    - DELETE fails  -> previous rows untouched, RelationSyncError(stage=DELETE)
    - INSERT fails  -> (replace) relation left empty, RelationSyncError(stage=INSERT)

Two concurrent syncs for the same owner can interleave and leave a mixture.
"""

import logging
from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Hashable, Iterable, List, Optional

import sqlalchemy as sa
from databases import Database

from api.database import section_videos, tags
from api.enums import SyncStage, SyncStrategy
from api.errors import RelationSyncError, backend_error_message
from config import RELATION_SYNC_STRATEGY

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Relation:
    """A child table keyed by an owner column, holding one value per row."""

    name: str
    table: sa.Table
    owner_column: str
    value_column: str
    order_column: str

    @property
    def owner(self) -> sa.Column:
        return self.table.c[self.owner_column]

    @property
    def value(self) -> sa.Column:
        return self.table.c[self.value_column]


TAG_RELATION = Relation("tags", tags, "video_id", "tag", order_column="id")
SECTION_RELATION = Relation("sections", section_videos, "video_id", "section_id", order_column="section_id")


@dataclass
class SyncResult:
    """Outcome of a successful sync."""

    relation: str
    owner_id: Any
    strategy: SyncStrategy
    values: List[Hashable]
    inserted: int = 0
    # Values deleted by a DIFF sync; REPLACE deletes blindly and leaves this None
    removed: Optional[List[Hashable]] = field(default=None)


def strategy_from_config(value: str = RELATION_SYNC_STRATEGY) -> SyncStrategy:
    """Parse the configured strategy, falling back to REPLACE on unknown values."""
    try:
        return SyncStrategy(value)
    except ValueError:
        logger.warning(f"Invalid relation sync strategy '{value}', using default '{SyncStrategy.REPLACE.value}'")
        return SyncStrategy.REPLACE


def _dedupe(values: Iterable[Hashable]) -> List[Hashable]:
    # Keep first occurrence, preserve caller order
    return list(dict.fromkeys(values))


def _check_owner(owner_id: Any) -> None:
    if owner_id is None or (isinstance(owner_id, str) and not owner_id.strip()):
        raise ValueError("owner id is required for a relation sync")


class RelationSyncer:
    """Reconciles child relation rows for an owning video."""

    def __init__(self, database: Database, strategy: Optional[SyncStrategy] = None):
        self.database = database
        self.strategy = strategy if strategy is not None else strategy_from_config()

    async def fetch(self, relation: Relation, owner_id: Any) -> List[Hashable]:
        """Current values for an owner, in stored order."""
        _check_owner(owner_id)
        query = (
            sa.select(relation.value)
            .where(relation.owner == owner_id)
            .order_by(relation.table.c[relation.order_column])
        )
        rows = await self.database.fetch_all(query)
        return [row[relation.value_column] for row in rows]

    async def sync(self, relation: Relation, owner_id: Any, values: Iterable[Hashable]) -> SyncResult:
        """
        Make the stored values for ``owner_id`` equal ``values``.

        Raises:
            ValueError: owner_id is empty
            RelationSyncError: a backend statement failed (see ``stage``)
        """
        _check_owner(owner_id)
        target = _dedupe(values)

        if self.strategy == SyncStrategy.DIFF:
            result = await self._sync_diff(relation, owner_id, target)
        else:
            result = await self._sync_replace(relation, owner_id, target)

        logger.info(
            f"Synced {relation.name} for video {owner_id} ({self.strategy.value}): "
            f"{len(result.values)} value(s), {result.inserted} inserted"
        )
        return result

    async def _sync_replace(self, relation: Relation, owner_id: Any, target: List[Hashable]) -> SyncResult:
        await self._delete(relation, owner_id)
        await self._insert(relation, owner_id, target)
        return SyncResult(
            relation=relation.name,
            owner_id=owner_id,
            strategy=SyncStrategy.REPLACE,
            values=target,
            inserted=len(target),
        )

    async def _sync_diff(self, relation: Relation, owner_id: Any, target: List[Hashable]) -> SyncResult:
        try:
            current = await self.fetch(relation, owner_id)
        except Exception as e:
            raise RelationSyncError(backend_error_message(e), relation=relation.name, stage=SyncStage.READ) from e

        wanted = set(target)
        counts = Counter(current)
        removed = [value for value in _dedupe(current) if value not in wanted]
        # The backend enforces no uniqueness; collapse duplicate copies of kept values
        collapsed = [value for value in target if counts[value] > 1]
        added = [value for value in target if counts[value] != 1]

        if removed or collapsed:
            await self._delete(relation, owner_id, only=removed + collapsed)
        await self._insert(relation, owner_id, added)
        return SyncResult(
            relation=relation.name,
            owner_id=owner_id,
            strategy=SyncStrategy.DIFF,
            values=target,
            inserted=len(added),
            removed=removed,
        )

    async def _delete(self, relation: Relation, owner_id: Any, only: Optional[List[Hashable]] = None) -> None:
        query = relation.table.delete().where(relation.owner == owner_id)
        if only is not None:
            query = query.where(relation.value.in_(only))
        try:
            await self.database.execute(query)
        except Exception as e:
            logger.warning(f"Deleting {relation.name} for video {owner_id} failed: {e}")
            raise RelationSyncError(backend_error_message(e), relation=relation.name, stage=SyncStage.DELETE) from e

    async def _insert(self, relation: Relation, owner_id: Any, values: List[Hashable]) -> None:
        if not values:
            return
        rows = [{relation.owner_column: owner_id, relation.value_column: value} for value in values]
        try:
            await self.database.execute_many(query=relation.table.insert(), values=rows)
        except Exception as e:
            logger.warning(f"Inserting {relation.name} for video {owner_id} failed: {e}")
            raise RelationSyncError(backend_error_message(e), relation=relation.name, stage=SyncStage.INSERT) from e

    # Convenience wrappers for the two relations a video owns

    async def sync_tags(self, video_id: Any, tag_values: Iterable[str]) -> SyncResult:
        return await self.sync(TAG_RELATION, video_id, tag_values)

    async def sync_sections(self, video_id: Any, section_ids: Iterable[int]) -> SyncResult:
        return await self.sync(SECTION_RELATION, video_id, section_ids)

    async def fetch_tags(self, video_id: Any) -> List[str]:
        return await self.fetch(TAG_RELATION, video_id)

    async def fetch_sections(self, video_id: Any) -> List[int]:
        return await self.fetch(SECTION_RELATION, video_id)
