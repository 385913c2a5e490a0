"""
Video form controller - draft state for one video and the submit sequence.

State machine (per instance):

    CLOSED --open_add()--------> ADDING
    CLOSED --open_edit(id)-----> EDITING(id)
    ADDING / EDITING --submit() ok or partial--> CLOSED
    ADDING / EDITING --cancel()----------------> CLOSED

Submit sequence:
    1. Required fields (title, video_ref) must be non-empty; otherwise FAILED
       and nothing is written.
    2. Primary write: insert (adding, yields the new id) or update (editing).
       Failure -> FAILED, backend message surfaced, draft and mode kept.
    3. Sync tags, then sync sections, against the video id. A failure in either
       -> PARTIAL with a message about the video; the primary write and the
       other sync are not rolled back.
    4. SUCCESS / PARTIAL -> refresh the list loader, clear the draft, close.

``is_saving`` is set for the duration of a submit and rejects re-submission.
"""

import logging
from dataclasses import asdict, dataclass, field
from typing import List, Optional

from databases import Database

from api import catalog
from api.enums import FormMode, SubmitOutcome
from api.errors import FormStateError, NotFoundError, RelationSyncError, backend_error_message
from api.list_loader import ListLoader
from api.relation_sync import RelationSyncer

logger = logging.getLogger(__name__)


@dataclass
class VideoDraft:
    """Scalar fields of a video being added or edited."""

    title: str = ""
    description: str = ""
    video_ref: str = ""
    section_title: str = ""
    duration: str = ""
    skill: int = 1
    watched_fully: bool = False
    ott: Optional[bool] = None
    app: Optional[bool] = None
    arg: Optional[bool] = None
    putt: Optional[bool] = None

    @classmethod
    def from_row(cls, row: dict) -> "VideoDraft":
        known = {name for name in cls.__dataclass_fields__}
        values = {key: value for key, value in row.items() if key in known and value is not None}
        return cls(**values)

    def to_row(self) -> dict:
        return asdict(self)

    def missing_required(self) -> List[str]:
        missing = []
        if not (self.title or "").strip():
            missing.append("title")
        if not (self.video_ref or "").strip():
            missing.append("video_ref")
        return missing


@dataclass
class SubmitResult:
    outcome: SubmitOutcome
    video_id: Optional[int] = None
    message: Optional[str] = None
    warnings: List[str] = field(default_factory=list)


class VideoFormController:
    """Holds one video draft plus its tag and section drafts."""

    def __init__(
        self,
        database: Database,
        syncer: Optional[RelationSyncer] = None,
        loader: Optional[ListLoader] = None,
    ):
        self.database = database
        self.syncer = syncer or RelationSyncer(database)
        self.loader = loader
        self.mode = FormMode.CLOSED
        self.video_id: Optional[int] = None
        self.draft = VideoDraft()
        self.tags: List[str] = []
        self.selected_sections: List[int] = []
        self.is_saving = False
        self.error_message: Optional[str] = None

    @property
    def is_open(self) -> bool:
        return self.mode != FormMode.CLOSED

    # ---- opening / closing ----

    def open_add(self) -> None:
        self._reset()
        self.mode = FormMode.ADDING

    async def open_edit(self, video_id: int) -> None:
        """Load an existing video, its tags, and its sections into the draft."""
        row = await catalog.fetch_video(self.database, video_id)
        if row is None:
            raise NotFoundError(f"Video {video_id} not found")
        tag_values = await self.syncer.fetch_tags(video_id)
        section_ids = await self.syncer.fetch_sections(video_id)

        self._reset()
        self.mode = FormMode.EDITING
        self.video_id = video_id
        self.draft = VideoDraft.from_row(row)
        self.tags = list(tag_values)
        self.selected_sections = list(section_ids)

    def cancel(self) -> None:
        self._reset()

    def _reset(self) -> None:
        self.mode = FormMode.CLOSED
        self.video_id = None
        self.draft = VideoDraft()
        self.tags = []
        self.selected_sections = []
        self.error_message = None

    # ---- draft editing ----

    def update_draft(self, **fields) -> None:
        for name, value in fields.items():
            if name not in VideoDraft.__dataclass_fields__:
                raise AttributeError(f"Unknown video field: {name}")
            setattr(self.draft, name, value)

    def add_tag(self, tag: str) -> bool:
        """Add a tag to the draft. Empty and duplicate tags are ignored."""
        value = (tag or "").strip()
        if not value or value in self.tags:
            return False
        self.tags.append(value)
        return True

    def remove_tag(self, tag: str) -> None:
        self.tags = [t for t in self.tags if t != tag]

    def set_tags(self, tag_values: List[str]) -> None:
        """Replace the tag draft, applying the same filtering as add_tag."""
        self.tags = []
        for tag in tag_values:
            self.add_tag(tag)

    def toggle_section(self, section_id: int) -> None:
        if section_id in self.selected_sections:
            self.selected_sections = [s for s in self.selected_sections if s != section_id]
        else:
            self.selected_sections.append(section_id)

    def set_sections(self, section_ids: List[int]) -> None:
        self.selected_sections = list(dict.fromkeys(section_ids))

    # ---- submit ----

    async def submit(self) -> SubmitResult:
        if not self.is_open:
            raise FormStateError("Form is not open")
        if self.is_saving:
            raise FormStateError("Submit already in progress")

        missing = self.draft.missing_required()
        if missing:
            self.error_message = f"Required field(s) missing: {', '.join(missing)}"
            return SubmitResult(SubmitOutcome.FAILED, video_id=self.video_id, message=self.error_message)

        self.is_saving = True
        self.error_message = None
        try:
            return await self._submit()
        finally:
            self.is_saving = False

    async def _submit(self) -> SubmitResult:
        adding = self.mode == FormMode.ADDING
        verb = "created" if adding else "updated"

        try:
            if adding:
                video_id = await catalog.insert_video(self.database, self.draft.to_row())
            else:
                video_id = self.video_id
                await catalog.update_video(self.database, video_id, self.draft.to_row())
        except Exception as e:
            # Draft and mode are kept so the caller can retry
            self.error_message = backend_error_message(e)
            logger.warning(f"Video write failed: {self.error_message}")
            return SubmitResult(SubmitOutcome.FAILED, video_id=self.video_id, message=self.error_message)

        warnings = []
        try:
            await self.syncer.sync_tags(video_id, self.tags)
        except RelationSyncError as e:
            logger.warning(f"Video {video_id} {verb}, tag sync failed: {e}")
            warnings.append(f"Video {verb}, but failed to add tags.")
        try:
            await self.syncer.sync_sections(video_id, self.selected_sections)
        except RelationSyncError as e:
            logger.warning(f"Video {video_id} {verb}, section sync failed: {e}")
            warnings.append(f"Video {verb}, but failed to link to sections.")

        if self.loader is not None:
            await self.loader.refresh()

        self._reset()
        if warnings:
            # Last warning wins on the form, as the dashboard showed a single message
            self.error_message = warnings[-1]
            return SubmitResult(SubmitOutcome.PARTIAL, video_id=video_id, message=warnings[-1], warnings=warnings)
        return SubmitResult(SubmitOutcome.SUCCESS, video_id=video_id, message=f"Video {verb}")
