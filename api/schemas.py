from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from config import (
    MAX_BULK_VIDEOS,
    MAX_DESCRIPTION_LENGTH,
    MAX_TAG_LENGTH,
    MAX_TAGS_PER_VIDEO,
    MAX_TITLE_LENGTH,
)


class SectionCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: str = Field(default="", max_length=1000)
    skill: str = Field(default="", max_length=20)


class SectionResponse(BaseModel):
    id: int
    name: str
    description: str = ""
    skill: str = ""
    created_at: Optional[datetime] = None


class VideoWrite(BaseModel):
    """Body for adding or editing a video, including its tag and section drafts."""

    title: str = Field(..., min_length=1, max_length=MAX_TITLE_LENGTH)
    video_ref: str = Field(..., min_length=1, max_length=255, description="YouTube video id or link")
    description: str = Field(default="", max_length=MAX_DESCRIPTION_LENGTH)
    section_title: str = Field(default="", max_length=255)
    duration: str = Field(default="", max_length=20, description="Duration text, e.g. 00:05:00")
    skill: int = Field(default=1, ge=1, le=3)
    watched_fully: bool = False
    ott: Optional[bool] = None
    app: Optional[bool] = None
    arg: Optional[bool] = None
    putt: Optional[bool] = None
    tags: List[str] = Field(default_factory=list, max_length=MAX_TAGS_PER_VIDEO)
    section_ids: List[int] = Field(default_factory=list)

    @field_validator("title", "video_ref")
    @classmethod
    def not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("must not be blank")
        return value

    @field_validator("tags")
    @classmethod
    def check_tag_length(cls, value: List[str]) -> List[str]:
        for tag in value:
            if len(tag.strip()) > MAX_TAG_LENGTH:
                raise ValueError(f"tags must be {MAX_TAG_LENGTH} characters or less")
        return value

    def scalar_fields(self) -> dict:
        return self.model_dump(exclude={"tags", "section_ids"})


class VideoListResponse(BaseModel):
    id: int
    title: str
    description: Optional[str] = ""
    video_ref: str
    section_title: Optional[str] = None
    duration: Optional[str] = None
    skill: Optional[int] = None
    watched_fully: bool = False
    ott: Optional[bool] = None
    app: Optional[bool] = None
    arg: Optional[bool] = None
    putt: Optional[bool] = None
    created_at: Optional[datetime] = None
    tags: Optional[List[str]] = None

    @field_validator("watched_fully", mode="before")
    @classmethod
    def null_watched_is_false(cls, value):
        # Rows written by other clients may leave the flag NULL
        return False if value is None else value


class VideoResponse(VideoListResponse):
    tags: List[str] = Field(default_factory=list)
    section_ids: List[int] = Field(default_factory=list)


class VideoWriteResponse(BaseModel):
    """Result of an add or edit submission."""

    status: str  # "ok" or "partial"
    video_id: int
    message: Optional[str] = None
    warnings: List[str] = Field(default_factory=list)


class BulkOperationResult(BaseModel):
    """Result for a single item in a bulk operation."""

    video_id: int
    success: bool
    error: Optional[str] = None


class BulkDeleteRequest(BaseModel):
    """Request to delete multiple videos."""

    video_ids: List[int] = Field(..., min_length=1, max_length=MAX_BULK_VIDEOS)


class BulkDeleteResponse(BaseModel):
    """Response from bulk delete operation."""

    status: str
    deleted: int
    failed: int
    results: List[BulkOperationResult]
