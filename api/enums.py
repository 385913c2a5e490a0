"""
Centralized enums for state values used throughout the application.
Using str-based enums so values serialize cleanly in API responses and logs.
"""

from enum import Enum


class FormMode(str, Enum):
    """Editing surface state for the video form."""

    CLOSED = "closed"
    ADDING = "adding"
    EDITING = "editing"


class SubmitOutcome(str, Enum):
    """Result of a video form submission."""

    SUCCESS = "ok"
    PARTIAL = "partial"  # primary row written, a relation sync failed
    FAILED = "failed"  # nothing committed by this submission


class SyncStrategy(str, Enum):
    """How the relation syncer reconciles child rows."""

    REPLACE = "replace"  # delete every row for the owner, insert the target set
    DIFF = "diff"  # delete removed values, insert added values


class SyncStage(str, Enum):
    """Step of a relation sync that failed."""

    READ = "read"
    DELETE = "delete"
    INSERT = "insert"
