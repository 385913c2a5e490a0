"""
Audit logging for administrative actions.

Logs to a file with JSON-formatted entries for easy parsing and analysis.
"""

import json
import logging
import os
from datetime import datetime, timezone
from enum import Enum
from logging.handlers import RotatingFileHandler
from typing import Any, Optional

from api.errors import truncate_string
from config import (
    AUDIT_LOG_BACKUP_COUNT,
    AUDIT_LOG_ENABLED,
    AUDIT_LOG_LEVEL,
    AUDIT_LOG_MAX_BYTES,
    AUDIT_LOG_PATH,
    ERROR_DETAIL_MAX_LENGTH,
)

# Ensure log directory exists (skip in test mode)
if not os.environ.get("VIDCAT_TEST_MODE") and AUDIT_LOG_ENABLED:
    try:
        AUDIT_LOG_PATH.parent.mkdir(parents=True, exist_ok=True)
    except PermissionError:
        pass  # Will fall back to console logging


class AuditAction(str, Enum):
    """Audit action types for categorization."""

    VIDEO_CREATE = "video_create"
    VIDEO_UPDATE = "video_update"
    VIDEO_BULK_DELETE = "video_bulk_delete"

    SECTION_CREATE = "section_create"


class AuditLogger:
    """
    Structured audit logger for administrative actions.

    Falls back to console logging if file logging is unavailable.
    """

    def __init__(self):
        self.logger = logging.getLogger("vidcat.audit")
        self.logger.setLevel(getattr(logging, AUDIT_LOG_LEVEL, logging.INFO))
        self.logger.propagate = False

        if not self.logger.handlers:
            self._setup_handlers()

    def _setup_handlers(self):
        formatter = logging.Formatter("%(message)s")  # Raw JSON output

        if AUDIT_LOG_ENABLED and not os.environ.get("VIDCAT_TEST_MODE"):
            try:
                file_handler = RotatingFileHandler(
                    AUDIT_LOG_PATH,
                    maxBytes=AUDIT_LOG_MAX_BYTES,
                    backupCount=AUDIT_LOG_BACKUP_COUNT,
                    encoding="utf-8",
                )
                file_handler.setFormatter(formatter)
                self.logger.addHandler(file_handler)
            except (PermissionError, OSError):
                console_handler = logging.StreamHandler()
                console_handler.setFormatter(formatter)
                self.logger.addHandler(console_handler)
        else:
            self.logger.addHandler(logging.NullHandler())

    def log(
        self,
        action: AuditAction,
        client_ip: Optional[str] = None,
        user_agent: Optional[str] = None,
        resource_type: Optional[str] = None,
        resource_id: Optional[Any] = None,
        resource_name: Optional[str] = None,
        details: Optional[dict] = None,
        success: bool = True,
        error: Optional[str] = None,
    ):
        if not AUDIT_LOG_ENABLED:
            return

        entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "action": action.value,
            "success": success,
        }

        if client_ip:
            entry["client_ip"] = client_ip
        if user_agent:
            entry["user_agent"] = truncate_string(user_agent, ERROR_DETAIL_MAX_LENGTH)
        if resource_type:
            entry["resource_type"] = resource_type
        if resource_id is not None:
            entry["resource_id"] = resource_id
        if resource_name:
            entry["resource_name"] = resource_name
        if details:
            entry["details"] = details
        if error:
            entry["error"] = truncate_string(error, ERROR_DETAIL_MAX_LENGTH)

        self.logger.info(json.dumps(entry, default=str))


audit_logger = AuditLogger()


def log_audit(
    action: AuditAction,
    client_ip: Optional[str] = None,
    user_agent: Optional[str] = None,
    resource_type: Optional[str] = None,
    resource_id: Optional[Any] = None,
    resource_name: Optional[str] = None,
    details: Optional[dict] = None,
    success: bool = True,
    error: Optional[str] = None,
):
    """
    Convenience function for logging audit events.

    Example:
        log_audit(
            AuditAction.VIDEO_BULK_DELETE,
            client_ip=get_real_ip(request),
            resource_type="video",
            details={"video_ids": [4, 7], "deleted": 2, "failed": 0},
        )
    """
    audit_logger.log(
        action=action,
        client_ip=client_ip,
        user_agent=user_agent,
        resource_type=resource_type,
        resource_id=resource_id,
        resource_name=resource_name,
        details=details,
        success=success,
        error=error,
    )
