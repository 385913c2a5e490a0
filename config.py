import logging
import os
from pathlib import Path
from typing import Optional, Tuple

# Configure logger for config module warnings
logger = logging.getLogger(__name__)


class ConfigurationError(RuntimeError):
    """Raised when a required configuration value is missing or unusable."""


def get_int_env(
    name: str,
    default: int,
    min_val: Optional[int] = None,
    max_val: Optional[int] = None,
) -> int:
    """Get an integer from environment variable with error handling and validation.

    Args:
        name: Environment variable name
        default: Default value if env var is missing or invalid
        min_val: Optional minimum value (inclusive)
        max_val: Optional maximum value (inclusive)

    Returns:
        Parsed integer value, or default if parsing fails or value is out of range
    """
    value = os.getenv(name)
    if value is None:
        # Environment variable not set; use default without validation
        return default

    try:
        result = int(value)
    except ValueError:
        logger.warning(f"Invalid {name}='{value}', using default {default}")
        return default

    # Range validation (only applied to user-provided values)
    if min_val is not None and result < min_val:
        logger.warning(
            f"{name}={result} is below minimum {min_val}, using default {default}"
        )
        return default
    if max_val is not None and result > max_val:
        logger.warning(
            f"{name}={result} is above maximum {max_val}, using default {default}"
        )
        return default

    return result


def get_bool_env(name: str, default: bool) -> bool:
    """Get a boolean from environment variable ("false", "0", "no" are false)."""
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() not in ("false", "0", "no", "")


# Backend connection - both values are required.
# VIDCAT_BACKEND_URL is the database endpoint (e.g. postgresql://postgres@db.example.co:5432/postgres)
# VIDCAT_BACKEND_KEY is the access key, injected as the connection password
BACKEND_URL = os.getenv("VIDCAT_BACKEND_URL", "")
BACKEND_KEY = os.getenv("VIDCAT_BACKEND_KEY", "")

# Create missing tables on admin startup (no migrations are ever run)
CREATE_TABLES_ON_STARTUP = get_bool_env("VIDCAT_CREATE_TABLES_ON_STARTUP", True)

# Relation sync strategy: "replace" (delete all, insert all) or "diff" (only the deltas)
RELATION_SYNC_STRATEGY = os.getenv("VIDCAT_RELATION_SYNC_STRATEGY", "replace").strip().lower()

# Server port
ADMIN_PORT = get_int_env("VIDCAT_ADMIN_PORT", 9001, min_val=1, max_val=65535)

# CORS for the admin API
# Defaults to allow all origins since the dashboard is internal-only
_admin_cors_env = os.getenv("VIDCAT_ADMIN_CORS_ORIGINS", "")
ADMIN_CORS_ALLOWED_ORIGINS = (
    [origin.strip() for origin in _admin_cors_env.split(",") if origin.strip()]
    if _admin_cors_env
    else ["*"]
)

# Rate Limiting Configuration
# Set to "0" or "false" to disable rate limiting entirely
RATE_LIMIT_ENABLED = get_bool_env("VIDCAT_RATE_LIMIT_ENABLED", True)
RATE_LIMIT_ADMIN_DEFAULT = os.getenv("VIDCAT_RATE_LIMIT_ADMIN_DEFAULT", "200/minute")
RATE_LIMIT_ADMIN_WRITE = os.getenv("VIDCAT_RATE_LIMIT_ADMIN_WRITE", "60/minute")
# Options: "memory://" (default, per-process), or a Redis URL like "redis://localhost:6379"
RATE_LIMIT_STORAGE_URL = os.getenv("VIDCAT_RATE_LIMIT_STORAGE_URL", "memory://")

# Trusted proxy configuration for X-Forwarded-For header
_trusted_proxies_env = os.getenv("VIDCAT_TRUSTED_PROXIES", "")
TRUSTED_PROXIES = set(ip.strip() for ip in _trusted_proxies_env.split(",") if ip.strip())

# Audit Logging Configuration
AUDIT_LOG_ENABLED = get_bool_env("VIDCAT_AUDIT_LOG_ENABLED", True)
AUDIT_LOG_PATH = Path(os.getenv("VIDCAT_AUDIT_LOG_PATH", "/var/log/vidcat/audit.log"))
AUDIT_LOG_LEVEL = os.getenv("VIDCAT_AUDIT_LOG_LEVEL", "INFO").upper()
AUDIT_LOG_MAX_BYTES = get_int_env("VIDCAT_AUDIT_LOG_MAX_BYTES", 10 * 1024 * 1024, min_val=1024)
AUDIT_LOG_BACKUP_COUNT = get_int_env("VIDCAT_AUDIT_LOG_BACKUP_COUNT", 5, min_val=0)

# Error Message Truncation Limits
ERROR_SUMMARY_MAX_LENGTH = get_int_env("VIDCAT_ERROR_SUMMARY_MAX_LENGTH", 100, min_val=10)
ERROR_DETAIL_MAX_LENGTH = get_int_env("VIDCAT_ERROR_DETAIL_MAX_LENGTH", 500, min_val=10)

# Input length limits
MAX_TITLE_LENGTH = 255
MAX_DESCRIPTION_LENGTH = 5000
MAX_TAG_LENGTH = 50
MAX_TAGS_PER_VIDEO = get_int_env("VIDCAT_MAX_TAGS_PER_VIDEO", 50, min_val=1)
MAX_BULK_VIDEOS = get_int_env("VIDCAT_MAX_BULK_VIDEOS", 100, min_val=1)

# Skill levels accepted by the HTTP boundary and the CLI
SKILL_LEVELS = (1, 2, 3)


def require_backend_config() -> Tuple[str, str]:
    """
    Return (endpoint, access key) or raise ConfigurationError.

    Called once by the application's composition root. A missing value is a
    fatal startup condition.
    """
    missing = [
        name
        for name, value in (("VIDCAT_BACKEND_URL", BACKEND_URL), ("VIDCAT_BACKEND_KEY", BACKEND_KEY))
        if not value
    ]
    if missing:
        raise ConfigurationError(f"Missing required configuration: {', '.join(missing)}")
    return BACKEND_URL, BACKEND_KEY
