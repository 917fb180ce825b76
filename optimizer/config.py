"""
Configuration module for Catalog Optimizer
"""

# Application configuration
import os
from dataclasses import dataclass
from pathlib import Path

from .enums import Field


def env_bool(key: str, default: bool = False) -> bool:
    """Get boolean value from environment variable"""
    value = os.getenv(key, str(default)).lower()
    return value in ("true", "1", "yes", "on")


def _read_version_from_repo(default: str = "dev") -> str:
    try:
        # repo root: optimizer/.. (one parent up)
        version_file = Path(__file__).resolve().parents[1] / "VERSION"
        v = version_file.read_text(encoding="utf-8").strip()
        if v:
            return v
    except OSError:
        pass
    return os.getenv("APP_VERSION", default)


API_VERSION = _read_version_from_repo()

# Database configuration
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./optimizer.db")

# API configuration
API_PREFIX = "/v1"

# Logging configuration
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_FORMAT = os.getenv("LOG_FORMAT", "json")
LOG_EXCLUDE_PATHS = set(os.getenv("LOG_EXCLUDE_PATHS", "/v1/healthz,/v1/metrics/prometheus").split(","))

# Catalog API client
CATALOG_TIMEOUT_SEC = float(os.getenv("CATALOG_TIMEOUT_SEC", "30"))
CATALOG_PAGE_SIZE = int(os.getenv("CATALOG_PAGE_SIZE", "50"))
CATALOG_PAGE_DELAY_SEC = float(os.getenv("CATALOG_PAGE_DELAY_SEC", "0.25"))
CATALOG_MAX_ATTEMPTS = int(os.getenv("CATALOG_MAX_ATTEMPTS", "3"))
CATALOG_BACKOFF_BASE_SEC = float(os.getenv("CATALOG_BACKOFF_BASE_SEC", "1.0"))
CATALOG_RETRY_AFTER_DEFAULT_SEC = float(os.getenv("CATALOG_RETRY_AFTER_DEFAULT_SEC", "2"))
CATALOG_MAX_RATE_LIMIT_WAITS = int(os.getenv("CATALOG_MAX_RATE_LIMIT_WAITS", "0"))  # 0 = unbounded

# Queue and worker configuration
QUEUE_MAX_DEPTH = int(os.getenv("QUEUE_MAX_DEPTH", "1000"))
WORKER_POOL_SIZE = int(os.getenv("WORKER_POOL_SIZE", "5"))
QUEUE_RETRY_AFTER_SECONDS = int(os.getenv("QUEUE_RETRY_AFTER_SECONDS", "2"))
MUTATIONS_PER_SECOND = int(os.getenv("MUTATIONS_PER_SECOND", "10"))
ITEM_DELAY_SEC = float(os.getenv("ITEM_DELAY_SEC", "0.5"))
WORKER_SHUTDOWN_TIMEOUT_SEC = float(os.getenv("WORKER_SHUTDOWN_TIMEOUT_SEC", "30"))

# Quota configuration
QUOTA_FAIL_OPEN: bool = env_bool("QUOTA_FAIL_OPEN", True)  # on store errors, allow
DEFAULT_PLAN = os.getenv("DEFAULT_PLAN", "FREE")

# Content generation
GEMINI_API_KEY = os.getenv("GEMINI_API_KEY", "")
GEMINI_MODEL = os.getenv("GEMINI_MODEL", "gemini-2.0-flash")
GEMINI_VISION_MODEL = os.getenv("GEMINI_VISION_MODEL", GEMINI_MODEL)
GENERATION_TEMPERATURE = float(os.getenv("GENERATION_TEMPERATURE", "0.3"))
GENERATION_MAX_TOKENS = int(os.getenv("GENERATION_MAX_TOKENS", "200"))
IMAGE_FETCH_TIMEOUT_SEC = float(os.getenv("IMAGE_FETCH_TIMEOUT_SEC", "15"))
DEFAULT_TONE = os.getenv("DEFAULT_TONE", "PROFESSIONAL")


@dataclass(frozen=True)
class FieldLimits:
    """Length policy applied to generated values of one field."""
    min_length: int
    max_length: int
    # truncation keeps a word boundary only when the last space lands past this index
    min_break: int
    target: str


FIELD_LIMITS = {
    Field.TITLE: FieldLimits(min_length=20, max_length=60, min_break=35, target="50-60 characters"),
    Field.DESCRIPTION: FieldLimits(min_length=50, max_length=160, min_break=100, target="130-160 characters"),
    Field.ALT_TEXT: FieldLimits(min_length=10, max_length=125, min_break=80, target="at most 125 characters"),
}
