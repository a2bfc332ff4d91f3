"""
Shared configuration for the Minne memory gateway.
"""

from __future__ import annotations

import logging
import math
import os

LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").strip().upper()

logging.basicConfig(level=getattr(logging, LOG_LEVEL, logging.INFO))
logger = logging.getLogger("minne")


def _get_bool(env_name: str, default: bool) -> bool:
    value = os.environ.get(env_name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _get_int(env_name: str, default: int) -> int:
    value = os.environ.get(env_name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        return default


def _get_float(env_name: str, default: float) -> float:
    value = os.environ.get(env_name)
    if value is None:
        return default
    try:
        return float(value)
    except ValueError:
        return default


def _get_list(env_name: str) -> list[str]:
    value = os.environ.get(env_name, "")
    return [item.strip() for item in value.split(",") if item.strip()]


SERVICE_NAME = "Minne"
SERVICE_VERSION = "1.0.0"

# Remote memory store
MEM0_API_KEY = os.environ.get("MEM0_API_KEY")
MEM0_BASE_URL = os.environ.get("MEM0_BASE_URL", "https://api.mem0.ai").rstrip("/")

# Namespace tag written to metadata.app_context on every write
APP_CONTEXT_TAG = os.environ.get("MINNE_APP_CONTEXT", "minne_worker").strip()

# Relevance thresholds per operation
SEARCH_MIN_SCORE = _get_float("SEARCH_MIN_SCORE", 0.5)
CONTEXT_MIN_SCORE = _get_float("CONTEXT_MIN_SCORE", 0.7)
CATEGORY_MIN_SCORE = _get_float("CATEGORY_MIN_SCORE", 0.3)

# Result limits
SEARCH_DEFAULT_LIMIT = _get_int("SEARCH_DEFAULT_LIMIT", 10)
CONTEXT_DEFAULT_LIMIT = _get_int("CONTEXT_DEFAULT_LIMIT", 5)
MAX_RESULT_LIMIT = _get_int("MAX_RESULT_LIMIT", 50)
SEARCH_FETCH_MULTIPLIER = _get_int("SEARCH_FETCH_MULTIPLIER", 3)
CATEGORY_SAMPLE_SIZE = _get_int("CATEGORY_SAMPLE_SIZE", 100)
CATEGORY_SAMPLE_MAX = _get_int("CATEGORY_SAMPLE_MAX", 500)

# Request/input limits
MAX_QUERY_LENGTH = _get_int("MAX_QUERY_LENGTH", 4000)
MAX_TEXT_LENGTH = _get_int("MAX_TEXT_LENGTH", 8000)
MAX_SHORT_TEXT_LENGTH = _get_int("MAX_SHORT_TEXT_LENGTH", 255)
MAX_BATCH_DELETE = _get_int("MAX_BATCH_DELETE", 50)

# Store client timeout/retry/backoff
STORE_TIMEOUT_SECONDS = _get_float("STORE_TIMEOUT_SECONDS", 10.0)
STORE_RETRY_MAX = _get_int("STORE_RETRY_MAX", 2)
STORE_RETRY_BACKOFF_SECONDS = _get_float("STORE_RETRY_BACKOFF_SECONDS", 0.5)
STORE_RETRY_JITTER_SECONDS = _get_float("STORE_RETRY_JITTER_SECONDS", 0.25)
STORE_FAILURE_THRESHOLD = _get_int("STORE_FAILURE_THRESHOLD", 5)
STORE_COOLDOWN_SECONDS = _get_int("STORE_COOLDOWN_SECONDS", 30)

# Authentication
REQUIRE_MCP_AUTH = _get_bool("REQUIRE_MCP_AUTH", True)
OAUTH_USERINFO_URL = os.environ.get("OAUTH_USERINFO_URL", "")
OAUTH_USER_KEY_FIELD = os.environ.get("OAUTH_USER_KEY_FIELD", "sub").strip()
OAUTH_TIMEOUT_SECONDS = _get_float("OAUTH_TIMEOUT_SECONDS", 5.0)
STDIO_USER_KEY = os.environ.get("MINNE_STDIO_USER_KEY", "").strip()

# HTTP service
HOST = os.environ.get("HOST", "0.0.0.0")
PORT = _get_int("PORT", 8080)
CORS_ALLOWED_ORIGINS = _get_list("CORS_ALLOWED_ORIGINS")
TRUSTED_HOSTS = _get_list("TRUSTED_HOSTS")
TOOL_INVENTORY_RETRY_SECONDS = _get_int("TOOL_INVENTORY_RETRY_SECONDS", 5)


def validate_and_prepare_config() -> None:
    """Validate configuration at startup."""
    errors = []
    if not APP_CONTEXT_TAG:
        errors.append("MINNE_APP_CONTEXT must be a non-empty string")

    for name, value in (
        ("SEARCH_MIN_SCORE", SEARCH_MIN_SCORE),
        ("CONTEXT_MIN_SCORE", CONTEXT_MIN_SCORE),
        ("CATEGORY_MIN_SCORE", CATEGORY_MIN_SCORE),
    ):
        if not math.isfinite(value) or value < 0.0 or value > 1.0:
            errors.append(f"{name} must be between 0.0 and 1.0")

    for name, value in (
        ("SEARCH_DEFAULT_LIMIT", SEARCH_DEFAULT_LIMIT),
        ("CONTEXT_DEFAULT_LIMIT", CONTEXT_DEFAULT_LIMIT),
        ("MAX_RESULT_LIMIT", MAX_RESULT_LIMIT),
        ("CATEGORY_SAMPLE_SIZE", CATEGORY_SAMPLE_SIZE),
        ("MAX_BATCH_DELETE", MAX_BATCH_DELETE),
    ):
        if value <= 0:
            errors.append(f"{name} must be a positive integer")

    if CATEGORY_SAMPLE_SIZE > CATEGORY_SAMPLE_MAX:
        errors.append("CATEGORY_SAMPLE_SIZE must not exceed CATEGORY_SAMPLE_MAX")
    if STORE_TIMEOUT_SECONDS <= 0:
        errors.append("STORE_TIMEOUT_SECONDS must be positive")
    if REQUIRE_MCP_AUTH and not OAUTH_USERINFO_URL:
        errors.append("OAUTH_USERINFO_URL is required when REQUIRE_MCP_AUTH=true")

    if not MEM0_API_KEY:
        logger.warning("MEM0_API_KEY is not set; memory tools will report the store as unavailable.")

    if errors:
        raise RuntimeError("Configuration invalid: " + "; ".join(errors))
