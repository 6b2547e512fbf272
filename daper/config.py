"""Centralized configuration for the Daper backend.

Re-exports everything from daper.infrastructure.settings so existing imports
continue to work, then adds typed constants for database, quota, locking, LLM,
rate-limiting, and API settings.  Environment variable overrides use safe
defaults so the app starts without extra env configuration.
"""

from __future__ import annotations

import os

from daper.infrastructure.settings import *  # noqa: F401, F403

# --- App ---
APP_VERSION: str = "1.0.0"

# --- Database ---
DB_POOL_SIZE: int = int(os.getenv("DAPER_DB_POOL_SIZE", "5"))
DB_POOL_TIMEOUT: float = float(os.getenv("DAPER_DB_POOL_TIMEOUT", "5.0"))
DB_CONNECT_TIMEOUT: float = float(os.getenv("DAPER_DB_CONNECT_TIMEOUT", "30.0"))
DB_TEMP_CONN_MAX: int = int(os.getenv("DAPER_DB_TEMP_CONN_MAX", "10"))
DB_RETRY_MAX: int = int(os.getenv("DAPER_DB_RETRY_MAX", "5"))
DB_RETRY_BASE_DELAY: float = float(os.getenv("DAPER_DB_RETRY_BASE_DELAY", "0.1"))
DB_RETRY_MAX_DELAY: float = float(os.getenv("DAPER_DB_RETRY_MAX_DELAY", "2.0"))
DB_RETRY_JITTER: float = float(os.getenv("DAPER_DB_RETRY_JITTER", "0.1"))

# --- Quota (free plan) ---
FREE_USER_IDEA_LIMIT: int = int(os.getenv("DAPER_FREE_IDEA_LIMIT", "5"))
FREE_USER_DAILY_LIMIT: int = int(os.getenv("DAPER_FREE_DAILY_LIMIT", "2"))
USAGE_WINDOW_MS: int = 24 * 60 * 60 * 1000

# --- Submission locks ---
SUBMISSION_LOCK_TTL_SECONDS: int = int(os.getenv("DAPER_LOCK_TTL_SECONDS", "600"))

# --- Idea input ---
IDEA_MIN_CHARS: int = 10
IDEA_MAX_CHARS: int = 5000

# --- LLM ---
LLM_TIMEOUT_SECONDS: int = int(os.getenv("DAPER_LLM_TIMEOUT", "60"))
# 1 means a single attempt; failures propagate to the caller immediately
LLM_MAX_ATTEMPTS: int = int(os.getenv("DAPER_LLM_MAX_ATTEMPTS", "1"))

# --- Rate Limiting ---
RATE_LIMIT_RPM: int = int(os.getenv("DAPER_RATE_LIMIT_RPM", "60"))
RATE_LIMIT_RPH: int = int(os.getenv("DAPER_RATE_LIMIT_RPH", "1000"))
RATE_LIMIT_MAX_IPS: int = 10000

# --- API ---
API_LIST_LIMIT_DEFAULT: int = 100
API_LIST_LIMIT_MAX: int = 500
