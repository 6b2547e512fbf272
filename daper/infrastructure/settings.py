"""
Application-wide settings and environment configuration
"""

from __future__ import annotations

import os
from pathlib import Path

# Project paths
PROJECT_ROOT = Path(__file__).parent.parent.parent
DAPER_ROOT = Path(__file__).parent.parent

# Environment
ENV = os.getenv("DAPER_ENV", "development")
DEBUG = ENV == "development"

# API Configuration
API_HOST = os.getenv("API_HOST", "0.0.0.0")
API_PORT = int(os.getenv("API_PORT", "8000"))
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")


# Google Cloud / Gemini
GOOGLE_CLOUD_PROJECT = os.getenv("GOOGLE_CLOUD_PROJECT")
GOOGLE_API_KEY = os.getenv("GOOGLE_API_KEY")  # injected by the deploy-time secret manager
GEMINI_MODEL = os.getenv("GEMINI_MODEL", "gemini-2.0-flash-001")
GEMINI_LOCATION = os.getenv("GEMINI_LOCATION", "asia-east1")
GEMINI_MAX_TOKENS = int(os.getenv("GEMINI_MAX_TOKENS", "8192"))
GEMINI_TEMPERATURE = float(os.getenv("GEMINI_TEMPERATURE", "1.0"))

# Identity provider
OAUTH_CLIENT_ID = os.getenv("DAPER_OAUTH_CLIENT_ID")
TOKEN_INFO_URL = os.getenv("DAPER_TOKEN_INFO_URL", "https://oauth2.googleapis.com/tokeninfo")
USERINFO_URL = os.getenv("DAPER_USERINFO_URL", "https://www.googleapis.com/oauth2/v2/userinfo")

# Frontend
FRONTEND_URL = os.getenv("DAPER_FRONTEND_URL", "http://localhost:3000")
UPGRADE_PATH = "/upgrade"

# Logging
LOG_FILE = DAPER_ROOT / "logs" / "daper.log"


def is_production() -> bool:
    """Check if running in production"""
    return ENV == "production"


def is_development() -> bool:
    """Check if running in development"""
    return ENV == "development"


def get_env(key: str, default: str | None = None) -> str | None:
    """Get environment variable with fallback"""
    return os.getenv(key, default)
