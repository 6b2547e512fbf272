"""
Gemini Model Manager - Singleton for shared model instance.

All generation flows share one model instance.

Supports two backends:
  1. Vertex AI SDK (production) - uses GOOGLE_CLOUD_PROJECT + service account
  2. google-generativeai (local dev) - uses GOOGLE_API_KEY
"""

from __future__ import annotations

import os
from functools import lru_cache

from daper.config import LLM_TIMEOUT_SECONDS
from daper.infrastructure.settings import GEMINI_LOCATION, GEMINI_MODEL, GOOGLE_CLOUD_PROJECT
from daper.observability.logging import get_logger

logger = get_logger(__name__)

# Which backend initialised successfully: "vertexai" or "genai"
_backend: str | None = None


class GeminiInitializationError(RuntimeError):
    """Raised when Gemini model cannot be initialized."""


@lru_cache(maxsize=1)
def get_gemini_model():
    """
    Get or create the shared Gemini model instance.

    Tries Vertex AI SDK first (production). Falls back to google-generativeai
    with GOOGLE_API_KEY for local development.

    Raises:
        GeminiInitializationError: If model cannot be initialized
    """
    global _backend
    # Read env vars fresh (settings may have been imported before dotenv ran)
    project = os.getenv("GOOGLE_CLOUD_PROJECT") or GOOGLE_CLOUD_PROJECT
    location = os.getenv("GEMINI_LOCATION", "") or GEMINI_LOCATION
    model_name = os.getenv("GEMINI_MODEL") or GEMINI_MODEL

    if project:
        try:
            import vertexai
            from vertexai.generative_models import GenerativeModel

            vertexai.init(project=project, location=location, request_timeout=LLM_TIMEOUT_SECONDS)
            model = GenerativeModel(model_name)
            _backend = "vertexai"

            logger.info(
                "Initialized Gemini model (Vertex AI): project=%s, location=%s, model=%s",
                project,
                location,
                model_name,
            )
            return model

        except ImportError:
            logger.info("Vertex AI SDK not installed, trying google-generativeai fallback")

    try:
        import google.generativeai as genai

        api_key = os.getenv("GOOGLE_API_KEY")
        if not api_key:
            raise GeminiInitializationError(
                "Neither GOOGLE_CLOUD_PROJECT nor GOOGLE_API_KEY is set. "
                "Configure Vertex AI or set GOOGLE_API_KEY."
            )

        genai.configure(api_key=api_key)
        model = genai.GenerativeModel(model_name)
        _backend = "genai"

        logger.info("Initialized Gemini model (google-generativeai): model=%s", model_name)
        return model

    except GeminiInitializationError:
        raise
    except ImportError as e:
        raise GeminiInitializationError(
            "No Gemini SDK available. Install google-cloud-aiplatform or google-generativeai."
        ) from e
    except Exception as e:
        logger.error("Failed to initialize Gemini model: %s", e)
        raise GeminiInitializationError(f"Failed to initialize Gemini: {e}") from e


def request_kwargs() -> dict:
    """Per-call transport options for generate_content().

    google-generativeai takes the timeout per request; Vertex AI gets it once
    from vertexai.init(request_timeout=...).
    """
    if _backend == "genai":
        return {"request_options": {"timeout": LLM_TIMEOUT_SECONDS}}
    return {}


def llm_credentials_configured() -> bool:
    """True when either backend has the configuration it needs."""
    return bool(os.getenv("GOOGLE_CLOUD_PROJECT") or GOOGLE_CLOUD_PROJECT or os.getenv("GOOGLE_API_KEY"))


def clear_model_cache() -> None:
    """Clear the cached model instance (tests, reconfiguration)."""
    global _backend
    get_gemini_model.cache_clear()
    _backend = None
    logger.info("Cleared Gemini model cache")
