"""Shared LLM call.

Every generation flow sends its prompt through call_llm(). Transport errors
from the Vertex AI SDK are converted to builtin exception types; tenacity
retries those up to LLM_MAX_ATTEMPTS attempts in total. The default of one
attempt leaves the retry decision to the caller.
"""

from __future__ import annotations

from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from daper.config import LLM_MAX_ATTEMPTS, LLM_TIMEOUT_SECONDS
from daper.infrastructure.settings import GEMINI_MAX_TOKENS, GEMINI_TEMPERATURE
from daper.llm.gemini import get_gemini_model, request_kwargs
from daper.observability.logging import get_logger
from daper.observability.telemetry import counter

logger = get_logger(__name__)


@retry(
    stop=stop_after_attempt(max(1, LLM_MAX_ATTEMPTS)),
    wait=wait_exponential(multiplier=1, min=1, max=10),
    retry=retry_if_exception_type((TimeoutError, ConnectionError, OSError)),
    reraise=True,
)
def call_llm(
    prompt: str,
    counter_prefix: str = "llm",
    json_output: bool = True,
) -> str:
    """Call the Gemini model and return its response text.

    Args:
        prompt: The rendered prompt.
        counter_prefix: Telemetry counter prefix (the flow name).
        json_output: Ask the model for an application/json response.

    Raises:
        TimeoutError: On deadline exceeded.
        ConnectionError: On service unavailable or internal error.
        OSError: On resource exhausted / rate limited.
        Exception: On other errors (not retried, caller handles).
    """
    from google.api_core.exceptions import (
        DeadlineExceeded,
        InternalServerError,
        ResourceExhausted,
        ServiceUnavailable,
    )

    model = get_gemini_model()

    generation_config = {
        "temperature": GEMINI_TEMPERATURE,
        "max_output_tokens": GEMINI_MAX_TOKENS,
    }
    # The SDKs disagree on schema object types, so only the mime type is set;
    # the prompt spells out the JSON shape and the gateway validates it.
    if json_output:
        generation_config["response_mime_type"] = "application/json"

    try:
        response = model.generate_content(
            prompt, generation_config=generation_config, **request_kwargs()
        )
        return response.text
    except DeadlineExceeded as e:
        counter(f"llm.{counter_prefix}.timeout")
        logger.warning("LLM call timed out after %ds", LLM_TIMEOUT_SECONDS)
        raise TimeoutError(f"LLM call timed out: {e}") from e
    except ServiceUnavailable as e:
        counter(f"llm.{counter_prefix}.service_unavailable")
        logger.warning("LLM service unavailable: %s", e)
        raise ConnectionError(f"LLM service unavailable: {e}") from e
    except ResourceExhausted as e:
        counter(f"llm.{counter_prefix}.rate_limited")
        logger.warning("LLM rate limited (429): %s", e)
        raise OSError(f"LLM rate limited: {e}") from e
    except InternalServerError as e:
        counter(f"llm.{counter_prefix}.internal_error")
        logger.warning("LLM internal error (500): %s", e)
        raise ConnectionError(f"LLM internal error: {e}") from e
    except Exception as e:
        logger.error("LLM call failed: %s", e)
        raise
