"""Health check endpoint for the Daper API."""

from __future__ import annotations

import os
from datetime import UTC, datetime
from typing import Any

from fastapi import APIRouter

from daper.config import APP_VERSION
from daper.llm.gemini import llm_credentials_configured
from daper.llm.prompts import FLOW_PROMPTS
from daper.observability.telemetry import get_latency_stats

router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check() -> dict[str, Any]:
    """Liveness probe.

    Reports whether Gemini credentials are configured (presence only, no API
    call) and the per-flow generation latencies recorded by this process.
    """
    return {
        "status": "healthy",
        "service": "Daper API",
        "version": APP_VERSION,
        "timestamp": datetime.now(UTC).isoformat(),
        "llm": {
            "ready": llm_credentials_configured(),
            "google_api_key": bool(os.getenv("GOOGLE_API_KEY")),
            "google_cloud_project": bool(os.getenv("GOOGLE_CLOUD_PROJECT")),
            "latency": {flow: get_latency_stats(f"llm.{flow}.latency") for flow in FLOW_PROMPTS},
        },
    }
