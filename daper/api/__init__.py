"""HTTP surface for Daper."""

from __future__ import annotations


def main() -> None:
    """Run the API server (console script: daper-api)."""
    import uvicorn

    from daper.config import API_HOST, API_PORT, LOG_LEVEL

    uvicorn.run("daper.api.app:app", host=API_HOST, port=API_PORT, log_level=LOG_LEVEL.lower())
