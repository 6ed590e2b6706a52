"""FastAPI application exposing a single HTTP-triggered update cycle.

Scheduled jobs (cron, CI workflows) can hit ``/api/update-status`` instead of
keeping the daemon running. Each request loads configuration from the
environment, runs exactly one cycle and reports the outcome.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from wakatime_profile_status import __version__
from wakatime_profile_status.config import Config, load_config
from wakatime_profile_status.orchestrator import StatusOrchestrator, build_orchestrator

logger = logging.getLogger(__name__)

__all__ = ["ALLOWED_METHODS", "create_app", "run_update"]

ALLOWED_METHODS = ("GET", "POST")
ROUTE_METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE", "HEAD", "OPTIONS"]


def run_update(
    config_loader: Callable[[], Config],
    factory: Callable[[Config], StatusOrchestrator] = build_orchestrator,
) -> bool:
    """Load configuration, run one update cycle and release the clients."""
    orchestrator = factory(config_loader())
    try:
        return bool(orchestrator.run_cycle())
    finally:
        orchestrator.close()


def create_app(
    config_loader: Optional[Callable[[], Config]] = None,
    factory: Callable[[Config], StatusOrchestrator] = build_orchestrator,
) -> FastAPI:
    """Build the trigger application.

    Args:
        config_loader: Returns the configuration for a request. Defaults to
            ``load_config({})`` (config file and environment).
        factory: Builds the orchestrator from a configuration.
    """
    loader = config_loader or (lambda: load_config({}))
    app = FastAPI(title="wakatime-profile-status", version=__version__)

    @app.api_route("/api/update-status", methods=ROUTE_METHODS)
    def update_status(request: Request) -> JSONResponse:
        if request.method not in ALLOWED_METHODS:
            return JSONResponse({"error": "Method not allowed"}, status_code=405)
        try:
            success = run_update(loader, factory)
        except Exception as e:
            logger.error("HTTP-triggered update failed: %s", e, exc_info=True)
            return JSONResponse({"error": str(e)}, status_code=500)
        body: Dict[str, Any] = {"success": success}
        return JSONResponse(body, status_code=200)

    return app
