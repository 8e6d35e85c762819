"""HTTP admission surface.

``POST /register`` answers synchronously with the admission outcome:

- 202 ``{"status": "accepted", "job": ..., "doi": ..., "warnings": [...]}``
- 409 ``{"status": "already_registered", "identifier": ..., "doi": ...}``
- 422 ``{"status": "rejected", "reasons": [...]}``

The pipeline runs in the background; nothing here waits for it.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from collections.abc import AsyncIterator
from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse

from .intake import Accepted, AlreadyRegistered
from .models import RegistrationRequest
from .service import RegistrationService

__all__ = ["create_app"]

LOGGER = logging.getLogger(__name__)


def create_app(service: RegistrationService, *, manage_dispatcher: bool = True) -> FastAPI:
    """Return a FastAPI application admitting requests into ``service``.

    With ``manage_dispatcher`` the dispatcher is started and stopped with the
    application lifespan.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        app.state.service = service
        if manage_dispatcher:
            service.start()
        try:
            yield
        finally:
            if manage_dispatcher:
                service.stop(wait=False)

    app = FastAPI(title="Dataset DOI registration", lifespan=lifespan)

    @app.post("/register", summary="Request a DOI for a repository")
    async def register(payload: RegistrationRequest, request: Request) -> JSONResponse:
        svc: RegistrationService = request.app.state.service
        # Authentication and metadata fetch do blocking HTTP calls.
        outcome = await run_in_threadpool(svc.intake.admit, payload)

        body: dict[str, Any]
        if isinstance(outcome, Accepted):
            code = status.HTTP_202_ACCEPTED
            body = {
                "status": "accepted",
                "job": outcome.job_name,
                "doi": outcome.doi,
                "warnings": list(outcome.warnings),
            }
        elif isinstance(outcome, AlreadyRegistered):
            code = status.HTTP_409_CONFLICT
            body = {
                "status": "already_registered",
                "identifier": outcome.identifier,
                "doi": outcome.doi,
            }
        else:
            code = 422
            body = {"status": "rejected", "reasons": list(outcome.reasons)}
        return JSONResponse(status_code=code, content=body)

    @app.get("/health", summary="Liveness probe")
    async def health(request: Request) -> dict[str, Any]:
        svc: RegistrationService = request.app.state.service
        return {"status": "ok", "dispatcher": svc.dispatcher.running}

    @app.get("/stats", summary="Queue and worker statistics")
    async def stats(request: Request) -> dict[str, Any]:
        svc: RegistrationService = request.app.state.service
        return svc.stats()

    return app
