"""
HTTP API Server for Paper Stream.

Endpoints:
    GET /api/papers?tags=a,b&includePreprints=true&lastUpdate=<ISO-8601>
    GET /api/health

Services come from an ApplicationContainer stored on ``app.state``; the
lifespan starts the refresh scheduler and closes HTTP clients on shutdown.
"""

from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from paper_stream.container import ApplicationContainer, create_container
from paper_stream.models import Paper
from paper_stream.settings import DEFAULT_PORT
from paper_stream.shared.dates import iso_now
from paper_stream.shared.exceptions import InternalError, InvalidRequestError

logger = logging.getLogger(__name__)

TAGS_REQUIRED = "Tags parameter is required"


# Pydantic models for API responses
class PapersResponse(BaseModel):
    """Successful /api/papers body."""
    papers: list[dict[str, Any]]
    timestamp: str
    count: int


class ErrorResponse(BaseModel):
    """Error body; always carries an empty papers list."""
    error: str
    papers: list[dict[str, Any]] = []
    timestamp: str


class CacheStatsResponse(BaseModel):
    memoryEntries: int
    cacheExpiry: int
    lastCleanup: str


class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    timestamp: str
    cache: CacheStatsResponse


def parse_tags(raw: str | None) -> list[str]:
    """Split on commas, strip, lowercase, drop empties."""
    if not raw:
        return []
    return [t.strip().lower() for t in raw.split(",") if t.strip()]


def _error_body(message: str) -> dict[str, Any]:
    return ErrorResponse(error=message, timestamp=iso_now()).model_dump()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    container: ApplicationContainer = app.state.container
    settings = container.settings()

    logger.info(f"Cache directory: {settings.cache_dir}")
    container.cache_store()

    scheduler = None
    if settings.scheduler_enabled:
        scheduler = container.refresh_scheduler()
        scheduler.start()
    else:
        logger.info("Refresh scheduler disabled by config")

    yield

    # Shutdown
    logger.info("Paper Stream shutting down")
    if scheduler is not None:
        scheduler.shutdown()
    await container.source_registry().aclose()


def create_app(container: ApplicationContainer | None = None) -> FastAPI:
    """
    Create the FastAPI application.

    Args:
        container: Service container (a fresh one reading the environment if None)

    Returns:
        Configured FastAPI instance.
    """
    app = FastAPI(
        title="Paper Stream API",
        description="Newest papers for a set of topic tags, aggregated from "
                    "arXiv, OpenAlex and Semantic Scholar.",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.container = container or create_container()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(InvalidRequestError)
    async def invalid_request_handler(request: Request, exc: InvalidRequestError) -> JSONResponse:
        return JSONResponse(status_code=400, content=_error_body(str(exc)))

    @app.exception_handler(InternalError)
    async def internal_error_handler(request: Request, exc: InternalError) -> JSONResponse:
        return JSONResponse(status_code=500, content=_error_body(str(exc)))

    @app.get(
        "/api/papers",
        response_model=PapersResponse,
        responses={
            400: {"model": ErrorResponse, "description": "Missing tags"},
            500: {"model": ErrorResponse, "description": "Unexpected failure"},
        },
    )
    async def get_papers(
        request: Request,
        tags: str | None = Query(default=None, description="Comma-separated topic tags"),
        include_preprints: str = Query(default="true", alias="includePreprints"),
        last_update: str | None = Query(default=None, alias="lastUpdate"),
    ):
        """Newest papers for ``tags``, optionally only those newer than ``lastUpdate``."""
        tag_list = parse_tags(tags)
        if not tag_list:
            raise InvalidRequestError(TAGS_REQUIRED, param_name="tags", value=tags)
        include_flag = include_preprints == "true"

        container: ApplicationContainer = request.app.state.container
        logger.info(f"Fetching papers for tags: {', '.join(tag_list)}, preprints: {include_flag}")

        try:
            papers = await _load_papers(container, tag_list, include_flag, last_update or None)
        except Exception as e:
            logger.exception("Error in /api/papers")
            raise InternalError(cause=e) from e

        return PapersResponse(
            papers=[p.to_dict() for p in papers],
            timestamp=iso_now(),
            count=len(papers),
        )

    @app.get("/api/health", response_model=HealthResponse)
    async def health_check(request: Request):
        """Health check endpoint."""
        cache = request.app.state.container.cache_store()
        return HealthResponse(
            status="OK",
            timestamp=iso_now(),
            cache=CacheStatsResponse(**cache.stats()),
        )

    return app


async def _load_papers(
    container: ApplicationContainer,
    tags: list[str],
    include_preprints: bool,
    last_update: str | None,
) -> list[Paper]:
    aggregator = container.aggregator()
    if not container.settings().serve_from_cache:
        return await aggregator.aggregate(tags, include_preprints, last_update)

    cache = container.cache_store()
    key = cache.key(tags, include_preprints)
    papers = await cache.get_or_fetch(key, lambda: aggregator.aggregate(tags, include_preprints))
    return cache.diff(key, last_update, papers)


def run_api_server(
    host: str = "0.0.0.0",
    port: int | None = None,
    container: ApplicationContainer | None = None,
    log_level: str = "info",
):
    """
    Run the HTTP API server.

    Args:
        host: Host to bind to
        port: Port to bind to (default: $PORT or 3000)
        container: Service container (built from the environment if None)
        log_level: uvicorn log level
    """
    import uvicorn

    port = port or int(os.environ.get("PORT", DEFAULT_PORT))
    app = create_app(container)

    logger.info(f"Paper Stream server running on http://{host}:{port}")
    uvicorn.run(app, host=host, port=port, log_level=log_level.lower())
