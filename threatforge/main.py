"""Main FastAPI application for ThreatForge."""

import asyncio
import contextlib
from typing import Any, AsyncIterator, Dict, List, Union

import structlog
from fastapi import Depends, FastAPI, HTTPException, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, ConfigDict, Field

from threatforge import __version__
from threatforge.config import settings
from threatforge.llm import (
    AnalysisCanceled,
    CancellationToken,
    GeminiAdapter,
    LLMAdapter,
    MalformedReply,
    TransportFailure,
)
from threatforge.logging_config import configure_logging
from threatforge.models import ArtifactRecord
from threatforge.pipeline import analyze_artifacts

configure_logging()

logger = structlog.get_logger()

SERVICE_UNAVAILABLE_DETAIL = (
    "Failed to analyze artifacts. The AI model may be unavailable or the input "
    "is invalid. Please try again."
)

# nginx's "client closed request" status
CLIENT_CLOSED_REQUEST = 499

DISCONNECT_POLL_SECONDS = 0.5

# Create FastAPI app
app = FastAPI(
    title="ThreatForge",
    description="STRIDE threat models from project artifacts",
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Configure appropriately for production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


class AnalyzeRequestBody(BaseModel):
    """Inbound analysis request from the presentation layer."""

    model_config = ConfigDict(str_strip_whitespace=True)

    project_name: str = Field(..., min_length=1)
    artifacts: List[ArtifactRecord] = Field(..., min_length=1)


async def get_llm_adapter() -> AsyncIterator[LLMAdapter]:
    """Provide a Gemini adapter for the duration of one request."""
    adapter = GeminiAdapter()
    try:
        yield adapter
    finally:
        await adapter.close()


async def _cancel_on_disconnect(request: Request, token: CancellationToken) -> None:
    while not token.cancelled:
        if await request.is_disconnected():
            logger.info("client_disconnected", path=request.url.path)
            token.cancel()
            return
        await asyncio.sleep(DISCONNECT_POLL_SECONDS)


@app.on_event("startup")
async def startup_event() -> None:
    """Initialize application on startup."""
    logger.info(
        "threatforge_starting",
        version=__version__,
        log_level=settings.log_level,
        model=settings.gemini_model,
        api_key_configured=bool(settings.gemini_api_key),
    )


@app.on_event("shutdown")
async def shutdown_event() -> None:
    """Clean up on shutdown."""
    logger.info("threatforge_shutting_down")


@app.get("/")
async def root() -> dict[str, str]:
    """Root endpoint."""
    return {
        "service": "ThreatForge",
        "version": __version__,
        "status": "operational",
        "docs": "/docs",
    }


@app.get("/health")
async def health_check() -> dict[str, str]:
    """Health check endpoint."""
    return {"status": "ok"}


@app.post("/api/v1/analyze", response_model=None)
async def analyze(
    body: AnalyzeRequestBody,
    request: Request,
    adapter: LLMAdapter = Depends(get_llm_adapter),
) -> Union[Dict[str, Any], Response]:
    """
    Run one threat-model analysis.

    A client disconnect cancels the analysis. Service outages and contract
    violations both surface as 502 with the same generic message.
    """
    token = CancellationToken()
    watcher = asyncio.create_task(_cancel_on_disconnect(request, token))

    try:
        result = await analyze_artifacts(
            body.artifacts,
            token,
            llm_adapter=adapter,
            project_name=body.project_name,
        )
    except AnalysisCanceled:
        return Response(status_code=CLIENT_CLOSED_REQUEST)
    except (TransportFailure, MalformedReply):
        raise HTTPException(status_code=502, detail=SERVICE_UNAVAILABLE_DETAIL)
    finally:
        watcher.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await watcher

    return {
        **result.model_dump(mode="json", by_alias=True),
        "summary": result.summary(),
    }
