"""FastAPI application for Spec Forge."""

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from app.routers import discovery, projects, spec, validation
from config.settings import LOG_LEVEL
from execution.discovery_machine import DiscoveryContractError
from execution.inflight import RequestCancelledError
from execution.section_parser import SectionNotFoundError
from execution.spec_stream import StreamIncompleteError
from execution.suggestion_provider import SuggestionProviderError

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="Spec Forge")

app.include_router(projects.router)
app.include_router(discovery.router)
app.include_router(spec.router)
app.include_router(validation.router)


def _error(status_code: int, exc: Exception) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"detail": str(exc)})


@app.exception_handler(FileNotFoundError)
async def not_found_handler(request: Request, exc: FileNotFoundError):
    return _error(404, exc)


@app.exception_handler(SectionNotFoundError)
async def section_not_found_handler(request: Request, exc: SectionNotFoundError):
    return _error(404, exc)


@app.exception_handler(DiscoveryContractError)
async def contract_error_handler(request: Request, exc: DiscoveryContractError):
    """The request is not valid in the session's current state."""
    return _error(409, exc)


@app.exception_handler(RequestCancelledError)
async def cancelled_handler(request: Request, exc: RequestCancelledError):
    return _error(409, exc)


@app.exception_handler(StreamIncompleteError)
async def stream_incomplete_handler(request: Request, exc: StreamIncompleteError):
    return _error(409, exc)


@app.exception_handler(SuggestionProviderError)
async def provider_error_handler(request: Request, exc: SuggestionProviderError):
    """The discovery session is already in its error state; report the cause."""
    logger.warning("Suggestion provider failed for %s: %s", request.url.path, exc)
    return _error(502, exc)


@app.exception_handler(ValueError)
async def value_error_handler(request: Request, exc: ValueError):
    """Handle ValueError from execution scripts as a JSON 400."""
    return _error(400, exc)
