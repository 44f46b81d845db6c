"""
CLI Bridge: FastAPI router.
Mount with:
    from cli_bridge.router import router as cli_router
    app.include_router(cli_router)

Endpoints:
    GET  /api/commands
    POST /api/execute                 (text/event-stream)
    POST /api/cancel/{execution_id}
    POST /api/fetch-entities
"""
import logging
from typing import AsyncIterator

import httpx
from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import StreamingResponse

from . import config
from .commands import COMMANDS, build_args, command_tokens, redact_args
from .entities import fetch_entities
from .errors import BridgeError, RateLimitExceeded, ValidationError
from .executor import ProcessRunner
from .models import ExecuteRequest, FetchEntitiesRequest
from .rate_limit import RateLimiter
from .relay import Execution, ExecutionRegistry, sse_stream
from .validation import is_valid_api_key, is_valid_uuid, sanitize_options, validate_command

logger = logging.getLogger(__name__)

router = APIRouter()

LOOPBACK_HOSTS = ("127.0.0.1", "::1", "localhost")

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}

_runner = ProcessRunner()
_rate_limiter = RateLimiter()
_registry = ExecutionRegistry()


# ─── Dependencies ─────────────────────────────────────────────────────────────

def get_runner() -> ProcessRunner:
    return _runner


def get_rate_limiter() -> RateLimiter:
    return _rate_limiter


def get_registry() -> ExecutionRegistry:
    return _registry


async def get_http_client() -> AsyncIterator[httpx.AsyncClient]:
    async with httpx.AsyncClient(timeout=config.HTTP_TIMEOUT) as client:
        yield client


def _http_error(err: BridgeError) -> HTTPException:
    detail = {"error": err.message, "solution": err.solution}
    if isinstance(err, ValidationError):
        detail["errors"] = err.errors
    return HTTPException(status_code=err.status_code, detail=detail)


def rate_limited(request: Request, limiter: RateLimiter = Depends(get_rate_limiter)) -> None:
    client_id = request.client.host if request.client else "unknown"
    if config.DEV_MODE and client_id in LOOPBACK_HOSTS:
        return
    if not limiter.admit(client_id):
        err = RateLimitExceeded(limiter.retry_after)
        raise HTTPException(
            status_code=err.status_code,
            detail={
                "error": "Too many requests",
                "message": err.message,
                "solution": err.solution,
                "retryAfter": err.retry_after,
            },
            headers={"Retry-After": str(err.retry_after)},
        )


# ─── Endpoints ────────────────────────────────────────────────────────────────

@router.get("/api/commands", dependencies=[Depends(rate_limited)])
def list_commands():
    return {name: d.model_dump(by_alias=True, exclude_none=True) for name, d in COMMANDS.items()}


@router.post("/api/execute", dependencies=[Depends(rate_limited)])
async def execute(
    req: ExecuteRequest,
    runner: ProcessRunner = Depends(get_runner),
    registry: ExecutionRegistry = Depends(get_registry),
):
    """
    Validate the request, then stream the CLI's progress back as server-sent
    events. Everything that can fail before the child is spawned fails here
    with a plain JSON error instead of a stream.
    """
    command = req.command.strip()
    if not 2 <= len(command_tokens(command)) <= 3:
        raise HTTPException(status_code=400, detail={
            "error": "Invalid command format",
            "solution": "Command must be in the format: <command> <subcommand>",
        })
    logger.info("Command execution requested: %s", command)

    try:
        options = sanitize_options(command, req.options)
        validate_command(command, options)
        argv = build_args(command, options)
        runner.ensure_executable()
    except BridgeError as e:
        logger.warning("Rejected %s: %s", command, e.message)
        raise _http_error(e)

    execution = Execution(command, argv, runner)
    logger.info("Executing %s: %s", execution.id, " ".join(redact_args(argv)))
    return StreamingResponse(
        sse_stream(execution, registry),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
    )


@router.post("/api/cancel/{execution_id}")
async def cancel(execution_id: str, registry: ExecutionRegistry = Depends(get_registry)):
    execution = registry.get(execution_id)
    if execution is None or not execution.cancel():
        raise HTTPException(status_code=404, detail={
            "error": "Execution not found",
            "solution": "The command may have already finished.",
        })
    return {"cancelled": True, "executionId": execution_id}


@router.post("/api/fetch-entities", dependencies=[Depends(rate_limited)])
async def fetch_entities_endpoint(
    req: FetchEntitiesRequest,
    client: httpx.AsyncClient = Depends(get_http_client),
):
    if not req.environment_id or not req.api_key:
        raise HTTPException(status_code=400, detail={
            "error": "environmentId and apiKey are required",
            "solution": "Please provide both environment ID and API key.",
        })
    if not is_valid_uuid(req.environment_id):
        raise HTTPException(status_code=400, detail={
            "error": "Invalid environment ID format",
            "solution": "Environment ID must be a valid UUID.",
        })
    if not is_valid_api_key(req.api_key):
        raise HTTPException(status_code=400, detail={
            "error": "Invalid API key format",
            "solution": "API key appears to be invalid. Please check your Management API key.",
        })

    logger.info("Fetching entities for environment: %s", req.environment_id)
    try:
        return await fetch_entities(req.environment_id, req.api_key, client=client)
    except BridgeError as e:
        logger.error("Failed to fetch entities for %s: %s", req.environment_id, e.message)
        raise _http_error(e)
