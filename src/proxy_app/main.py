import argparse
import json
import logging
import sys
import time
from contextlib import asynccontextmanager
from typing import Any

import colorlog
from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, StreamingResponse
from starlette.background import BackgroundTask
from starlette.exceptions import HTTPException as StarletteHTTPException

from proxy_app.config import load_settings
from relay_library import BackendClient
from relay_library.anthropic_compat import (
    API_ERROR,
    CONVERSION_ERROR,
    INTERNAL_ERROR,
    INVALID_REQUEST_ERROR,
    NOT_FOUND,
    ProxyError,
    convert_openai_stream_to_anthropic,
    error_envelope,
    request_to_openai,
    response_from_openai,
    validate_request,
)

logger = logging.getLogger("proxy")


def configure_logging(level: str = "INFO") -> None:
    """Colored console logging on the root logger."""
    console_handler = colorlog.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    formatter = colorlog.ColoredFormatter(
        "%(log_color)s%(asctime)s %(levelname)-8s %(name)s: %(message)s",
        log_colors={
            "DEBUG": "cyan",
            "INFO": "green",
            "WARNING": "yellow",
            "ERROR": "red",
            "CRITICAL": "red,bg_white",
        },
    )
    console_handler.setFormatter(formatter)
    logging.basicConfig(level=level, handlers=[console_handler], force=True)


class AsciiJSONResponse(JSONResponse):
    """JSON body with every non-ASCII character escaped."""

    def render(self, content: Any) -> bytes:
        return json.dumps(content, allow_nan=False, separators=(",", ":")).encode("ascii")


# --- Lifespan Management ---
@asynccontextmanager
async def lifespan(app: FastAPI):
    """Own the backend client for the lifetime of the server."""
    settings = getattr(app.state, "settings", None) or load_settings()
    client = BackendClient(
        api_key=settings.backend_api_key,
        url=settings.backend_url,
        timeout=settings.backend_timeout,
    )
    app.state.backend_client = client

    if not settings.backend_api_key:
        logger.warning("BACKEND_API_KEY is not set; /v1/messages will answer 500")
    logger.info(f"Relaying /v1/messages to {settings.backend_url}")

    yield

    await client.close()
    logger.info("Server shutdown complete.")


app = FastAPI(
    lifespan=lifespan,
    title="Anthropic-Compatible Relay",
    default_response_class=AsciiJSONResponse,
)

# Middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.perf_counter()
    logger.info(f"{request.method} {request.url.path}")
    response = await call_next(request)
    duration_ms = (time.perf_counter() - start) * 1000
    logger.info(f"{request.method} {request.url.path} -> {response.status_code} in {duration_ms:.0f}ms")
    return response


# --- Error Handlers ---
@app.exception_handler(ProxyError)
async def proxy_error_handler(request: Request, exc: ProxyError):
    return AsciiJSONResponse(status_code=exc.status_code, content=exc.to_envelope())


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    if exc.status_code == 404:
        logger.info(f"Route not found: {request.url.path}")
        content = error_envelope(NOT_FOUND, "Endpoint not found")
    else:
        content = error_envelope(INVALID_REQUEST_ERROR, str(exc.detail))
    return AsciiJSONResponse(
        status_code=exc.status_code,
        content=content,
        headers=getattr(exc, "headers", None),
    )


# --- Dependencies ---
async def get_backend(request: Request) -> BackendClient:
    return request.app.state.backend_client


# --- Endpoints ---

@app.get("/")
def read_root():
    return {
        "status": "active",
        "mode": "anthropic-compatible",
        "docs": "Use /v1/messages with an Anthropic client",
    }


@app.get("/health")
def health_check():
    return {"status": "ok"}


@app.post("/v1/messages")
async def anthropic_messages(
    request: Request,
    backend: BackendClient = Depends(get_backend),
):
    """
    Anthropic Messages endpoint backed by an OpenAI-compatible backend.
    Compatible with Claude Code CLI and other Anthropic clients.
    """
    backend.ensure_configured()

    try:
        body = await request.json()
    except ValueError:
        raise ProxyError(INVALID_REQUEST_ERROR, "Invalid JSON in request body", 400)

    validation = validate_request(body)
    if not validation.success:
        raise ProxyError(INVALID_REQUEST_ERROR, validation.error or "Invalid request", 400)

    is_streaming = body.get("stream") is True
    logger.info(f"Processing request for model: {body['model']}, streaming: {is_streaming}")

    try:
        conversion = request_to_openai(body)
        if not conversion.success:
            raise ProxyError(CONVERSION_ERROR, conversion.error or "Failed to convert request", 400)
        openai_request = conversion.data

        if is_streaming:
            openai_stream = await backend.open_stream(openai_request)
            return StreamingResponse(
                convert_openai_stream_to_anthropic(openai_stream),
                media_type="text/event-stream",
                headers={"Cache-Control": "no-cache", "Connection": "keep-alive"},
                background=BackgroundTask(openai_stream.aclose),
            )

        openai_response = await backend.complete(openai_request)
        result = response_from_openai(openai_response, body["model"])
        if not result.success:
            # Errors reported by the backend keep the api_error kind
            error_type = API_ERROR if openai_response.get("error") else CONVERSION_ERROR
            raise ProxyError(error_type, result.error or "Failed to convert response", 502)

        logger.info("Successfully converted response to Anthropic format")
        return result.data.model_dump()

    except ProxyError:
        raise
    except Exception as e:
        logger.error(f"Anthropic Request Failed: {e}", exc_info=True)
        raise ProxyError(INTERNAL_ERROR, f"Processing failed: {e}", 500)


# --- Main Entry Point ---
def main() -> None:
    parser = argparse.ArgumentParser(description="Anthropic-compatible relay for OpenAI-style backends")
    parser.add_argument("--host", type=str, default="0.0.0.0", help="Host to bind the server to.")
    parser.add_argument("--port", type=int, default=8000, help="Port to run the server on.")
    parser.add_argument("--log-level", type=str, default=None, help="Console log level (default: LOG_LEVEL or INFO).")
    args = parser.parse_args()

    settings = load_settings()
    configure_logging((args.log_level or settings.log_level).upper())
    app.state.settings = settings

    import uvicorn

    uvicorn.run(app, host=args.host, port=args.port)


if __name__ == "__main__":
    main()
