#!/usr/bin/env python3
"""
Main application module for the Snowflake key generator API.
"""

import time
import uuid
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.status import HTTP_500_INTERNAL_SERVER_ERROR, HTTP_503_SERVICE_UNAVAILABLE
from loguru import logger

from keygen import __version__
from keygen.core.config import config
from keygen.core.exceptions import ClockRegressionError, ConfigurationError
from keygen.core.snowflake import generate_id, get_generator
from keygen.api.endpoints import router


@asynccontextmanager
async def lifespan(app: FastAPI):
    env = config.get("app", {}).get("env", "development")
    logger.info(
        f"Snowflake key generator API started - Environment: {env}, Version: {__version__}"
    )

    # Resolve node identity up front so a bad configuration fails at startup
    generator = get_generator()
    logger.info(f"Serving ids for node {generator.node_id}")

    yield

    logger.info("Snowflake key generator API shutdown")


# Create FastAPI application
app = FastAPI(
    title="Snowflake Key Generator API",
    description="API for issuing globally unique, time-sortable 64-bit ids.",
    version=__version__,
    docs_url="/api/docs",
    redoc_url="/api/redoc",
    openapi_url="/api/openapi.json",
    lifespan=lifespan
)


def _error_response(status_code: int, code: str, message: str, request: Request) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={
            "error": {
                "code": code,
                "message": message,
                "trace_id": getattr(request.state, "trace_id", None)
            }
        }
    )


@app.exception_handler(ClockRegressionError)
async def clock_regression_handler(request: Request, exc: ClockRegressionError):
    """Clock regression is an operational alert, not a retryable error."""
    logger.error(f"Refusing to issue ids: {exc.message}. {exc.remedy}")
    return _error_response(HTTP_503_SERVICE_UNAVAILABLE, "clock_regression", exc.message, request)


@app.exception_handler(ConfigurationError)
async def configuration_error_handler(request: Request, exc: ConfigurationError):
    logger.error(f"Generator misconfigured: {exc.message}. {exc.remedy}")
    return _error_response(HTTP_500_INTERNAL_SERVER_ERROR, "configuration_error", exc.message, request)


@app.middleware("http")
async def add_security_headers(request: Request, call_next):
    """
    Add security headers to all responses.

    Args:
        request: Request object
        call_next: Next middleware

    Returns:
        Response
    """
    response = await call_next(request)

    response.headers["X-Content-Type-Options"] = "nosniff"
    response.headers["X-Frame-Options"] = "DENY"

    return response


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """
    Log all requests.

    Args:
        request: Request object
        call_next: Next middleware

    Returns:
        Response
    """
    trace_id = getattr(request.state, "trace_id", None)

    with logger.contextualize(trace_id=trace_id):
        logger.info(
            f"Request {request.method} {request.url.path} - ClientIP: {request.client.host if request.client else 'unknown'}"
        )

        start_time = time.time()
        try:
            response = await call_next(request)
        except Exception as e:
            duration = time.time() - start_time
            logger.error(
                f"Error processing request: {str(e)}, type: {type(e).__name__}, duration: {duration:.3f}s"
            )
            return _error_response(
                HTTP_500_INTERNAL_SERVER_ERROR,
                "internal_server_error",
                "An internal server error occurred",
                request
            )

        duration = time.time() - start_time
        logger.info(f"Response {response.status_code} - Duration: {duration:.3f}s")

        return response


@app.middleware("http")
async def add_trace_id(request: Request, call_next):
    """
    Add trace ID to all responses.

    Registered last so it runs first and the trace ID is available to
    the other middleware. Trace IDs come from the Snowflake generator; while
    the clock is behind its last timestamp a random UUID is used instead,
    so the request still reaches the route and its error handlers.

    Args:
        request: Request object
        call_next: Next middleware

    Returns:
        Response
    """
    try:
        trace_id = generate_id()
    except ClockRegressionError as e:
        trace_id = uuid.uuid4().hex
        logger.warning(f"Using random trace ID {trace_id}: {e.message}")
    request.state.trace_id = trace_id

    response = await call_next(request)
    response.headers["X-Trace-ID"] = trace_id

    return response


# Include API router
app.include_router(router)

