"""cleanslate - appointment lifecycle and recurrence engine for cleaning businesses."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from cleanslate.core import db_client
from cleanslate.core.errors import EngineError, classify_error_with_response
from cleanslate.core.logging import configure_logfire, instrument_fastapi
from cleanslate.interface.appointments_router import helpers_router, router, transactions_router


logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan context manager."""
    # Startup
    configure_logfire()

    await db_client.init_db()
    logger.info("Database initialized")

    yield
    # Shutdown
    await db_client.close_connection()


app = FastAPI(
    title="cleanslate",
    description="Appointment lifecycle and recurrence engine",
    version="0.1.0",
    lifespan=lifespan,
)

# Instrument FastAPI with Logfire
instrument_fastapi(app)

# Register routers
app.include_router(router)
app.include_router(helpers_router)
app.include_router(transactions_router)


@app.exception_handler(EngineError)
async def engine_error_handler(request: Request, exc: EngineError) -> JSONResponse:
    """Render engine errors with their code and a user-facing message."""
    logger.info("engine_error", extra={"path": request.url.path, "code": exc.code, "error": str(exc)})
    response = classify_error_with_response(exc)
    return JSONResponse(status_code=exc.status_code, content=response.model_dump(mode="json"))


@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Log unexpected failures and answer with a generic error."""
    logger.error("unexpected_error", extra={"path": request.url.path, "error": str(exc)})
    response = classify_error_with_response(exc)
    return JSONResponse(status_code=500, content=response.model_dump(mode="json"))


@app.get("/health")
async def health_check() -> JSONResponse:
    """Health check endpoint."""
    return JSONResponse(content={"status": "healthy"}, status_code=200)
