"""FastAPI application setup."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pymongo.errors import ConnectionFailure, PyMongoError, ServerSelectionTimeoutError

from interview2article.api.errors import CANCELLED_MESSAGE, LLM_UNAVAILABLE_MESSAGE, not_found_code
from interview2article.api.response import error_response
from interview2article.api.routes import health, interview, script, snapshot
from interview2article.db.mongo import close_database
from interview2article.llm import GenerationCancelled, LLMError
from interview2article.services import (
    InvalidInputError,
    NotFoundError,
    StageBusyError,
    get_pipeline,
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler."""
    # Startup: resume the previous session if one was persisted
    pipeline = get_pipeline()
    try:
        await pipeline.load_snapshot()
    except (InvalidInputError, PyMongoError) as e:
        logger.warning(f"Could not restore snapshot, starting fresh: {e}")
    yield
    # Shutdown
    await pipeline.save_snapshot()
    await close_database()


app = FastAPI(
    title="Interview2Article API",
    description="Guided interview pipeline that turns answers into styled articles",
    version="0.1.0",
    lifespan=lifespan,
)

# CORS middleware for frontend dev server
app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://localhost:5173",
        "http://127.0.0.1:5173",
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Exception handlers
@app.exception_handler(InvalidInputError)
async def invalid_input_handler(request: Request, exc: InvalidInputError) -> JSONResponse:
    """Handle missing prerequisites and bad arguments."""
    return JSONResponse(
        status_code=400,
        content=error_response("INVALID_INPUT", exc.message),
    )


@app.exception_handler(NotFoundError)
async def not_found_handler(request: Request, exc: NotFoundError) -> JSONResponse:
    """Handle unknown question, source or script ids."""
    return JSONResponse(
        status_code=404,
        content=error_response(not_found_code(exc), exc.message),
    )


@app.exception_handler(StageBusyError)
async def stage_busy_handler(request: Request, exc: StageBusyError) -> JSONResponse:
    """Handle re-entry into a running stage."""
    return JSONResponse(
        status_code=409,
        content=error_response("STAGE_BUSY", exc.message),
    )


@app.exception_handler(GenerationCancelled)
async def cancelled_handler(request: Request, exc: GenerationCancelled) -> JSONResponse:
    """Handle a model-backed request stopped through the cancel endpoint."""
    return JSONResponse(
        status_code=409,
        content=error_response("STAGE_CANCELLED", CANCELLED_MESSAGE),
    )


@app.exception_handler(ServerSelectionTimeoutError)
async def mongo_timeout_handler(request: Request, exc: ServerSelectionTimeoutError) -> JSONResponse:
    """Handle MongoDB connection timeout."""
    return JSONResponse(
        status_code=503,
        content=error_response("DATABASE_UNAVAILABLE", "Database is not available. Please try again later."),
    )


@app.exception_handler(ConnectionFailure)
async def mongo_connection_handler(request: Request, exc: ConnectionFailure) -> JSONResponse:
    """Handle MongoDB connection failure."""
    return JSONResponse(
        status_code=503,
        content=error_response("DATABASE_UNAVAILABLE", "Database connection failed. Please try again later."),
    )


@app.exception_handler(LLMError)
async def llm_error_handler(request: Request, exc: LLMError) -> JSONResponse:
    """Handle LLM/AI service errors."""
    return JSONResponse(
        status_code=503,
        content=error_response("AI_SERVICE_ERROR", LLM_UNAVAILABLE_MESSAGE),
    )


# Register routes
app.include_router(health.router)
app.include_router(interview.router)
app.include_router(script.router)
app.include_router(snapshot.router)
