"""Station-Navet: Main FastAPI Application.

Members of a region -> area -> station organization share improvement ideas,
gather support, vote, and carry approved ideas through a workshop phase.
"""

from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .api import api_router
from .core import close_db, get_settings, init_db, repositories_context
from .schemas import ErrorResponse
from .services import (
    AlreadyClaimed,
    AuthenticationRequired,
    AuthorizationDenied,
    DuplicateAction,
    DuplicateVote,
    HttpPushTransport,
    InvalidTransition,
    LifecycleError,
    LoggingPushTransport,
    NotFound,
    NotificationDispatcher,
    SelfVoteProhibited,
    ValidationError,
)

settings = get_settings()
logger = logging.getLogger(__name__)

# Lifecycle errors are caller mistakes and map to 4xx
ERROR_STATUS_CODES: dict[type[LifecycleError], int] = {
    AuthenticationRequired: status.HTTP_401_UNAUTHORIZED,
    AuthorizationDenied: status.HTTP_403_FORBIDDEN,
    SelfVoteProhibited: status.HTTP_403_FORBIDDEN,
    NotFound: status.HTTP_404_NOT_FOUND,
    InvalidTransition: status.HTTP_409_CONFLICT,
    DuplicateVote: status.HTTP_409_CONFLICT,
    AlreadyClaimed: status.HTTP_409_CONFLICT,
    DuplicateAction: status.HTTP_409_CONFLICT,
    ValidationError: status.HTTP_422_UNPROCESSABLE_ENTITY,
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan: startup and shutdown."""
    logger.info(f"Starting {settings.app_name} ({settings.environment})")

    # Startup - skip init_db in production (tables already exist)
    if settings.environment != "production":
        try:
            await init_db()
        except Exception as e:
            logger.warning(f"Could not initialize database: {e}")

    if settings.push_enabled:
        transport = HttpPushTransport(timeout_seconds=settings.push_timeout_seconds)
    else:
        transport = LoggingPushTransport()

    dispatcher = NotificationDispatcher(
        repositories_context,
        transport,
        workers=settings.notification_workers,
        queue_size=settings.notification_queue_size,
    )
    app.state.dispatcher = dispatcher
    dispatcher.start()
    yield
    # Shutdown
    await dispatcher.stop()
    await transport.aclose()
    await close_db()


app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="""
    ## Station-Navet API

    Idea and poll lifecycle for a region -> area -> station organization.

    ### Lifecycle

    - **Proposal**: members submit ideas to their station, area or region
    - **Voting**: three supporters open the vote; polls start here
    - **Approved**: a manager approves the idea
    - **Workshop**: one person claims the idea and carries it out
    - **Completed**: the task is done and colleagues can give high-fives

    ### Authentication

    All endpoints require a valid JWT token in the `Authorization: Bearer <token>` header.
    """,
    openapi_url=f"{settings.api_prefix}/openapi.json",
    docs_url=f"{settings.api_prefix}/docs",
    redoc_url=f"{settings.api_prefix}/redoc",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS", "PATCH", "HEAD"],
    allow_headers=["*"],
    max_age=86400,
)


@app.exception_handler(LifecycleError)
async def lifecycle_exception_handler(request: Request, exc: LifecycleError):
    """Report caller-facing lifecycle errors verbatim."""
    status_code = ERROR_STATUS_CODES.get(type(exc), status.HTTP_400_BAD_REQUEST)
    headers = {"WWW-Authenticate": "Bearer"} if status_code == status.HTTP_401_UNAUTHORIZED else None
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(
            error=exc.code,
            message=str(exc),
            details=[],
        ).model_dump(),
        headers=headers,
    )


# Global exception handler
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Handle unexpected exceptions."""
    logger.exception(f"Unhandled exception on {request.method} {request.url.path}")

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=ErrorResponse(
            error="internal_error",
            message=f"An unexpected error occurred: {str(exc)[:200]}",
            details=[],
        ).model_dump(),
    )


# Health check endpoint
@app.get("/health", tags=["health"])
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "version": settings.app_version}


# Include API routes
app.include_router(api_router, prefix=settings.api_prefix)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "station_navet.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.debug,
    )
