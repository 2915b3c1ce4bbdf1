from __future__ import annotations

import logging

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse

from .routes_auth import router as auth_router
from .routes_entries import router as entries_router
from .routes_uploads import router as uploads_router
from .routes_users import router as users_router
from .routes_videos import router as videos_router
from .services.errors import (
    AuthenticationRequired,
    ExternalCollaboratorError,
    NotFoundError,
    PermissionDenied,
    ValidationError,
)
from .settings import get_settings

logger = logging.getLogger("watchdo")

settings = get_settings()
app = FastAPI(title=settings.app_name)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(ValidationError)
async def validation_error_handler(request: Request, exc: ValidationError):
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={"error": exc.message, "field": exc.field},
    )


@app.exception_handler(NotFoundError)
async def not_found_handler(request: Request, exc: NotFoundError):
    return JSONResponse(status_code=status.HTTP_404_NOT_FOUND, content={"error": exc.message})


@app.exception_handler(PermissionDenied)
async def permission_denied_handler(request: Request, exc: PermissionDenied):
    return JSONResponse(status_code=status.HTTP_403_FORBIDDEN, content={"error": exc.message})


@app.exception_handler(AuthenticationRequired)
async def authentication_required_handler(request: Request, exc: AuthenticationRequired):
    return JSONResponse(
        status_code=status.HTTP_401_UNAUTHORIZED,
        content={"error": exc.message},
        headers={"WWW-Authenticate": "Bearer"},
    )


@app.exception_handler(ExternalCollaboratorError)
async def external_error_handler(request: Request, exc: ExternalCollaboratorError):
    logger.warning("External collaborator failed on %s %s: %s", request.method, request.url, exc.message)
    return JSONResponse(
        status_code=status.HTTP_502_BAD_GATEWAY,
        content={"error": exc.message, "retryable": exc.retryable},
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url)
    return PlainTextResponse("Internal Server Error", status_code=500)


@app.get("/ping")
async def ping():
    return {"status": "ok"}


app.include_router(auth_router)
app.include_router(videos_router)
app.include_router(entries_router)
app.include_router(uploads_router)
app.include_router(users_router)


@app.on_event("startup")
async def startup_event():
    """Start scheduler on app startup."""
    logger.info(f"[startup] {settings.app_name} starting, environment={settings.environment}")
    from watchdo.services.scheduler import scheduler_service
    scheduler_service.configure(settings.async_database_url)
    scheduler_service.start()


@app.on_event("shutdown")
async def shutdown_event():
    """Stop scheduler on app shutdown."""
    from watchdo.services.scheduler import scheduler_service
    scheduler_service.stop()
