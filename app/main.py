import logging

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.api.router import api_router
from app.core.config import settings
from app.core.exceptions import ChatAppError, ValidationError
from app.db.async_session import shutdown_async_database, startup_async_database

logger = logging.getLogger(__name__)

app = FastAPI(
    title=settings.PROJECT_NAME,
    description=settings.PROJECT_DESCRIPTION,
    version=settings.VERSION,
    openapi_url=f"{settings.API_PREFIX}/openapi.json",
    docs_url=f"{settings.API_PREFIX}/docs",
    redoc_url=f"{settings.API_PREFIX}/redoc",
    redirect_slashes=False,
)

# Session cookies are sent cross-origin only to explicitly listed origins
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(api_router, prefix=settings.API_PREFIX)


def error_response(error: ChatAppError) -> JSONResponse:
    body = {"error": error.message}
    if error.code:
        body["code"] = error.code
    return JSONResponse(status_code=error.status_code, content=body)


@app.exception_handler(ChatAppError)
async def chat_app_error_handler(request: Request, exc: ChatAppError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}",
                     exc_info=exc.original_error)
    return error_response(exc)


@app.exception_handler(RequestValidationError)
async def request_validation_error_handler(request: Request, exc: RequestValidationError):
    error = ValidationError("Invalid request body", code="validation_error")
    return JSONResponse(
        status_code=error.status_code,
        content={"error": error.message, "code": error.code, "details": jsonable_encoder(exc.errors())},
    )


@app.on_event("startup")
async def startup_event():
    """Initialize services on application startup."""
    try:
        logger.info("Starting up Chat Relay API...")
        await startup_async_database()
        logger.info("Chat Relay API startup completed successfully")
    except Exception as e:
        logger.error(f"Failed to start up application: {e}")
        raise


@app.on_event("shutdown")
async def shutdown_event():
    """Clean up services on application shutdown."""
    logger.info("Shutting down Chat Relay API...")
    await shutdown_async_database()
    logger.info("Chat Relay API shutdown completed successfully")


@app.get("/")
async def root():
    """Health check endpoint."""
    return {"status": "ok", "message": "Welcome to Chat Relay API"}
