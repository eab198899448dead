"""Main application module for the face matching service."""
import time
import uuid
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Awaitable, Callable

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response

from app.api import router as api_v1_router
from app.api.models.face import ErrorResponse
from app.core.config import settings
from app.core.container import container
from app.core.exceptions import (
    ExtractionFailedError,
    FaceMatchingError,
    InternalFailureError,
    ValidationFailedError,
)
from app.core.logging import (
    REQUEST_ID_HEADER,
    bind_request_context,
    clear_request_context,
    get_logger,
    setup_logging,
)

setup_logging()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[Any, None]:
    """Handle application startup and shutdown events.

    Args:
        app: FastAPI application instance

    Returns:
        AsyncGenerator[Any, None]: Async context manager for app lifecycle
    """
    logger.info(
        "Starting up face matching service",
        version=settings.VERSION,
        environment=settings.ENVIRONMENT,
    )

    await container.initialize()
    logger.info("Initialized application services")

    yield

    logger.info("Shutting down face matching service")
    await container.cleanup()
    logger.info("Cleaned up application resources")


def error_response(status_code: int, code: str, message: str, details: dict) -> JSONResponse:
    body = ErrorResponse(error=code, message=message, details=details)
    return JSONResponse(status_code=status_code, content=body.model_dump())


async def face_matching_error_handler(request: Request, exc: FaceMatchingError) -> JSONResponse:
    """Render domain errors as the standard error envelope."""
    if isinstance(exc, ExtractionFailedError):
        # Extraction internals stay in the server log
        logger.warning(
            "Image could not be processed",
            path=request.url.path,
            error=exc.message,
            details=exc.details
        )
        return error_response(exc.status_code, exc.code, "The image could not be processed", {})

    log = logger.error if exc.status_code >= 500 else logger.info
    log(
        "Request failed",
        path=request.url.path,
        error_code=exc.code,
        status_code=exc.status_code,
        error=exc.message
    )
    return error_response(exc.status_code, exc.code, exc.message, exc.details)


async def request_validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = [
        {"loc": list(error.get("loc", ())), "msg": error.get("msg"), "type": error.get("type")}
        for error in exc.errors()
    ]
    logger.info("Request validation failed", path=request.url.path, errors=errors)
    return error_response(
        ValidationFailedError.status_code,
        ValidationFailedError.code,
        "Request validation failed",
        {"errors": errors}
    )


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(
        "Unexpected error while handling request",
        path=request.url.path,
        error=str(exc),
        exc_info=exc
    )
    return error_response(
        InternalFailureError.status_code,
        InternalFailureError.code,
        "An unexpected error occurred while processing the request",
        {}
    )


app = FastAPI(
    title=settings.PROJECT_NAME,
    version=settings.VERSION,
    openapi_url=f"{settings.API_V1_STR}/openapi.json",
    docs_url="/docs" if settings.ENVIRONMENT == "development" else None,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

@app.middleware("http")
async def request_context(
    request: Request, call_next: Callable[[Request], Awaitable[Response]]
) -> Response:
    """Tag every log entry of a request with its id and echo the id back."""
    request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
    clear_request_context()
    bind_request_context(request_id=request_id, method=request.method, path=request.url.path)

    started = time.perf_counter()
    response = await call_next(request)
    response.headers[REQUEST_ID_HEADER] = request_id
    logger.info(
        "Request handled",
        status_code=response.status_code,
        duration_ms=round((time.perf_counter() - started) * 1000, 1)
    )
    return response


app.add_exception_handler(FaceMatchingError, face_matching_error_handler)
app.add_exception_handler(RequestValidationError, request_validation_error_handler)
app.add_exception_handler(Exception, unhandled_error_handler)

app.include_router(api_v1_router, prefix=settings.API_V1_STR)


@app.get("/health")
@app.get(f"{settings.API_V1_STR}/health")
async def health_check() -> dict:
    """Basic health check endpoint.

    Returns:
        dict: Health status
    """
    logger.info("Health check requested")
    return {"status": "healthy", "services_initialized": container.is_initialized}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("app.main:app", host=settings.HOST, port=settings.PORT, reload=settings.DEBUG)
