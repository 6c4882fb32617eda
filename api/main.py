"""FastAPI application setup."""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from api.rate_limit import SlidingWindowRateLimiter
from api.schemas import envelope
from config import get_settings
from core.errors import GoalAchieverError
from core.models import utcnow
from core.repository import InMemoryRepository, Repository

logger = logging.getLogger(__name__)


HTTP_ERROR_CODES = {
    400: "BAD_REQUEST",
    401: "UNAUTHORIZED",
    403: "FORBIDDEN",
    404: "NOT_FOUND",
    405: "METHOD_NOT_ALLOWED",
}


def error_body(code: str, message: str, **extra) -> dict:
    body = {"success": False, "error": code, "message": message}
    body.update({k: v for k, v in extra.items() if v is not None})
    return body


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator:
    """Application lifespan handler."""
    # Startup
    logger.info("Starting Goal Achiever API server...")
    yield
    # Shutdown
    logger.info("Shutting down Goal Achiever API server...")


def register_exception_handlers(app: FastAPI) -> None:
    """Render every failure in the standard error envelope."""

    @app.exception_handler(GoalAchieverError)
    async def domain_error_handler(request: Request, exc: GoalAchieverError):
        if exc.status_code >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
        headers = None
        retry_after = getattr(exc, "retry_after", None)
        if retry_after:
            headers = {"Retry-After": str(retry_after)}
        return JSONResponse(
            status_code=exc.status_code,
            content=error_body(exc.error_code, exc.message, retry_after=retry_after),
            headers=headers
        )

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        errors = exc.errors()
        first = errors[0] if errors else {}
        location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        message = first.get("msg", "Validation failed")
        if location:
            message = f"{location}: {message}"
        details = [
            {"loc": list(e.get("loc", ())), "msg": e.get("msg"), "type": e.get("type")}
            for e in errors
        ]
        return JSONResponse(
            status_code=400,
            content=error_body("VALIDATION_ERROR", message, details=details)
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        code = HTTP_ERROR_CODES.get(exc.status_code, "HTTP_ERROR")
        message = exc.detail if isinstance(exc.detail, str) else "Request failed"
        if exc.status_code == 404 and message == "Not Found":
            message = f"Not found - {request.url.path}"
        return JSONResponse(
            status_code=exc.status_code,
            content=error_body(code, message),
            headers=getattr(exc, "headers", None)
        )

    @app.exception_handler(Exception)
    async def unexpected_error_handler(request: Request, exc: Exception):
        logger.exception(f"Unhandled error on {request.method} {request.url.path}: {exc}")
        return JSONResponse(
            status_code=500,
            content=error_body("INTERNAL_ERROR", "Internal server error")
        )


def create_app(repository: Optional[Repository] = None) -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="Goal Achiever API",
        description="Goals, learning journeys, scheduled check-ins and an AI tutor",
        version="1.0.0",
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc"
    )

    app.state.repository = repository or InMemoryRepository()
    app.state.rate_limiter = SlidingWindowRateLimiter()
    app.state.tutor_agent = None

    # Configure CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app)

    # Include routers
    from api.routes import ai_tutor, auth, checkins, goals, journeys

    app.include_router(auth.router, prefix="/api/auth", tags=["Auth"])
    # Before goals, so /journeys is not read as a goal id
    app.include_router(journeys.router, prefix="/api/goals", tags=["Journeys"])
    app.include_router(goals.router, prefix="/api/goals", tags=["Goals"])
    app.include_router(checkins.router, prefix="/api/checkin", tags=["Check-ins"])
    app.include_router(ai_tutor.router, prefix="/api/ai-tutor", tags=["AI Tutor"])

    @app.get("/api/health")
    async def health_check():
        """Health check endpoint."""
        return envelope({
            "status": "healthy",
            "environment": settings.environment,
            "ai_mode": "mock" if settings.use_mock_ai else "bedrock",
            "timestamp": utcnow().isoformat(),
        })

    return app


# Create default app instance
app = create_app()


if __name__ == "__main__":
    import uvicorn
    settings = get_settings()

    uvicorn.run(
        "api.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug
    )
