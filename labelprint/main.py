"""Main FastAPI application entry point."""
import logging
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from labelprint.api import auth, routes, users
from labelprint.config import Settings
from labelprint.database import Base, create_db_engine, create_session_factory
from labelprint.logging_setup import setup_logging
# Import models to register them with SQLAlchemy Base
from labelprint.models.audit import AuditEvent  # noqa: F401
from labelprint.models.domain import Order, Product, UserProfile  # noqa: F401
from labelprint.services.errors import LabelPrintError

log = logging.getLogger(__name__)


def _error(status_code: int, code: str, detail) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": code, "detail": detail})


def install_error_handlers(app: FastAPI) -> None:
    """Map every failure kind to exactly one status; never leak a traceback."""

    @app.exception_handler(LabelPrintError)
    async def handle_labelprint_error(request: Request, exc: LabelPrintError):
        if exc.status_code >= 500:
            log.error("%s %s failed: %s", request.method, request.url.path, exc.message)
        else:
            log.debug("%s %s rejected (%s): %s", request.method, request.url.path, exc.code, exc.message)
        return _error(exc.status_code, exc.code, exc.message)

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(request: Request, exc: RequestValidationError):
        return _error(400, "validation_error", jsonable_encoder(exc.errors()))

    @app.exception_handler(SQLAlchemyError)
    async def handle_store_error(request: Request, exc: SQLAlchemyError):
        log.exception("Record store error on %s %s", request.method, request.url.path)
        return _error(500, "internal_error", "Internal Server Error")

    @app.exception_handler(Exception)
    async def handle_unexpected(request: Request, exc: Exception):
        log.exception("Unexpected error on %s %s", request.method, request.url.path)
        return _error(500, "internal_error", "Internal Server Error")


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or Settings.from_env()
    setup_logging(settings.log_level, settings.log_json)

    engine = create_db_engine(settings.database_url)
    # Create database tables
    Base.metadata.create_all(bind=engine)

    app = FastAPI(
        title="labelprint - Label Print Orders",
        description="Records, verifies and audits product-label print orders behind role-gated access.",
        version="0.1.0"
    )
    app.state.settings = settings
    app.state.engine = engine
    app.state.session_factory = create_session_factory(engine)

    if settings.cors_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=settings.cors_origins,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    @app.middleware("http")
    async def write_refreshed_session(request: Request, call_next):
        """Hand a session refreshed during cookie auth back to the browser."""
        response = await call_next(request)
        session = getattr(request.state, "refreshed_session", None)
        if session is not None:
            auth.set_session_cookies(response, session, settings)
        return response

    install_error_handlers(app)

    # Include API routes
    app.include_router(auth.router, prefix="/api", tags=["auth"])
    app.include_router(users.router, prefix="/api", tags=["users"])
    app.include_router(routes.router, prefix="/api", tags=["labelprint"])

    # Health check
    @app.get("/health")
    def health_check():
        return {"status": "healthy", "service": "labelprint"}

    log.info("labelprint started (auth transport: %s)", settings.auth_transport)
    return app


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(create_app(), host="0.0.0.0", port=8000)
