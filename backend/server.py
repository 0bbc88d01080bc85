import logging
import os
import traceback
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import APIRouter, FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.cors import CORSMiddleware

from bootstrap import run_bootstrap_migrations
from config import Settings
from database import build_engine, build_session_factory
from emailer import Mailer
from errors import ServiceError
from routers import admin, downloads, emails, payments, teams, verification

logger = logging.getLogger(__name__)

API_TITLE = "SUST CSE Carnival 2026 API"


def _error_body(message: str, **extra) -> dict:
    body = {"status": "error", "message": message}
    body.update({key: value for key, value in extra.items() if value is not None})
    return body


def _validation_errors(exc: RequestValidationError) -> list:
    errors = []
    for error in exc.errors():
        location = [str(part) for part in error.get("loc", ()) if part != "body"]
        errors.append({"path": ".".join(location), "message": error.get("msg", "Invalid value")})
    return errors


def install_error_handlers(app: FastAPI, settings: Settings) -> None:
    @app.exception_handler(ServiceError)
    async def service_error_handler(request: Request, exc: ServiceError):
        if exc.kind.status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc.detail)
        return JSONResponse(
            status_code=exc.kind.status_code,
            content=_error_body(exc.detail, errors=exc.errors),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content=_error_body("Validation error", errors=_validation_errors(exc)),
        )

    @app.exception_handler(IntegrityError)
    async def integrity_error_handler(request: Request, exc: IntegrityError):
        logger.warning("Integrity error on %s %s: %s", request.method, request.url.path, exc.orig)
        return JSONResponse(
            status_code=status.HTTP_409_CONFLICT,
            content=_error_body("Duplicate field value entered"),
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        return JSONResponse(
            status_code=exc.status_code,
            content=_error_body(str(exc.detail)),
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        if settings.is_production:
            content = _error_body("Internal server error")
        else:
            content = _error_body("Internal server error", error=str(exc), stack=traceback.format_exc())
        return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content=content)


def create_app(settings: Optional[Settings] = None, mailer: Optional[Mailer] = None) -> FastAPI:
    logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
    settings = settings or Settings.from_env()

    engine = build_engine(settings.database_url)
    session_factory = build_session_factory(engine)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        run_bootstrap_migrations(engine, session_factory, settings)
        logger.info("%s started (%s)", API_TITLE, settings.app_env)
        yield
        engine.dispose()

    app = FastAPI(title=API_TITLE, version="1.0.0", lifespan=lifespan)
    app.state.settings = settings
    app.state.engine = engine
    app.state.session_factory = session_factory
    app.state.mailer = mailer or Mailer(settings.smtp_primary, settings.smtp_secondary)

    install_error_handlers(app, settings)

    api_router = APIRouter(prefix="/api")

    @api_router.get("/")
    async def root():
        return {"message": f"{API_TITLE} is running"}

    @api_router.get("/health")
    async def health_check():
        return {"status": "healthy"}

    for module in (admin, teams, payments, emails, downloads, verification):
        api_router.include_router(module.router)

    app.include_router(api_router)

    app.add_middleware(
        CORSMiddleware,
        allow_credentials=True,
        allow_origins=[origin.strip() for origin in settings.frontend_url.split(',') if origin.strip()],
        allow_methods=["*"],
        allow_headers=["*"],
    )
    return app


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(create_app(), host="0.0.0.0", port=int(os.environ.get("PORT", 8000)))
