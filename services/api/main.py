from pathlib import Path

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger

from core.exceptions import FacesightError
from core.logging_config import setup_logging
from core.settings import Settings, get_settings
from services.api.exception_handlers import facesight_exception_handler, unhandled_exception_handler
from services.api.middleware import RateLimitMiddleware, SecurityHeadersMiddleware
from services.api.routes import router
from services.api.utils import get_coordinator


def _cors_origins(ui_origin: str) -> list[str]:
    origins = {ui_origin, "http://localhost:3000", "http://127.0.0.1:3000"}
    if "localhost" in ui_origin:
        origins.add(ui_origin.replace("localhost", "127.0.0.1"))
    elif "127.0.0.1" in ui_origin:
        origins.add(ui_origin.replace("127.0.0.1", "localhost"))
    return sorted(origins)


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or get_settings()

    setup_logging(
        level=settings.logging.level,
        json_format=settings.logging.json_format,
        log_file=Path(settings.logging.file) if settings.logging.file else None,
    )

    app = FastAPI(
        title="Facesight API",
        version="0.1.0",
        description="Image upload and result polling for asynchronous face analysis",
    )

    if settings.api.rate_limit_enabled:
        app.add_middleware(
            RateLimitMiddleware,
            requests_per_minute=settings.api.rate_limit_per_minute,
            requests_per_hour=settings.api.rate_limit_per_hour,
        )

    app.add_middleware(SecurityHeadersMiddleware)

    # CORS middleware - add LAST so it executes FIRST (FastAPI executes middleware in reverse order)
    cors_origins = _cors_origins(settings.api.ui_origin)
    logger.info(f"CORS allowed origins: {cors_origins}")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.on_event("startup")
    async def _init_default_storage() -> None:
        coordinator = app.dependency_overrides.get(get_coordinator, get_coordinator)()
        logger.info(
            "API initialised with bucket={bucket} max_attempts={attempts} interval={interval}s",
            bucket=coordinator.default_target.bucket,
            attempts=coordinator.policy.max_attempts,
            interval=coordinator.policy.interval_seconds,
        )

    @app.on_event("shutdown")
    async def _close_default_storage() -> None:
        if get_coordinator.cache_info().currsize:
            get_coordinator().default_target.storage.close()
            get_coordinator.cache_clear()

    @app.get("/healthz", tags=["meta"])
    async def healthcheck() -> dict[str, str]:
        return {"status": "ok"}

    app.add_exception_handler(FacesightError, facesight_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

    app.include_router(router)

    return app


app = create_app()


__all__ = ["app", "create_app"]
