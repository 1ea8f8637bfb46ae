# app/main.py

import logging
from contextlib import asynccontextmanager
from datetime import timedelta
from typing import Optional

from fastapi import FastAPI

from app.core.access import build_access_rules
from app.core.config import Settings, settings
from app.database import create_engine, create_session_factory, init_models
from app.routers import auth, files, products, system, users
from app.services.file_storage import FileStorageService
from app.services.user_service import seed_admin
from guard.identity import TokenService
from guard.pipeline import InMemoryRateLimiter, InspectionPipeline, RateLimiter, RedisRateLimiter, build_inspectors

logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


def build_rate_limiter(app_settings: Settings) -> RateLimiter:
    if app_settings.RATE_LIMIT_BACKEND == "redis":
        logger.info("Using Redis rate limit backend")
        return RedisRateLimiter.from_url(
            app_settings.REDIS_URL,
            limit=app_settings.RATE_LIMIT_REQUESTS,
            window_seconds=app_settings.RATE_LIMIT_WINDOW_SECONDS,
        )

    return InMemoryRateLimiter(
        limit=app_settings.RATE_LIMIT_REQUESTS,
        window_seconds=app_settings.RATE_LIMIT_WINDOW_SECONDS,
    )


def build_token_service(app_settings: Settings) -> TokenService:
    return TokenService(
        secret=app_settings.JWT_SECRET,
        issuer=app_settings.JWT_ISSUER,
        audience=app_settings.JWT_AUDIENCE,
        ttl=timedelta(minutes=app_settings.ACCESS_TOKEN_EXPIRE_MINUTES),
        algorithm=app_settings.ALGORITHM,
    )


def create_app(app_settings: Optional[Settings] = None) -> FastAPI:
    """
    Build an isolated application: its own engine, rate limiter and token service.
    """
    app_settings = app_settings or settings

    tokens = build_token_service(app_settings)
    limiter = build_rate_limiter(app_settings)
    engine = create_engine(app_settings.DATABASE_URL)
    session_factory = create_session_factory(engine)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """
        Manages application startup and shutdown events.
        """
        # On startup: create tables and seed the initial admin if configured
        await init_models(engine)
        if app_settings.ADMIN_INITIAL_PASSWORD:
            async with session_factory() as session:
                await seed_admin(
                    session,
                    app_settings.ADMIN_USERNAME,
                    app_settings.ADMIN_EMAIL,
                    app_settings.ADMIN_INITIAL_PASSWORD,
                )

        logger.info(
            "%s %s started env=%s rate_limit=%d/%ds backend=%s",
            app_settings.PROJECT_NAME,
            app_settings.PROJECT_VERSION,
            app_settings.APP_ENV,
            app_settings.RATE_LIMIT_REQUESTS,
            app_settings.RATE_LIMIT_WINDOW_SECONDS,
            app_settings.RATE_LIMIT_BACKEND,
        )

        try:
            yield
        finally:
            # On shutdown: release the limiter backend and the connection pool
            await limiter.close()
            await engine.dispose()

    app = FastAPI(
        title=app_settings.PROJECT_NAME,
        version=app_settings.PROJECT_VERSION,
        openapi_url=f"{app_settings.API_V1_STR}/openapi.json",
        description="Users, products and file storage behind an inbound request inspection pipeline",
        lifespan=lifespan,
        openapi_tags=[
            {"name": "Authentication", "description": "Registration, login and account management."},
            {"name": "Users", "description": "Administrative user management."},
            {"name": "Products", "description": "Product catalogue and stock."},
            {"name": "Files", "description": "Per-user file upload and download."},
            {"name": "System", "description": "System health."},
        ],
    )

    app.state.settings = app_settings
    app.state.tokens = tokens
    app.state.rate_limiter = limiter
    app.state.engine = engine
    app.state.session_factory = session_factory
    app.state.file_storage = FileStorageService(
        app_settings.UPLOAD_DIR,
        max_file_bytes=app_settings.MAX_UPLOAD_BYTES,
        allowed_extensions=app_settings.ALLOWED_UPLOAD_EXTENSIONS,
    )

    # Every request passes the inspection pipeline before reaching a router
    app.add_middleware(
        InspectionPipeline,
        inspectors=build_inspectors(
            tokens=tokens,
            limiter=limiter,
            access_rules=build_access_rules(app_settings.API_V1_STR),
            allowed_origins=app_settings.CORS_ORIGINS,
            max_body_bytes=app_settings.MAX_REQUEST_BODY_BYTES,
            enforce_https=app_settings.ENFORCE_HTTPS,
            https_port=app_settings.HTTPS_PORT,
            trust_forwarded=app_settings.RATE_LIMIT_TRUST_FORWARDED,
        ),
    )

    # Include all the routers
    app.include_router(auth.router, prefix=app_settings.API_V1_STR)
    app.include_router(users.router, prefix=app_settings.API_V1_STR)
    app.include_router(products.router, prefix=app_settings.API_V1_STR)
    app.include_router(files.router, prefix=app_settings.API_V1_STR)
    app.include_router(system.router, prefix=app_settings.API_V1_STR)

    return app


app = create_app()
