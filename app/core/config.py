# app/core/config.py

from __future__ import annotations

import logging
import sys
import warnings
from typing import List, Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings

logger = logging.getLogger(__name__)

# ── Secrets that MUST NOT remain at their default/example values in production ──
_WEAK_JWT_SECRETS = frozenset({
    "change-me",
    "your-super-secret-jwt-key-change-this-in-production",
    "secret",
    "jwt-secret",
    "",
})
_MIN_JWT_SECRET_LENGTH = 32

_DEV_CORS_MARKERS = frozenset({"localhost", "127.0.0.1", "0.0.0.0"})
_RATE_LIMIT_BACKENDS = frozenset({"memory", "redis"})


class Settings(BaseSettings):
    PROJECT_NAME: str = "Secure API"
    PROJECT_VERSION: str = "1.0.0"
    API_V1_STR: str = "/api/v1"

    # ── Environment mode  (development | production) ──
    APP_ENV: str = "development"
    DEBUG: bool = False

    # ── Persistence ──
    DATABASE_URL: str = "sqlite+aiosqlite:///./secure_api.db"
    REDIS_URL: Optional[str] = None

    # ── Tokens ──
    JWT_SECRET: str
    ALGORITHM: str = "HS256"
    JWT_ISSUER: str = "SecureApiVAPT"
    JWT_AUDIENCE: str = "SecureApiVAPTUsers"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60

    # ── Request inspection ──
    MAX_REQUEST_BODY_BYTES: int = 10 * 1024 * 1024
    RATE_LIMIT_REQUESTS: int = 30
    RATE_LIMIT_WINDOW_SECONDS: int = 60
    RATE_LIMIT_BACKEND: str = "memory"
    RATE_LIMIT_TRUST_FORWARDED: bool = False

    CORS_ORIGINS: List[str] = ["https://yourdomain.com"]
    ENFORCE_HTTPS: bool = False
    HTTPS_PORT: Optional[int] = None

    # ── File uploads ──
    UPLOAD_DIR: str = "uploads"
    MAX_UPLOAD_BYTES: int = 10 * 1024 * 1024
    ALLOWED_UPLOAD_EXTENSIONS: List[str] = [".jpg", ".pdf", ".txt"]

    # ── Admin seed control ──
    ADMIN_USERNAME: str = "admin"
    ADMIN_EMAIL: str = "admin@example.com"
    ADMIN_INITIAL_PASSWORD: Optional[str] = None

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"

    @field_validator("CORS_ORIGINS")
    @classmethod
    def _strip_origin_slashes(cls, value: List[str]) -> List[str]:
        return [origin.strip().rstrip("/") for origin in value if origin.strip()]

    @field_validator("ALLOWED_UPLOAD_EXTENSIONS")
    @classmethod
    def _normalize_extensions(cls, value: List[str]) -> List[str]:
        normalized = []
        for ext in value:
            ext = ext.strip().lower()
            if ext and not ext.startswith("."):
                ext = f".{ext}"
            if ext:
                normalized.append(ext)
        return normalized

    @field_validator("RATE_LIMIT_BACKEND")
    @classmethod
    def _check_backend(cls, value: str) -> str:
        value = value.strip().lower()
        if value not in _RATE_LIMIT_BACKENDS:
            raise ValueError(f"RATE_LIMIT_BACKEND must be one of {sorted(_RATE_LIMIT_BACKENDS)}")
        return value

    # ── helpers ──
    @property
    def is_production(self) -> bool:
        return self.APP_ENV.lower().strip() == "production"

    # ── Startup validation ──
    def validate_security(self) -> None:
        """
        Enforce secure-by-default rules.
        In production → hard fail (SystemExit) for P0 violations.
        In development → warning only.
        """
        errors: list[str] = []
        warns: list[str] = []

        # 1) JWT_SECRET
        if self.JWT_SECRET.strip().lower() in _WEAK_JWT_SECRETS or len(self.JWT_SECRET) < _MIN_JWT_SECRET_LENGTH:
            msg = "JWT_SECRET is weak/default. Generate one: openssl rand -hex 32"
            (errors if self.is_production else warns).append(msg)

        # 2) Algorithm – verification only ever accepts HS256
        if self.ALGORITHM != "HS256":
            errors.append(f"ALGORITHM {self.ALGORITHM!r} is not supported; only HS256 is accepted.")

        # 3) CORS origins – all-localhost in production is suspicious
        if self.is_production:
            if not self.CORS_ORIGINS:
                errors.append("CORS_ORIGINS is empty in production mode.")
            elif all(any(marker in origin.lower() for marker in _DEV_CORS_MARKERS) for origin in self.CORS_ORIGINS):
                errors.append(
                    "CORS_ORIGINS contains only dev/localhost origins in production. "
                    "Set real domain origins for production."
                )
            if "*" in self.CORS_ORIGINS:
                errors.append("CORS_ORIGINS must not contain '*' in production mode.")

        # 4) Redis backend needs a URL
        if self.RATE_LIMIT_BACKEND == "redis" and not self.REDIS_URL:
            errors.append("RATE_LIMIT_BACKEND=redis requires REDIS_URL.")

        # Emit warnings
        for w in warns:
            logger.warning("[SECURITY] %s", w)
            warnings.warn(f"[SECURITY] {w}", stacklevel=2)

        # Emit errors – fatal in production, configuration errors are fatal everywhere
        if errors:
            for e in errors:
                logger.error("[SECURITY-FATAL] %s", e)
            print("\n".join(f"FATAL: {e}" for e in errors), file=sys.stderr)
            raise SystemExit(
                f"Startup blocked: {len(errors)} configuration violation(s). "
                "Fix the issues above."
            )


settings = Settings()
settings.validate_security()
