# app/database.py

import logging
from typing import AsyncIterator

from fastapi import Request
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.models import Base

logger = logging.getLogger(__name__)


def create_engine(database_url: str) -> AsyncEngine:
    """Builds the async engine; in-memory SQLite shares one connection across sessions."""
    if database_url.startswith("sqlite"):
        if ":memory:" in database_url:
            return create_async_engine(database_url, echo=False, poolclass=StaticPool)
        return create_async_engine(database_url, echo=False)

    return create_async_engine(
        database_url,
        echo=False,
        pool_size=20,
        max_overflow=30,
    )


def create_session_factory(engine: AsyncEngine) -> sessionmaker:
    return sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def init_models(engine: AsyncEngine) -> None:
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database schema ready")


async def get_session(request: Request) -> AsyncIterator[AsyncSession]:
    """Yields a session bound to the application's engine."""
    async with request.app.state.session_factory() as session:
        yield session
