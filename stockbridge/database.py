# stockbridge/database.py

from functools import lru_cache

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base

from stockbridge.core.config import get_settings

Base = declarative_base()


def normalize_database_url(database_url: str) -> str:
    """Convert postgresql:// to postgresql+asyncpg:// for async support"""
    if database_url.startswith('postgres://'):
        database_url = database_url.replace('postgres://', 'postgresql://', 1)
    if database_url.startswith('postgresql://'):
        database_url = database_url.replace('postgresql://', 'postgresql+asyncpg://', 1)
    return database_url


def build_engine(database_url: str) -> AsyncEngine:
    database_url = normalize_database_url(database_url)
    if database_url.startswith('sqlite'):
        return create_async_engine(database_url, echo=False)
    return create_async_engine(
        database_url,
        echo=False,
        pool_size=10,
        max_overflow=20,
        pool_timeout=30,
        pool_recycle=1800,
    )


@lru_cache()
def get_engine() -> AsyncEngine:
    database_url = get_settings().DATABASE_URL
    if not database_url:
        raise ValueError("DATABASE_URL is not set in environment variables")
    return build_engine(database_url)


def build_session_factory(engine: AsyncEngine) -> async_sessionmaker:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@lru_cache()
def get_session_factory() -> async_sessionmaker:
    return build_session_factory(get_engine())
