"""Database engine, session factory, and declarative base.

The external store owns these tables and enforces row-level visibility
itself. This package only reads them:
  - PublicBase  → profiles, organizations, outlets, outlet_users
  - get_db()    → FastAPI dependency yielding a read session
"""

from typing import AsyncGenerator

from sqlalchemy.ext.asyncio import (
    AsyncSession,
    create_async_engine,
    async_sessionmaker,
)
from sqlalchemy.orm import DeclarativeBase

from eop_access.config import settings

engine = create_async_engine(
    settings.database_url,
    echo=settings.debug,
    pool_pre_ping=True,
)

async_session = async_sessionmaker(
    engine, class_=AsyncSession, expire_on_commit=False
)


class PublicBase(DeclarativeBase):
    """Models that live in the store's `public` schema."""
    pass


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Yield a session for the request. Read-only: always rolled back."""
    async with async_session() as session:
        try:
            yield session
        finally:
            await session.rollback()
