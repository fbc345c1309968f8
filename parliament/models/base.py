"""Declarative base, column helpers and the async database session."""

import uuid
from datetime import datetime, timezone
from typing import Annotated, AsyncIterator

from sqlalchemy import DateTime, String, func
from sqlalchemy.ext.asyncio import (
    AsyncAttrs,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from parliament.core.config import get_settings

settings = get_settings()


def generate_uuid() -> str:
    return str(uuid.uuid4())


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def to_iso(value: datetime | None) -> str | None:
    """ISO-8601 with millisecond precision and a ``Z`` suffix; naive values are UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return (
        value.astimezone(timezone.utc)
        .isoformat(timespec="milliseconds")
        .replace("+00:00", "Z")
    )


def utc_now_iso() -> str:
    return to_iso(utc_now())


uuid_pk = Annotated[
    str,
    mapped_column(String(36), primary_key=True, default=generate_uuid),
]

created_at_column = Annotated[
    datetime,
    mapped_column(
        DateTime(timezone=True),
        default=utc_now,
        server_default=func.now(),
    ),
]

updated_at_column = Annotated[
    datetime,
    mapped_column(
        DateTime(timezone=True),
        default=utc_now,
        onupdate=utc_now,
        server_default=func.now(),
    ),
]


class Base(AsyncAttrs, DeclarativeBase):
    """Base class for all tables."""


class TimestampMixin:
    """created_at / updated_at columns."""

    created_at: Mapped[created_at_column]
    updated_at: Mapped[updated_at_column]


engine = create_async_engine(settings.database_url, echo=settings.debug)

AsyncSessionLocal = async_sessionmaker(engine, expire_on_commit=False)


async def get_db() -> AsyncIterator[AsyncSession]:
    """FastAPI dependency yielding one session per request."""
    async with AsyncSessionLocal() as session:
        try:
            yield session
        finally:
            await session.close()


async def init_db() -> None:
    """Create all tables (development / sqlite deployments)."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def dispose_db() -> None:
    await engine.dispose()
