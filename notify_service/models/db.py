from typing import AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.orm import declarative_base

from notify_service.core.config import settings

Base = declarative_base()

engine_kwargs = {
    "echo": settings.DB_ECHO,
    "future": True,
}

if not settings.DATABASE_URL.startswith("sqlite"):
    engine_kwargs.update({
        "pool_pre_ping": True,
        "pool_recycle": 3600,
        "pool_size": 10,
        "max_overflow": 20,
    })

engine = create_async_engine(settings.DATABASE_URL, **engine_kwargs)

SessionLocal = async_sessionmaker(
    engine,
    expire_on_commit=False,
    class_=AsyncSession
)


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """Request-scoped database session dependency"""
    async with SessionLocal() as session:
        try:
            yield session
        finally:
            await session.close()


async def init_models(bind=None) -> None:
    """Create missing tables (idempotent)."""
    # register all mapped classes on Base.metadata
    from notify_service.models import notification  # noqa: F401

    async with (bind or engine).begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
