"""Database engine and session factory."""

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from donation_matrix.config.settings import settings


def create_engine():
    """Create the async engine from settings."""
    return create_async_engine(
        settings.database_url,
        echo=settings.database_echo,
        pool_pre_ping=True,
    )


def create_session_maker(engine=None):
    """Create a session maker bound to the engine."""
    if engine is None:
        engine = create_engine()
    return async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


engine = create_engine()
async_session_maker = create_session_maker(engine)
