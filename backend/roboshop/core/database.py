from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import declarative_base

from roboshop.core.config import DATABASE_URL, DATABASE_ECHO

# Create async engine
engine = create_async_engine(
    DATABASE_URL,
    echo=DATABASE_ECHO,
    future=True
)

# Create session factory
AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False
)

# Base class for models
Base = declarative_base()


async def create_tables():
    """Create missing tables (local development; production uses alembic)."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
