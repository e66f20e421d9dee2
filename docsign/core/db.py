# docsign/core/db.py

from sqlalchemy import Column, DateTime, func
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import declarative_base, declared_attr

from docsign.core.config import settings
from docsign.utils.logger import get_logger

# --- Configure logging ---
logger = get_logger(__name__)

# --- Create declarative base ---
Base = declarative_base()


# --- Mixins ---
class AuditMixin:
    """Mixin for record timestamps."""

    @declared_attr
    def created_on(cls):
        """
        Column for the timestamp when this record was created
        """
        return Column(
            DateTime(timezone=True),
            server_default=func.now(),
            comment="Timestamp when this record was created",
        )

    @declared_attr
    def updated_on(cls):
        """
        Column for the timestamp when this record was last updated
        """
        return Column(
            DateTime(timezone=True),
            onupdate=func.now(),
            server_default=func.now(),
            comment="Timestamp when this record was last updated",
        )
# --- End of Mixins ---


# --- Asynchronous database setup ---
async_engine = create_async_engine(settings.async_db_url, echo=False, future=True)
AsyncSessionLocal = async_sessionmaker(
    bind=async_engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autocommit=False,
    autoflush=False,
)


def get_session_factory() -> async_sessionmaker:
    """
    Session factory used by code that opens its own transactions (auto-sign fan-out, outbox dispatch)
    """
    return AsyncSessionLocal


async def get_async_db():
    """
    Async method for obtaining database session object
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
            await session.commit()
        except Exception as e:
            await session.rollback()
            logger.error("Error in async DB transaction", error_message=str(e))
            raise e
        finally:
            await session.close()


async def create_tables() -> None:
    """
    Create all tables that do not exist yet. Only used outside production.
    """
    async with async_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables ensured")
