import asyncio
import logging
import time
from datetime import datetime, timezone
from typing import AsyncGenerator, Optional

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from app.core.config import settings

logger = logging.getLogger(__name__)


class AsyncDatabaseManager:
    """
    Manages the async engine and session factory for the conversation store.

    One instance exists per process. Request handlers get sessions through
    get_async_db; work that outlives the request (the post-stream persistence
    hook) opens its own session from session_factory.
    """

    def __init__(self, database_url: Optional[str] = None):
        self.async_engine = None
        self.async_session_factory: Optional[async_sessionmaker] = None
        self._is_initialized = False
        self._initialize_engine(database_url or settings.async_database_url)

    def _initialize_engine(self, async_db_url: str):
        """Initialize the async database engine."""
        if not async_db_url:
            raise ValueError("Async database URL is not configured")

        # Replace any escaped colons in the URL
        async_db_url = async_db_url.replace("\\x3a", ":")

        logger.info(f"Initializing async database engine with URL: {async_db_url[:50]}...")
        logger.info(f"Environment: {settings.ENVIRONMENT}")

        engine_kwargs = {
            "echo": settings.ASYNC_DB_ECHO,
            "pool_pre_ping": settings.ASYNC_DB_POOL_PRE_PING,
        }
        if async_db_url.startswith("postgresql+asyncpg://"):
            engine_kwargs.update(
                pool_size=settings.ASYNC_DB_POOL_SIZE,
                max_overflow=settings.ASYNC_DB_MAX_OVERFLOW,
                pool_recycle=settings.ASYNC_DB_POOL_RECYCLE,
                pool_timeout=settings.ASYNC_DB_POOL_TIMEOUT,
                connect_args={
                    "server_settings": {"application_name": "chat_relay_backend"},
                    "command_timeout": 60,
                },
            )

        try:
            self.async_engine = create_async_engine(async_db_url, **engine_kwargs)
            self.async_session_factory = async_sessionmaker(
                bind=self.async_engine,
                class_=AsyncSession,
                expire_on_commit=False,  # Keep objects accessible after commit
                autoflush=False,
            )
            self._is_initialized = True
            logger.info("Async database engine initialized successfully")
        except Exception as e:
            logger.error(f"Failed to initialize async database engine: {e}")
            raise

    @property
    def session_factory(self) -> async_sessionmaker:
        if not self._is_initialized:
            raise RuntimeError("AsyncDatabaseManager is not initialized")
        return self.async_session_factory

    async def get_async_session(self) -> AsyncGenerator[AsyncSession, None]:
        """
        Yield a session that is rolled back on error and always closed.

        Raises:
            RuntimeError: If the database manager is not initialized
            SQLAlchemyError: For database-related errors
        """
        async with self.session_factory() as session:
            try:
                yield session
            except SQLAlchemyError as e:
                await session.rollback()
                logger.error(f"Database error in session: {e}")
                raise
            except Exception:
                await session.rollback()
                raise

    async def test_connection(self) -> bool:
        """Run a trivial query; False if the store is unreachable."""
        try:
            async with self.session_factory() as session:
                await session.execute(text("SELECT 1"))
                return True
        except Exception as e:
            logger.error(f"Database connection test failed: {e}")
            return False

    async def close(self):
        """Dispose of the engine and all pooled connections."""
        if self.async_engine:
            try:
                await self.async_engine.dispose()
                logger.info("Async database engine disposed successfully")
            except Exception as e:
                logger.error(f"Error disposing async database engine: {e}")
            finally:
                self._is_initialized = False
                self.async_engine = None
                self.async_session_factory = None


# Global async database manager instance (singleton pattern)
_async_db_manager: Optional[AsyncDatabaseManager] = None
_manager_lock = asyncio.Lock()


async def get_async_db_manager() -> AsyncDatabaseManager:
    """Get or create the global async database manager instance."""
    global _async_db_manager

    if _async_db_manager is None:
        async with _manager_lock:
            # Double-check locking pattern
            if _async_db_manager is None:
                _async_db_manager = AsyncDatabaseManager()
                logger.info("Created new AsyncDatabaseManager singleton instance")

    return _async_db_manager


async def close_async_db_manager():
    global _async_db_manager

    if _async_db_manager is not None:
        await _async_db_manager.close()
        _async_db_manager = None


async def get_async_db() -> AsyncGenerator[AsyncSession, None]:
    """
    FastAPI dependency for a request-scoped async database session.

    Example:
        @router.get("/conversations")
        async def list_conversations(db: AsyncSession = Depends(get_async_db)):
            ...
    """
    manager = await get_async_db_manager()
    async for session in manager.get_async_session():
        yield session


async def get_session_factory() -> async_sessionmaker:
    """FastAPI dependency for the session factory itself.

    Used by streaming routes whose side effects run after the request-scoped
    session may already be closed.
    """
    manager = await get_async_db_manager()
    return manager.session_factory


async def startup_async_database():
    """Initialize the manager and verify connectivity on application startup."""
    try:
        logger.info("Starting async database initialization...")
        manager = await get_async_db_manager()

        if not await manager.test_connection():
            raise RuntimeError("Failed to establish database connection during startup")

        logger.info("Async database startup completed")
    except Exception as e:
        logger.error(f"Failed to initialize async database during startup: {e}")
        raise


async def shutdown_async_database():
    """Clean up async database connections on application shutdown."""
    try:
        logger.info("Starting async database shutdown...")
        await close_async_db_manager()
        logger.info("Async database shutdown completed successfully")
    except Exception as e:
        logger.error(f"Error during async database shutdown: {e}")


async def check_async_database_health() -> dict:
    """
    Check that the conversation store answers a trivial query.

    Returns:
        dict: e.g. {"status": "healthy", "connection_test": True,
                    "response_time_ms": 3.1, "timestamp": "..."}
    """
    start_time = time.time()
    health_status = {
        "status": "unhealthy",
        "connection_test": False,
        "response_time_ms": 0,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }

    manager = await get_async_db_manager()
    connection_test = await manager.test_connection()

    health_status["connection_test"] = connection_test
    health_status["response_time_ms"] = round((time.time() - start_time) * 1000, 2)
    if connection_test:
        health_status["status"] = "healthy"

    return health_status
