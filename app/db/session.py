from typing import AsyncGenerator, Dict

from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base

from app.core.config import settings


def engine_options(database_url: str) -> Dict:
    """Pool settings per backend. SQLite (local runs and tests) has no server to drop idle connections."""
    if make_url(database_url).get_backend_name() == "sqlite":
        return {"connect_args": {"check_same_thread": False}}
    # pool_pre_ping: check the connection is alive before use.
    # pool_recycle: discard connections older than this many seconds.
    return {"pool_pre_ping": True, "pool_recycle": settings.db_pool_recycle}


engine = create_async_engine(
    settings.database_url,
    echo=settings.db_echo,
    future=True,
    **engine_options(settings.database_url),
)

AsyncSessionLocal = async_sessionmaker(
    bind=engine,
    class_=AsyncSession,
    expire_on_commit=False,
)

Base = declarative_base()


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    async with AsyncSessionLocal() as session:
        yield session
