from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.pool import StaticPool

from storefront.config import settings


def make_engine(url: str, echo: bool = False) -> AsyncEngine:
    # An in-memory SQLite database only lives as long as its single connection
    if url.endswith(":memory:") or url.endswith("://"):
        return create_async_engine(
            url, echo=echo, poolclass=StaticPool, connect_args={"check_same_thread": False}
        )
    return create_async_engine(url, echo=echo)


engine = make_engine(settings.STORAGE_URL, echo=settings.DEBUG)
async_session = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


class Base(DeclarativeBase):
    pass


async def init_db(db_engine: AsyncEngine | None = None):
    db_engine = db_engine or engine
    if db_engine is engine and settings.STORAGE_URL.startswith("sqlite"):
        settings.DATA_DIR.mkdir(parents=True, exist_ok=True)
    async with db_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
