# backend/app/db/session.py

from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker

from app.config.settings import settings
from app.db.models import Base

engine = create_async_engine(settings.database_url, echo=False)
AsyncSessionLocal = async_sessionmaker(autoflush=False, bind=engine, expire_on_commit=False)


async def create_all() -> None:
    """Create missing tables on startup."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
