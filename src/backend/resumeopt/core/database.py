from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from resumeopt.models.orm import Base


class Database:
    """Owns the engine and session factory handed to every component."""

    def __init__(self, url: str, **engine_kwargs) -> None:
        if not url.startswith("sqlite"):
            engine_kwargs.setdefault("pool_size", 20)
            engine_kwargs.setdefault("max_overflow", 5)
        self.engine = create_async_engine(url, **engine_kwargs)
        self.sessionmaker = async_sessionmaker(self.engine, class_=AsyncSession, expire_on_commit=False)

    def session(self) -> AsyncSession:
        return self.sessionmaker()

    async def create_all(self) -> None:
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def dispose(self) -> None:
        await self.engine.dispose()
