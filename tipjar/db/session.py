from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from tipjar.core.config import settings

engine = create_async_engine(
    settings.DATABASE_URL,
    pool_pre_ping=True,
    pool_size=5,
    max_overflow=10,
)

AsyncSessionLocal = async_sessionmaker(
    engine,
    expire_on_commit=False,
)

# FastAPI dependency
async def get_async_db() -> AsyncSession:
    async with AsyncSessionLocal() as session:
        yield session
