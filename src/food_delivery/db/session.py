from typing import AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from food_delivery.config import settings


def build_engine(url: str = settings.DATABASE_URL) -> AsyncEngine:
    """
    Движок приложения. pool_pre_ping отсекает соединения, которые Postgres успел закрыть,
    иначе первая транзакция после простоя падает с PersistenceError.
    """
    return create_async_engine(url, echo=settings.SQL_ECHO, pool_pre_ping=True)


engine = build_engine()

# expire_on_commit=False: после коммита заказ читается без ленивых запросов
AsyncSessionLocal = async_sessionmaker(
    bind=engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def get_async_session() -> AsyncGenerator[AsyncSession, None]:
    """
    Сессия на запрос: Depends(get_async_session).
    Коммиты делает слой crud, здесь сессия только открывается и закрывается.
    """
    async with AsyncSessionLocal() as session:
        yield session
