from __future__ import annotations

from typing import AsyncGenerator

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from .config import get_settings


class Base(DeclarativeBase):
	pass


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record) -> None:
	# SQLite ships with foreign keys (and so ON DELETE CASCADE) switched off per connection
	cursor = dbapi_connection.cursor()
	cursor.execute("PRAGMA foreign_keys=ON")
	cursor.close()


def build_engine(url: str, echo: bool = False) -> AsyncEngine:
	engine = create_async_engine(url, echo=echo, future=True)
	if engine.dialect.name == "sqlite":
		event.listen(engine.sync_engine, "connect", _enable_sqlite_foreign_keys)
	return engine


def build_sessionmaker(bind: AsyncEngine) -> async_sessionmaker[AsyncSession]:
	return async_sessionmaker(bind, expire_on_commit=False, class_=AsyncSession)


settings = get_settings()
DATABASE_URL = settings.DATABASE_URL or settings.SQLITE_URL

engine = build_engine(DATABASE_URL, echo=settings.DATABASE_ECHO)
SessionLocal = build_sessionmaker(engine)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
	async with SessionLocal() as session:
		yield session
