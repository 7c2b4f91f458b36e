import logging
import os
from typing import AsyncIterator, Optional

from fastapi import Request
from sqlalchemy import event, text
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import NullPool
from sqlmodel import SQLModel, select
from sqlmodel.ext.asyncio.session import AsyncSession

from . import config
from .models import Category

logger = logging.getLogger(__name__)


def _sqlite_path_from_url(url: str | None) -> str | None:
    if not url:
        return None
    if url.startswith('sqlite+aiosqlite:///'):
        path = url.replace('sqlite+aiosqlite:///', '', 1)
    elif url.startswith('sqlite:///'):
        path = url.replace('sqlite:///', '', 1)
    else:
        return None
    if path in ('', ':memory:'):
        return None
    return path


def _enable_sqlite_foreign_keys(dbapi_con, con_record):
    cur = dbapi_con.cursor()
    cur.execute('PRAGMA foreign_keys=ON')
    cur.close()


class Database:
    """Owns the async engine and session factory for one app instance.

    Created by the app lifespan (see taskwise.main) and stored on
    ``app.state.db``; request handlers get sessions through
    :func:`get_db_session` rather than a module-level singleton.
    """

    def __init__(self, url: Optional[str] = None):
        self.url = url or config.DATABASE_URL
        path = _sqlite_path_from_url(self.url)
        if path:
            parent = os.path.dirname(path)
            if parent:
                os.makedirs(parent, exist_ok=True)
        # NullPool keeps connections from being bound to one event loop,
        # which matters when tests spin up several loops.
        self.engine = create_async_engine(self.url, echo=False, future=True, poolclass=NullPool)
        if self.url.startswith('sqlite'):
            event.listen(self.engine.sync_engine, 'connect', _enable_sqlite_foreign_keys)
        self.session_factory = sessionmaker(self.engine, class_=AsyncSession, expire_on_commit=False)

    def session(self) -> AsyncSession:
        return self.session_factory()

    async def init(self) -> None:
        async with self.engine.begin() as conn:
            await conn.run_sync(SQLModel.metadata.create_all)
            if self.url.startswith('sqlite'):
                res = await conn.execute(text('PRAGMA foreign_keys'))
                logger.info('sqlite foreign_keys=%s', res.scalar())
        await self.seed_builtin_categories()
        logger.info('database ready at %s', self.url)

    async def seed_builtin_categories(self) -> None:
        async with self.session() as sess:
            q = await sess.exec(select(Category.name).where(Category.user_id == None))  # noqa: E711
            existing = set(q.all())
            added = 0
            for name, icon in config.BUILTIN_CATEGORIES:
                if name in existing:
                    continue
                sess.add(Category(name=name, icon=icon, user_id=None))
                added += 1
            if added:
                await sess.commit()
                logger.info('seeded %d built-in categories', added)

    async def dispose(self) -> None:
        await self.engine.dispose()


async def get_db_session(request: Request) -> AsyncIterator[AsyncSession]:
    """FastAPI dependency yielding a session bound to the app's Database."""
    db: Database = request.app.state.db
    async with db.session() as sess:
        yield sess
