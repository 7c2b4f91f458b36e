import sys
import pathlib
import logging
import warnings

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport

try:
    from sqlalchemy.exc import SAWarning
    warnings.filterwarnings('ignore', category=SAWarning)
except ImportError:
    pass

for _name in ('sqlalchemy', 'sqlalchemy.engine', 'sqlalchemy.pool', 'sqlmodel'):
    logging.getLogger(_name).setLevel(logging.ERROR)

# ensure project root is on PYTHONPATH for test runs
ROOT = pathlib.Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT))

from taskwise import config
from taskwise.auth import pwd_context
from taskwise.db import Database
from taskwise.main import create_app
from taskwise.models import User


@pytest.fixture(autouse=True)
def _isolated_config(monkeypatch):
    # no AI key anywhere: every enrichment step takes its fallback unless a
    # test patches the flows
    monkeypatch.setattr(config, 'ANTHROPIC_API_KEY', '')
    monkeypatch.setattr(config, 'COOKIE_SECURE', False)
    monkeypatch.setattr(config, 'ORPHANED_TASKS_POLICY', 'delete')


@pytest_asyncio.fixture
async def db(tmp_path):
    database = Database(f"sqlite+aiosqlite:///{tmp_path / 'taskwise_test.db'}")
    await database.init()
    yield database
    await database.dispose()


@pytest_asyncio.fixture
async def app(db):
    application = create_app(db.url)
    # ASGITransport does not run the lifespan, so attach the handle directly
    application.state.db = db
    return application


async def create_user(db, username, password='secret', role='user', active=True, email=None):
    async with db.session() as sess:
        u = User(
            username=username,
            password_hash=pwd_context.hash(password) if password else None,
            role=role,
            active=active,
            email=email or f'{username}@example.com',
        )
        sess.add(u)
        await sess.commit()
        await sess.refresh(u)
        return u


async def login(client, username, password='secret'):
    return await client.post('/api/auth/login', json={'username': username, 'password': password})


@pytest_asyncio.fixture
async def anon_client(app):
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


@pytest_asyncio.fixture
async def alice(db):
    return await create_user(db, 'alice', 'wonderland')


@pytest_asyncio.fixture
async def admin(db):
    return await create_user(db, 'root', 'toor', role='admin')


@pytest_asyncio.fixture
async def client(app, alice):
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        resp = await login(ac, 'alice', 'wonderland')
        assert resp.status_code == 200
        yield ac


@pytest_asyncio.fixture
async def admin_client(app, admin):
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        resp = await login(ac, 'root', 'toor')
        assert resp.status_code == 200
        yield ac
