import pytest
from httpx import AsyncClient, ASGITransport
from sqlmodel import select

from taskwise.models import User

from conftest import create_user, login


@pytest.mark.asyncio
async def test_alice_login_session_logout_flow(anon_client, alice):
    resp = await login(anon_client, 'alice', 'wonderland')
    assert resp.status_code == 200
    assert resp.json()['success'] is True
    assert resp.json()['user']['username'] == 'alice'
    set_cookie = resp.headers.get('set-cookie', '')
    assert 'taskwise_session=' in set_cookie
    assert 'httponly' in set_cookie.lower()
    assert 'samesite=lax' in set_cookie.lower()
    assert 'Path=/' in set_cookie

    cookie = anon_client.cookies.get('taskwise_session')
    assert cookie

    resp = await anon_client.get('/api/auth/session')
    assert resp.status_code == 200
    data = resp.json()
    assert data['authenticated'] is True
    assert data['user']['username'] == 'alice'
    assert data['user']['role'] == 'user'

    resp = await anon_client.post('/api/auth/logout')
    assert resp.status_code == 200
    assert resp.json() == {'success': True}

    # replay the old cookie explicitly: the session row is gone
    anon_client.cookies.set('taskwise_session', cookie)
    resp = await anon_client.get('/api/auth/session')
    assert resp.status_code == 401
    assert resp.json() == {'authenticated': False, 'user': None}


@pytest.mark.asyncio
async def test_login_validation_and_bad_credentials(anon_client, alice):
    resp = await anon_client.post('/api/auth/login', json={'username': 'alice'})
    assert resp.status_code == 400
    assert 'error' in resp.json()

    resp = await login(anon_client, 'alice', 'nope')
    assert resp.status_code == 401
    assert 'taskwise_session' not in anon_client.cookies

    resp = await login(anon_client, 'nobody', 'x')
    assert resp.status_code == 401


@pytest.mark.asyncio
async def test_login_records_last_login(anon_client, alice, db):
    assert alice.last_login is None
    resp = await login(anon_client, 'alice', 'wonderland')
    assert resp.status_code == 200
    async with db.session() as sess:
        q = await sess.exec(select(User).where(User.username == 'alice'))
        assert q.first().last_login is not None


@pytest.mark.asyncio
async def test_inactive_user_cannot_login(anon_client, db):
    await create_user(db, 'mallory', 'pw', active=False)
    resp = await login(anon_client, 'mallory', 'pw')
    assert resp.status_code == 401


@pytest.mark.asyncio
async def test_session_without_cookie_is_401(anon_client):
    resp = await anon_client.get('/api/auth/session')
    assert resp.status_code == 401
    assert resp.json()['authenticated'] is False


@pytest.mark.asyncio
async def test_session_check_reissues_cookie(client):
    resp = await client.get('/api/auth/session')
    assert resp.status_code == 200
    assert 'taskwise_session=' in resp.headers.get('set-cookie', '')


@pytest.mark.asyncio
async def test_first_run_admin_setup(anon_client, app):
    resp = await anon_client.get('/api/auth/setup-required')
    assert resp.status_code == 200
    assert resp.json() == {'setupRequired': True}

    resp = await anon_client.post('/api/auth/setup-admin', json={'username': 'boss'})
    assert resp.status_code == 400

    resp = await anon_client.post('/api/auth/setup-admin', json={'username': 'boss', 'password': 'pw'})
    assert resp.status_code == 200
    data = resp.json()
    assert data['success'] is True
    assert data['sessionId']
    assert data['user']['role'] == 'admin'

    # the new admin is logged in straight away
    resp = await anon_client.get('/api/admin/users')
    assert resp.status_code == 200

    resp = await anon_client.get('/api/auth/setup-required')
    assert resp.json() == {'setupRequired': False}

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as other:
        resp = await other.post('/api/auth/setup-admin', json={'username': 'boss2', 'password': 'pw'})
        assert resp.status_code == 400


@pytest.mark.asyncio
async def test_password_bootstrap_for_provisioned_user(anon_client, db):
    await create_user(db, 'newbie', password=None)

    resp = await anon_client.get('/api/auth/password-needed')
    assert resp.status_code == 400

    resp = await anon_client.get('/api/auth/password-needed', params={'username': 'newbie'})
    assert resp.json() == {'needsSetup': True}

    # no password yet: login cannot succeed
    resp = await login(anon_client, 'newbie', '')
    assert resp.status_code == 400

    resp = await anon_client.post('/api/auth/set-password', json={'username': 'newbie', 'password': 'fresh'})
    assert resp.status_code == 200
    assert resp.json()['user']['username'] == 'newbie'
    resp = await anon_client.get('/api/auth/session')
    assert resp.json()['authenticated'] is True

    resp = await anon_client.get('/api/auth/password-needed', params={'username': 'newbie'})
    assert resp.json() == {'needsSetup': False}

    # only once
    resp = await anon_client.post('/api/auth/set-password', json={'username': 'newbie', 'password': 'again'})
    assert resp.status_code == 400

    resp = await login(anon_client, 'newbie', 'fresh')
    assert resp.status_code == 200


@pytest.mark.asyncio
async def test_set_password_unknown_user(anon_client):
    resp = await anon_client.post('/api/auth/set-password', json={'username': 'ghost', 'password': 'x'})
    assert resp.status_code == 400
