from datetime import timedelta

import pytest

import taskwise.sessions as sessions
from taskwise.guard import ADMIN, PROTECTED_API, PROTECTED_PAGE, PUBLIC, classify_path
from taskwise.utils import now_utc


@pytest.mark.parametrize('path,kind', [
    ('/', PUBLIC),
    ('/health', PUBLIC),
    ('/login', PUBLIC),
    ('/setup', PUBLIC),
    ('/api/auth/login', PUBLIC),
    ('/api/auth/session', PUBLIC),
    ('/api/auth/password-needed', PUBLIC),
    ('/admin', ADMIN),
    ('/admin/users', ADMIN),
    ('/api/admin/users/3', ADMIN),
    ('/api/tasks', PROTECTED_API),
    ('/api/tasks/12', PROTECTED_API),
    ('/api/categories', PROTECTED_API),
    ('/api/user-settings/theme', PROTECTED_API),
    ('/dashboard', PROTECTED_PAGE),
    ('/loginx', PROTECTED_PAGE),
    ('/administrator', PROTECTED_PAGE),
])
def test_classify_path(path, kind):
    assert classify_path(path) == kind


@pytest.mark.asyncio
async def test_protected_api_requires_session(anon_client):
    for path in ('/api/tasks', '/api/categories', '/api/user-settings'):
        resp = await anon_client.get(path)
        assert resp.status_code == 401
        assert resp.json() == {'error': 'Authentication required'}


@pytest.mark.asyncio
async def test_forged_cookie_is_rejected(anon_client):
    anon_client.cookies.set('taskwise_session', 'not-a-real-session')
    resp = await anon_client.get('/api/tasks')
    assert resp.status_code == 401


@pytest.mark.asyncio
async def test_expired_cookie_is_rejected(client, monkeypatch):
    resp = await client.get('/api/tasks')
    assert resp.status_code == 200
    later = now_utc() + timedelta(hours=25)
    monkeypatch.setattr(sessions, 'now_utc', lambda: later)
    resp = await client.get('/api/tasks')
    assert resp.status_code == 401


@pytest.mark.asyncio
async def test_protected_page_redirects_to_login(anon_client):
    resp = await anon_client.get('/dashboard/today')
    assert resp.status_code in (302, 307)
    assert resp.headers['location'] == '/login?returnUrl=/dashboard/today'


@pytest.mark.asyncio
async def test_public_paths_need_no_session(anon_client):
    assert (await anon_client.get('/')).status_code == 200
    assert (await anon_client.get('/health')).json() == {'ok': True}
    resp = await anon_client.get('/api/auth/setup-required')
    assert resp.status_code == 200


@pytest.mark.asyncio
async def test_admin_api_forbidden_for_regular_user(client):
    resp = await client.get('/api/admin/users')
    assert resp.status_code == 403
    assert resp.json() == {'error': 'Admin access required'}


@pytest.mark.asyncio
async def test_admin_page_redirects_regular_user_with_error(client):
    resp = await client.get('/admin')
    assert resp.status_code in (302, 307)
    assert resp.headers['location'] == '/?error=admin_required'


@pytest.mark.asyncio
async def test_admin_page_redirects_anonymous_to_login(anon_client):
    resp = await anon_client.get('/admin')
    assert resp.headers['location'] == '/login?returnUrl=/admin'


@pytest.mark.asyncio
async def test_admin_api_unauthenticated_is_401(anon_client):
    resp = await anon_client.get('/api/admin/users')
    assert resp.status_code == 401


ORIGIN = 'http://app.example'


@pytest.mark.asyncio
async def test_cors_preflight_skips_auth(anon_client):
    resp = await anon_client.options('/api/tasks', headers={
        'Origin': ORIGIN,
        'Access-Control-Request-Method': 'PUT',
        'Access-Control-Request-Headers': 'Content-Type, Authorization',
    })
    assert resp.status_code == 200
    assert resp.headers['access-control-allow-origin'] == '*'
    methods = resp.headers['access-control-allow-methods']
    for m in ('GET', 'POST', 'PUT', 'DELETE', 'PATCH', 'OPTIONS'):
        assert m in methods
    allowed = resp.headers['access-control-allow-headers'].lower()
    assert 'content-type' in allowed and 'authorization' in allowed
    assert resp.headers['access-control-max-age']


@pytest.mark.asyncio
async def test_cors_preflight_rejects_unlisted_header(anon_client):
    resp = await anon_client.options('/api/categories', headers={
        'Origin': ORIGIN,
        'Access-Control-Request-Method': 'POST',
        'Access-Control-Request-Headers': 'X-Custom',
    })
    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_cors_headers_on_task_and_category_responses(client, anon_client):
    resp = await client.get('/api/categories', headers={'Origin': ORIGIN})
    assert resp.headers['access-control-allow-origin'] in ('*', ORIGIN)
    # rejected requests carry them too
    resp = await anon_client.get('/api/tasks', headers={'Origin': ORIGIN})
    assert resp.status_code == 401
    assert resp.headers['access-control-allow-origin'] == '*'
    # settings are not CORS enabled
    resp = await client.get('/api/user-settings', headers={'Origin': ORIGIN})
    assert 'access-control-allow-origin' not in resp.headers


@pytest.mark.asyncio
async def test_options_outside_cors_routes_is_guarded(anon_client):
    resp = await anon_client.options('/api/user-settings', headers={
        'Origin': ORIGIN,
        'Access-Control-Request-Method': 'GET',
    })
    assert resp.status_code == 401
