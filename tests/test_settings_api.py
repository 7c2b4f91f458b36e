import pytest
from httpx import AsyncClient, ASGITransport

from conftest import create_user, login


@pytest.mark.asyncio
async def test_settings_crud(client):
    assert (await client.get('/api/user-settings')).json() == {}

    resp = await client.post('/api/user-settings', json={'key': 'theme', 'value': 'dark'})
    assert resp.json() == {'success': True}
    await client.post('/api/user-settings', json={'key': 'aiApiKey', 'value': 'sk-test'})

    assert (await client.get('/api/user-settings')).json() == {'aiApiKey': 'sk-test', 'theme': 'dark'}
    assert (await client.get('/api/user-settings/theme')).json() == {'value': 'dark'}

    # saving again overwrites
    await client.post('/api/user-settings', json={'key': 'theme', 'value': 'light'})
    assert (await client.get('/api/user-settings/theme')).json() == {'value': 'light'}

    resp = await client.delete('/api/user-settings/theme')
    assert resp.json() == {'success': True}
    resp = await client.get('/api/user-settings/theme')
    assert resp.status_code == 404
    assert resp.json()['error'] == 'Setting not found'
    assert (await client.delete('/api/user-settings/theme')).status_code == 404


@pytest.mark.asyncio
async def test_setting_key_required(client):
    resp = await client.post('/api/user-settings', json={'value': 'x'})
    assert resp.status_code == 400
    assert resp.json()['error'] == 'Key is required'


@pytest.mark.asyncio
async def test_non_string_values_are_stored_as_text(client):
    await client.post('/api/user-settings', json={'key': 'pageSize', 'value': 25})
    assert (await client.get('/api/user-settings/pageSize')).json() == {'value': '25'}


@pytest.mark.asyncio
async def test_settings_are_per_user(client, app, db):
    await client.post('/api/user-settings', json={'key': 'theme', 'value': 'dark'})
    await create_user(db, 'bob', 'builder')
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as bob:
        await login(bob, 'bob', 'builder')
        assert (await bob.get('/api/user-settings')).json() == {}
        assert (await bob.get('/api/user-settings/theme')).status_code == 404
