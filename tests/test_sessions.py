from datetime import datetime, timedelta, timezone

import pytest
from sqlmodel import select

import taskwise.sessions as sessions
from taskwise.models import Session, User

from conftest import create_user

T0 = datetime(2030, 1, 1, 12, 0, tzinfo=timezone.utc)


def _freeze(monkeypatch, when):
    monkeypatch.setattr(sessions, 'now_utc', lambda: when)


@pytest.mark.asyncio
async def test_session_valid_until_expiry_then_gone(db, monkeypatch):
    user = await create_user(db, 'carol')
    _freeze(monkeypatch, T0)
    async with db.session() as sess:
        sid = await sessions.create_session(sess, user)
        active = await sessions.get_session_by_id(sess, sid)
        assert active is not None
        assert active.user.username == 'carol'
        assert active.expires == T0 + timedelta(hours=24)

    # just before expiry still valid
    _freeze(monkeypatch, T0 + timedelta(hours=23, minutes=59))
    async with db.session() as sess:
        assert await sessions.get_session_by_id(sess, sid) is not None

    # strictly after expiry it is gone, and the row was swept without logout
    _freeze(monkeypatch, T0 + timedelta(hours=24, seconds=1))
    async with db.session() as sess:
        assert await sessions.get_session_by_id(sess, sid) is None
        q = await sess.exec(select(Session).where(Session.id == sid))
        assert q.first() is None


@pytest.mark.asyncio
async def test_lookup_sweeps_every_expired_row(db, monkeypatch):
    u1 = await create_user(db, 'dave')
    u2 = await create_user(db, 'erin')
    _freeze(monkeypatch, T0)
    async with db.session() as sess:
        await sessions.create_session(sess, u1)
        await sessions.create_session(sess, u2)
    _freeze(monkeypatch, T0 + timedelta(days=2))
    async with db.session() as sess:
        assert await sessions.get_session_by_id(sess, 'unknown-id') is None
        q = await sess.exec(select(Session))
        assert q.all() == []


@pytest.mark.asyncio
async def test_extend_twice_applies_from_current_time(db, monkeypatch):
    user = await create_user(db, 'frank')
    _freeze(monkeypatch, T0)
    async with db.session() as sess:
        sid = await sessions.create_session(sess, user)

    _freeze(monkeypatch, T0 + timedelta(hours=1))
    async with db.session() as sess:
        first = await sessions.extend_session(sess, sid)
    assert first == T0 + timedelta(hours=25)

    _freeze(monkeypatch, T0 + timedelta(hours=3))
    async with db.session() as sess:
        second = await sessions.extend_session(sess, sid)
    assert second == T0 + timedelta(hours=27)

    # the extension keeps it alive past the original expiry
    _freeze(monkeypatch, T0 + timedelta(hours=26))
    async with db.session() as sess:
        assert await sessions.get_session_by_id(sess, sid) is not None


@pytest.mark.asyncio
async def test_create_session_requires_user_id(db):
    async with db.session() as sess:
        with pytest.raises(ValueError):
            await sessions.create_session(sess, User(username='ghost'))


@pytest.mark.asyncio
async def test_inactive_user_session_is_invalid(db):
    user = await create_user(db, 'gina')
    async with db.session() as sess:
        sid = await sessions.create_session(sess, user)
        q = await sess.exec(select(User).where(User.id == user.id))
        row = q.first()
        row.active = False
        sess.add(row)
        await sess.commit()
        assert await sessions.get_session_by_id(sess, sid) is None


@pytest.mark.asyncio
async def test_delete_session_and_user_sessions(db):
    user = await create_user(db, 'hank')
    async with db.session() as sess:
        a = await sessions.create_session(sess, user)
        b = await sessions.create_session(sess, user)
        c = await sessions.create_session(sess, user)
        await sessions.delete_session(sess, a)
        assert await sessions.get_session_by_id(sess, a) is None
        assert await sessions.get_session_by_id(sess, b) is not None
        await sessions.delete_user_sessions(sess, user.id)
        assert await sessions.get_session_by_id(sess, b) is None
        assert await sessions.get_session_by_id(sess, c) is None


@pytest.mark.asyncio
async def test_session_payload_records_username_and_role(db):
    user = await create_user(db, 'iris', role='admin')
    async with db.session() as sess:
        sid = await sessions.create_session(sess, user)
        q = await sess.exec(select(Session).where(Session.id == sid))
        row = q.first()
    assert '"username": "iris"' in row.data
    assert '"role": "admin"' in row.data
