"""Server-side session store.

A session row is valid until ``expires``. Expired rows are never returned
and are swept lazily: every lookup first deletes all rows whose expiry
has passed, so no background timer is needed.
"""
import json
import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from fastapi import Response
from sqlalchemy import delete as sqlalchemy_delete
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession

from . import config
from .models import Session, User
from .utils import as_utc, now_utc

logger = logging.getLogger(__name__)


@dataclass
class ActiveSession:
    id: str
    expires: datetime
    user: User


def _expiry() -> datetime:
    return now_utc() + timedelta(hours=config.SESSION_EXPIRY_HOURS)


async def create_session(sess: AsyncSession, user: User) -> str:
    """Create a session for ``user`` and return its opaque id."""
    if not isinstance(user.id, int):
        raise ValueError('cannot create a session for a user without an id')
    session_id = secrets.token_urlsafe(32)
    row = Session(
        id=session_id,
        user_id=user.id,
        expires=_expiry(),
        data=json.dumps({'username': user.username, 'role': user.role}),
    )
    sess.add(row)
    await sess.commit()
    logger.info('session created for user=%s', user.username)
    return session_id


async def sweep_expired_sessions(sess: AsyncSession) -> int:
    res = await sess.exec(sqlalchemy_delete(Session).where(Session.expires < now_utc()))
    await sess.commit()
    swept = res.rowcount or 0
    if swept:
        logger.info('swept %d expired sessions', swept)
    return swept


async def get_session_by_id(sess: AsyncSession, session_id: Optional[str]) -> Optional[ActiveSession]:
    """Return the live session for ``session_id`` or None.

    None is returned when the id is unknown, the row has expired, or the
    owning user no longer exists or has been deactivated.
    """
    if not session_id:
        return None
    await sweep_expired_sessions(sess)
    q = await sess.exec(select(Session).where(Session.id == session_id))
    row = q.first()
    if not row:
        return None
    expires = as_utc(row.expires)
    # the sweep uses the store's clock; re-check in case we straddled expiry
    if expires <= now_utc():
        await delete_session(sess, session_id)
        return None
    q2 = await sess.exec(select(User).where(User.id == row.user_id).where(User.active == True))  # noqa: E712
    user = q2.first()
    if not user:
        return None
    return ActiveSession(id=row.id, expires=expires, user=user)


async def extend_session(sess: AsyncSession, session_id: str, response: Optional[Response] = None) -> Optional[datetime]:
    """Slide the session expiry to now + lifetime and re-issue the cookie."""
    q = await sess.exec(select(Session).where(Session.id == session_id))
    row = q.first()
    if not row:
        return None
    row.expires = _expiry()
    sess.add(row)
    await sess.commit()
    expires = as_utc(row.expires)
    if response is not None:
        set_session_cookie(response, session_id, expires)
    return expires


async def delete_session(sess: AsyncSession, session_id: str) -> None:
    await sess.exec(sqlalchemy_delete(Session).where(Session.id == session_id))
    await sess.commit()


async def delete_user_sessions(sess: AsyncSession, user_id: int) -> None:
    await sess.exec(sqlalchemy_delete(Session).where(Session.user_id == user_id))
    await sess.commit()


def set_session_cookie(response: Response, session_id: str, expires: Optional[datetime] = None) -> None:
    expires = expires or _expiry()
    response.set_cookie(
        config.SESSION_COOKIE_NAME,
        session_id,
        max_age=int(config.SESSION_EXPIRY_HOURS * 3600),
        expires=expires,
        path='/',
        httponly=True,
        samesite='lax',
        secure=config.COOKIE_SECURE,
    )


def clear_session_cookie(response: Response) -> None:
    response.delete_cookie(
        config.SESSION_COOKIE_NAME,
        path='/',
        httponly=True,
        samesite='lax',
        secure=config.COOKIE_SECURE,
    )
