"""User administration and config-file user sync.

The user config file is JSON, ``{"users": [{"username": ..., "role": ...,
"email": ..., "active": ...}]}``, at ``config/users.json`` by default
(``TASKWISE_USERS_CONFIG``). Earlier deployments kept it as
``config/users.yml``; that file is no longer read and must be converted.
"""
import json
import logging
import os
from typing import List, Optional

from fastapi import HTTPException
from pydantic import BaseModel
from sqlalchemy import delete as sqlalchemy_delete
from sqlalchemy import func, update as sqlalchemy_update
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession

from . import config
from .auth import hash_password
from .models import Session, Subtask, Task, User
from .sessions import delete_user_sessions
from .utils import isoformat_utc

logger = logging.getLogger(__name__)

ROLES = ('admin', 'user')


class UserIn(BaseModel):
    username: Optional[str] = None
    email: Optional[str] = None
    role: Optional[str] = None
    password: Optional[str] = None
    active: Optional[bool] = None


def serialize_user(u: User) -> dict:
    return {
        'id': u.id,
        'username': u.username,
        'email': u.email,
        'role': u.role,
        'active': u.active,
        'created_at': isoformat_utc(u.created_at),
        'last_login': isoformat_utc(u.last_login),
        'needs_password': not u.password_hash,
    }


def _require_fields(data: UserIn) -> None:
    if not (data.username or '').strip() or not data.email or not data.role:
        raise HTTPException(status_code=400, detail='Missing required fields')
    if data.role not in ROLES:
        raise HTTPException(status_code=400, detail='Invalid role')


async def _username_taken(sess: AsyncSession, username: str, exclude_id: Optional[int] = None) -> bool:
    stmt = select(User.id).where(User.username == username)
    if exclude_id is not None:
        stmt = stmt.where(User.id != exclude_id)
    q = await sess.exec(stmt)
    return q.first() is not None


async def list_users(sess: AsyncSession) -> List[User]:
    q = await sess.exec(select(User).order_by(User.username))
    return list(q.all())


async def get_user(sess: AsyncSession, user_id: int) -> User:
    q = await sess.exec(select(User).where(User.id == user_id))
    user = q.first()
    if not user:
        raise HTTPException(status_code=404, detail='User not found')
    return user


async def create_user(sess: AsyncSession, data: UserIn) -> User:
    """Create a user. Without a password the user sets one on first login."""
    _require_fields(data)
    username = data.username.strip()
    if await _username_taken(sess, username):
        raise HTTPException(status_code=409, detail='Username already exists')
    user = User(
        username=username,
        email=data.email,
        role=data.role,
        active=True if data.active is None else data.active,
        password_hash=hash_password(data.password) if data.password else None,
    )
    sess.add(user)
    await sess.commit()
    await sess.refresh(user)
    logger.info('user created username=%s role=%s', user.username, user.role)
    return user


async def update_user(sess: AsyncSession, user_id: int, data: UserIn, acting_user: Optional[User] = None) -> User:
    """Replace a user's username, email and role, and optionally active flag and password.

    Neither demoting nor deactivating may leave the install without an
    active admin, and an admin cannot deactivate their own account.
    """
    _require_fields(data)
    username = data.username.strip()
    user = await get_user(sess, user_id)
    if await _username_taken(sess, username, exclude_id=user_id):
        raise HTTPException(status_code=409, detail='Username already exists')
    deactivating = data.active is False and user.active
    if user.role == 'admin' and user.active and await _other_active_admins(sess, user_id) == 0:
        if data.role != 'admin':
            raise HTTPException(status_code=400, detail='Cannot demote the last admin user')
        if deactivating:
            raise HTTPException(status_code=400, detail='Cannot deactivate the last admin user')
    if deactivating and acting_user is not None and acting_user.id == user_id:
        raise HTTPException(status_code=400, detail='Cannot deactivate your own account')
    user.username = username
    user.email = data.email
    user.role = data.role
    revoke = False
    if data.active is not None and data.active != user.active:
        user.active = data.active
        revoke = not data.active
    if data.password:
        user.password_hash = hash_password(data.password)
        revoke = True
    sess.add(user)
    await sess.commit()
    await sess.refresh(user)
    if revoke:
        await delete_user_sessions(sess, user_id)
    logger.info('user updated id=%s username=%s', user_id, user.username)
    return user


async def _other_active_admins(sess: AsyncSession, user_id: int) -> int:
    q = await sess.exec(
        select(func.count(User.id))
        .where(User.role == 'admin')
        .where(User.active == True)  # noqa: E712
        .where(User.id != user_id)
    )
    return q.one()


async def _detach_tasks(sess: AsyncSession, user_id: int) -> None:
    if config.ORPHANED_TASKS_POLICY == 'unassign':
        await sess.exec(sqlalchemy_update(Task).where(Task.user_id == user_id).values(user_id=None))
        return
    task_ids = select(Task.id).where(Task.user_id == user_id)
    await sess.exec(sqlalchemy_delete(Subtask).where(Subtask.task_id.in_(task_ids)))
    await sess.exec(sqlalchemy_delete(Task).where(Task.user_id == user_id))


async def delete_user(sess: AsyncSession, user_id: int, acting_user: User, permanent: bool = False) -> str:
    """Deactivate a user, or remove them entirely when ``permanent``.

    The last active admin and the caller's own account are protected.
    """
    user = await get_user(sess, user_id)
    if user.role == 'admin' and await _other_active_admins(sess, user_id) == 0:
        raise HTTPException(status_code=400, detail='Cannot delete the last admin user')
    if user.id == acting_user.id:
        raise HTTPException(status_code=400, detail='Cannot delete your own account')
    if permanent:
        await _detach_tasks(sess, user_id)
        await sess.exec(sqlalchemy_delete(Session).where(Session.user_id == user_id))
        await sess.delete(user)
        await sess.commit()
        logger.info('user permanently deleted id=%s tasks=%s', user_id, config.ORPHANED_TASKS_POLICY)
        return 'User permanently deleted'
    user.active = False
    sess.add(user)
    await sess.commit()
    await delete_user_sessions(sess, user_id)
    logger.info('user deactivated id=%s', user_id)
    return 'User deactivated'


YAML_SUFFIXES = ('.yml', '.yaml')


def _yaml_sibling(path: str) -> Optional[str]:
    stem = os.path.splitext(path)[0]
    for suffix in YAML_SUFFIXES:
        if os.path.exists(stem + suffix):
            return stem + suffix
    return None


def load_user_config(path: Optional[str] = None) -> List[dict]:
    """Read the ``users`` list from the JSON user config file.

    YAML files are not read. A ``users.yml`` left next to the expected
    JSON path is reported so it can be converted.
    """
    path = path or config.USERS_CONFIG_PATH
    if path.endswith(YAML_SUFFIXES):
        logger.error('user config %s is YAML; convert it to JSON ({"users": [...]})', path)
        return []
    if not os.path.exists(path):
        legacy = _yaml_sibling(path)
        if legacy:
            logger.error('found %s but user config is read from %s; convert it to JSON', legacy, path)
        else:
            logger.warning('user config file not found at %s', path)
        return []
    with open(path, 'r', encoding='utf-8') as f:
        data = json.load(f)
    users = data.get('users') if isinstance(data, dict) else None
    if not isinstance(users, list):
        logger.warning('invalid user config format in %s', path)
        return []
    return [u for u in users if isinstance(u, dict) and u.get('username')]


async def sync_users_from_config(sess: AsyncSession, entries: List[dict]) -> dict:
    """Insert missing users (without password) and refresh existing ones."""
    created = updated = 0
    for entry in entries:
        username = entry['username']
        q = await sess.exec(select(User).where(User.username == username))
        user = q.first()
        role = entry.get('role')
        if role is not None and role not in ROLES:
            logger.warning('skipping %s: invalid role %r', username, role)
            continue
        if user:
            user.email = entry.get('email') or user.email
            user.role = role or user.role or 'user'
            if 'active' in entry:
                user.active = bool(entry['active'])
            updated += 1
        else:
            user = User(
                username=username,
                email=entry.get('email'),
                role=role or 'user',
                active=bool(entry.get('active', True)),
            )
            created += 1
        sess.add(user)
    await sess.commit()
    logger.info('user sync: created=%d updated=%d', created, updated)
    return {'created': created, 'updated': updated}
