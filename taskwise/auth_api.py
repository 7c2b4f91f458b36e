"""Login, logout, session check and first-run password bootstrap."""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from sqlmodel.ext.asyncio.session import AsyncSession

from . import config
from .auth import (
    authenticate_user,
    get_user_by_username,
    hash_password,
    is_first_time_setup,
    public_user,
    set_user_password,
    user_needs_password_setup,
)
from .db import get_db_session
from .models import User
from .sessions import (
    clear_session_cookie,
    create_session,
    delete_session,
    extend_session,
    get_session_by_id,
    set_session_cookie,
)

router = APIRouter(prefix='/api/auth')
logger = logging.getLogger(__name__)


class Credentials(BaseModel):
    username: Optional[str] = None
    password: Optional[str] = None


def _require_credentials(body: Credentials) -> None:
    if not body.username or not body.password:
        raise HTTPException(status_code=400, detail='Username and password are required')


def _login_user_payload(user: User) -> dict:
    return {'username': user.username, 'email': user.email, 'role': user.role}


@router.post('/login')
async def login(body: Credentials, sess: AsyncSession = Depends(get_db_session)):
    _require_credentials(body)
    user = await authenticate_user(sess, body.username, body.password)
    if not user:
        logger.info('login failed for username=%s', body.username)
        raise HTTPException(status_code=401, detail='Invalid username or password')
    session_id = await create_session(sess, user)
    resp = JSONResponse({'success': True, 'user': _login_user_payload(user)})
    set_session_cookie(resp, session_id)
    logger.info('login ok username=%s', user.username)
    return resp


@router.post('/logout')
async def logout(request: Request, sess: AsyncSession = Depends(get_db_session)):
    session_id = request.cookies.get(config.SESSION_COOKIE_NAME)
    if session_id:
        await delete_session(sess, session_id)
    resp = JSONResponse({'success': True})
    clear_session_cookie(resp)
    return resp


@router.get('/session')
async def session_status(request: Request, sess: AsyncSession = Depends(get_db_session)):
    """Report whether the cookie names a live session, sliding its expiry if so."""
    active = await get_session_by_id(sess, request.cookies.get(config.SESSION_COOKIE_NAME))
    if not active:
        return JSONResponse({'authenticated': False, 'user': None}, status_code=401)
    resp = JSONResponse({'authenticated': True, 'user': public_user(active.user)})
    await extend_session(sess, active.id, resp)
    return resp


@router.get('/setup-required')
async def setup_required(sess: AsyncSession = Depends(get_db_session)):
    return {'setupRequired': await is_first_time_setup(sess)}


@router.post('/setup-admin')
async def setup_admin(body: Credentials, sess: AsyncSession = Depends(get_db_session)):
    if not await is_first_time_setup(sess):
        raise HTTPException(status_code=400, detail='Setup already completed')
    _require_credentials(body)
    if await get_user_by_username(sess, body.username):
        raise HTTPException(status_code=409, detail='Username already exists')
    user = User(username=body.username, password_hash=hash_password(body.password), role='admin', active=True)
    sess.add(user)
    await sess.commit()
    await sess.refresh(user)
    session_id = await create_session(sess, user)
    resp = JSONResponse({'success': True, 'sessionId': session_id, 'user': _login_user_payload(user)})
    set_session_cookie(resp, session_id)
    logger.info('initial admin created username=%s', user.username)
    return resp


@router.get('/password-needed')
async def password_needed(username: Optional[str] = None, sess: AsyncSession = Depends(get_db_session)):
    if not username:
        raise HTTPException(status_code=400, detail='Username is required')
    return {'needsSetup': await user_needs_password_setup(sess, username)}


@router.post('/set-password')
async def set_password(body: Credentials, sess: AsyncSession = Depends(get_db_session)):
    """One-time password for a user provisioned without one."""
    _require_credentials(body)
    if not await user_needs_password_setup(sess, body.username):
        raise HTTPException(status_code=400, detail='User already has a password set or does not exist')
    user = await set_user_password(sess, body.username, body.password)
    if not user:
        raise HTTPException(status_code=404, detail='User not found')
    session_id = await create_session(sess, user)
    resp = JSONResponse({'success': True, 'sessionId': session_id, 'user': _login_user_payload(user)})
    set_session_cookie(resp, session_id)
    return resp
