import logging
from typing import Optional

from fastapi import Depends, HTTPException, Request, status
from passlib.context import CryptContext
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession

from .models import User
from .utils import now_utc

logger = logging.getLogger(__name__)

# prefer a pure-Python, widely-available scheme for tests and portability;
# keep bcrypt as a fallback if available.
pwd_context = CryptContext(schemes=["pbkdf2_sha256", "bcrypt"], deprecated="auto")


async def get_user_by_username(sess: AsyncSession, username: str) -> Optional[User]:
    q = await sess.exec(select(User).where(User.username == username))
    return q.first()


def verify_password(plain_password: str, hashed_password: Optional[str]) -> bool:
    if not hashed_password:
        return False
    return pwd_context.verify(plain_password, hashed_password)


def hash_password(plain_password: str) -> str:
    return pwd_context.hash(plain_password)


async def authenticate_user(sess: AsyncSession, username: str, password: str) -> Optional[User]:
    """Check credentials and stamp last_login on success.

    Inactive users and users that have not set a password yet never
    authenticate.
    """
    user = await get_user_by_username(sess, username)
    if not user or not user.active:
        return None
    if not verify_password(password, user.password_hash):
        return None
    user.last_login = now_utc()
    sess.add(user)
    await sess.commit()
    await sess.refresh(user)
    return user


async def user_needs_password_setup(sess: AsyncSession, username: str) -> bool:
    user = await get_user_by_username(sess, username)
    return bool(user and user.active and not user.password_hash)


async def set_user_password(sess: AsyncSession, username: str, password: str) -> Optional[User]:
    user = await get_user_by_username(sess, username)
    if not user:
        return None
    user.password_hash = hash_password(password)
    sess.add(user)
    await sess.commit()
    await sess.refresh(user)
    return user


async def is_first_time_setup(sess: AsyncSession) -> bool:
    """True while no admin account exists."""
    q = await sess.exec(select(User.id).where(User.role == 'admin').limit(1))
    return q.first() is None


def public_user(user: User) -> dict:
    return {'id': user.id, 'username': user.username, 'email': user.email, 'role': user.role}


async def get_current_user(request: Request) -> Optional[User]:
    """User attached by the route guard, if any."""
    return getattr(request.state, 'user', None)


async def require_login(user: Optional[User] = Depends(get_current_user)) -> User:
    """Dependency that enforces an authenticated user.

    The route guard already rejects anonymous requests to protected
    paths; this keeps handlers safe when mounted elsewhere.
    """
    if not user:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Authentication required")
    return user


async def require_admin(user: User = Depends(require_login)) -> User:
    if not user.is_admin:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin access required")
    return user
