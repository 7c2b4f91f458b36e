import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlmodel.ext.asyncio.session import AsyncSession

from . import user_service
from .auth import require_admin
from .db import get_db_session
from .models import User
from .user_service import UserIn, serialize_user

router = APIRouter(prefix='/api/admin/users')
logger = logging.getLogger(__name__)


@router.get('')
async def list_users(admin: User = Depends(require_admin), sess: AsyncSession = Depends(get_db_session)):
    users = await user_service.list_users(sess)
    return {'users': [serialize_user(u) for u in users]}


@router.post('')
async def create_user(body: UserIn, admin: User = Depends(require_admin), sess: AsyncSession = Depends(get_db_session)):
    user = await user_service.create_user(sess, body)
    logger.info('admin=%s created user=%s', admin.username, user.username)
    return JSONResponse({'success': True, 'userId': user.id, 'user': serialize_user(user)}, status_code=201)


@router.get('/{user_id}')
async def get_user(user_id: int, admin: User = Depends(require_admin), sess: AsyncSession = Depends(get_db_session)):
    return {'user': serialize_user(await user_service.get_user(sess, user_id))}


@router.put('/{user_id}')
async def update_user(user_id: int, body: UserIn, admin: User = Depends(require_admin), sess: AsyncSession = Depends(get_db_session)):
    user = await user_service.update_user(sess, user_id, body, acting_user=admin)
    return {'success': True, 'user': serialize_user(user)}


@router.delete('/{user_id}')
async def delete_user(user_id: int, permanent: bool = False, admin: User = Depends(require_admin), sess: AsyncSession = Depends(get_db_session)):
    message = await user_service.delete_user(sess, user_id, admin, permanent=permanent)
    logger.info('admin=%s: %s (id=%s)', admin.username, message, user_id)
    return {'success': True, 'message': message}
