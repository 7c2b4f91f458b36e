from typing import Any, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlmodel.ext.asyncio.session import AsyncSession

from . import settings_service
from .auth import require_login
from .db import get_db_session
from .models import User

router = APIRouter(prefix='/api/user-settings')


class SettingIn(BaseModel):
    key: Optional[str] = None
    value: Any = None


@router.get('')
async def get_settings(user: User = Depends(require_login), sess: AsyncSession = Depends(get_db_session)):
    return await settings_service.get_all_settings(sess, user.id)


@router.post('')
async def save_setting(body: SettingIn, user: User = Depends(require_login), sess: AsyncSession = Depends(get_db_session)):
    await settings_service.save_setting(sess, user.id, body.key, body.value)
    return {'success': True}


@router.get('/{key}')
async def get_setting(key: str, user: User = Depends(require_login), sess: AsyncSession = Depends(get_db_session)):
    return {'value': await settings_service.get_setting(sess, user.id, key)}


@router.delete('/{key}')
async def delete_setting(key: str, user: User = Depends(require_login), sess: AsyncSession = Depends(get_db_session)):
    await settings_service.delete_setting(sess, user.id, key)
    return {'success': True}
