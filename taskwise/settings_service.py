import logging
from typing import Dict, Optional

from fastapi import HTTPException
from sqlalchemy import delete as sqlalchemy_delete
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession

from .models import UserSetting
from .utils import now_utc

logger = logging.getLogger(__name__)


async def get_all_settings(sess: AsyncSession, user_id: int) -> Dict[str, Optional[str]]:
    q = await sess.exec(select(UserSetting).where(UserSetting.user_id == user_id).order_by(UserSetting.key))
    return {s.key: s.value for s in q.all()}


async def get_setting(sess: AsyncSession, user_id: int, key: str) -> Optional[str]:
    q = await sess.exec(select(UserSetting).where(UserSetting.user_id == user_id).where(UserSetting.key == key))
    row = q.first()
    if not row:
        raise HTTPException(status_code=404, detail='Setting not found')
    return row.value


async def save_setting(sess: AsyncSession, user_id: int, key: Optional[str], value) -> None:
    if not key:
        raise HTTPException(status_code=400, detail='Key is required')
    if value is not None and not isinstance(value, str):
        value = str(value)
    q = await sess.exec(select(UserSetting).where(UserSetting.user_id == user_id).where(UserSetting.key == key))
    row = q.first()
    if row:
        row.value = value
        row.updated_at = now_utc()
    else:
        row = UserSetting(user_id=user_id, key=key, value=value)
    sess.add(row)
    await sess.commit()
    # values may be secrets (API keys); log the key only
    logger.info('setting saved user_id=%s key=%s', user_id, key)


async def delete_setting(sess: AsyncSession, user_id: int, key: str) -> None:
    res = await sess.exec(
        sqlalchemy_delete(UserSetting).where(UserSetting.user_id == user_id).where(UserSetting.key == key)
    )
    await sess.commit()
    if not res.rowcount:
        raise HTTPException(status_code=404, detail='Setting not found')
