from typing import Optional

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from sqlmodel.ext.asyncio.session import AsyncSession

from . import category_service
from .auth import require_login
from .db import get_db_session
from .models import User

router = APIRouter(prefix='/api/categories')


class CategoryIn(BaseModel):
    name: Optional[str] = None
    icon: Optional[str] = None


@router.get('')
async def list_categories(user: User = Depends(require_login), sess: AsyncSession = Depends(get_db_session)):
    cats = await category_service.list_categories(sess, user.id)
    return [category_service.serialize_category(c) for c in cats]


@router.post('')
async def save_category(body: CategoryIn, user: User = Depends(require_login), sess: AsyncSession = Depends(get_db_session)):
    cat = await category_service.save_category(sess, user.id, body.name, body.icon)
    return JSONResponse(category_service.serialize_category(cat), status_code=201)


@router.delete('')
async def delete_category(name: Optional[str] = None, user: User = Depends(require_login), sess: AsyncSession = Depends(get_db_session)):
    await category_service.delete_category(sess, user.id, name)
    return {'success': True}
