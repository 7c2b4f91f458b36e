import logging
from typing import List, Optional

from fastapi import HTTPException
from sqlalchemy import delete as sqlalchemy_delete
from sqlmodel import or_, select
from sqlmodel.ext.asyncio.session import AsyncSession

from .models import Category

logger = logging.getLogger(__name__)


def serialize_category(c: Category) -> dict:
    return {'id': c.id, 'name': c.name, 'icon': c.icon, 'user_id': c.user_id}


async def list_categories(sess: AsyncSession, user_id: Optional[int]) -> List[Category]:
    """Built-in categories merged with the user's own.

    A user category with the same name as a built-in one replaces it in
    the result.
    """
    q = await sess.exec(
        select(Category)
        .where(or_(Category.user_id == None, Category.user_id == user_id))  # noqa: E711
        .order_by(Category.id)
    )
    merged: dict[str, Category] = {}
    for c in q.all():
        if c.name in merged and c.user_id is None:
            continue
        merged[c.name] = c
    return list(merged.values())


async def category_names(sess: AsyncSession, user_id: Optional[int]) -> List[str]:
    return [c.name for c in await list_categories(sess, user_id)]


async def save_category(sess: AsyncSession, user_id: int, name: Optional[str], icon: Optional[str]) -> Category:
    """Create the user's category, or update its icon if it exists."""
    name = (name or '').strip()
    icon = (icon or '').strip()
    if not name or not icon:
        raise HTTPException(status_code=400, detail='Name and icon are required')
    q = await sess.exec(select(Category).where(Category.name == name).where(Category.user_id == user_id))
    cat = q.first()
    if cat:
        cat.icon = icon
    else:
        cat = Category(name=name, icon=icon, user_id=user_id)
    sess.add(cat)
    await sess.commit()
    await sess.refresh(cat)
    logger.info('category saved name=%s user_id=%s', name, user_id)
    return cat


async def delete_category(sess: AsyncSession, user_id: int, name: Optional[str]) -> None:
    """Delete one of the user's categories.

    Built-in rows are never matched, so asking to delete one reports 404
    exactly like an unknown name, whoever the caller is.
    """
    if not name:
        raise HTTPException(status_code=400, detail='Category name is required')
    res = await sess.exec(
        sqlalchemy_delete(Category).where(Category.name == name).where(Category.user_id == user_id)
    )
    await sess.commit()
    if not res.rowcount:
        raise HTTPException(status_code=404, detail='Category not found')
    logger.info('category deleted name=%s user_id=%s', name, user_id)
