from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlmodel.ext.asyncio.session import AsyncSession

from . import task_service
from .auth import require_login
from .db import get_db_session
from .models import User
from .task_service import TaskIn

router = APIRouter(prefix='/api/tasks')


@router.get('')
async def list_tasks(user: User = Depends(require_login), sess: AsyncSession = Depends(get_db_session)):
    return await task_service.list_tasks(sess, user.id)


@router.post('')
async def create_task(body: TaskIn, user: User = Depends(require_login), sess: AsyncSession = Depends(get_db_session)):
    task = await task_service.create_task(sess, user.id, body)
    return JSONResponse(task, status_code=201)


@router.get('/{task_id}')
async def get_task(task_id: int, user: User = Depends(require_login), sess: AsyncSession = Depends(get_db_session)):
    return await task_service.get_task(sess, user.id, task_id)


@router.put('/{task_id}')
async def update_task(task_id: int, body: TaskIn, user: User = Depends(require_login), sess: AsyncSession = Depends(get_db_session)):
    return await task_service.update_task(sess, user.id, task_id, body)


@router.patch('/{task_id}')
async def toggle_task(task_id: int, user: User = Depends(require_login), sess: AsyncSession = Depends(get_db_session)):
    """Flip the completion flag."""
    return await task_service.toggle_task_completion(sess, user.id, task_id)


@router.delete('/{task_id}')
async def delete_task(task_id: int, user: User = Depends(require_login), sess: AsyncSession = Depends(get_db_session)):
    await task_service.delete_task(sess, user.id, task_id)
    return {'success': True}
