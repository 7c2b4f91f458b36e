"""Task persistence and the AI enrichment applied to new tasks."""
import logging
from datetime import date
from typing import Any, Dict, List, Optional

from fastapi import HTTPException
from pydantic import BaseModel
from sqlalchemy import delete as sqlalchemy_delete
from sqlmodel import or_, select
from sqlmodel.ext.asyncio.session import AsyncSession

from .ai import client as ai_client
from .ai import flows
from .ai.client import AIUnavailableError
from .ai.fallback import fallback_priority_score
from .category_service import category_names
from .models import Subtask, Task
from .utils import isoformat_utc, parse_deadline

logger = logging.getLogger(__name__)

DEFAULT_IMPORTANCE = 5
FALLBACK_CATEGORY = 'Other'


class SubtaskIn(BaseModel):
    description: str
    is_completed: bool = False


class TaskIn(BaseModel):
    """Request body for create and update.

    Every field is optional so missing fields can be reported as 400 and
    updates can tell supplied fields from absent ones.
    """
    title: Optional[str] = None
    description: Optional[str] = None
    deadline: Optional[str] = None
    importance: Optional[int] = None
    category: Optional[str] = None
    priority_score: Optional[float] = None
    is_completed: Optional[bool] = None
    subtasks: Optional[List[SubtaskIn]] = None


def serialize_task(task: Task, subtasks: List[Subtask]) -> dict:
    return {
        'id': task.id,
        'title': task.title,
        'description': task.description,
        'deadline': task.deadline,
        'importance': task.importance,
        'category': task.category,
        'priority_score': task.priority_score,
        'is_completed': task.is_completed,
        'created_at': isoformat_utc(task.created_at),
        'user_id': task.user_id,
        'subtasks': [
            {'id': s.id, 'task_id': s.task_id, 'description': s.description, 'is_completed': s.is_completed}
            for s in subtasks
        ],
    }


def _visible_to(user_id: int):
    return or_(Task.user_id == user_id, Task.user_id == None)  # noqa: E711


async def _subtasks_for(sess: AsyncSession, task_ids: List[int]) -> Dict[int, List[Subtask]]:
    out: Dict[int, List[Subtask]] = {tid: [] for tid in task_ids}
    if not task_ids:
        return out
    q = await sess.exec(select(Subtask).where(Subtask.task_id.in_(task_ids)).order_by(Subtask.id))
    for s in q.all():
        out.setdefault(s.task_id, []).append(s)
    return out


async def list_tasks(sess: AsyncSession, user_id: int) -> List[dict]:
    q = await sess.exec(select(Task).where(_visible_to(user_id)).order_by(Task.priority_score.desc(), Task.id))
    tasks = q.all()
    subs = await _subtasks_for(sess, [t.id for t in tasks])
    return [serialize_task(t, subs.get(t.id, [])) for t in tasks]


async def _load_task(sess: AsyncSession, user_id: int, task_id: int) -> Task:
    q = await sess.exec(select(Task).where(Task.id == task_id).where(_visible_to(user_id)))
    task = q.first()
    if not task:
        raise HTTPException(status_code=404, detail='Task not found')
    return task


async def get_task(sess: AsyncSession, user_id: int, task_id: int) -> dict:
    task = await _load_task(sess, user_id, task_id)
    subs = await _subtasks_for(sess, [task.id])
    return serialize_task(task, subs[task.id])


def _check_importance(importance: Optional[int]) -> None:
    if importance is not None and not (1 <= importance <= 10):
        raise HTTPException(status_code=400, detail='Importance must be between 1 and 10')


def _check_priority(score: Optional[float]) -> None:
    if score is not None and not (0 <= score <= 100):
        raise HTTPException(status_code=400, detail='Priority score must be between 0 and 100')


class _LazyClient:
    """Builds the AI client on first use and remembers a missing key."""

    def __init__(self, sess: AsyncSession, user_id: Optional[int]):
        self.sess = sess
        self.user_id = user_id
        self._client = None
        self._error: Optional[Exception] = None

    async def get(self):
        if self._error is not None:
            raise self._error
        if self._client is None:
            try:
                self._client = await ai_client.client_for_user(self.sess, self.user_id)
            except AIUnavailableError as e:
                self._error = e
                raise
        return self._client


def _log_ai_failure(step: str, exc: Exception) -> None:
    if isinstance(exc, AIUnavailableError):
        logger.warning('%s: AI unavailable (%s), using fallback', step, exc)
    else:
        logger.exception('%s failed, using fallback', step)


async def enrich_task(
    sess: AsyncSession,
    user_id: Optional[int],
    data: TaskIn,
    today: Optional[date] = None,
) -> tuple[str, float, List[SubtaskIn]]:
    """Fill in category, priority and subtasks the caller left out.

    Each step fails independently: category falls back to 'Other',
    priority to the deterministic formula and subtasks to an empty list.
    """
    ai = _LazyClient(sess, user_id)
    importance = data.importance if data.importance is not None else DEFAULT_IMPORTANCE

    category = (data.category or '').strip()
    if not category:
        try:
            known = await category_names(sess, user_id)
            category = (await flows.categorize_task(await ai.get(), data.title, known)).strip()
        except Exception as e:
            _log_ai_failure('categorize', e)
            category = ''
        category = category or FALLBACK_CATEGORY

    priority = data.priority_score
    if priority is None:
        try:
            result = await flows.prioritize_task(await ai.get(), data.title, data.deadline, importance, category, today=today)
            priority = float(result.priorityScore)
            logger.info('prioritize: score=%s reasoning=%s', priority, result.reasoning)
        except Exception as e:
            _log_ai_failure('prioritize', e)
            priority = float(fallback_priority_score(importance, parse_deadline(data.deadline), category, today=today))

    subtasks = data.subtasks
    if not subtasks:
        try:
            suggested = await flows.suggest_subtasks(await ai.get(), data.title)
            subtasks = [SubtaskIn(description=s) for s in suggested]
        except Exception as e:
            _log_ai_failure('suggest_subtasks', e)
            subtasks = []

    return category, priority, subtasks


async def create_task(sess: AsyncSession, user_id: int, data: TaskIn, today: Optional[date] = None) -> dict:
    if not data.title or not data.title.strip():
        raise HTTPException(status_code=400, detail='Title is required')
    _check_importance(data.importance)
    _check_priority(data.priority_score)
    category, priority, subtasks = await enrich_task(sess, user_id, data, today=today)
    task = Task(
        title=data.title.strip(),
        description=data.description,
        deadline=data.deadline,
        importance=data.importance if data.importance is not None else DEFAULT_IMPORTANCE,
        category=category,
        priority_score=priority,
        is_completed=bool(data.is_completed),
        user_id=user_id,
    )
    sess.add(task)
    await sess.flush()
    for s in subtasks:
        sess.add(Subtask(task_id=task.id, description=s.description, is_completed=s.is_completed))
    await sess.commit()
    await sess.refresh(task)
    logger.info('task created id=%s user_id=%s category=%s priority=%s', task.id, user_id, category, priority)
    return await get_task(sess, user_id, task.id)


async def update_task(sess: AsyncSession, user_id: int, task_id: int, data: TaskIn) -> dict:
    """Apply only the fields present in the request body.

    A supplied subtask list replaces the stored one wholesale.
    """
    task = await _load_task(sess, user_id, task_id)
    fields: Dict[str, Any] = data.model_dump(exclude_unset=True)
    if 'title' in fields:
        if not (fields['title'] or '').strip():
            raise HTTPException(status_code=400, detail='Title is required')
        fields['title'] = fields['title'].strip()
    _check_importance(fields.get('importance'))
    _check_priority(fields.get('priority_score'))
    subtasks = fields.pop('subtasks', None)
    for name, value in fields.items():
        if name in ('importance', 'priority_score', 'category', 'is_completed') and value is None:
            continue
        setattr(task, name, value)
    sess.add(task)
    if subtasks is not None:
        await sess.exec(sqlalchemy_delete(Subtask).where(Subtask.task_id == task.id))
        for s in data.subtasks:
            sess.add(Subtask(task_id=task.id, description=s.description, is_completed=s.is_completed))
    await sess.commit()
    logger.info('task updated id=%s fields=%s', task_id, sorted(fields) + (['subtasks'] if subtasks is not None else []))
    return await get_task(sess, user_id, task_id)


async def toggle_task_completion(sess: AsyncSession, user_id: int, task_id: int) -> dict:
    task = await _load_task(sess, user_id, task_id)
    task.is_completed = not task.is_completed
    sess.add(task)
    await sess.commit()
    return await get_task(sess, user_id, task_id)


async def delete_task(sess: AsyncSession, user_id: int, task_id: int) -> None:
    task = await _load_task(sess, user_id, task_id)
    await sess.exec(sqlalchemy_delete(Subtask).where(Subtask.task_id == task.id))
    await sess.delete(task)
    await sess.commit()
    logger.info('task deleted id=%s user_id=%s', task_id, user_id)
