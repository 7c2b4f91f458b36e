"""Translation between the server's task JSON and the client's task dicts.

Server (wire) shape::

    {"id": 3, "title": ..., "deadline": "2025-08-01", "priority_score": 72.0,
     "is_completed": false, "subtasks": [{"id": 9, "task_id": 3,
     "description": ..., "is_completed": false}], ...}

Client shape::

    {"id": "3", "title": ..., "deadline": datetime, "priority": 72.0,
     "completed": False, "subtasks": [{"id": "9", "task_id": "3",
     "title": ..., "completed": False}], ...}
"""
from datetime import datetime, timezone
from typing import Any, Dict, Optional

LOCAL_ID_PREFIXES = ('local-', 'default-')


def is_local_id(task_id: Optional[str]) -> bool:
    return not task_id or str(task_id).startswith(LOCAL_ID_PREFIXES)


def parse_deadline(value: Any) -> Optional[datetime]:
    if value is None or value == '':
        return None
    if isinstance(value, datetime):
        return value
    text = str(value)
    if text.endswith('Z'):
        text = text[:-1] + '+00:00'
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        return None


def format_deadline(value: Any) -> Optional[str]:
    if value is None or value == '':
        return None
    if isinstance(value, str):
        return value
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.isoformat()


def subtask_from_wire(s: Dict[str, Any]) -> Dict[str, Any]:
    return {
        'id': str(s.get('id')),
        'task_id': str(s.get('task_id')),
        'title': s.get('description', ''),
        'completed': bool(s.get('is_completed')),
    }


def task_from_wire(t: Dict[str, Any]) -> Dict[str, Any]:
    out = dict(t)
    for wire_key in ('is_completed', 'priority_score'):
        out.pop(wire_key, None)
    out['id'] = str(t.get('id'))
    out['subtasks'] = [subtask_from_wire(s) for s in (t.get('subtasks') or [])]
    out['deadline'] = parse_deadline(t.get('deadline'))
    out['completed'] = bool(t.get('is_completed'))
    out['priority'] = t.get('priority_score')
    return out


def subtasks_to_wire(subtasks) -> list:
    return [{'description': s.get('title', ''), 'is_completed': bool(s.get('completed'))} for s in subtasks]


def task_to_wire(task: Dict[str, Any]) -> Dict[str, Any]:
    """Body for creating a task.

    Category and priority are only sent when known so the server can
    fill them in.
    """
    body: Dict[str, Any] = {
        'title': task.get('title'),
        'description': task.get('description'),
        'deadline': format_deadline(task.get('deadline')),
        'is_completed': bool(task.get('completed')),
        'subtasks': subtasks_to_wire(task.get('subtasks') or []),
    }
    if task.get('category'):
        body['category'] = task['category']
    if task.get('priority') is not None:
        body['priority_score'] = task['priority']
    if task.get('importance') is not None:
        body['importance'] = task['importance']
    return body


def updates_to_wire(updates: Dict[str, Any]) -> Dict[str, Any]:
    """Body for a partial update: only keys present in ``updates`` are sent."""
    body: Dict[str, Any] = {}
    if 'title' in updates:
        body['title'] = updates['title']
    if 'description' in updates:
        body['description'] = updates['description']
    if 'deadline' in updates:
        body['deadline'] = format_deadline(updates['deadline'])
    if 'category' in updates:
        body['category'] = updates['category']
    if 'priority' in updates:
        body['priority_score'] = updates['priority']
    if 'importance' in updates:
        body['importance'] = updates['importance']
    if 'completed' in updates:
        body['is_completed'] = updates['completed']
    if 'subtasks' in updates:
        body['subtasks'] = subtasks_to_wire(updates['subtasks'] or [])
    return body


def priority_level(priority: Optional[float]) -> str:
    """Bucket used for highlighting: low up to 50, medium up to 75, high above."""
    if not priority or priority <= 50:
        return 'low'
    if priority <= 75:
        return 'medium'
    return 'high'
