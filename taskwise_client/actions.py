"""Task board state with optimistic edits.

Every edit is applied to the local history first and then sent to the
server. A failed send never rolls the board back: the task is flagged
``local_only``, the operation goes into the LocalStore queue and the user
gets a notice. ``retry_pending`` replays the queue in order.
"""
import copy
import itertools
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from .api import ApiError, TaskwiseClient
from .history import UndoRedoHistory
from .local_store import LocalStore
from .notify import Notifier
from .shapes import is_local_id

logger = logging.getLogger(__name__)

FALLBACK_CATEGORY = 'Other'
FALLBACK_PRIORITY = 50

DEFAULT_TASKS: List[Dict[str, Any]] = [
    {
        'id': 'default-1',
        'title': 'Explore TaskWise features',
        'description': "Get acquainted with TaskWise's capabilities",
        'category': 'Other',
        'priority': 50,
        'deadline': None,
        'subtasks': [
            {'id': 'default-1-subtask-a', 'title': 'Explore categories', 'completed': False},
            {'id': 'default-1-subtask-b', 'title': 'Create custom category', 'completed': False},
            {'id': 'default-1-subtask-c', 'title': 'Explore subtasks auto-generation', 'completed': False},
        ],
        'completed': False,
    },
]

LOCAL_ONLY_TITLE = 'Saved locally only'
LOCAL_ONLY_DESCRIPTION = 'The server could not be reached; the change may not persist across devices.'


class TaskBoard:
    def __init__(self, api: TaskwiseClient, history: Optional[UndoRedoHistory] = None,
                 notifier: Optional[Notifier] = None, store: Optional[LocalStore] = None):
        self.api = api
        self.history = history or UndoRedoHistory()
        self.notifier = notifier or Notifier()
        self.store = store
        self.categories: Dict[str, str] = {}
        self._local_ids = itertools.count(1)

    @property
    def tasks(self) -> List[Dict[str, Any]]:
        return self.history.current

    def find(self, task_id: str) -> Optional[Dict[str, Any]]:
        for t in self.tasks:
            if t['id'] == task_id:
                return t
        return None

    # --- loading --------------------------------------------------------

    def load(self) -> None:
        tasks = self.api.get_all_tasks()
        if tasks:
            self.history.reset(tasks)
            self.notifier.notify('Tasks loaded from database', operation='load_tasks')
        else:
            self.history.reset(DEFAULT_TASKS)
        self.categories = self.api.get_all_categories()
        if self.categories:
            self.notifier.notify('Categories loaded', operation='load_categories')

    # --- history --------------------------------------------------------

    def undo(self) -> bool:
        moved = self.history.undo()
        if moved:
            self.notifier.notify('Undo', operation='undo')
        return moved

    def redo(self) -> bool:
        moved = self.history.redo()
        if moved:
            self.notifier.notify('Redo', operation='redo')
        return moved

    def handle_key(self, key: str, ctrl: bool = False, meta: bool = False, shift: bool = False) -> Optional[str]:
        action = self.history.handle_key(key, ctrl=ctrl, meta=meta, shift=shift)
        if action:
            self.notifier.notify(action.capitalize(), operation=action)
        return action

    # --- edits ----------------------------------------------------------

    def complete(self, task_id: str, completed: bool) -> None:
        """Set completion on a task and all of its subtasks."""
        new_state = []
        for t in self.tasks:
            if t['id'] == task_id:
                t = dict(t, completed=completed)
                t['subtasks'] = [dict(s, completed=completed) for s in t.get('subtasks') or []]
            new_state.append(t)
        self.history.push(new_state)
        self.notifier.notify('Task marked complete' if completed else 'Task marked incomplete', operation='task_completion')
        task = self.find(task_id)
        if task is not None:
            self._persist('update', task_id, {'completed': completed, 'subtasks': task['subtasks']})

    def complete_subtask(self, task_id: str, subtask_id: str, completed: bool) -> None:
        new_state = []
        for t in self.tasks:
            if t['id'] == task_id:
                t = dict(t)
                t['subtasks'] = [
                    dict(s, completed=completed) if s['id'] == subtask_id else s
                    for s in t.get('subtasks') or []
                ]
            new_state.append(t)
        self.history.push(new_state)
        task = self.find(task_id)
        if task is not None:
            self._persist('update', task_id, {'subtasks': task['subtasks']})

    def update(self, task_id: str, updates: Dict[str, Any]) -> None:
        self.history.push([dict(t, **updates) if t['id'] == task_id else t for t in self.tasks])
        self.notifier.notify('Task updated', operation='update_task')
        self._persist('update', task_id, updates)

    def delete(self, task_id: str) -> None:
        self.history.push([t for t in self.tasks if t['id'] != task_id])
        self.notifier.notify('Task deleted', operation='delete_task')
        self._persist('delete', task_id, {})

    def add_task(self, title: str, deadline: Optional[datetime] = None, category: Optional[str] = None,
                 importance: Optional[int] = None, description: Optional[str] = None) -> Dict[str, Any]:
        """Create a task on the server, which fills in category, priority and subtasks.

        When the server is unreachable the task is kept locally with an
        id starting with ``local-`` and is never sent afterwards.
        """
        draft = {
            'title': title,
            'description': description,
            'deadline': deadline,
            'category': category,
            'importance': importance,
            'priority': None,
            'subtasks': [],
            'completed': False,
        }
        try:
            created = self.api.create_task(draft)
        except ApiError as e:
            logger.warning('create task failed, keeping it locally: %s', e)
            created = dict(draft, id=f'local-{next(self._local_ids)}',
                           category=category or FALLBACK_CATEGORY, priority=FALLBACK_PRIORITY, local_only=True)
            self.notifier.error('Database error', 'Task saved locally only, may not persist across devices')
        self.history.push(self.tasks + [created])
        self.notifier.notify('Task added successfully!', f'"{title}" has been added to your list.', operation='create_task')
        return created

    # --- categories -----------------------------------------------------

    def add_category(self, name: str, icon: str) -> bool:
        try:
            self.api.save_category(name, icon)
        except ApiError as e:
            logger.warning('save category failed: %s', e)
            self.notifier.error('Failed to create category', str(e))
            return False
        self.categories[name] = icon
        self.notifier.notify('Custom category created', f'{icon} {name}', operation='create_category')
        return True

    def delete_category(self, name: str) -> bool:
        """Delete a custom category and move its tasks to 'Other'."""
        try:
            self.api.delete_category(name)
        except ApiError as e:
            logger.warning('delete category failed: %s', e)
            self.notifier.error('Failed to delete category', "The operation couldn't be completed")
            return False
        self.categories.pop(name, None)
        self.history.push([
            dict(t, category=FALLBACK_CATEGORY) if t.get('category') == name else t
            for t in self.tasks
        ])
        self.notifier.notify('Custom category deleted', name, operation='delete_category')
        return True

    # --- sync -----------------------------------------------------------

    def _send(self, op_type: str, task_id: str, data: Dict[str, Any]) -> None:
        if op_type == 'update':
            self.api.update_task(task_id, data)
        elif op_type == 'delete':
            self.api.delete_task(task_id)
        else:
            raise ValueError(f'unknown operation {op_type}')

    def _has_pending(self, task_id: str) -> bool:
        if self.store is None:
            return False
        return any(op['task_id'] == task_id for op in self.store.get_pending_ops())

    def _set_local_only(self, task_id: str, flag: bool) -> None:
        # flag the task in every snapshot so undo/redo keep showing it
        for snapshot in self.history.snapshots():
            for t in snapshot:
                if t['id'] == task_id:
                    if flag:
                        t['local_only'] = True
                    else:
                        t.pop('local_only', None)

    def _persist(self, op_type: str, task_id: str, data: Dict[str, Any]) -> bool:
        if is_local_id(task_id):
            return False
        data = copy.deepcopy(data)
        if self._has_pending(task_id):
            # keep per-task ordering: queue behind the older failures
            self.store.queue_pending_op(op_type, task_id, data)
            self.retry_pending()
            if not self._has_pending(task_id):
                return True
            self._set_local_only(task_id, True)
            self.notifier.error(LOCAL_ONLY_TITLE, LOCAL_ONLY_DESCRIPTION)
            return False
        try:
            self._send(op_type, task_id, data)
            return True
        except ApiError as e:
            logger.warning('%s of task %s failed, kept locally: %s', op_type, task_id, e)
            if self.store is not None:
                self.store.queue_pending_op(op_type, task_id, data, str(e))
            self._set_local_only(task_id, True)
            self.notifier.error(LOCAL_ONLY_TITLE, LOCAL_ONLY_DESCRIPTION)
            return False

    def retry_pending(self) -> Dict[str, int]:
        """Replay queued operations oldest first.

        An operation the server rejects with 404 is dropped, since the task
        it targets no longer exists there.
        """
        if self.store is None:
            return {'synced': 0, 'failed': 0, 'dropped': 0}
        synced = failed = dropped = 0
        blocked = set()
        for op in self.store.get_pending_ops():
            task_id = op['task_id']
            if task_id in blocked:
                failed += 1
                continue
            try:
                self._send(op['op_type'], task_id, op['data'])
            except ApiError as e:
                if e.status_code == 404:
                    self.store.remove_pending_op(op['id'])
                    dropped += 1
                    continue
                self.store.record_failure(op['id'], str(e))
                blocked.add(task_id)
                failed += 1
                continue
            self.store.remove_pending_op(op['id'])
            synced += 1
        synced_ids = {t['id'] for t in self.tasks if not is_local_id(t['id'])} - blocked
        for task_id in synced_ids:
            self._set_local_only(task_id, False)
        if failed:
            logger.info('retry_pending: synced=%d failed=%d dropped=%d', synced, failed, dropped)
        return {'synced': synced, 'failed': failed, 'dropped': dropped}
