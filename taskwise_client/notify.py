import logging
from typing import Callable, List, Optional

logger = logging.getLogger(__name__)

# operations whose success is obvious from the UI and gets no notice
SILENT_OPERATIONS = frozenset([
    'login',
    'load_tasks',
    'load_categories',
    'create_task',
    'task_completion',
    'undo',
    'redo',
])

DEFAULT = 'default'
DESTRUCTIVE = 'destructive'


class Notification:
    def __init__(self, title: str, description: Optional[str] = None, variant: str = DEFAULT):
        self.title = title
        self.description = description
        self.variant = variant

    def __repr__(self) -> str:
        return f'Notification({self.title!r}, {self.description!r}, {self.variant!r})'


class Notifier:
    """Non-blocking user notices.

    Destructive notices are always delivered. Success notices are
    dropped for operations in SILENT_OPERATIONS.
    """

    def __init__(self, sink: Optional[Callable[[Notification], None]] = None):
        self.sink = sink
        self.delivered: List[Notification] = []

    def notify(self, title: str, description: Optional[str] = None, variant: str = DEFAULT,
               operation: Optional[str] = None) -> bool:
        note = Notification(title, description, variant)
        if variant != DESTRUCTIVE and operation in SILENT_OPERATIONS:
            logger.debug('silenced notification for operation %s: %r', operation, note)
            return False
        self.delivered.append(note)
        if self.sink is not None:
            self.sink(note)
        else:
            log = logger.warning if variant == DESTRUCTIVE else logger.info
            log('%s%s', title, f': {description}' if description else '')
        return True

    def error(self, title: str, description: Optional[str] = None) -> bool:
        return self.notify(title, description, variant=DESTRUCTIVE)
