"""Python client for the TaskWise API with local undo/redo and optimistic edits."""

from .actions import TaskBoard
from .api import ApiError, TaskwiseClient
from .history import UndoRedoHistory
from .local_store import LocalStore
from .notify import Notifier

__all__ = ['TaskBoard', 'ApiError', 'TaskwiseClient', 'UndoRedoHistory', 'LocalStore', 'Notifier']
