"""Linear undo/redo over full task-list snapshots."""
import copy
import logging
from typing import Any, List, Optional

logger = logging.getLogger(__name__)


class UndoRedoHistory:
    """Snapshot list plus a cursor.

    ``push`` drops every snapshot after the cursor before appending, so
    once a new state is pushed after an undo the undone states are gone.
    Undo and redo only move the cursor; they never talk to the server.
    """

    def __init__(self, initial: Optional[List[Any]] = None, max_entries: Optional[int] = None):
        self.max_entries = max_entries
        self._history: List[List[Any]] = [copy.deepcopy(initial or [])]
        self._index = 0

    @property
    def index(self) -> int:
        return self._index

    def __len__(self) -> int:
        return len(self._history)

    @property
    def current(self) -> List[Any]:
        return self._history[self._index]

    @property
    def can_undo(self) -> bool:
        return self._index > 0

    @property
    def can_redo(self) -> bool:
        return self._index < len(self._history) - 1

    def snapshots(self) -> List[List[Any]]:
        return list(self._history)

    def reset(self, state: List[Any]) -> None:
        self._history = [copy.deepcopy(state)]
        self._index = 0

    def push(self, state: List[Any]) -> None:
        self._history = self._history[:self._index + 1]
        self._history.append(copy.deepcopy(state))
        if self.max_entries and len(self._history) > self.max_entries:
            self._history = self._history[-self.max_entries:]
        self._index = len(self._history) - 1

    def undo(self) -> bool:
        if not self.can_undo:
            return False
        self._index -= 1
        return True

    def redo(self) -> bool:
        if not self.can_redo:
            return False
        self._index += 1
        return True

    def handle_key(self, key: str, ctrl: bool = False, meta: bool = False, shift: bool = False) -> Optional[str]:
        """Ctrl/Cmd+Z undoes, Ctrl/Cmd+Shift+Z redoes.

        Returns 'undo' or 'redo' when the shortcut matched and moved the
        cursor, otherwise None.
        """
        if not (ctrl or meta) or key.lower() != 'z':
            return None
        if shift:
            return 'redo' if self.redo() else None
        return 'undo' if self.undo() else None
