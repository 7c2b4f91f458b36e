"""Local queue of changes that could not be sent to the server."""

import sqlite3
import json
import os
from typing import List, Dict, Any, Optional


class LocalStore:
    """SQLite-backed queue of pending task operations."""

    def __init__(self, db_path: Optional[str] = None):
        if db_path is None:
            db_path = os.path.join(os.path.expanduser('~'), '.taskwise', 'pending.db')
        directory = os.path.dirname(db_path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        self.db_path = db_path
        self._init_db()

    def _init_db(self) -> None:
        with sqlite3.connect(self.db_path) as conn:
            conn.execute('''
                CREATE TABLE IF NOT EXISTS pending_ops (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    op_type TEXT NOT NULL,
                    task_id TEXT,
                    data TEXT NOT NULL,
                    attempts INTEGER DEFAULT 0,
                    last_error TEXT,
                    created_at TEXT DEFAULT CURRENT_TIMESTAMP
                )
            ''')
            conn.commit()

    def clear_all(self) -> None:
        with sqlite3.connect(self.db_path) as conn:
            conn.execute('DELETE FROM pending_ops')
            conn.commit()

    def queue_pending_op(self, op_type: str, task_id: Optional[str], data: Dict[str, Any], error: Optional[str] = None) -> int:
        """Queue an operation for a later retry and return its queue id."""
        with sqlite3.connect(self.db_path) as conn:
            cur = conn.execute(
                'INSERT INTO pending_ops (op_type, task_id, data, attempts, last_error) VALUES (?, ?, ?, 1, ?)',
                (op_type, task_id, json.dumps(data, default=str), error)
            )
            conn.commit()
            return cur.lastrowid

    def get_pending_ops(self) -> List[Dict[str, Any]]:
        """All pending operations, oldest first."""
        with sqlite3.connect(self.db_path) as conn:
            rows = conn.execute(
                'SELECT id, op_type, task_id, data, attempts, last_error, created_at FROM pending_ops ORDER BY id'
            ).fetchall()
            return [
                {
                    'id': row[0], 'op_type': row[1], 'task_id': row[2], 'data': json.loads(row[3]),
                    'attempts': row[4], 'last_error': row[5], 'created_at': row[6],
                }
                for row in rows
            ]

    def remove_pending_op(self, op_id: int) -> None:
        with sqlite3.connect(self.db_path) as conn:
            conn.execute('DELETE FROM pending_ops WHERE id = ?', (op_id,))
            conn.commit()

    def record_failure(self, op_id: int, error: str) -> None:
        with sqlite3.connect(self.db_path) as conn:
            conn.execute(
                'UPDATE pending_ops SET attempts = attempts + 1, last_error = ? WHERE id = ?',
                (error, op_id)
            )
            conn.commit()

    def pending_count(self) -> int:
        with sqlite3.connect(self.db_path) as conn:
            return conn.execute('SELECT COUNT(*) FROM pending_ops').fetchone()[0]
