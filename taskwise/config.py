"""Runtime configuration for the TaskWise server.

Values are read from environment variables (a local .env file is loaded
first) so deployments can toggle behaviour without code changes.
"""
import json
import logging
import os

from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger(__name__)


def _trueish(v: str | None) -> bool:
    if not v:
        return False
    return v.lower() in ('1', 'true', 'yes', 'on')


def _int_env(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, str(default)))
    except ValueError:
        logger.warning('invalid integer for %s, using %d', name, default)
        return default


DATABASE_URL = os.getenv('DATABASE_URL', 'sqlite+aiosqlite:///./data/taskwise.db')

# 'production' turns on secure cookies. COOKIE_SECURE=1 forces them on
# regardless (useful behind a TLS terminating proxy in staging).
TASKWISE_ENV = os.getenv('TASKWISE_ENV', 'development').lower()
COOKIE_SECURE = TASKWISE_ENV == 'production' or _trueish(os.getenv('COOKIE_SECURE'))

SESSION_COOKIE_NAME = 'taskwise_session'
SESSION_EXPIRY_HOURS = _int_env('SESSION_EXPIRY_HOURS', 24)

# Server-wide AI key. Each user may override it with the AI_API_KEY_SETTING
# entry in their user settings.
ANTHROPIC_API_KEY = os.getenv('ANTHROPIC_API_KEY', '')
AI_MODEL = os.getenv('TASKWISE_AI_MODEL', 'claude-3-5-haiku-latest')
AI_MAX_TOKENS = _int_env('TASKWISE_AI_MAX_TOKENS', 512)
AI_API_KEY_SETTING = 'aiApiKey'

# Urgency weights applied to deadline proximity when scoring a task.
DEFAULT_CATEGORY_MULTIPLIERS = {
    'Health': 1.5,
    'Finance': 1.3,
    'Work': 1.2,
    'Personal': 1.0,
    'Errands': 0.9,
    'Other': 0.8,
}


def _load_multipliers() -> dict[str, float]:
    raw = os.getenv('TASKWISE_CATEGORY_MULTIPLIERS')
    if not raw:
        return dict(DEFAULT_CATEGORY_MULTIPLIERS)
    try:
        parsed = json.loads(raw)
        merged = dict(DEFAULT_CATEGORY_MULTIPLIERS)
        merged.update({str(k): float(v) for k, v in parsed.items()})
        return merged
    except (ValueError, TypeError, AttributeError):
        logger.warning('invalid TASKWISE_CATEGORY_MULTIPLIERS, using defaults')
        return dict(DEFAULT_CATEGORY_MULTIPLIERS)


CATEGORY_MULTIPLIERS = _load_multipliers()

# What happens to a user's tasks when the account is permanently deleted:
# 'delete' removes them, 'unassign' keeps them as global (user_id NULL) tasks.
ORPHANED_TASKS_POLICY = os.getenv('TASKWISE_ORPHANED_TASKS', 'delete').lower()
if ORPHANED_TASKS_POLICY not in ('delete', 'unassign'):
    logger.warning('unknown TASKWISE_ORPHANED_TASKS=%s, using delete', ORPHANED_TASKS_POLICY)
    ORPHANED_TASKS_POLICY = 'delete'

USERS_CONFIG_PATH = os.getenv('TASKWISE_USERS_CONFIG', os.path.join('config', 'users.json'))

BUILTIN_CATEGORIES = [
    ('Work', '💼'),
    ('Home', '🏠'),
    ('Errands', '🏃‍♂️'),
    ('Personal', '👤'),
    ('Health', '⚕️'),
    ('Finance', '💰'),
    ('Education', '📚'),
    ('Social', '🫂'),
    ('Travel', '✈️'),
    ('Other', '📌'),
]
