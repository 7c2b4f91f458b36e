from .client import AIResponseError, AIUnavailableError, ClaudeClient, client_for_user
from .fallback import fallback_priority_score
from .flows import categorize_task, prioritize_task, suggest_subtasks

__all__ = [
    'AIResponseError',
    'AIUnavailableError',
    'ClaudeClient',
    'client_for_user',
    'fallback_priority_score',
    'categorize_task',
    'prioritize_task',
    'suggest_subtasks',
]
