"""Prompted model calls used to enrich new tasks.

Each flow asks for a small JSON object and validates it with pydantic.
Flows raise on any failure; callers decide the fallback.
"""
import json
import logging
import re
from datetime import date
from typing import List, Optional, Sequence

from pydantic import BaseModel, Field, ValidationError

from .. import config
from .client import AIResponseError, ClaudeClient

logger = logging.getLogger(__name__)

DEFAULT_CATEGORIES = ['Health', 'Finance', 'Work', 'Personal', 'Errands', 'Other']

_JSON_OBJECT_RE = re.compile(r'\{.*\}', re.DOTALL)


class CategorizeOutput(BaseModel):
    category: str


class PrioritizeOutput(BaseModel):
    priorityScore: float
    reasoning: str = ''


class SuggestSubtasksOutput(BaseModel):
    subtasks: List[str] = Field(default_factory=list)


def _parse_json(text: str, model: type[BaseModel]) -> BaseModel:
    m = _JSON_OBJECT_RE.search(text)
    if not m:
        raise AIResponseError(f'no JSON object in model reply: {text[:200]!r}')
    try:
        return model.model_validate(json.loads(m.group(0)))
    except (ValueError, ValidationError) as e:
        raise AIResponseError(f'unusable model reply: {e}') from e


async def categorize_task(client: ClaudeClient, task_description: str, categories: Optional[Sequence[str]] = None) -> str:
    choices = list(categories) if categories else DEFAULT_CATEGORIES
    prompt = (
        'You are a task categorization expert. Given the task description, determine the most '
        'appropriate category for it from the following list:\n'
        f"{', '.join(choices)}\n\n"
        f'Task Description: {task_description}\n\n'
        'Answer with JSON only, in the form {"category": "<one category from the list>"}.'
    )
    reply = await client.send_message(prompt)
    out = _parse_json(reply, CategorizeOutput)
    answer = out.category.strip()
    if not answer:
        raise AIResponseError('model returned an empty category')
    # prefer the canonical spelling from the list when only case differs
    for c in choices:
        if c.lower() == answer.lower():
            return c
    return answer


async def prioritize_task(
    client: ClaudeClient,
    task: str,
    deadline: Optional[str],
    importance: int,
    category: str,
    today: Optional[date] = None,
) -> PrioritizeOutput:
    today = today or date.today()
    weights = '\n'.join(f'    - {name}: {w}' for name, w in config.CATEGORY_MULTIPLIERS.items())
    prompt = (
        'You are an AI task prioritization expert. Calculate a final priority score (1-100, 100 being '
        'highest priority) for the given task and explain your reasoning.\n\n'
        'Consider these factors:\n'
        '1. User Importance (1-10): the primary driver. A base score can be derived from it '
        '(e.g. importance * 8).\n'
        f'2. Deadline Proximity: closer deadlines raise priority. Today is {today.isoformat()}.\n'
        '3. Category Context: deadline urgency is modulated by category. Baseline weights:\n'
        f'{weights}\n'
        '4. Overall Balance: a low-importance task should not score above 60 just because it is '
        'due today; a high-importance task far in the future keeps a reasonable base priority.\n'
        '5. Score Range: the score must be between 1 and 100.\n\n'
        f'Task: {task}\n'
        f"Deadline: {deadline or 'none'}\n"
        f'Importance: {importance}\n'
        f'Category: {category}\n\n'
        'Answer with JSON only: {"priorityScore": <number>, "reasoning": "<short explanation>"}.'
    )
    reply = await client.send_message(prompt)
    out = _parse_json(reply, PrioritizeOutput)
    if not (1 <= out.priorityScore <= 100):
        raise AIResponseError(f'priority score out of range: {out.priorityScore}')
    return out


async def suggest_subtasks(client: ClaudeClient, task_description: str) -> List[str]:
    prompt = (
        'You are a helpful AI assistant that suggests high-level subtasks for a given task. '
        'Suggest 2-3 broad subtasks that break the task into its key components or stages. '
        'Avoid overly specific or numerous micro-steps.\n\n'
        f'Task Description: {task_description}\n\n'
        'Answer with JSON only: {"subtasks": ["...", "..."]}.'
    )
    reply = await client.send_message(prompt)
    out = _parse_json(reply, SuggestSubtasksOutput)
    return [s.strip() for s in out.subtasks if s and s.strip()][:3]
