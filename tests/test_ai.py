from datetime import date, timedelta

import pytest

from taskwise import config
from taskwise.ai import flows
from taskwise.ai.client import AIResponseError, AIUnavailableError, ClaudeClient, client_for_user
from taskwise.ai.fallback import fallback_priority_score
from taskwise.models import UserSetting

from conftest import create_user

TODAY = date(2030, 6, 1)


class FakeClient:
    """Stands in for ClaudeClient and records the prompts it was sent."""

    def __init__(self, reply):
        self.reply = reply
        self.prompts = []

    async def send_message(self, prompt, system_prompt=None, max_tokens=None):
        self.prompts.append(prompt)
        return self.reply


@pytest.mark.parametrize('importance,days,category,expected', [
    (5, None, 'Other', 40),
    (None, None, None, 40),
    (5, 0, 'Work', 64),
    (5, 0, 'Health', 70),
    (5, -3, 'Health', 70),
    (5, 10, 'Work', 40),
    (5, 30, 'Work', 40),
    (3, 5, 'Errands', 33),
    (10, 0, 'Health', 100),
    (1, None, 'Other', 8),
    (5, 0, 'Knitting', 60),
])
def test_fallback_priority_score(importance, days, category, expected):
    deadline = None if days is None else TODAY + timedelta(days=days)
    assert fallback_priority_score(importance, deadline, category, today=TODAY) == expected


def test_fallback_uses_given_multipliers():
    assert fallback_priority_score(5, TODAY, 'Work', today=TODAY, multipliers={'Work': 2.0}) == 80


@pytest.mark.asyncio
async def test_categorize_normalizes_to_known_spelling():
    client = FakeClient('Sure! {"category": "health"}')
    assert await flows.categorize_task(client, 'Book a checkup', ['Work', 'Health']) == 'Health'
    assert 'Book a checkup' in client.prompts[0]
    assert 'Work, Health' in client.prompts[0]


@pytest.mark.asyncio
async def test_categorize_rejects_garbage():
    with pytest.raises(AIResponseError):
        await flows.categorize_task(FakeClient('I cannot help with that'), 'x')
    with pytest.raises(AIResponseError):
        await flows.categorize_task(FakeClient('{"category": "  "}'), 'x')


@pytest.mark.asyncio
async def test_prioritize_parses_score_and_reasoning():
    client = FakeClient('```json\n{"priorityScore": 72, "reasoning": "due soon"}\n```')
    out = await flows.prioritize_task(client, 'File taxes', '2030-06-03', 7, 'Finance', today=TODAY)
    assert out.priorityScore == 72
    assert out.reasoning == 'due soon'
    prompt = client.prompts[0]
    assert 'Today is 2030-06-01' in prompt
    assert 'Deadline: 2030-06-03' in prompt
    assert 'Finance: 1.3' in prompt


@pytest.mark.asyncio
async def test_prioritize_out_of_range_is_an_error():
    with pytest.raises(AIResponseError):
        await flows.prioritize_task(FakeClient('{"priorityScore": 140}'), 't', None, 5, 'Other')
    with pytest.raises(AIResponseError):
        await flows.prioritize_task(FakeClient('{"priorityScore": 0}'), 't', None, 5, 'Other')


@pytest.mark.asyncio
async def test_suggest_subtasks_caps_at_three():
    client = FakeClient('{"subtasks": ["a", " ", "b", "c", "d"]}')
    assert await flows.suggest_subtasks(client, 'Plan a trip') == ['a', 'b', 'c']


def test_client_without_key_is_unavailable(monkeypatch):
    monkeypatch.setattr(config, 'ANTHROPIC_API_KEY', '')
    with pytest.raises(AIUnavailableError):
        ClaudeClient()


def test_client_uses_server_key_and_model(monkeypatch):
    monkeypatch.setattr(config, 'ANTHROPIC_API_KEY', 'sk-server')
    c = ClaudeClient(model='claude-test')
    assert c.api_key == 'sk-server'
    assert c.model == 'claude-test'


@pytest.mark.asyncio
async def test_user_key_overrides_server_key(db, monkeypatch):
    monkeypatch.setattr(config, 'ANTHROPIC_API_KEY', 'sk-server')
    user = await create_user(db, 'kim')
    async with db.session() as sess:
        assert (await client_for_user(sess, user.id)).api_key == 'sk-server'
        sess.add(UserSetting(user_id=user.id, key='aiApiKey', value='sk-kim'))
        await sess.commit()
        assert (await client_for_user(sess, user.id)).api_key == 'sk-kim'


@pytest.mark.asyncio
async def test_no_key_anywhere_raises(db):
    user = await create_user(db, 'lee')
    async with db.session() as sess:
        with pytest.raises(AIUnavailableError):
            await client_for_user(sess, user.id)
