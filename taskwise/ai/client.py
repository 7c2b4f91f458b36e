import logging
from typing import Optional

from anthropic import AsyncAnthropic
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession

from .. import config
from ..models import UserSetting

logger = logging.getLogger(__name__)


class AIUnavailableError(ValueError):
    """No API key is configured for the caller."""


class AIResponseError(Exception):
    """The model answered with something we could not use."""


class ClaudeClient:
    def __init__(self, api_key: Optional[str] = None, model: Optional[str] = None):
        self.api_key = api_key or config.ANTHROPIC_API_KEY
        if not self.api_key:
            raise AIUnavailableError("no AI API key configured (set ANTHROPIC_API_KEY or the aiApiKey user setting)")
        self.client = AsyncAnthropic(api_key=self.api_key)
        self.model = model or config.AI_MODEL

    async def send_message(self, prompt: str, system_prompt: Optional[str] = None, max_tokens: Optional[int] = None) -> str:
        """Send a single user turn and return the text of the reply."""
        kwargs = {
            'model': self.model,
            'max_tokens': max_tokens or config.AI_MAX_TOKENS,
            'messages': [{'role': 'user', 'content': prompt}],
        }
        if system_prompt:
            kwargs['system'] = system_prompt
        response = await self.client.messages.create(**kwargs)
        parts = [getattr(block, 'text', '') for block in response.content]
        text = ''.join(parts).strip()
        if not text:
            raise AIResponseError('empty response from model')
        return text


async def get_user_api_key(sess: AsyncSession, user_id: Optional[int]) -> Optional[str]:
    if user_id is None:
        return None
    q = await sess.exec(
        select(UserSetting.value)
        .where(UserSetting.user_id == user_id)
        .where(UserSetting.key == config.AI_API_KEY_SETTING)
    )
    value = q.first()
    return value or None


async def client_for_user(sess: AsyncSession, user_id: Optional[int]) -> ClaudeClient:
    """Build a client using the user's own key, falling back to the server key.

    Raises AIUnavailableError when neither is set.
    """
    api_key = await get_user_api_key(sess, user_id)
    return ClaudeClient(api_key=api_key)
