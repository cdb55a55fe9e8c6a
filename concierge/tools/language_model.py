"""
Language model gateway.

Agents only depend on the ``LanguageModelGateway`` protocol: a system
prompt, the recent history and the user's message go in, free text comes
out. ``OpenAIGateway`` is the production implementation; provider errors
are translated into the package's own exception types so callers never
need to know about the SDK.
"""

import logging
from typing import Optional, Protocol, Sequence, runtime_checkable

import openai
from openai import AsyncOpenAI

from concierge.config import settings
from concierge.errors import LanguageModelError, LanguageModelRateLimited, LanguageModelTimeout
from concierge.schemas.session_schema import Sender, Turn

logger = logging.getLogger(__name__)


@runtime_checkable
class LanguageModelGateway(Protocol):
    """Anything that can turn a prompt plus history into a reply."""

    async def generate(
        self, system_prompt: str, history: Sequence[Turn], user_message: str
    ) -> str: ...


def build_chat_messages(
    system_prompt: str, history: Sequence[Turn], user_message: str
) -> list[dict[str, str]]:
    """Convert a conversation into the chat-completions message list."""
    messages = [{"role": "system", "content": system_prompt}]
    for turn in history:
        role = "user" if turn.sender == Sender.USER else "assistant"
        messages.append({"role": role, "content": turn.text})
    messages.append({"role": "user", "content": user_message})
    return messages


class OpenAIGateway:
    """``LanguageModelGateway`` backed by the OpenAI chat completions API."""

    def __init__(
        self,
        model: Optional[str] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        timeout_sec: Optional[float] = None,
        api_key: Optional[str] = None,
        client: Optional[AsyncOpenAI] = None,
    ) -> None:
        cfg = settings.model
        self.model = model or cfg.llm_model
        self.temperature = cfg.llm_temperature if temperature is None else temperature
        self.max_tokens = max_tokens or cfg.llm_max_tokens
        self.timeout_sec = timeout_sec or cfg.llm_timeout_sec
        self._api_key = api_key or cfg.api_key
        self._client = client

    @property
    def client(self) -> AsyncOpenAI:
        if self._client is None:
            self._client = AsyncOpenAI(api_key=self._api_key, timeout=self.timeout_sec)
        return self._client

    async def generate(
        self, system_prompt: str, history: Sequence[Turn], user_message: str
    ) -> str:
        messages = build_chat_messages(system_prompt, history, user_message)
        try:
            completion = await self.client.chat.completions.create(
                model=self.model,
                messages=messages,
                temperature=self.temperature,
                max_tokens=self.max_tokens,
            )
        except openai.APITimeoutError as exc:
            raise LanguageModelTimeout(f"{self.model} timed out after {self.timeout_sec}s") from exc
        except openai.RateLimitError as exc:
            raise LanguageModelRateLimited(f"{self.model} rate limited") from exc
        except openai.OpenAIError as exc:
            raise LanguageModelError(f"{self.model} request failed: {exc}") from exc

        if not completion.choices:
            raise LanguageModelError(f"{self.model} returned no choices")
        content = completion.choices[0].message.content or ""
        logger.debug("LLM reply (%d chars) from %s", len(content), self.model)
        return content.strip()
