"""Tests for the OpenAI-backed language model gateway."""

from types import SimpleNamespace

import httpx
import openai
import pytest

from concierge.errors import LanguageModelError, LanguageModelRateLimited, LanguageModelTimeout
from concierge.schemas.session_schema import AgentName, Sender, Turn
from concierge.tools.language_model import (
    LanguageModelGateway,
    OpenAIGateway,
    build_chat_messages,
)
from tests.conftest import FakeLanguageModel

_REQUEST = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")


class _Completions:
    def __init__(self, content=None, error=None, choices=True):
        self.content = content
        self.error = error
        self.choices = choices
        self.kwargs = None

    async def create(self, **kwargs):
        self.kwargs = kwargs
        if self.error is not None:
            raise self.error
        if not self.choices:
            return SimpleNamespace(choices=[])
        message = SimpleNamespace(content=self.content)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])


def _gateway(completions: _Completions) -> OpenAIGateway:
    client = SimpleNamespace(chat=SimpleNamespace(completions=completions))
    return OpenAIGateway(model="gpt-4o-mini", temperature=0.0, max_tokens=50, client=client)


class TestBuildChatMessages:
    def test_roles(self):
        history = [
            Turn(sender=Sender.USER, text="hi"),
            Turn(sender=Sender.AGENT, text="Hello!", agent=AgentName.RESTAURANT_INFO),
        ]
        messages = build_chat_messages("be nice", history, "a table please")
        assert [m["role"] for m in messages] == ["system", "user", "assistant", "user"]
        assert messages[-1]["content"] == "a table please"


class TestOpenAIGateway:
    def test_fake_and_real_satisfy_protocol(self):
        assert isinstance(FakeLanguageModel(), LanguageModelGateway)
        assert isinstance(OpenAIGateway(api_key="test"), LanguageModelGateway)

    @pytest.mark.asyncio
    async def test_returns_stripped_content(self):
        completions = _Completions(content="  What time suits you?  ")
        reply = await _gateway(completions).generate("system", [], "tomorrow")
        assert reply == "What time suits you?"
        assert completions.kwargs["model"] == "gpt-4o-mini"
        assert completions.kwargs["temperature"] == 0.0
        assert completions.kwargs["messages"][0] == {"role": "system", "content": "system"}

    @pytest.mark.asyncio
    async def test_empty_content(self):
        reply = await _gateway(_Completions(content=None)).generate("system", [], "hi")
        assert reply == ""

    @pytest.mark.asyncio
    async def test_no_choices(self):
        with pytest.raises(LanguageModelError, match="no choices"):
            await _gateway(_Completions(choices=False)).generate("system", [], "hi")

    @pytest.mark.asyncio
    async def test_timeout_translated(self):
        completions = _Completions(error=openai.APITimeoutError(request=_REQUEST))
        with pytest.raises(LanguageModelTimeout):
            await _gateway(completions).generate("system", [], "hi")

    @pytest.mark.asyncio
    async def test_rate_limit_translated(self):
        error = openai.RateLimitError(
            "slow down", response=httpx.Response(429, request=_REQUEST), body=None
        )
        with pytest.raises(LanguageModelRateLimited):
            await _gateway(_Completions(error=error)).generate("system", [], "hi")

    @pytest.mark.asyncio
    async def test_other_errors_translated(self):
        completions = _Completions(error=openai.OpenAIError("boom"))
        with pytest.raises(LanguageModelError, match="boom"):
            await _gateway(completions).generate("system", [], "hi")
