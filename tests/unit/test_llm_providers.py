"""
Tests for the LLM provider and JSON reply parsing.
"""

import json

import httpx
import pytest

from autobrowse.interfaces.llm import Message


def _completion(content, **extra):
    data = {
        "model": "gpt-4o-mini-2024",
        "choices": [{"message": {"role": "assistant", "content": content}, "finish_reason": "stop"}],
        "usage": {"prompt_tokens": 12, "completion_tokens": 3, "total_tokens": 15},
    }
    data.update(extra)
    return data


class TestOpenAIProvider:
    """Test the OpenAI-compatible provider."""

    @pytest.fixture
    def captured(self):
        return []

    @pytest.fixture
    def provider(self, captured):
        from autobrowse.llm.openai_provider import OpenAIProvider

        def handler(request: httpx.Request) -> httpx.Response:
            captured.append(request)
            return httpx.Response(200, json=_completion('{"shouldContinue": false}'))

        return OpenAIProvider(
            base_url="http://127.0.0.1:3030/v1/",
            model="gpt-4o-mini",
            api_key="sk-test",
            transport=httpx.MockTransport(handler),
        )

    def test_properties(self, provider):
        assert provider.name == "openai"
        assert provider.default_model == "gpt-4o-mini"

    @pytest.mark.asyncio
    async def test_complete_request(self, provider, captured):
        """Test the request body, headers and parsed response."""
        response = await provider.complete(
            [Message.system("Judge pages."), Message.user("Is this enough?")],
            max_tokens=50,
        )
        request = captured[0]
        body = json.loads(request.content)
        assert request.url.path == "/v1/chat/completions"
        assert request.headers["authorization"] == "Bearer sk-test"
        assert body["model"] == "gpt-4o-mini"
        assert body["messages"][0] == {"role": "system", "content": "Judge pages."}
        assert body["max_tokens"] == 50
        assert body["temperature"] == 0.0
        assert response.content == '{"shouldContinue": false}'
        assert response.model == "gpt-4o-mini-2024"
        assert response.usage.total_tokens == 15
        assert response.finish_reason == "stop"
        await provider.close()

    @pytest.mark.asyncio
    async def test_http_error_raises(self):
        """Test non-2xx replies raise HTTPStatusError."""
        from autobrowse.llm.openai_provider import OpenAIProvider
        provider = OpenAIProvider(
            base_url="http://127.0.0.1:3030/v1",
            model="gpt-4o-mini",
            transport=httpx.MockTransport(lambda request: httpx.Response(429, text="rate limited")),
        )
        with pytest.raises(httpx.HTTPStatusError):
            await provider.complete([Message.user("hi")])
        await provider.close()

    def test_from_settings_requires_enabled(self, settings):
        """Test a disabled LLM section is a configuration error."""
        from autobrowse.exceptions import ConfigurationError
        from autobrowse.llm.openai_provider import OpenAIProvider
        with pytest.raises(ConfigurationError):
            OpenAIProvider.from_settings(settings)

    def test_from_settings(self, settings):
        from autobrowse.llm.openai_provider import OpenAIProvider
        settings.llm.enabled = True
        settings.llm.model = "local-model"
        provider = OpenAIProvider.from_settings(settings)
        assert provider.default_model == "local-model"


class TestJsonOutput:
    """Test JSON extraction from model replies."""

    @pytest.mark.parametrize("text,expected", [
        ('{"a": 1}', {"a": 1}),
        ('```json\n{"a": 1}\n```', {"a": 1}),
        ('```\n{"a": 2}\n```', {"a": 2}),
        ('Sure! Here it is: {"a": 3} Hope that helps.', {"a": 3}),
        ("[1, 2]", None),
        ("no json here", None),
        ("", None),
        ('{"a": ', None),
    ])
    def test_parse_json_response(self, text, expected):
        from autobrowse.llm.json_output import parse_json_response
        assert parse_json_response(text) == expected

    def test_string_list(self):
        from autobrowse.llm.json_output import string_list
        assert string_list([" a ", "", None, 3]) == ["a", "3"]
        assert string_list("a") == []

    def test_non_empty_string(self):
        from autobrowse.llm.json_output import non_empty_string
        assert non_empty_string("  x ") == "x"
        assert non_empty_string("   ") is None
        assert non_empty_string(5) is None
