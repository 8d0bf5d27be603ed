"""
OpenAI-compatible LLM Provider.

Backs the optional navigation judge and task planner. Works with any
endpoint that speaks the chat-completions protocol:
- OpenAI
- Azure OpenAI
- Local servers (LM Studio, Ollama, etc.)
"""

import logging
import os
from typing import Any, Dict, List, Optional

import httpx

from autobrowse.exceptions import ConfigurationError
from autobrowse.interfaces.llm import (
    ILLMProvider,
    LLMResponse,
    Message,
    MessageRole,
    Usage,
)

logger = logging.getLogger(__name__)

API_KEY_ENV = "OPENAI_API_KEY"


class OpenAIProvider(ILLMProvider):
    """
    OpenAI-compatible chat-completions provider.

    Example:
        >>> provider = OpenAIProvider(
        ...     base_url="https://api.openai.com/v1",
        ...     model="gpt-4o-mini"
        ... )
        >>> response = await provider.complete([
        ...     Message.user("Reply with {}")
        ... ])
    """

    def __init__(
        self,
        base_url: str,
        model: str,
        api_key: Optional[str] = None,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize the provider.

        Args:
            base_url: API base URL including the version segment (e.g. ``.../v1``)
            model: Model to use for completions
            api_key: API key (reads OPENAI_API_KEY when not set)
            timeout: Request timeout in seconds
            transport: Optional httpx transport (tests)
        """
        self._base_url = base_url.rstrip("/")
        self._api_key = api_key or os.environ.get(API_KEY_ENV, "not-needed")
        self._model = model

        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            headers={
                "Authorization": f"Bearer {self._api_key}",
                "Content-Type": "application/json",
            },
            timeout=timeout,
            transport=transport,
        )

    @classmethod
    def from_settings(cls, settings: Any) -> "OpenAIProvider":
        """
        Build from the ``llm`` settings section.

        Raises:
            ConfigurationError: If the LLM is not enabled
        """
        llm = settings.llm
        if not llm.enabled:
            raise ConfigurationError("LLM provider is disabled (set AUTOBROWSE__LLM__ENABLED=true)")
        return cls(
            base_url=llm.base_url,
            model=llm.model,
            api_key=llm.api_key.get_secret_value() if llm.api_key else None,
            timeout=float(llm.timeout),
        )

    @property
    def name(self) -> str:
        return "openai"

    @property
    def default_model(self) -> str:
        return self._model

    async def complete(
        self,
        messages: List[Message],
        model: Optional[str] = None,
        temperature: float = 0.0,
        max_tokens: Optional[int] = None,
        **kwargs: Any,
    ) -> LLMResponse:
        """Generate a completion."""
        model = model or self._model

        body: Dict[str, Any] = {
            "model": model,
            "messages": [
                {
                    "role": msg.role.value if isinstance(msg.role, MessageRole) else msg.role,
                    "content": msg.content,
                }
                for msg in messages
            ],
            "temperature": temperature,
        }
        if max_tokens:
            body["max_tokens"] = max_tokens
        body.update(kwargs)

        logger.debug(f"Calling chat completions: {model}")

        try:
            response = await self._client.post("/chat/completions", json=body)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            logger.error(f"HTTP error: {e.response.status_code} - {e.response.text[:300]}")
            raise

        data = response.json()
        choice = data["choices"][0]
        usage_data = data.get("usage") or {}
        return LLMResponse(
            content=choice["message"].get("content") or "",
            model=data.get("model", model),
            usage=Usage(
                prompt_tokens=usage_data.get("prompt_tokens", 0),
                completion_tokens=usage_data.get("completion_tokens", 0),
                total_tokens=usage_data.get("total_tokens", 0),
            ),
            finish_reason=choice.get("finish_reason") or "stop",
        )

    async def close(self) -> None:
        """Close the HTTP client."""
        await self._client.aclose()
