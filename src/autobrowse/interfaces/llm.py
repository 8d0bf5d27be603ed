"""
LLM Provider Interface - Contract for the optional judge/planner model.

Navigation judging and task planning are deterministic by default; an
ILLMProvider, when configured, is asked for JSON decisions instead.

Example:
    >>> from autobrowse.llm import OpenAIProvider
    >>> provider = OpenAIProvider(base_url="https://api.openai.com/v1", model="gpt-4o-mini")
    >>> response = await provider.complete([Message.user("Hello")])
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional


class MessageRole(Enum):
    """Role of a message in the conversation."""
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


@dataclass
class Message:
    """
    A message in the LLM conversation.
    
    Attributes:
        role: The role of the message sender
        content: The text content of the message
    """
    role: MessageRole
    content: str

    @classmethod
    def system(cls, content: str) -> "Message":
        """Create a system message."""
        return cls(role=MessageRole.SYSTEM, content=content)

    @classmethod
    def user(cls, content: str) -> "Message":
        """Create a user message."""
        return cls(role=MessageRole.USER, content=content)

    @classmethod
    def assistant(cls, content: str) -> "Message":
        """Create an assistant message."""
        return cls(role=MessageRole.ASSISTANT, content=content)


@dataclass
class Usage:
    """
    Token usage information from an LLM response.
    
    Attributes:
        prompt_tokens: Number of tokens in the prompt
        completion_tokens: Number of tokens in the completion
        total_tokens: Total tokens used
    """
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0

    def to_dict(self) -> Dict[str, int]:
        """Convert to dictionary."""
        return {
            "prompt_tokens": self.prompt_tokens,
            "completion_tokens": self.completion_tokens,
            "total_tokens": self.total_tokens,
        }


@dataclass
class LLMResponse:
    """
    Response from an LLM completion request.
    
    Attributes:
        content: The text content of the response
        model: The model that generated the response
        usage: Token usage information
        finish_reason: Reason the completion finished
    """
    content: str
    model: str
    usage: Usage
    finish_reason: str = "stop"


class ILLMProvider(ABC):
    """
    Abstract interface for LLM providers.
    
    Implementations handle authentication, request formatting and
    response parsing for their specific endpoint.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Provider name (e.g., 'openai')."""
        ...

    @property
    @abstractmethod
    def default_model(self) -> str:
        """Default model name."""
        ...

    @abstractmethod
    async def complete(
        self,
        messages: List[Message],
        model: Optional[str] = None,
        temperature: float = 0.0,
        max_tokens: Optional[int] = None,
        **kwargs: Any,
    ) -> LLMResponse:
        """
        Generate a completion for the given messages.
        
        Args:
            messages: List of messages in the conversation
            model: Model to use (defaults to provider's default model)
            temperature: Sampling temperature
            max_tokens: Maximum tokens in the response
            **kwargs: Provider-specific options
            
        Returns:
            The LLM's response
            
        Raises:
            httpx.HTTPError: If the request fails
        """
        ...

    async def close(self) -> None:
        """Release network resources."""
        return None
