"""Chat-completion gateway."""

from apidoc.llm.client import (
    ChatCompletionClient,
    CompletionGateway,
    LLMAuthenticationError,
    LLMClientError,
    LLMConnectionError,
    LLMError,
    LLMRateLimitError,
    LLMResponseError,
    LLMServerError,
    LLMStatusError,
    RetryPolicy,
)

__all__ = [
    "ChatCompletionClient",
    "CompletionGateway",
    "LLMAuthenticationError",
    "LLMClientError",
    "LLMConnectionError",
    "LLMError",
    "LLMRateLimitError",
    "LLMResponseError",
    "LLMServerError",
    "LLMStatusError",
    "RetryPolicy",
]
