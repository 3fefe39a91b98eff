# src/apidoc/llm/client.py
"""Resilient client for OpenAI-compatible chat-completion endpoints."""

import asyncio
import json
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Protocol

import httpx

from apidoc.config import LLMConfig
from apidoc.constants import CHAT_COMPLETIONS_PATH, INITIAL_BACKOFF_SECONDS, MAX_RETRIES

logger = logging.getLogger(__name__)

SleepFunc = Callable[[float], Awaitable[None]]


class LLMError(Exception):
    """Base exception for LLM client errors."""

    pass


class LLMConnectionError(LLMError):
    """Raised when the endpoint cannot be reached or the request times out."""

    pass


class LLMStatusError(LLMError):
    """Raised when the endpoint answers with a non-2xx status."""

    def __init__(self, status_code: int, body: str = ""):
        self.status_code = status_code
        self.body = body
        super().__init__(f"llm error status {status_code}: {body}")


class LLMServerError(LLMStatusError):
    """Raised on 5xx and 429 responses. Retryable."""

    pass


class LLMRateLimitError(LLMServerError):
    """Raised on 429 responses.

    Attributes:
        retry_after: Seconds the server asked to wait, if it said so.
    """

    def __init__(self, status_code: int, body: str = "", retry_after: float | None = None):
        super().__init__(status_code, body)
        self.retry_after = retry_after


class LLMClientError(LLMStatusError):
    """Raised on 4xx responses other than 429. Not retried."""

    pass


class LLMAuthenticationError(LLMClientError):
    """Raised when the endpoint rejects the credential (401/403)."""

    pass


class LLMResponseError(LLMError):
    """Raised when a response cannot be read or decoded into a completion."""

    pass


RETRYABLE_ERRORS: tuple[type[LLMError], ...] = (LLMConnectionError, LLMServerError)


class CompletionGateway(Protocol):
    """Anything that turns a system + user prompt into completion text."""

    async def complete(self, system_prompt: str, user_prompt: str) -> str: ...


@dataclass(frozen=True)
class RetryPolicy:
    """Exponential backoff for transient failures.

    Attributes:
        max_retries: Retries after the first attempt.
        initial_backoff: Wait in seconds before the first retry; doubles each retry.
    """

    max_retries: int = MAX_RETRIES
    initial_backoff: float = INITIAL_BACKOFF_SECONDS

    def backoff(self, attempt: int) -> float:
        """Wait before retrying after the given zero-based attempt."""
        return self.initial_backoff * (2 ** max(attempt, 0))

    def wait_for(self, attempt: int, error: LLMError) -> float:
        """Wait before the next attempt, honouring a server Retry-After hint."""
        if isinstance(error, LLMRateLimitError) and error.retry_after is not None:
            return error.retry_after
        return self.backoff(attempt)


def parse_retry_after(value: str | None) -> float | None:
    """Parse a Retry-After header given in seconds.

    HTTP-date values are not supported and yield None.
    """
    if value is None:
        return None
    try:
        seconds = float(value.strip())
    except ValueError:
        return None
    if seconds < 0:
        return None
    return seconds


def strip_code_fence(content: str) -> str:
    """Remove a markdown code fence wrapped around the whole text.

    A leading fence line (with an optional language tag) and the last
    closing fence are dropped. Text without a leading fence is returned
    trimmed.
    """
    trimmed = content.strip()
    if not trimmed.startswith("```"):
        return trimmed

    trimmed = trimmed[3:]
    newline = trimmed.find("\n")
    if newline != -1:
        trimmed = trimmed[newline + 1 :]
    end = trimmed.rfind("```")
    if end != -1:
        trimmed = trimmed[:end]
    return trimmed.strip()


class ChatCompletionClient:
    """Performs one chat-completion exchange with retries.

    Transport failures, 429 and 5xx responses are retried with exponential
    backoff; any other non-2xx status fails immediately.
    """

    def __init__(
        self,
        config: LLMConfig,
        http_client: httpx.AsyncClient | None = None,
        retry_policy: RetryPolicy | None = None,
        sleep: SleepFunc = asyncio.sleep,
        log_path: Path | None = None,
    ):
        """Initialize the client.

        Args:
            config: Endpoint, credential, and model settings.
            http_client: Optional shared client; a short-lived one is created per
                attempt otherwise.
            retry_policy: Backoff policy. Defaults to the config's retry settings.
            sleep: Coroutine used to wait between attempts.
            log_path: Optional path to JSONL log file for query logging.
        """
        self.config = config
        self.retry_policy = retry_policy or RetryPolicy(
            max_retries=config.max_retries,
            initial_backoff=config.initial_backoff_seconds,
        )
        self.log_path = log_path
        self._http_client = http_client
        self._sleep = sleep

    @property
    def url(self) -> str:
        """Full chat-completions URL."""
        return self.config.base_url.rstrip("/") + CHAT_COMPLETIONS_PATH

    def _build_payload(self, system_prompt: str, user_prompt: str) -> dict[str, Any]:
        return {
            "model": self.config.model,
            "max_tokens": self.config.max_tokens,
            "temperature": self.config.temperature,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
        }

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.config.api_key:
            headers["Authorization"] = f"Bearer {self.config.api_key}"
        return headers

    def _log_query(
        self,
        payload: dict[str, Any],
        attempt: int,
        response: str | None,
        duration_ms: int,
        error: str | None,
    ) -> None:
        """Append one exchange to the JSONL log file, if configured."""
        if not self.log_path:
            return

        entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "url": self.url,
            "attempt": attempt,
            "request": payload,
            "response": response,
            "duration_ms": duration_ms,
            "error": error,
        }

        try:
            self.log_path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.log_path, "a", encoding="utf-8") as f:
                f.write(json.dumps(entry, ensure_ascii=False) + "\n")
        except OSError as e:
            logger.warning(f"Could not write LLM query log {self.log_path}: {e}")

    async def _post(self, payload: dict[str, Any]) -> httpx.Response:
        timeout = self.config.timeout_seconds
        if self._http_client is not None:
            return await self._http_client.post(
                self.url, json=payload, headers=self._headers(), timeout=timeout
            )
        async with httpx.AsyncClient(timeout=timeout) as client:
            return await client.post(self.url, json=payload, headers=self._headers())

    async def _attempt(self, payload: dict[str, Any]) -> str:
        """Send the request once and return the raw message content."""
        try:
            response = await self._post(payload)
        except httpx.TransportError as e:
            raise LLMConnectionError(f"Connection failed: {e!r}") from e
        except httpx.HTTPError as e:
            # Undecodable content encoding, redirect loops
            raise LLMResponseError(f"Unreadable response: {e!r}") from e

        status = response.status_code
        body = response.text.strip()
        if status == 429:
            retry_after = parse_retry_after(response.headers.get("Retry-After"))
            raise LLMRateLimitError(status, body, retry_after=retry_after)
        if status >= 500:
            raise LLMServerError(status, body)
        if status in (401, 403):
            raise LLMAuthenticationError(status, body)
        if not 200 <= status < 300:
            raise LLMClientError(status, body)

        try:
            data = response.json()
        except ValueError as e:
            raise LLMResponseError(f"Malformed response body: {e}") from e
        return self._extract_content(data)

    @staticmethod
    def _extract_content(data: Any) -> str:
        choices = data.get("choices") if isinstance(data, dict) else None
        if not choices:
            raise LLMResponseError("llm response has no choices")
        try:
            content = choices[0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as e:
            raise LLMResponseError(f"Malformed choice in response: {e!r}") from e
        return str(content or "")

    async def complete(self, system_prompt: str, user_prompt: str) -> str:
        """Run one chat-completion exchange.

        Args:
            system_prompt: System instruction.
            user_prompt: User message.

        Returns:
            The first choice's content with any surrounding code fence removed.

        Raises:
            LLMError: The last error once retries are exhausted, or the first
                non-retryable error.
        """
        payload = self._build_payload(system_prompt, user_prompt)
        max_attempts = self.retry_policy.max_retries + 1
        logger.debug(f"LLM request to {self.url}: system={system_prompt!r} user={user_prompt!r}")

        last_error: LLMError | None = None
        for attempt in range(max_attempts):
            start_time = time.perf_counter()
            try:
                content = await self._attempt(payload)
            except LLMError as e:
                duration_ms = int((time.perf_counter() - start_time) * 1000)
                self._log_query(payload, attempt, None, duration_ms, str(e))
                if not isinstance(e, RETRYABLE_ERRORS) or attempt + 1 >= max_attempts:
                    raise
                last_error = e
                wait = self.retry_policy.wait_for(attempt, e)
                logger.warning(
                    f"LLM attempt {attempt + 1}/{max_attempts} failed ({e}); retrying in {wait:g}s"
                )
                await self._sleep(wait)
                continue

            duration_ms = int((time.perf_counter() - start_time) * 1000)
            self._log_query(payload, attempt, content, duration_ms, None)
            logger.debug(f"LLM response: {content!r}")
            return strip_code_fence(content)

        raise last_error or LLMError("llm request failed")
