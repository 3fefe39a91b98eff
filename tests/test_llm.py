"""Tests for the chat-completion client."""

import json

import httpx
import pytest

from apidoc.config import LLMConfig
from apidoc.llm.client import (
    ChatCompletionClient,
    LLMAuthenticationError,
    LLMClientError,
    LLMConnectionError,
    LLMRateLimitError,
    LLMResponseError,
    LLMServerError,
    RetryPolicy,
    parse_retry_after,
    strip_code_fence,
)


def _ok(content: str) -> httpx.Response:
    return httpx.Response(200, json={"choices": [{"message": {"content": content}}]})


class FakeSleep:
    """Records requested waits instead of sleeping."""

    def __init__(self):
        self.waits: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.waits.append(seconds)


class ScriptedEndpoint:
    """MockTransport handler answering with scripted responses in order."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


@pytest.fixture
def sleep():
    return FakeSleep()


@pytest.fixture
def config():
    return LLMConfig(
        model="test-model",
        base_url="https://llm.example.com/v1/",
        api_key="sk-test",
        max_tokens=512,
        temperature=0.1,
    )


async def _complete(config, endpoint, sleep, **kwargs):
    async with httpx.AsyncClient(transport=httpx.MockTransport(endpoint)) as http_client:
        client = ChatCompletionClient(config, http_client=http_client, sleep=sleep, **kwargs)
        return await client.complete("system text", "user text")


# =============================================================================
# Request shape
# =============================================================================


async def test_sends_openai_compatible_request(config, sleep):
    endpoint = ScriptedEndpoint(_ok('{"scenario": "x"}'))

    result = await _complete(config, endpoint, sleep)

    assert result == '{"scenario": "x"}'
    request = endpoint.requests[0]
    assert request.method == "POST"
    assert str(request.url) == "https://llm.example.com/v1/chat/completions"
    assert request.headers["Authorization"] == "Bearer sk-test"
    assert request.headers["Content-Type"] == "application/json"
    assert json.loads(request.content) == {
        "model": "test-model",
        "max_tokens": 512,
        "temperature": 0.1,
        "messages": [
            {"role": "system", "content": "system text"},
            {"role": "user", "content": "user text"},
        ],
    }
    assert sleep.waits == []


async def test_no_authorization_header_without_api_key(sleep):
    endpoint = ScriptedEndpoint(_ok("{}"))

    await _complete(LLMConfig(api_key=""), endpoint, sleep)

    assert "Authorization" not in endpoint.requests[0].headers


async def test_strips_code_fence_from_content(config, sleep):
    endpoint = ScriptedEndpoint(_ok('```json\n{"endpoints": []}\n```'))

    assert await _complete(config, endpoint, sleep) == '{"endpoints": []}'


async def test_empty_content_returns_empty_string(config, sleep):
    endpoint = ScriptedEndpoint(_ok(""))

    assert await _complete(config, endpoint, sleep) == ""


# =============================================================================
# Retries
# =============================================================================


async def test_server_error_is_retried_with_backoff(config, sleep):
    endpoint = ScriptedEndpoint(httpx.Response(500, text="oops"), _ok("done"))

    assert await _complete(config, endpoint, sleep) == "done"
    assert len(endpoint.requests) == 2
    assert sleep.waits == [1.0]


async def test_rate_limit_honours_retry_after(config, sleep):
    endpoint = ScriptedEndpoint(
        httpx.Response(429, headers={"Retry-After": "7"}, text="slow down"), _ok("done")
    )

    assert await _complete(config, endpoint, sleep) == "done"
    assert sleep.waits == [7.0]


async def test_rate_limit_without_hint_uses_backoff(config, sleep):
    endpoint = ScriptedEndpoint(
        httpx.Response(429), httpx.Response(429, headers={"Retry-After": "soon"}), _ok("done")
    )

    assert await _complete(config, endpoint, sleep) == "done"
    assert sleep.waits == [1.0, 2.0]


async def test_transport_error_is_retried(config, sleep):
    endpoint = ScriptedEndpoint(httpx.ConnectError("refused"), _ok("done"))

    assert await _complete(config, endpoint, sleep) == "done"
    assert sleep.waits == [1.0]


async def test_timeout_is_retried_then_surfaces(config, sleep):
    endpoint = ScriptedEndpoint(*[httpx.ReadTimeout("slow") for _ in range(4)])

    with pytest.raises(LLMConnectionError):
        await _complete(config, endpoint, sleep)
    assert len(endpoint.requests) == 4


async def test_exhausted_retries_raise_last_error(config, sleep):
    endpoint = ScriptedEndpoint(*[httpx.Response(503, text="busy") for _ in range(4)])

    with pytest.raises(LLMServerError) as exc_info:
        await _complete(config, endpoint, sleep)

    assert exc_info.value.status_code == 503
    assert str(exc_info.value) == "llm error status 503: busy"
    assert len(endpoint.requests) == 4
    assert sleep.waits == [1.0, 2.0, 4.0]


async def test_rate_limit_exhausted_raises_rate_limit_error(sleep):
    endpoint = ScriptedEndpoint(httpx.Response(429, headers={"Retry-After": "3"}))

    with pytest.raises(LLMRateLimitError) as exc_info:
        await _complete(LLMConfig(max_retries=0), endpoint, sleep)

    assert exc_info.value.retry_after == 3.0
    assert sleep.waits == []


async def test_client_error_is_not_retried(config, sleep):
    endpoint = ScriptedEndpoint(httpx.Response(400, text="bad request"))

    with pytest.raises(LLMClientError) as exc_info:
        await _complete(config, endpoint, sleep)

    assert exc_info.value.status_code == 400
    assert exc_info.value.body == "bad request"
    assert len(endpoint.requests) == 1
    assert sleep.waits == []


@pytest.mark.parametrize("status", [401, 403])
async def test_rejected_credential_raises_authentication_error(config, sleep, status):
    endpoint = ScriptedEndpoint(httpx.Response(status, text="denied"))

    with pytest.raises(LLMAuthenticationError):
        await _complete(config, endpoint, sleep)
    assert len(endpoint.requests) == 1


# =============================================================================
# Malformed responses
# =============================================================================


async def test_no_choices_is_response_error(config, sleep):
    endpoint = ScriptedEndpoint(httpx.Response(200, json={"choices": []}))

    with pytest.raises(LLMResponseError, match="no choices"):
        await _complete(config, endpoint, sleep)
    assert len(endpoint.requests) == 1


async def test_undecodable_body_is_response_error(config, sleep):
    endpoint = ScriptedEndpoint(httpx.Response(200, text="<html>gateway</html>"))

    with pytest.raises(LLMResponseError):
        await _complete(config, endpoint, sleep)
    assert sleep.waits == []


async def test_malformed_choice_is_response_error(config, sleep):
    endpoint = ScriptedEndpoint(httpx.Response(200, json={"choices": [{"text": "legacy"}]}))

    with pytest.raises(LLMResponseError):
        await _complete(config, endpoint, sleep)


# =============================================================================
# Query log
# =============================================================================


async def test_query_log_records_each_attempt(config, sleep, tmp_path):
    log_path = tmp_path / "logs" / "llm-queries.jsonl"
    endpoint = ScriptedEndpoint(httpx.Response(502, text="bad gateway"), _ok("done"))

    await _complete(config, endpoint, sleep, log_path=log_path)

    entries = [json.loads(line) for line in log_path.read_text(encoding="utf-8").splitlines()]
    assert [entry["attempt"] for entry in entries] == [0, 1]
    assert entries[0]["error"] == "llm error status 502: bad gateway"
    assert entries[0]["response"] is None
    assert entries[1]["response"] == "done"
    assert entries[1]["request"]["model"] == "test-model"


# =============================================================================
# Helpers
# =============================================================================


def test_backoff_doubles_each_attempt():
    policy = RetryPolicy(max_retries=3, initial_backoff=0.5)

    assert [policy.backoff(n) for n in range(4)] == [0.5, 1.0, 2.0, 4.0]


def test_wait_prefers_retry_after_for_rate_limits():
    policy = RetryPolicy(initial_backoff=1.0)

    assert policy.wait_for(2, LLMRateLimitError(429, retry_after=0.25)) == 0.25
    assert policy.wait_for(2, LLMRateLimitError(429)) == 4.0
    assert policy.wait_for(1, LLMServerError(500)) == 2.0


@pytest.mark.parametrize(
    "value, expected",
    [("7", 7.0), (" 1.5 ", 1.5), ("0", 0.0), ("-3", None), ("soon", None), (None, None)],
)
def test_parse_retry_after(value, expected):
    assert parse_retry_after(value) == expected


@pytest.mark.parametrize(
    "content, expected",
    [
        ('{"a": 1}', '{"a": 1}'),
        ('  {"a": 1}\n', '{"a": 1}'),
        ('```json\n{"a": 1}\n```', '{"a": 1}'),
        ('```\n{"a": 1}\n```\n', '{"a": 1}'),
        ('```json\n{"a": "```"}\n```', '{"a": "```"}'),
        ('```json\n{"a": 1}', '{"a": 1}'),
    ],
)
def test_strip_code_fence(content, expected):
    assert strip_code_fence(content) == expected


async def test_corrupt_content_encoding_is_response_error(config, sleep):
    endpoint = ScriptedEndpoint(
        httpx.Response(
            200,
            headers={"Content-Encoding": "gzip"},
            stream=httpx.ByteStream(b"not gzip at all"),
        )
    )

    with pytest.raises(LLMResponseError, match="Unreadable response"):
        await _complete(config, endpoint, sleep)
    assert len(endpoint.requests) == 1
    assert sleep.waits == []


async def test_redirect_loop_is_response_error(config, sleep):
    endpoint = ScriptedEndpoint(httpx.TooManyRedirects("loop"))

    with pytest.raises(LLMResponseError):
        await _complete(config, endpoint, sleep)
    assert sleep.waits == []
