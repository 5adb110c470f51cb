import json

import pytest

from imagitales.core.exceptions import EmptyGenerationResult, OverloadExhausted, TransportError
from imagitales.services.gemini_client import GeminiClient, HttpReply


def _ok(text):
    return HttpReply(200, json.dumps({"candidates": [{"content": {"parts": [{"text": text}]}}]}))


def _fake_post(client, replies):
    calls = []

    async def post(payload):
        calls.append(payload)
        return replies[min(len(calls), len(replies)) - 1]

    client._post = post
    return calls


@pytest.fixture
def client(sleeps):
    return GeminiClient(api_key="test-key", model="test-model", sleep=sleeps)


@pytest.mark.asyncio
async def test_generate_returns_text_and_sends_user_prompt(client, sleeps):
    calls = _fake_post(client, [_ok("Il était une fois")])

    text = await client.generate("Raconte une histoire")

    assert text == "Il était une fois"
    assert calls == [{"contents": [{"role": "user", "parts": [{"text": "Raconte une histoire"}]}]}]
    assert sleeps.calls == []


def test_endpoint_uses_model_path():
    client = GeminiClient(api_key="k", model="gemma-3-27b-it", base_url="https://example.test/v1beta/models/")
    assert client.endpoint == "https://example.test/v1beta/models/gemma-3-27b-it:generateContent"


@pytest.mark.asyncio
async def test_overload_is_retried_five_times_then_exhausted(client, sleeps):
    calls = _fake_post(client, [HttpReply(503, '{"error": {"message": "overloaded"}}')])

    with pytest.raises(OverloadExhausted) as exc_info:
        await client.generate("prompt")

    assert len(calls) == 6
    assert exc_info.value.attempts == 6
    assert sleeps.calls == [2, 4, 8, 16, 32]


@pytest.mark.asyncio
async def test_overload_then_success(client, sleeps):
    calls = _fake_post(client, [HttpReply(503, ""), HttpReply(503, ""), _ok("enfin")])

    assert await client.generate("prompt") == "enfin"
    assert len(calls) == 3
    assert sleeps.calls == [2, 4]


@pytest.mark.asyncio
@pytest.mark.parametrize("status", [400, 401, 429, 500])
async def test_other_errors_are_not_retried(client, sleeps, status):
    body = json.dumps({"error": {"code": status, "message": "quota or input problem"}})
    calls = _fake_post(client, [HttpReply(status, body)])

    with pytest.raises(TransportError) as exc_info:
        await client.generate("prompt")

    assert exc_info.value.status == status
    assert exc_info.value.message == "quota or input problem"
    assert len(calls) == 1
    assert sleeps.calls == []


@pytest.mark.asyncio
@pytest.mark.parametrize("body", [
    json.dumps({"candidates": [{"content": {"parts": [{"text": "   "}]}}]}),
    json.dumps({"candidates": []}),
    json.dumps({}),
])
async def test_empty_text_payload(client, sleeps, body):
    calls = _fake_post(client, [HttpReply(200, body)])

    with pytest.raises(EmptyGenerationResult):
        await client.generate("prompt")

    assert len(calls) == 1


@pytest.mark.asyncio
async def test_invalid_json_body_is_transport_error(client):
    _fake_post(client, [HttpReply(200, "<html>oops</html>")])

    with pytest.raises(TransportError):
        await client.generate("prompt")


@pytest.mark.asyncio
async def test_missing_api_key_fails_without_request(sleeps):
    client = GeminiClient(api_key="", sleep=sleeps)
    calls = _fake_post(client, [_ok("never")])

    with pytest.raises(TransportError):
        await client.generate("prompt")

    assert calls == []
