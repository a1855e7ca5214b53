import asyncio
import json

import pytest

from app.application.ports.ai_provider import ProviderReply
from app.application.services.analysis_proxy import AnalysisProxy, CorsPolicy, ProxyConfig
from app.core.prompts import DEFAULT_ANALYSIS_PROMPT

CORS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "POST, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type",
}

OK_BODY = {"id": "msg_1", "type": "message", "content": [{"type": "text", "text": "{\"overview\": \"ok\"}"}]}


class FakeProvider:
    def __init__(self, reply=None, error: Exception = None):
        self.reply = reply or ProviderReply(200, OK_BODY)
        self.error = error
        self.calls = []

    async def create_message(self, api_key, payload):
        self.calls.append((api_key, payload))
        if self.error:
            raise self.error
        return self.reply


def make_proxy(provider=None, **config):
    return AnalysisProxy(ProxyConfig(**config), provider or FakeProvider())


def body(**fields):
    data = {"apiKey": "sk-ant-test", "bags": [{"image": "data:image/jpeg;base64,AAAA", "name": "a.jpg"}]}
    data.update(fields)
    return json.dumps(data).encode()


@pytest.mark.asyncio
@pytest.mark.parametrize("raw", [None, b"", b"not json", body()])
async def test_options_is_always_empty_200(raw):
    provider = FakeProvider()
    result = await make_proxy(provider).handle("OPTIONS", raw)
    assert result.status_code == 200
    assert result.body is None
    assert result.headers == CORS
    assert provider.calls == []


@pytest.mark.asyncio
@pytest.mark.parametrize("method", ["GET", "PUT", "DELETE", "PATCH"])
async def test_other_methods_are_405(method):
    result = await make_proxy().handle(method, body())
    assert result.status_code == 405
    assert result.body == {"error": "Method not allowed"}
    assert result.headers == CORS


@pytest.mark.asyncio
async def test_post_forwards_and_relays_success():
    provider = FakeProvider()
    result = await make_proxy(provider).handle("POST", body())

    assert result.status_code == 200
    assert result.body == OK_BODY
    api_key, payload = provider.calls[0]
    assert api_key == "sk-ant-test"
    assert payload["max_tokens"] == 1500
    assert payload["model"] == "claude-sonnet-4-20250514"
    content = payload["messages"][0]["content"]
    assert payload["messages"][0]["role"] == "user"
    assert content[0] == {
        "type": "image",
        "source": {"type": "base64", "media_type": "image/jpeg", "data": "AAAA"},
    }
    assert content[-1] == {"type": "text", "text": DEFAULT_ANALYSIS_PROMPT}


@pytest.mark.asyncio
async def test_images_keep_bag_order_and_prompt_comes_last():
    provider = FakeProvider()
    bags = [{"image": f"data:image/jpeg;base64,IMG{i}"} for i in range(3)]
    await make_proxy(provider).handle("POST", body(bags=bags))
    content = provider.calls[0][1]["messages"][0]["content"]
    assert [c["source"]["data"] for c in content[:-1]] == ["IMG0", "IMG1", "IMG2"]
    assert content[-1]["type"] == "text"


@pytest.mark.asyncio
async def test_custom_prompt_overrides_default():
    provider = FakeProvider()
    await make_proxy(provider).handle("POST", body(customPrompt="Only list gaps."))
    assert provider.calls[0][1]["messages"][0]["content"][-1]["text"] == "Only list gaps."


@pytest.mark.asyncio
async def test_empty_custom_prompt_uses_default():
    provider = FakeProvider()
    await make_proxy(provider).handle("POST", body(customPrompt=""))
    assert provider.calls[0][1]["messages"][0]["content"][-1]["text"] == DEFAULT_ANALYSIS_PROMPT


@pytest.mark.asyncio
async def test_custom_prompt_ignored_when_disabled():
    provider = FakeProvider()
    await make_proxy(provider, allow_custom_prompt=False, max_tokens=1000).handle("POST", body(customPrompt="x"))
    payload = provider.calls[0][1]
    assert payload["messages"][0]["content"][-1]["text"] == DEFAULT_ANALYSIS_PROMPT
    assert payload["max_tokens"] == 1000


@pytest.mark.asyncio
async def test_empty_bags_still_builds_request():
    provider = FakeProvider()
    result = await make_proxy(provider).handle("POST", body(bags=[]))
    assert result.status_code == 200
    content = provider.calls[0][1]["messages"][0]["content"]
    assert content == [{"type": "text", "text": DEFAULT_ANALYSIS_PROMPT}]


@pytest.mark.asyncio
async def test_media_type_follows_data_uri():
    provider = FakeProvider()
    bags = [{"image": "data:image/png;base64,PNG"}, {"image": "data:image/bmp;base64,BMP"}]
    await make_proxy(provider).handle("POST", body(bags=bags))
    content = provider.calls[0][1]["messages"][0]["content"]
    assert content[0]["source"]["media_type"] == "image/png"
    assert content[1]["source"]["media_type"] == "image/jpeg"


@pytest.mark.asyncio
async def test_fixed_jpeg_media_type_when_sniffing_disabled():
    provider = FakeProvider()
    await make_proxy(provider, sniff_media_type=False).handle("POST", body(bags=[{"image": "data:image/png;base64,PNG"}]))
    assert provider.calls[0][1]["messages"][0]["content"][0]["source"]["media_type"] == "image/jpeg"


@pytest.mark.asyncio
async def test_provider_error_status_is_relayed():
    error_body = {"type": "error", "error": {"type": "rate_limit_error", "message": "Slow down"}}
    provider = FakeProvider(ProviderReply(429, error_body))
    result = await make_proxy(provider).handle("POST", body())
    assert result.status_code == 429
    assert result.body == error_body
    assert result.headers == CORS


@pytest.mark.asyncio
@pytest.mark.parametrize("raw", [b"", b"{oops", b'{"bags": []}', b'{"apiKey": "k"}', b"[]"])
async def test_malformed_body_is_500(raw):
    provider = FakeProvider()
    result = await make_proxy(provider).handle("POST", raw)
    assert result.status_code == 500
    assert isinstance(result.body["error"], str) and result.body["error"]
    assert provider.calls == []


@pytest.mark.asyncio
async def test_bad_data_uri_is_500():
    provider = FakeProvider()
    result = await make_proxy(provider).handle("POST", body(bags=[{"image": "no-comma-here"}]))
    assert result.status_code == 500
    assert "data URI" in result.body["error"]
    assert provider.calls == []


@pytest.mark.asyncio
async def test_network_error_is_500():
    provider = FakeProvider(error=ConnectionError("connection refused"))
    result = await make_proxy(provider).handle("POST", body())
    assert result.status_code == 500
    assert result.body == {"error": "connection refused"}


@pytest.mark.asyncio
async def test_timeout_is_500():
    provider = FakeProvider(error=asyncio.TimeoutError())
    result = await make_proxy(provider).handle("POST", body())
    assert result.status_code == 500
    assert "timed out" in result.body["error"]


@pytest.mark.asyncio
async def test_no_cors_policy_means_no_headers():
    result = await make_proxy(cors=None).handle("OPTIONS", None)
    assert result.headers == {}


def test_cors_policy_headers():
    headers = CorsPolicy(allow_origin="https://bags.example").headers()
    assert headers["Access-Control-Allow-Origin"] == "https://bags.example"
    assert headers["Access-Control-Allow-Methods"] == "POST, OPTIONS"
