# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Tests for the HTTP oracle providers, using httpx.MockTransport."""

from __future__ import annotations

import json

import httpx
import pytest

from pagefill.config import OracleConfig
from pagefill.descriptors import FieldDescriptor
from pagefill.errors import InvalidOracleResponse, OracleError
from pagefill.oracle import MappingRequest
from pagefill.oracle.providers import (
    SUPPORTED_PROVIDERS,
    AnthropicProvider,
    GoogleProvider,
    OpenAIProvider,
    create_provider,
)

REQUEST = MappingRequest(
    fields=[FieldDescriptor(index=0, tag="input", type="email", name="email")],
    profile_keys=["email"],
)

MAPPING_TEXT = '{"name:email": "email"}'


def _client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


def _recording(response_json: dict, status: int = 200):
    """Handler returning *response_json*; captured requests land in ``.seen``."""
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(status, json=response_json)

    handler.seen = seen
    return handler


class TestCreateProvider:
    @pytest.mark.parametrize(
        ("name", "cls"), [("openai", OpenAIProvider), ("anthropic", AnthropicProvider), ("google", GoogleProvider)]
    )
    def test_dispatch(self, name, cls):
        assert isinstance(create_provider(OracleConfig(provider=name, api_key="k")), cls)

    def test_supported(self):
        assert set(SUPPORTED_PROVIDERS) == {"openai", "anthropic", "google"}


class TestOpenAI:
    async def test_request_and_parse(self):
        handler = _recording({"choices": [{"message": {"content": MAPPING_TEXT}}]})
        async with _client(handler) as client:
            provider = OpenAIProvider(OracleConfig(api_key="sk-test"), client=client)
            mapping = await provider.get_form_mapping(REQUEST)
        assert mapping.as_dict() == {"name:email": "email"}
        sent = handler.seen[0]
        assert sent.url == "https://api.openai.com/v1/chat/completions"
        assert sent.headers["authorization"] == "Bearer sk-test"
        body = json.loads(sent.content)
        assert body["model"] == "gpt-5-nano"
        assert body["messages"][0]["role"] == "system"
        assert "email" in body["messages"][1]["content"]

    async def test_base_url_and_model_override(self):
        handler = _recording({"choices": [{"message": {"content": MAPPING_TEXT}}]})
        config = OracleConfig(api_key="k", model="custom", base_url="http://localhost:9999/")
        async with _client(handler) as client:
            await OpenAIProvider(config, client=client).get_form_mapping(REQUEST)
        assert str(handler.seen[0].url) == "http://localhost:9999/v1/chat/completions"
        assert json.loads(handler.seen[0].content)["model"] == "custom"


class TestAnthropic:
    async def test_request_and_parse(self):
        handler = _recording({"content": [{"type": "text", "text": f"Sure!\n{MAPPING_TEXT}"}]})
        async with _client(handler) as client:
            provider = AnthropicProvider(OracleConfig(provider="anthropic", api_key="ak"), client=client)
            mapping = await provider.get_form_mapping(REQUEST)
        assert mapping.as_dict() == {"name:email": "email"}
        sent = handler.seen[0]
        assert sent.url == "https://api.anthropic.com/v1/messages"
        assert sent.headers["x-api-key"] == "ak"
        assert "anthropic-version" in sent.headers


class TestGoogle:
    async def test_request_and_parse(self):
        handler = _recording({"candidates": [{"content": {"parts": [{"text": MAPPING_TEXT}]}}]})
        async with _client(handler) as client:
            provider = GoogleProvider(OracleConfig(provider="google", api_key="gk"), client=client)
            mapping = await provider.get_form_mapping(REQUEST)
        assert mapping.as_dict() == {"name:email": "email"}
        sent = handler.seen[0]
        assert sent.url.path == "/v1beta/models/gemini-2.5-flash-lite:generateContent"
        assert sent.headers["x-goog-api-key"] == "gk"


class TestFailures:
    async def test_missing_api_key_makes_no_request(self):
        handler = _recording({})
        async with _client(handler) as client:
            with pytest.raises(OracleError, match="API key"):
                await OpenAIProvider(OracleConfig(), client=client).get_form_mapping(REQUEST)
        assert handler.seen == []

    async def test_http_status(self):
        handler = _recording({"error": "nope"}, status=429)
        async with _client(handler) as client:
            with pytest.raises(OracleError) as exc_info:
                await OpenAIProvider(OracleConfig(api_key="k"), client=client).get_form_mapping(REQUEST)
        assert exc_info.value.status_code == 429
        assert not isinstance(exc_info.value, InvalidOracleResponse)

    async def test_transport_error(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        async with _client(handler) as client:
            with pytest.raises(OracleError, match="request failed"):
                await OpenAIProvider(OracleConfig(api_key="k"), client=client).get_form_mapping(REQUEST)

    async def test_non_json_envelope(self):
        def handler(request):
            return httpx.Response(200, text="<html>gateway</html>")

        async with _client(handler) as client:
            with pytest.raises(OracleError, match="non-JSON"):
                await OpenAIProvider(OracleConfig(api_key="k"), client=client).get_form_mapping(REQUEST)

    async def test_unexpected_envelope_is_invalid_response(self):
        handler = _recording({"choices": []})
        async with _client(handler) as client:
            with pytest.raises(InvalidOracleResponse):
                await OpenAIProvider(OracleConfig(api_key="k"), client=client).get_form_mapping(REQUEST)

    async def test_garbage_content_is_invalid_response(self):
        handler = _recording({"choices": [{"message": {"content": "I cannot help with that."}}]})
        async with _client(handler) as client:
            with pytest.raises(InvalidOracleResponse):
                await OpenAIProvider(OracleConfig(api_key="k"), client=client).get_form_mapping(REQUEST)
