# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""HTTP-backed mapping oracles (OpenAI, Anthropic, Google).

Each provider builds the same prompt, posts it with ``httpx``, extracts the
text content from the provider's response envelope, and hands it to
``parse_mapping_response``. Transport failures and non-2xx statuses become
``OracleError``; bad content becomes ``InvalidOracleResponse``.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from pagefill.config import OracleConfig
from pagefill.errors import OracleError
from pagefill.oracle import FormMapping, MappingRequest
from pagefill.oracle.prompt import SYSTEM_PROMPT, build_prompt
from pagefill.oracle.response import parse_mapping_response

logger = logging.getLogger(__name__)

SUPPORTED_PROVIDERS = ("openai", "anthropic", "google")


class _HttpProvider:
    """Shared request plumbing. Subclasses define the envelope."""

    name = "oracle"
    default_base_url = ""
    default_model = ""

    def __init__(self, config: OracleConfig, *, client: httpx.AsyncClient | None = None) -> None:
        self._config = config
        self._client = client
        self._owns_client = client is None

    @property
    def model(self) -> str:
        return self._config.model or self.default_model

    @property
    def base_url(self) -> str:
        return (self._config.base_url or self.default_base_url).rstrip("/")

    def _build_request(self, prompt: str) -> tuple[str, dict[str, str], dict[str, Any]]:
        raise NotImplementedError

    def _extract_content(self, data: Any) -> str | None:
        raise NotImplementedError

    async def get_form_mapping(self, request: MappingRequest) -> FormMapping:
        if not self._config.api_key:
            raise OracleError(f"{self.name} API key is required", provider=self.name)

        url, headers, body = self._build_request(build_prompt(request))
        client = self._client or httpx.AsyncClient(timeout=self._config.timeout)
        try:
            response = await client.post(url, headers=headers, json=body)
        except httpx.HTTPError as e:
            logger.error("%s request failed: %s", self.name, type(e).__name__)
            raise OracleError(f"{self.name} request failed: {e}", provider=self.name) from e
        finally:
            if self._owns_client:
                await client.aclose()

        if not response.is_success:
            logger.error("%s API error: %s", self.name, response.status_code)
            raise OracleError(
                f"{self.name} API error: {response.status_code} {response.reason_phrase}",
                provider=self.name,
                status_code=response.status_code,
            )

        try:
            data = response.json()
        except ValueError as e:
            raise OracleError(f"{self.name} returned a non-JSON envelope", provider=self.name) from e

        try:
            content = self._extract_content(data)
        except (KeyError, IndexError, TypeError, AttributeError):
            content = None
        return parse_mapping_response(content, self.name)


class OpenAIProvider(_HttpProvider):
    name = "OpenAI"
    default_base_url = "https://api.openai.com"
    default_model = "gpt-5-nano"

    def _build_request(self, prompt: str) -> tuple[str, dict[str, str], dict[str, Any]]:
        headers = {"Authorization": f"Bearer {self._config.api_key}"}
        body = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": prompt},
            ],
            "max_completion_tokens": 20000,
        }
        return f"{self.base_url}/v1/chat/completions", headers, body

    def _extract_content(self, data: Any) -> str | None:
        return data["choices"][0]["message"]["content"]


class AnthropicProvider(_HttpProvider):
    name = "Anthropic"
    default_base_url = "https://api.anthropic.com"
    default_model = "claude-3-5-haiku-latest"

    def _build_request(self, prompt: str) -> tuple[str, dict[str, str], dict[str, Any]]:
        headers = {
            "x-api-key": self._config.api_key,
            "anthropic-version": "2023-06-01",
        }
        body = {
            "model": self.model,
            "max_tokens": 8192,
            "system": SYSTEM_PROMPT,
            "messages": [{"role": "user", "content": prompt}],
        }
        return f"{self.base_url}/v1/messages", headers, body

    def _extract_content(self, data: Any) -> str | None:
        return data["content"][0]["text"]


class GoogleProvider(_HttpProvider):
    name = "Google"
    default_base_url = "https://generativelanguage.googleapis.com"
    default_model = "gemini-2.5-flash-lite"

    def _build_request(self, prompt: str) -> tuple[str, dict[str, str], dict[str, Any]]:
        headers = {"x-goog-api-key": self._config.api_key}
        body = {
            "systemInstruction": {"parts": [{"text": SYSTEM_PROMPT}]},
            "contents": [{"role": "user", "parts": [{"text": prompt}]}],
            "generationConfig": {"responseMimeType": "application/json"},
        }
        return f"{self.base_url}/v1beta/models/{self.model}:generateContent", headers, body

    def _extract_content(self, data: Any) -> str | None:
        return data["candidates"][0]["content"]["parts"][0]["text"]


_PROVIDERS: dict[str, type[_HttpProvider]] = {
    "openai": OpenAIProvider,
    "anthropic": AnthropicProvider,
    "google": GoogleProvider,
}


def create_provider(config: OracleConfig, *, client: httpx.AsyncClient | None = None) -> _HttpProvider:
    """Provider instance for ``config.provider``.

    Raises:
        OracleError: For an unknown provider name.
    """
    cls = _PROVIDERS.get(config.provider)
    if cls is None:
        raise OracleError(f"Unknown oracle provider: {config.provider}", provider=config.provider)
    return cls(config, client=client)
