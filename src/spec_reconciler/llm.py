"""Gemini generateContent client used by the reconciliation stages."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from .config import LLM_BASE_URL, LLM_MODEL, LLM_REQUEST_TIMEOUT, MIME_TEXT

logger = logging.getLogger(__name__)

QUOTA_STATUS = 429


class ConfigurationError(ValueError):
    """A stage needs an API key and none is configured."""


class UpstreamError(Exception):
    """The LLM endpoint failed or answered with an error."""

    def __init__(self, status: int | None, message: str):
        self.status = status
        super().__init__(message)

    @property
    def is_quota(self) -> bool:
        return self.status == QUOTA_STATUS


def build_generate_request(
    prompt: str,
    temperature: float,
    max_output_tokens: int,
    response_mime_type: str = MIME_TEXT,
) -> dict[str, Any]:
    """Request body for a single-prompt generateContent call."""
    return {
        "contents": [{"parts": [{"text": prompt}]}],
        "generationConfig": {
            "temperature": temperature,
            "maxOutputTokens": max_output_tokens,
            "responseMimeType": response_mime_type,
        },
    }


def _error_status(code: Any) -> int | None:
    try:
        return int(code)
    except (TypeError, ValueError):
        return None


class LLMClient:
    """Async client for one Gemini API key.

    Each call is a single request; retry and backoff belong to the caller.
    """

    def __init__(
        self,
        api_key: str,
        model: str = LLM_MODEL,
        base_url: str = LLM_BASE_URL,
        timeout: float = LLM_REQUEST_TIMEOUT,
    ):
        self.api_key = (api_key or "").strip()
        self._model = model
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._client: httpx.AsyncClient | None = None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._timeout)
        return self._client

    async def generate(
        self,
        prompt: str,
        *,
        temperature: float,
        max_output_tokens: int,
        response_mime_type: str = MIME_TEXT,
    ) -> dict[str, Any]:
        """Run one generateContent call and return the raw response body.

        Raises:
            ConfigurationError: no API key
            UpstreamError: transport failure, HTTP error status, or error payload
        """
        if not self.api_key:
            raise ConfigurationError("LLM API key not configured")

        url = f"{self._base_url}/models/{self._model}:generateContent"
        body = build_generate_request(prompt, temperature, max_output_tokens, response_mime_type)
        headers = {"x-goog-api-key": self.api_key}
        logger.debug(f"LLM request: model={self._model}, prompt={len(prompt)} chars, mime={response_mime_type}")
        try:
            response = await self._get_client().post(url, json=body, headers=headers)
        except httpx.HTTPError:
            # Sanitize: never echo request details
            raise UpstreamError(None, "LLM request failed (network/connection error)")

        if response.status_code >= 400:
            if response.status_code == QUOTA_STATUS:
                raise UpstreamError(QUOTA_STATUS, "LLM quota exhausted (HTTP 429)")
            raise UpstreamError(response.status_code, f"LLM API returned HTTP {response.status_code}")

        try:
            data = response.json()
        except ValueError:
            raise UpstreamError(response.status_code, "LLM API returned a non-JSON body")

        if isinstance(data, dict) and data.get("error"):
            err = data["error"] if isinstance(data["error"], dict) else {}
            status = _error_status(err.get("code"))
            msg = err.get("message", "Unknown LLM API error")
            raise UpstreamError(status, f"LLM API error [{status}]: {msg}")

        return data

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None
