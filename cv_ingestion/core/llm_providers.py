"""
Completion providers for LLM parsing.

Each provider turns a prompt into the model's raw text answer. The parser does
not know which vendor it talks to; the provider is chosen from configuration
once, at construction time, and tests substitute their own implementation.
"""

import json
import logging
from typing import Any, Dict, Optional

import httpx

from cv_ingestion.config import ParserConfig
from cv_ingestion.core.errors import MalformedResponse, MissingCredential, ProviderError

logger = logging.getLogger(__name__)


SYSTEM_INSTRUCTION = "You are an expert CV parser. Extract structured data from CVs and return valid JSON only."
TEMPERATURE = 0.1


class CompletionProvider:
    """Strategy interface: ``await provider.complete(prompt) -> str``."""

    name = "base"

    async def complete(self, prompt: str) -> str:
        raise NotImplementedError


class HTTPCompletionProvider(CompletionProvider):
    """Shared request/response handling for the HTTP providers."""

    default_model = ""

    def __init__(
        self,
        api_key: str,
        model: Optional[str] = None,
        timeout: float = 60.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        if not api_key:
            raise MissingCredential(f"API key is required for the {self.name} provider")
        self.api_key = api_key
        self.model = model or self.default_model
        self.timeout = timeout
        self._client = client

    def _request(self, prompt: str) -> Dict[str, Any]:
        """url, headers and json body for one completion call."""
        raise NotImplementedError

    def _content(self, data: Dict[str, Any]) -> str:
        raise NotImplementedError

    async def complete(self, prompt: str) -> str:
        req = self._request(prompt)
        logger.info("Calling %s (%s)", self.name, self.model)
        try:
            if self._client is not None:
                response = await self._client.post(req["url"], headers=req["headers"], json=req["json"])
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await client.post(req["url"], headers=req["headers"], json=req["json"])
        except httpx.HTTPError as exc:
            raise ProviderError(f"{self.name} request failed: {exc}") from exc

        if response.status_code >= 300:
            raise ProviderError(
                f"{self.name} API error: {_error_message(response)}",
                status_code=response.status_code,
            )

        try:
            return self._content(response.json())
        except (ValueError, KeyError, IndexError, TypeError) as exc:
            raise MalformedResponse(f"Invalid {self.name} API response structure") from exc


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text[:500] or "Unknown error"
    if isinstance(body, dict) and isinstance(body.get("error"), dict):
        return body["error"].get("message") or "Unknown error"
    return json.dumps(body)[:500]


class OpenAIProvider(HTTPCompletionProvider):
    name = "openai"
    default_model = "gpt-4o-mini"
    url = "https://api.openai.com/v1/chat/completions"

    def _request(self, prompt: str) -> Dict[str, Any]:
        return {
            "url": self.url,
            "headers": {"Authorization": f"Bearer {self.api_key}", "Content-Type": "application/json"},
            "json": {
                "model": self.model,
                "messages": [
                    {"role": "system", "content": SYSTEM_INSTRUCTION},
                    {"role": "user", "content": prompt},
                ],
                "temperature": TEMPERATURE,
                "response_format": {"type": "json_object"},
            },
        }

    def _content(self, data: Dict[str, Any]) -> str:
        return data["choices"][0]["message"]["content"]


class AnthropicProvider(HTTPCompletionProvider):
    name = "anthropic"
    default_model = "claude-3-haiku-20240307"
    url = "https://api.anthropic.com/v1/messages"
    api_version = "2023-06-01"
    max_tokens = 4096

    def _request(self, prompt: str) -> Dict[str, Any]:
        return {
            "url": self.url,
            "headers": {
                "x-api-key": self.api_key,
                "anthropic-version": self.api_version,
                "Content-Type": "application/json",
            },
            "json": {
                "model": self.model,
                "max_tokens": self.max_tokens,
                "messages": [{"role": "user", "content": prompt}],
                "temperature": TEMPERATURE,
            },
        }

    def _content(self, data: Dict[str, Any]) -> str:
        return data["content"][0]["text"]


class GeminiProvider(HTTPCompletionProvider):
    name = "gemini"
    default_model = "gemini-2.5-flash"
    base_url = "https://generativelanguage.googleapis.com/v1beta/models"

    def _request(self, prompt: str) -> Dict[str, Any]:
        return {
            "url": f"{self.base_url}/{self.model}:generateContent?key={self.api_key}",
            "headers": {"Content-Type": "application/json"},
            "json": {
                "contents": [{"parts": [{"text": f"{SYSTEM_INSTRUCTION}\n\n{prompt}"}]}],
                "generationConfig": {
                    "temperature": TEMPERATURE,
                    "topK": 1,
                    "topP": 1,
                    "maxOutputTokens": 8192,
                    "responseMimeType": "application/json",
                },
            },
        }

    def _content(self, data: Dict[str, Any]) -> str:
        return data["candidates"][0]["content"]["parts"][0]["text"]


PROVIDERS = {
    "openai": OpenAIProvider,
    "anthropic": AnthropicProvider,
    "gemini": GeminiProvider,
}


def build_provider(config: ParserConfig, client: Optional[httpx.AsyncClient] = None) -> CompletionProvider:
    """Provider named by the config. Raises MissingCredential without an API key."""
    name = config.llm_provider or "openai"
    try:
        provider_cls = PROVIDERS[name]
    except KeyError:
        raise ValueError(f"Unsupported LLM provider: {name}") from None
    return provider_cls(
        api_key=config.api_key or "",
        model=config.model,
        timeout=config.timeout_seconds,
        client=client,
    )
