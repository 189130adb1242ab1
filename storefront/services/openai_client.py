"""
OpenAI chat-completions client.

Async httpx client for structured (JSON object) chat completions, used by
the product classifier.

Features:
- Bearer token authentication from settings.OPENAI_API_KEY
- response_format=json_object and temperature 0 for repeatable output
- Failures returned as ChatResult(success=False, error=...) instead of raised
"""

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import httpx
from django.conf import settings

logger = logging.getLogger(__name__)


@dataclass
class ChatResult:
    """Result of a JSON chat completion."""

    success: bool
    data: Dict[str, Any] = field(default_factory=dict)
    model: str = ""
    error: Optional[str] = None
    token_usage: Optional[Dict[str, int]] = None


class OpenAIClient:
    """Async client for the OpenAI chat-completions endpoint."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
    ):
        self.api_key = api_key if api_key is not None else getattr(settings, "OPENAI_API_KEY", "")
        self.model = model or getattr(settings, "OPENAI_MODEL", "gpt-4o")
        self.base_url = (
            base_url or getattr(settings, "OPENAI_API_URL", "https://api.openai.com/v1")
        ).rstrip("/")
        self.timeout = timeout or getattr(settings, "OPENAI_TIMEOUT", 60.0)
        self.completions_endpoint = f"{self.base_url}/chat/completions"

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)

    def _get_headers(self) -> Dict[str, str]:
        return {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.api_key}",
        }

    async def chat_json(
        self,
        messages: List[Dict[str, str]],
        model: Optional[str] = None,
        max_tokens: int = 500,
    ) -> ChatResult:
        """
        Run a chat completion that must answer with a JSON object.

        Args:
            messages: Chat messages ({"role": ..., "content": ...})
            model: Model override (defaults to settings.OPENAI_MODEL)
            max_tokens: Completion token cap

        Returns:
            ChatResult with the parsed JSON object or an error
        """
        if not self.is_configured:
            return ChatResult(success=False, error="OPENAI_API_KEY is not configured")

        payload = {
            "model": model or self.model,
            "messages": messages,
            "temperature": 0,
            "max_tokens": max_tokens,
            "response_format": {"type": "json_object"},
        }

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(
                    self.completions_endpoint,
                    json=payload,
                    headers=self._get_headers(),
                )
                return self._parse_response(response)

        except httpx.TimeoutException as e:
            logger.error(f"OpenAI request timeout: {e}")
            return ChatResult(success=False, error=f"Request timeout after {self.timeout}s")

        except httpx.HTTPError as e:
            logger.error(f"OpenAI connection error: {e}")
            return ChatResult(success=False, error=f"Connection error: {e}")

    def _parse_response(self, response: httpx.Response) -> ChatResult:
        if response.status_code != 200:
            error_msg = f"OpenAI returned status {response.status_code}"
            try:
                error_data = response.json()
                message = error_data.get("error", {}).get("message")
                if message:
                    error_msg = f"{error_msg}: {message}"
            except (ValueError, AttributeError):
                error_msg = f"{error_msg}: {response.text[:200]}"
            logger.warning(error_msg)
            return ChatResult(success=False, error=error_msg)

        try:
            body = response.json()
            content = body["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError) as e:
            logger.error(f"Unexpected OpenAI response shape: {e}")
            return ChatResult(success=False, error=f"Invalid response: {e}")

        if not content:
            return ChatResult(success=False, error="No response from OpenAI")

        try:
            data = json.loads(content)
        except json.JSONDecodeError as e:
            return ChatResult(success=False, error=f"Model did not return JSON: {e}")

        if not isinstance(data, dict):
            return ChatResult(success=False, error="Model returned JSON that is not an object")

        return ChatResult(
            success=True,
            data=data,
            model=body.get("model", ""),
            token_usage=body.get("usage"),
        )


def get_openai_client() -> OpenAIClient:
    """OpenAIClient configured from Django settings."""
    return OpenAIClient()
