from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import requests

from .errors import ConfigError, UpstreamError

logger = logging.getLogger(__name__)

OPENAI_CHAT_URL = "https://api.openai.com/v1/chat/completions"
DETAIL_SNIPPET_CHARS = 200


def _snippet(text: str) -> str:
    text = " ".join((text or "").split())
    if len(text) > DETAIL_SNIPPET_CHARS:
        return text[:DETAIL_SNIPPET_CHARS] + "..."
    return text


def classify_upstream_error(status_code: Optional[int], body: str) -> UpstreamError:
    """Map an OpenAI failure onto quota / rate-limit / bad-key / generic."""
    low = (body or "").lower()
    detail = _snippet(body)
    if "insufficient_quota" in low or "quota" in low or "billing" in low:
        return UpstreamError(
            "quota_exceeded",
            "The AI provider quota has been exceeded. Please try again later.",
            status_code=500,
            detail=detail,
        )
    if status_code == 429 or "rate limit" in low or "rate_limit" in low:
        return UpstreamError(
            "rate_limited",
            "Too many requests to the AI provider. Please retry shortly.",
            status_code=429,
            detail=detail,
        )
    if status_code == 401 or "invalid_api_key" in low or "incorrect api key" in low:
        return UpstreamError(
            "invalid_key",
            "The AI provider rejected the configured API key.",
            status_code=500,
            detail=detail,
        )
    return UpstreamError(
        "upstream_error",
        f"The AI provider returned an error (status {status_code}).",
        status_code=500,
        detail=detail,
    )


class OpenAIClient:
    """
    Minimal HTTP client for the OpenAI chat completions endpoint.
    """

    def __init__(
        self,
        api_key: str,
        model: str = "gpt-4o-mini",
        timeout: float = 12.0,
        temperature: float = 0.7,
        url: str = OPENAI_CHAT_URL,
    ):
        self.api_key = api_key
        self.model = model
        self.timeout = timeout
        self.temperature = temperature
        self.url = url

    def chat(self, messages: List[Dict[str, str]], json_mode: bool = True) -> str:
        if not self.api_key:
            raise ConfigError("OPENAI_API_KEY is not configured")

        payload: Dict[str, Any] = {
            "model": self.model,
            "messages": messages,
            "temperature": self.temperature,
        }
        if json_mode:
            payload["response_format"] = {"type": "json_object"}

        try:
            resp = requests.post(
                self.url,
                headers={
                    "Authorization": f"Bearer {self.api_key}",
                    "Content-Type": "application/json",
                },
                json=payload,
                timeout=self.timeout,
            )
        except requests.Timeout as e:
            raise UpstreamError(
                "timeout",
                f"The AI provider did not answer within {self.timeout:g}s.",
                status_code=504,
            ) from e
        except requests.RequestException as e:
            raise UpstreamError(
                "upstream_error",
                "Could not reach the AI provider.",
                status_code=502,
                detail=_snippet(str(e)),
            ) from e

        if not resp.ok:
            logger.warning("OpenAI returned %s: %s", resp.status_code, _snippet(resp.text))
            raise classify_upstream_error(resp.status_code, resp.text)

        try:
            data = resp.json()
        except ValueError as e:
            raise UpstreamError(
                "upstream_error",
                "The AI provider returned a non-JSON response.",
                status_code=500,
                detail=_snippet(resp.text),
            ) from e
        choices = data.get("choices") or []
        message = (choices[0].get("message") if choices else None) or {}
        content = message.get("content")
        if not content:
            raise UpstreamError(
                "upstream_error",
                "The AI provider response did not include message content.",
                status_code=500,
                detail=_snippet(resp.text),
            )
        return content
