"""OpenRouter chat-completions client for Milton."""
from __future__ import annotations

import logging
import os
import time
from dataclasses import dataclass
from typing import Any, Dict

import httpx

logger = logging.getLogger(__name__)


@dataclass
class OpenRouterResult:
    """Result from an OpenRouter API call."""
    text: str = ""
    ok: bool = True
    error: str | None = None
    status_code: int | None = None
    duration_ms: float = 0.0
    usage: Dict[str, Any] | None = None


def _choice_text(choice: Any) -> str:
    if not isinstance(choice, dict):
        return ""
    message = choice.get("message")
    if isinstance(message, dict) and isinstance(message.get("content"), str):
        return message["content"]
    text = choice.get("text")
    return text if isinstance(text, str) else ""


class OpenRouterClient:
    """OpenRouter API client using httpx."""

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str = "https://openrouter.ai/api/v1",
        referer: str | None = None,
        temperature: float | None = None,
    ) -> None:
        self.api_key = api_key if api_key is not None else os.environ.get("OPENROUTER_API_KEY", "")
        self.base_url = base_url.rstrip("/")
        self.referer = referer
        self.temperature = temperature

    @property
    def available(self) -> bool:
        return bool(self.api_key)

    def _headers(self) -> Dict[str, str]:
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }
        if self.referer:
            headers["HTTP-Referer"] = self.referer
        return headers

    def generate(
        self,
        prompt: str,
        model: str,
        system: str | None = None,
        timeout: float = 60,
    ) -> OpenRouterResult:
        if not self.api_key:
            return OpenRouterResult(ok=False, error="OPENROUTER_API_KEY not set")

        messages = []
        if system:
            messages.append({"role": "system", "content": system})
        messages.append({"role": "user", "content": prompt})
        body: Dict[str, Any] = {"model": model, "messages": messages}
        if self.temperature is not None:
            body["temperature"] = self.temperature

        start = time.perf_counter()
        try:
            with httpx.Client(timeout=timeout) as client:
                response = client.post(
                    f"{self.base_url}/chat/completions",
                    json=body,
                    headers=self._headers(),
                )

            duration_ms = (time.perf_counter() - start) * 1000

            if response.status_code < 200 or response.status_code >= 300:
                error_text = response.text[:500]
                return OpenRouterResult(
                    ok=False,
                    error=f"HTTP {response.status_code}: {error_text}",
                    status_code=response.status_code,
                    duration_ms=duration_ms,
                )

            data = response.json()
            choices = data.get("choices") if isinstance(data, dict) else None
            if not choices or not isinstance(choices, list):
                return OpenRouterResult(
                    ok=False,
                    error=f"No choices in response: {str(data)[:200]}",
                    status_code=response.status_code,
                    duration_ms=duration_ms,
                )

            text = _choice_text(choices[0])
            if not text.strip():
                return OpenRouterResult(
                    ok=False,
                    error="Empty message content in response",
                    status_code=response.status_code,
                    duration_ms=duration_ms,
                )

            usage_meta = data.get("usage") or {}
            usage = {
                "prompt_tokens": usage_meta.get("prompt_tokens", 0),
                "completion_tokens": usage_meta.get("completion_tokens", 0),
                "total_tokens": usage_meta.get("total_tokens", 0),
            }

            return OpenRouterResult(
                text=text,
                ok=True,
                status_code=response.status_code,
                duration_ms=duration_ms,
                usage=usage,
            )

        except httpx.TimeoutException:
            duration_ms = (time.perf_counter() - start) * 1000
            return OpenRouterResult(
                ok=False,
                error=f"timeout after {timeout}s",
                duration_ms=duration_ms,
            )
        except Exception as e:
            duration_ms = (time.perf_counter() - start) * 1000
            logger.debug(f"OpenRouter call for {model} failed: {e}")
            return OpenRouterResult(
                ok=False,
                error=str(e),
                duration_ms=duration_ms,
            )
