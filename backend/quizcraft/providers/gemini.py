from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import requests

from .base import LLMCallInput, LLMCallOutput, LLMError


@dataclass
class GeminiProvider:
    name: str
    api_key: str
    base_url: str
    timeout_ms: int

    def is_configured(self) -> bool:
        return bool(self.api_key)

    def _payload(self, request: LLMCallInput) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "contents": [{"role": "user", "parts": [{"text": request.user_prompt}]}],
            "generationConfig": {"temperature": request.temperature},
        }
        if request.system_prompt:
            payload["systemInstruction"] = {"parts": [{"text": request.system_prompt}]}
        return payload

    def generate_text(self, request: LLMCallInput) -> LLMCallOutput:
        if not self.is_configured():
            raise LLMError(f"Provider {self.name} is not configured", category="not_configured")

        endpoint = f"{self.base_url.rstrip('/')}/models/{request.model}:generateContent"
        try:
            response = requests.post(
                endpoint,
                headers={
                    "x-goog-api-key": self.api_key,
                    "Content-Type": "application/json",
                },
                json=self._payload(request),
                timeout=self.timeout_ms / 1000,
            )
        except requests.Timeout as exc:
            raise LLMError(f"Provider {self.name} timed out", category="timeout") from exc
        except requests.RequestException as exc:
            raise LLMError(
                f"Provider {self.name} network error: {exc}", category="server_error"
            ) from exc

        if response.status_code == 429:
            raise LLMError(f"Provider {self.name} rate limited", category="rate_limit")
        if response.status_code >= 500:
            raise LLMError(f"Provider {self.name} server error", category="server_error")
        if response.status_code >= 400:
            raise LLMError(
                f"Provider {self.name} request error: {response.text[:200]}",
                category="server_error",
            )

        try:
            data = response.json()
        except ValueError as exc:
            raise LLMError(
                f"Provider {self.name} returned a non-JSON envelope", category="server_error"
            ) from exc

        candidates = data.get("candidates") or []
        if not candidates:
            raise LLMError(
                f"Provider {self.name} returned no candidates", category="empty_response"
            )

        parts = (candidates[0].get("content") or {}).get("parts") or []
        text_parts = [part.get("text", "") for part in parts if part.get("text")]
        content = "\n".join(text_parts).strip()
        if not content:
            raise LLMError(
                f"Provider {self.name} returned empty content", category="empty_response"
            )
        usage_metadata = data.get("usageMetadata")
        usage = usage_metadata if isinstance(usage_metadata, dict) else None
        return LLMCallOutput(text=content, usage=usage)
