# src/lumi_router/adapters/gemini.py
from __future__ import annotations

from typing import Sequence

import requests

from lumi_router.adapters.base import ProviderAdapter, log
from lumi_router.core.clean import to_turns
from lumi_router.core.errors import EmptyResponseError, ProviderHTTPError, UpstreamError
from lumi_router.models import ConversationMessage, ProviderRequest


def _post(url: str, payload: dict, api_key: str, timeout: float) -> requests.Response:
    headers = {"Content-Type": "application/json", "x-goog-api-key": api_key}
    return requests.post(url, json=payload, headers=headers, timeout=timeout)


class GeminiAdapter(ProviderAdapter):
    """
    Gemini native generateContent API.

    Gemini wants turns that start with `user` and alternate user/model,
    plus the persona in `systemInstruction` rather than as a message.
    """

    style = "turn_based"

    def transform_history(self, history: Sequence[ConversationMessage]) -> ProviderRequest:
        turns, latest = to_turns(history, provider_id=self.id)
        return ProviderRequest(
            provider_id=self.id,
            system_prompt=self.system_prompt,
            messages=tuple(turns),
            input=latest,
        )

    def _model(self) -> str:
        # Accept "models/gemini-2.5-flash" as well as "gemini-2.5-flash"
        model = self.cfg.model
        if model.startswith("models/"):
            model = model.split("/", 1)[1]
        return model

    def build_payload(self, request: ProviderRequest) -> dict:
        return {
            "systemInstruction": {"parts": [{"text": request.system_prompt}]},
            "contents": [
                *request.messages,
                {"role": "user", "parts": [{"text": request.input or ""}]},
            ],
            "generationConfig": {
                "temperature": self.cfg.temperature,
                "topP": self.cfg.top_p,
                "maxOutputTokens": self.cfg.max_tokens,
            },
        }

    def invoke(self, request: ProviderRequest) -> str:
        api_key = self._require_key()
        url = f"{self.cfg.base_url.rstrip('/')}/models/{self._model()}:generateContent"

        r = _post(url, self.build_payload(request), api_key, self.timeout_s)

        if r.status_code >= 300:
            raise ProviderHTTPError(self.id, r.status_code, r.text)

        try:
            data = r.json()
        except ValueError as ex:
            raise UpstreamError(
                f"[{self.id} parse error] {ex} :: {r.text[:400]}",
                provider_id=self.id,
            ) from ex

        candidates = data.get("candidates") or []
        if not candidates:
            reason = (data.get("promptFeedback") or {}).get("blockReason", "no candidates")
            raise EmptyResponseError(
                f"[{self.id} response w/o content] {reason}",
                provider_id=self.id,
            )

        first = candidates[0] or {}
        parts = (first.get("content") or {}).get("parts") or []
        texts = [p["text"] for p in parts if isinstance(p, dict) and isinstance(p.get("text"), str)]
        content = "".join(texts)

        if not content.strip():
            raise EmptyResponseError(
                f"[{self.id} response w/o content] finishReason={first.get('finishReason')}",
                provider_id=self.id,
            )

        log.debug("gemini reply chars=%d model=%s", len(content), self._model())
        return content
