# src/lumi_router/adapters/openai.py
from __future__ import annotations

from typing import Sequence

import requests

from lumi_router.adapters.base import ProviderAdapter, log
from lumi_router.core.clean import to_chat_completions
from lumi_router.core.errors import EmptyResponseError, ProviderHTTPError, UpstreamError
from lumi_router.models import ConversationMessage, ProviderRequest


def _post(url: str, payload: dict, api_key: str, timeout: float) -> requests.Response:
    headers = {
        "Authorization": f"Bearer {api_key}",
        "Content-Type": "application/json",
    }
    return requests.post(url, json=payload, headers=headers, timeout=timeout)


def _extract_content(data: dict):
    choice = (data.get("choices") or [{}])[0] or {}
    msg = choice.get("message") or {}
    raw = msg.get("content")

    # 1) plain string
    if isinstance(raw, str):
        return raw

    # 2) list-of-parts
    if isinstance(raw, list):
        parts = []
        for part in raw:
            if isinstance(part, dict) and "text" in part:
                parts.append(str(part["text"]))
        if parts:
            return "".join(parts)

    # 3) legacy completions shape
    return choice.get("text")


class OpenAICompatAdapter(ProviderAdapter):
    """
    OpenAI-compatible /chat/completions adapter.

    Serves every provider in router.yml with `style: chat_completions`
    (Groq, DeepSeek, OpenAI); only base_url/model/api_key_env differ.
    """

    style = "chat_completions"

    def transform_history(self, history: Sequence[ConversationMessage]) -> ProviderRequest:
        return ProviderRequest(
            provider_id=self.id,
            system_prompt=self.system_prompt,
            messages=tuple(to_chat_completions(history, self.system_prompt)),
        )

    def build_payload(self, request: ProviderRequest) -> dict:
        return {
            "model": self.cfg.model,
            "messages": list(request.messages),
            "temperature": self.cfg.temperature,
            "top_p": self.cfg.top_p,
            "max_tokens": self.cfg.max_tokens,
        }

    def invoke(self, request: ProviderRequest) -> str:
        api_key = self._require_key()
        url = self.cfg.base_url.rstrip("/") + "/chat/completions"

        r = _post(url, self.build_payload(request), api_key, self.timeout_s)

        if not r.ok:
            raise ProviderHTTPError(self.id, r.status_code, r.text)

        try:
            data = r.json()
        except ValueError as ex:
            raise UpstreamError(
                f"[{self.id} parse error] {ex} :: {r.text[:400]}",
                provider_id=self.id,
            ) from ex

        content = _extract_content(data)
        if not content or not content.strip():
            raise EmptyResponseError(
                f"[{self.id} response w/o content] {str(data.get('choices'))[:400]}",
                provider_id=self.id,
            )

        log.debug("%s reply chars=%d model=%s", self.id, len(content), self.cfg.model)
        return content
