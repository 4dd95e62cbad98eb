# src/lumi_router/adapters/base.py
from __future__ import annotations

import logging
from typing import Sequence

from lumi_router.core.config import ProviderConfig
from lumi_router.core.errors import ConfigError
from lumi_router.models import ConversationMessage, ProviderRequest

log = logging.getLogger("lumi.adapters")


class ProviderAdapter:
    """
    One remote chat-completion API.

    Subclasses implement the two halves of an attempt:
      transform_history(history) -> ProviderRequest   (pure, no I/O)
      invoke(request) -> str                          (one HTTP call)
    """

    style: str = ""

    def __init__(self, cfg: ProviderConfig, system_prompt: str, timeout_s: float = 30.0) -> None:
        self.cfg = cfg
        self.system_prompt = system_prompt
        self.timeout_s = timeout_s

    @property
    def id(self) -> str:
        return self.cfg.id

    @property
    def configured(self) -> bool:
        return self.cfg.configured

    def _require_key(self) -> str:
        api_key = self.cfg.api_key()
        if not api_key:
            raise ConfigError(
                f"[{self.id} error] Missing {self.cfg.api_key_env}",
                provider_id=self.id,
            )
        return api_key

    def transform_history(self, history: Sequence[ConversationMessage]) -> ProviderRequest:
        raise NotImplementedError

    def invoke(self, request: ProviderRequest) -> str:
        raise NotImplementedError

    def __repr__(self) -> str:
        return f"<{type(self).__name__} id={self.id} model={self.cfg.model}>"
