# src/lumi_router/adapters/registry.py
from __future__ import annotations

from typing import Dict, Type

from lumi_router.adapters.base import ProviderAdapter
from lumi_router.adapters.gemini import GeminiAdapter
from lumi_router.adapters.openai import OpenAICompatAdapter
from lumi_router.core.config import RouterConfig

ADAPTER_STYLES: Dict[str, Type[ProviderAdapter]] = {
    GeminiAdapter.style: GeminiAdapter,
    OpenAICompatAdapter.style: OpenAICompatAdapter,
}


def build_adapters(cfg: RouterConfig) -> Dict[str, ProviderAdapter]:
    """One adapter per provider in router.yml, keyed by provider id."""
    adapters: Dict[str, ProviderAdapter] = {}
    for pid, pcfg in cfg.providers.items():
        adapter_cls = ADAPTER_STYLES[pcfg.style]
        adapters[pid] = adapter_cls(
            pcfg,
            system_prompt=cfg.system_prompt,
            timeout_s=cfg.routing.timeout_s,
        )
    return adapters
