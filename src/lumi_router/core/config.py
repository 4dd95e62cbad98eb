from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Dict, List, Literal, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field, model_validator


# --- Where router.yml lives -------------------------------------------------

# This file lives at: src/lumi_router/core/config.py
# router.yml ships next to the package: src/lumi_router/router.yml
ROOT_DIR = Path(__file__).resolve().parents[1]
CFG_PATH = ROOT_DIR / "router.yml"


Style = Literal["turn_based", "chat_completions"]


class ProviderConfig(BaseModel):
    """
    One provider slice of router.yml, e.g.:

      groq:
        style: chat_completions
        base_url: https://api.groq.com/openai/v1
        model: llama-3.3-70b-versatile
        api_key_env: GROQ_API_KEY
    """

    model_config = ConfigDict(frozen=True)

    id: str
    style: Style
    base_url: str
    model: str
    api_key_env: str
    temperature: float = 0.7
    top_p: float = 1.0
    max_tokens: int = 2048

    def api_key(self) -> str:
        # read at call time so a key added to the env later is picked up
        return (os.getenv(self.api_key_env, "") or "").strip()

    @property
    def configured(self) -> bool:
        return bool(self.api_key())


class RoutingConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    default: str
    fallback: List[str] = Field(default_factory=list)
    timeout_s: float = 30.0


class RouterConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    system_prompt: str
    providers: Dict[str, ProviderConfig]
    routing: RoutingConfig
    aliases: Dict[str, str] = Field(default_factory=dict)

    @model_validator(mode="after")
    def check_routing(self) -> "RouterConfig":
        known = set(self.providers)
        for pid in [self.routing.default, *self.routing.fallback]:
            if pid not in known:
                raise ValueError(f"routing references unknown provider: {pid!r}")
        for alias, pid in self.aliases.items():
            if pid not in known:
                raise ValueError(f"alias {alias!r} points at unknown provider: {pid!r}")
        return self

    @property
    def default_provider(self) -> str:
        return self.routing.default

    def resolve_provider(self, name: Optional[str]) -> str:
        """
        Map whatever the client sent as `model`/`agent` onto a provider id.
        Missing or unrecognised names fall back to the default provider.
        """
        key = (name or "").strip().lower()
        if key in self.providers:
            return key
        if key in self.aliases:
            return self.aliases[key]
        return self.default_provider


def _with_ids(raw: Dict[str, Any]) -> Dict[str, Any]:
    providers = raw.get("providers") or {}
    data = dict(raw)
    data["providers"] = {
        name: {"id": name, **(pcfg or {})} for name, pcfg in providers.items()
    }
    data["aliases"] = {
        str(k).lower(): v for k, v in (raw.get("aliases") or {}).items()
    }
    return data


def load_config(path: Optional[Path | str] = None) -> RouterConfig:
    """
    Load router.yml into a RouterConfig.

    Resolution order: explicit path -> $LUMI_ROUTER_CONFIG -> packaged router.yml.
    """
    cfg_path = Path(path or os.getenv("LUMI_ROUTER_CONFIG") or CFG_PATH)
    with cfg_path.open("r", encoding="utf-8") as f:
        raw: Dict[str, Any] = yaml.safe_load(f) or {}
    return RouterConfig.model_validate(_with_ids(raw))
