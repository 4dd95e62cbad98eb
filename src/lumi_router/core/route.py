# src/lumi_router/core/route.py
from __future__ import annotations

import logging
import time
from typing import Callable, Dict, List, Mapping, Optional, Sequence

from lumi_router.adapters.base import ProviderAdapter
from lumi_router.adapters.registry import build_adapters
from lumi_router.core.classify import FailureKind, classify_failure
from lumi_router.core.clean import is_eligible, merge_message, now_ms
from lumi_router.core.config import RouterConfig
from lumi_router.core.errors import (
    AllProvidersUnavailableError,
    ConfigError,
    EmptyResponseError,
    QuotaError,
    RouterError,
    UpstreamError,
    ValidationError,
)
from lumi_router.core.trace import route_trace
from lumi_router.models import ConversationMessage, ProviderResponse

log = logging.getLogger("lumi.router")


def priority_list(preferred: str, cfg: RouterConfig) -> List[str]:
    """
    Attempt order for a (resolved) preferred provider.

      default  -> [default, alt-A, alt-B, alt-C]
      alt-A    -> [alt-A, default, alt-B, alt-C]
      X        -> [X, default, alt-B, alt-C]

    A provider never appears twice, so preferring alt-B gives
    [alt-B, default, alt-C].
    """
    default = cfg.routing.default
    fallback = list(cfg.routing.fallback)

    if preferred == default:
        order = [default, *fallback]
    else:
        order = [preferred, default, *fallback[1:]]

    seen = set()
    out: List[str] = []
    for pid in order:
        if pid not in seen:
            seen.add(pid)
            out.append(pid)
    return out


class ChatRouter:
    """
    Sequential multi-provider router.

    Providers are tried one at a time in priority order. Quota/rate-limit
    and missing-credential failures move on to the next provider; any other
    failure ends the call.
    """

    def __init__(
        self,
        cfg: RouterConfig,
        adapters: Mapping[str, ProviderAdapter],
        clock: Callable[[], int] = now_ms,
    ) -> None:
        missing = set(cfg.providers) - set(adapters)
        if missing:
            raise ValueError(f"no adapter for providers: {sorted(missing)}")
        self.cfg = cfg
        self.adapters: Dict[str, ProviderAdapter] = dict(adapters)
        self.clock = clock

    @classmethod
    def from_config(cls, cfg: RouterConfig) -> "ChatRouter":
        return cls(cfg, build_adapters(cfg))

    def priority_list(self, preferred: Optional[str]) -> List[str]:
        return priority_list(self.cfg.resolve_provider(preferred), self.cfg)

    def route(
        self,
        history: Sequence[ConversationMessage],
        message: Optional[str] = None,
        preferred: Optional[str] = None,
    ) -> ProviderResponse:
        messages = merge_message(history, message, clock=self.clock)
        if not any(is_eligible(m) for m in messages):
            raise ValidationError("no messages provided")

        order = self.priority_list(preferred)
        route_trace("route.start", order=",".join(order), messages=len(messages))

        last_error: Optional[RouterError] = None

        for position, pid in enumerate(order):
            adapter = self.adapters[pid]

            if not adapter.configured:
                last_error = ConfigError(
                    f"[{pid} error] Missing {adapter.cfg.api_key_env}",
                    provider_id=pid,
                )
                log.warning("provider %s skipped: %s not set", pid, adapter.cfg.api_key_env)
                route_trace("attempt.skip", provider=pid, position=position, reason="config")
                continue

            t0 = time.time()
            route_trace("attempt.start", provider=pid, position=position)
            try:
                request = adapter.transform_history(messages)
                content = adapter.invoke(request)
                if not content or not content.strip():
                    raise EmptyResponseError(
                        f"[{pid} response w/o content]", provider_id=pid
                    )
            except Exception as ex:
                dur = int((time.time() - t0) * 1000)
                kind = classify_failure(ex)

                if kind is FailureKind.config:
                    last_error = ex if isinstance(ex, ConfigError) else ConfigError(str(ex), provider_id=pid)
                    log.warning("provider %s skipped: %s", pid, ex)
                    route_trace("attempt.skip", provider=pid, position=position, reason="config", latency_ms=dur)
                    continue

                if kind is FailureKind.quota:
                    last_error = QuotaError(str(ex), provider_id=pid)
                    log.warning("provider %s rate-limited, falling back: %s", pid, ex)
                    route_trace("attempt.skip", provider=pid, position=position, reason="quota", latency_ms=dur)
                    continue

                route_trace("attempt.fail", provider=pid, position=position, latency_ms=dur)
                log.error("provider %s failed (position=%d): %s", pid, position, ex, exc_info=True)
                if isinstance(ex, UpstreamError):
                    raise
                raise UpstreamError(f"[{pid} error] {ex}", provider_id=pid) from ex

            dur = int((time.time() - t0) * 1000)
            route_trace("attempt.ok", provider=pid, position=position, latency_ms=dur)
            log.info("chat served by %s (position=%d, %d ms)", pid, position, dur)
            return ProviderResponse(content=content, provider_id=pid)

        log.error("all providers unavailable; last error: %s", last_error)
        raise AllProvidersUnavailableError(last_error)
