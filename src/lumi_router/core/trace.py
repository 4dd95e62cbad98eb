# src/lumi_router/core/trace.py
from __future__ import annotations
import logging
import os
import time
from typing import Any, Mapping

from .logging import setup_logging

setup_logging()

_log = logging.getLogger("lumi.router")


def _enabled() -> bool:
    return (os.getenv("ROUTER_TRACE", "")).lower() in ("1", "true", "yes", "on")


def _fmt_kv(d: Mapping[str, Any]) -> str:
    return " ".join(f"{k}={d[k]}" for k in d)


def route_trace(event: str, **kv: Any) -> None:
    """
    Emit a single-line structured log ONLY when ROUTER_TRACE=true.
    Example:
      [router] attempt.start ts=... provider=groq position=1
    """
    if not _enabled():
        return
    kv2 = {"ts": int(time.time()), **kv}
    _log.info("[router] %s %s", event, _fmt_kv(kv2))
