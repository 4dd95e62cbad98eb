# tests/conftest.py
from __future__ import annotations

import os
from pathlib import Path
from typing import Callable, Dict, List, Tuple

import pytest
from fastapi.testclient import TestClient

from lumi_router.adapters.base import ProviderAdapter
from lumi_router.adapters.registry import build_adapters
from lumi_router.core.config import RouterConfig, load_config
from lumi_router.core.route import ChatRouter

PROVIDER_KEYS = ("GOOGLE_API_KEY", "GROQ_API_KEY", "DEEPSEEK_API_KEY", "OPENAI_API_KEY")


def pytest_configure(config: pytest.Config) -> None:
    print("\n=== Environment Summary ===")
    for k in PROVIDER_KEYS:
        print(f"{k}={'<set>' if os.getenv(k) else '<unset>'}")
    print(f"LOG_LEVEL={os.getenv('LOG_LEVEL')}")
    print(f"ROUTER_TRACE={os.getenv('ROUTER_TRACE')}")
    print("===========================\n")


# ---------- Env isolation ----------
@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    for k in PROVIDER_KEYS:
        monkeypatch.delenv(k, raising=False)
    monkeypatch.delenv("LUMI_ROUTER_CONFIG", raising=False)
    monkeypatch.setenv("LUMI_DB_PATH", str(tmp_path / "lumi-test.db"))
    monkeypatch.setenv("JWT_SECRET", "test-secret")


@pytest.fixture
def all_keys(monkeypatch: pytest.MonkeyPatch) -> None:
    for k in PROVIDER_KEYS:
        monkeypatch.setenv(k, f"test-{k.lower()}")


@pytest.fixture
def cfg() -> RouterConfig:
    return load_config()


# ---------- Scripted adapters ----------
class ScriptedAdapter(ProviderAdapter):
    """
    Real transform_history (from the wrapped adapter), scripted invoke.

    `outcome` is either reply text or an exception instance to raise.
    Every invoke is recorded in `calls` and in the shared `journal`.
    """

    def __init__(self, inner: ProviderAdapter, outcome, journal: List[str]) -> None:
        super().__init__(inner.cfg, inner.system_prompt, inner.timeout_s)
        self.inner = inner
        self.style = inner.style
        self.outcome = outcome
        self.journal = journal
        self.calls = []

    def transform_history(self, history):
        return self.inner.transform_history(history)

    def invoke(self, request):
        self.calls.append(request)
        self.journal.append(self.id)
        if isinstance(self.outcome, BaseException):
            raise self.outcome
        return self.outcome


@pytest.fixture
def make_router(cfg: RouterConfig) -> Callable[..., Tuple[ChatRouter, Dict[str, ScriptedAdapter], List[str]]]:
    """
    make_router({"groq": QuotaError(...), "gemini": "hi"}) ->
        (router, adapters_by_id, journal)

    Providers missing from `outcomes` reply "ok from <id>".
    """
    def _make(outcomes: Dict[str, object] | None = None, clock=lambda: 1_700_000_000_000):
        outcomes = outcomes or {}
        journal: List[str] = []
        real = build_adapters(cfg)
        fakes = {
            pid: ScriptedAdapter(adapter, outcomes.get(pid, f"ok from {pid}"), journal)
            for pid, adapter in real.items()
        }
        return ChatRouter(cfg, fakes, clock=clock), fakes, journal

    return _make


# ---------- HTTP clients ----------
@pytest.fixture
def app_client(make_router):
    """TestClient whose ChatRouter dependency is a scripted router."""
    from lumi_router.app import app, get_chat_router

    def _make(outcomes: Dict[str, object] | None = None):
        router, fakes, journal = make_router(outcomes)
        app.dependency_overrides[get_chat_router] = lambda: router
        c = TestClient(app)
        return c, fakes, journal

    yield _make
    app.dependency_overrides.pop(get_chat_router, None)


@pytest.fixture
def authed_client(tmp_path: Path) -> TestClient:
    """TestClient with a dev bearer token and a throwaway sqlite store."""
    from lumi_router.app import app, get_chat_store
    from lumi_router.auth.internal import make_dev_token
    from lumi_router.store.chats import ChatStore

    store = ChatStore(tmp_path / "chats.db")
    app.dependency_overrides[get_chat_store] = lambda: store

    c = TestClient(app)
    c.headers.update({"Authorization": f"Bearer {make_dev_token(sub='student-1')}"})
    yield c
    app.dependency_overrides.pop(get_chat_store, None)
