from __future__ import annotations

import importlib
import sys
from pathlib import Path
from typing import Callable

import pytest
from fastapi.testclient import TestClient

BACKEND_DIR = Path(__file__).resolve().parents[1]
if str(BACKEND_DIR) not in sys.path:
    sys.path.insert(0, str(BACKEND_DIR))

from health_assistant import ResponseOrchestrator  # noqa: E402
from provider_stubs import ScriptedProvider  # noqa: E402


@pytest.fixture
def backend_module(tmp_path, monkeypatch):
    db_path = tmp_path / "healthmate-test.sqlite"
    monkeypatch.setenv("HEALTHMATE_DB_PATH", str(db_path))
    monkeypatch.setenv("ALLOW_ANON", "false")
    monkeypatch.setenv("HEALTHMATE_ENV", "production")
    # Provider-backed tests install a stub orchestrator explicitly.
    monkeypatch.setenv("GEMINI_API_KEY", "")

    if "main" in sys.modules:
        module = importlib.reload(sys.modules["main"])
    else:
        module = importlib.import_module("main")
    return module


@pytest.fixture
def client(backend_module):
    with TestClient(backend_module.app) as test_client:
        yield test_client


@pytest.fixture
def auth_headers() -> Callable[[str], dict[str, str]]:
    def _make(email: str) -> dict[str, str]:
        return {"X-User-Email": email}

    return _make


@pytest.fixture
def install_provider(backend_module) -> Callable[..., ScriptedProvider]:
    def _install(
        provider: ScriptedProvider,
        *,
        chat_models: tuple[str, ...] = ("model-a", "model-b", "model-c"),
        symptom_models: tuple[str, ...] = ("model-a", "model-b"),
    ) -> ScriptedProvider:
        backend_module.container.orchestrator = ResponseOrchestrator(
            provider,
            chat_models=chat_models,
            symptom_models=symptom_models,
        )
        return provider

    return _install
