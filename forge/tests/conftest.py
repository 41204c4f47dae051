import os
import sys
REPO_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), "..", ".."))
if REPO_ROOT not in sys.path:
    sys.path.insert(0, REPO_ROOT)

import pytest
from fastapi.testclient import TestClient
import fakeredis.aioredis as fakeredis

from forge import lifespan
from forge.config import clear_settings_cache
from forge.sandbox import ExecutionCoordinator, ProcessRunner, WorkspaceManager, build_registry


@pytest.fixture
def workspace_root(tmp_path):
    root = tmp_path / "workspaces"
    root.mkdir()
    return root


@pytest.fixture
def registry():
    return build_registry(sys.executable)


@pytest.fixture
def coordinator(registry, workspace_root):
    return ExecutionCoordinator(
        registry=registry,
        workspaces=WorkspaceManager(workspace_root),
        runner=ProcessRunner(timeout=10.0, max_output=50000),
    )


@pytest.fixture
def sandbox_env(monkeypatch, workspace_root):
    monkeypatch.setenv("SANDBOX_WORKSPACE_ROOT", str(workspace_root))
    monkeypatch.setenv("SANDBOX_PYTHON_COMMAND", sys.executable)
    monkeypatch.setenv("SANDBOX_TIMEOUT_SEC", "10")
    monkeypatch.delenv("SANDBOX_ENABLED", raising=False)
    monkeypatch.delenv("AUTH_API_TOKEN", raising=False)
    clear_settings_cache()
    yield
    clear_settings_cache()


@pytest.fixture
def client(monkeypatch, sandbox_env):
    fake = fakeredis.FakeRedis(decode_responses=True)
    monkeypatch.setattr(lifespan, "init_redis", lambda: fake)

    from forge.main import create_app

    with TestClient(create_app()) as c:
        yield c
