"""
Shared fixtures for flowrun tests.

Collaborators are replaced with in-memory fakes so no test touches the
network or a language model.
"""
import pytest

from flowrun.engine.executor import WorkflowExecutor
from flowrun.steps.registry import build_registry
from flowrun.utils import config as config_module
from tests.fakes import FakeHttpClient


@pytest.fixture
def http_client():
    return FakeHttpClient()


@pytest.fixture
def registry(http_client):
    return build_registry(http_client=http_client)


@pytest.fixture
def executor(registry):
    return WorkflowExecutor(registry=registry, max_workers=4)


@pytest.fixture(autouse=True)
def isolated_config(tmp_path, monkeypatch):
    """Point the config manager at a temporary file and clear env overrides"""
    for name in ("OPENAI_API_KEY", "FLOWRUN_FILTER_URL", "FLOWRUN_MAX_WORKERS", "FLOWRUN_HTTP_TIMEOUT"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setattr(config_module.ConfigManager, "CONFIG_FILE", tmp_path / "flowrun" / "config.json")
    monkeypatch.setattr(config_module, "_config_manager", None)
    return tmp_path / "flowrun" / "config.json"
