"""
Shared fixtures: isolated settings environment, snapshots and a fake upstream
"""
import os
import pytest

from satisfactory_exporter.config import load_settings
from tests.fakes import FakeServerClient, make_snapshot


@pytest.fixture(autouse=True)
def isolated_environment(monkeypatch, tmp_path):
    """Keep real SATISFACTORY_EXPORTER_* variables and .env files out of tests"""
    for name in list(os.environ):
        if name.upper().startswith("SATISFACTORY_EXPORTER_"):
            monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)


@pytest.fixture
def snapshot():
    return make_snapshot()


@pytest.fixture
def settings():
    return load_settings(endpoint="game.example.com:7777", token="secret-token")


@pytest.fixture
def fake_client():
    return FakeServerClient()
