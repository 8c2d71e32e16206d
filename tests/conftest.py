"""Pytest configuration for pilet-upgrade tests."""
import pytest


@pytest.fixture(autouse=True)
def _isolated_client_environment(monkeypatch: pytest.MonkeyPatch):
    """Keep a developer's client/cache overrides out of the tests."""
    monkeypatch.delenv("PILET_UPGRADE_NPM_CLIENT", raising=False)
    monkeypatch.delenv("PILET_UPGRADE_CACHE_DIR", raising=False)
    yield
