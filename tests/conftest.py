"""Common test fixtures for the Fusen vault engine."""

import pytest

from tests.fakes import FakeStorageGateway
from fusen_vault.config import config
from fusen_vault.observability import metrics
from fusen_vault.services.vault_service import VaultService
from fusen_vault.state import NoteMirror, StateStore
from fusen_vault.storage.gateway import FileSystemGateway
from fusen_vault.storage.settings_store import SettingsStore


@pytest.fixture
def test_config(tmp_path, monkeypatch):
    """Configure with test paths (auto-restored even on crash)."""
    notes_dir = tmp_path / "notes"
    monkeypatch.setattr(config, "notes_dir", notes_dir)
    monkeypatch.setattr(config, "settings_path", tmp_path / "settings.json")
    monkeypatch.setattr(config, "log_dir", tmp_path / "logs")
    yield config


@pytest.fixture
def gateway():
    """An empty in-memory gateway."""
    return FakeStorageGateway()


@pytest.fixture
def mirror():
    return NoteMirror()


@pytest.fixture
def state_store():
    return StateStore()


@pytest.fixture
def vault_service(gateway, state_store, test_config):
    """VaultService over the in-memory gateway."""
    service = VaultService(
        gateway=gateway,
        store=state_store,
        settings_store=SettingsStore(test_config.settings_path),
        cfg=test_config,
    )
    yield service


@pytest.fixture
def fs_service(test_config):
    """VaultService over the real filesystem, rooted at a temp folder."""
    notes_dir = test_config.get_notes_dir()
    service = VaultService(
        gateway=FileSystemGateway(),
        settings_store=SettingsStore(test_config.settings_path),
        cfg=test_config,
    )
    service.open_folder(str(notes_dir))
    yield service


@pytest.fixture
def reset_metrics():
    """Start and finish with empty global metrics."""
    metrics.reset()
    yield metrics
    metrics.reset()
