import pytest
from fastapi.testclient import TestClient

from calflow.app.main import app
from calflow.service import CalibrationService
from calflow.settings import app_settings, settings


@pytest.fixture
def app_config():
    return {
        "name": "TestService",
        "devices": {
            "x1": {"classinfo": "calflow.device.demo.SimulatedDevice", "config": {"auto_advance": False}},
            "x2": {
                "classinfo": "calflow.device.demo.SimulatedDevice",
                "config": {"auto_advance": False, "dual_extrusion": True},
            },
        },
        "store": {"classinfo": "calflow.storage.demo.InMemoryStore"},
        # Snapshots are pushed explicitly by the tests.
        "enable_polling": False,
    }


@pytest.fixture
def app_client(app_config, tmp_path, monkeypatch):
    monkeypatch.setattr(app_settings, "CONFIG_FILE", tmp_path / "calflow.yml")
    monkeypatch.setattr(settings, "SNAPSHOT", tmp_path / "calflow_snapshot.yml")
    monkeypatch.setattr(settings, "STORE_FILE", tmp_path / "calflow_store.yml")
    CalibrationService.Config.model_validate(app_config).save(app_settings.CONFIG_FILE)
    with TestClient(app) as client:
        yield client
