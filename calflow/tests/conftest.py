import asyncio

import pytest

from calflow.device.demo import SimulatedDevice
from calflow.device.interface import Device, StartRejectedError
from calflow.session import CalibrationSession
from calflow.settings import settings
from calflow.stages import DeviceState, StatusSnapshot
from calflow.storage.demo import InMemoryStore


def snapshot(state=DeviceState.RUNNING, stage_code=-1, connected=True, stage_name=None):
    return StatusSnapshot(connected=connected, state=state, stage_code=stage_code, stage_name=stage_name)


class GatedDevice(Device):
    """Device whose start request stays outstanding until ``release`` is set."""

    class Config(Device.Config):
        reject_with: str | None = None

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.release = None
        self.requests = []

    async def start_calibration(self, selection):
        self.requests.append(selection.request_payload())
        if self.release is not None:
            await self.release.wait()
        if self.reject_with:
            raise StartRejectedError(self.reject_with)

    def read_status(self):
        return snapshot(DeviceState.IDLE)


@pytest.fixture
def tmp_store_file(monkeypatch, tmp_path):
    monkeypatch.setattr(settings, "STORE_FILE", tmp_path / "store.yml")
    return tmp_path / "store.yml"


@pytest.fixture
def store():
    return InMemoryStore()


@pytest.fixture
def device():
    return SimulatedDevice(auto_advance=False)


@pytest.fixture
def dual_device():
    return SimulatedDevice(auto_advance=False, dual_extrusion=True)


@pytest.fixture
def gated_device():
    return GatedDevice()


@pytest.fixture
def session(device, store):
    session = CalibrationSession(device_id="printer1", device=device, store=store)
    session.open()
    return session


def run(coro):
    return asyncio.run(coro)
