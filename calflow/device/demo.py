from collections import deque

from calflow.device.interface import Device, StartRejectedError
from calflow.flow import build_flow
from calflow.selection import Selection
from calflow.stages import NO_STAGE, DeviceState, StatusSnapshot


class SimulatedDevice(Device):
    """An in-process device walking through the stages of the requested calibration.

    Every ``read_status()`` advances the run by one stage when ``auto_advance`` is set, otherwise ``tick()`` does.
    Once the last stage has been reported the device becomes idle while keeping the last stage code, as real
    firmware does.
    """

    class Config(Device.Config):
        name: str = "SimulatedDevice"
        connected: bool = True
        auto_advance: bool = True
        reject_with: str | None = None

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.state = DeviceState.IDLE
        self.stage_code = NO_STAGE
        self.stage_name = None
        self.pending = deque()
        self.requests = []

    def plan(self, selection: Selection) -> list[tuple[int, str]]:
        """The (stage code, stage name) sequence executed for ``selection``."""
        return [(min(step.stage_codes), step.name) for step in build_flow(selection, self.dual_extrusion)]

    async def start_calibration(self, selection):
        self.requests.append(selection.request_payload())
        if not self.connected:
            raise StartRejectedError("Printer not connected")
        if self.reject_with:
            raise StartRejectedError(self.reject_with)
        self.begin(selection)

    def begin(self, selection: Selection):
        """Start a run without a request, as if from the device's own panel."""
        self.pending = deque(self.plan(selection))
        self.state = DeviceState.RUNNING
        self.tick()

    def tick(self):
        if self.state is not DeviceState.RUNNING:
            return
        if self.pending:
            self.stage_code, self.stage_name = self.pending.popleft()
        else:
            self.state = DeviceState.FINISH

    def read_status(self):
        snapshot = StatusSnapshot(
            connected=self.connected, state=self.state, stage_code=self.stage_code, stage_name=self.stage_name
        )
        if self.auto_advance:
            self.tick()
        return snapshot
