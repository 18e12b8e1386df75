from enum import Enum
from threading import RLock

import pydantic

from calflow.base import BaseInterface
from calflow.device.interface import Device
from calflow.dispatcher import ActionDispatcher, DispatchOutcome, DispatchResult
from calflow.flow import FlowStep, build_flow
from calflow.logutils import EVENT, LogInfo
from calflow.progress import (
    Phase,
    ProgressState,
    advance,
    current_step_index,
    fallback_label,
    initial_state,
    mark_started,
    step_statuses,
)
from calflow.selection import OPTION_LABELS, CalibrationOption, SelectionLockedError, SelectionModel
from calflow.stages import NO_STAGE, StatusSnapshot
from calflow.storage.interface import KeyValueStore


class StartPendingError(ValueError):
    def __init__(self, device_id: str):
        super().__init__(f"A start request for device '{device_id}' is still outstanding")


class ButtonState(str, Enum):
    START = "start"
    STARTING = "starting"
    CALIBRATING = "calibrating"
    COMPLETED = "completed"


class OptionView(pydantic.BaseModel):
    option: CalibrationOption
    label: str
    selected: bool


class StepView(pydantic.BaseModel):
    number: int
    name: str
    active: bool
    complete: bool
    is_last: bool


class CalibrationView(pydantic.BaseModel):
    """Everything needed to render the calibration overlay of one device."""

    device_id: str
    subscribed: bool
    connected: bool
    dual_extrusion: bool
    phase: Phase
    progress: ProgressState
    options: list[OptionView]
    selection_locked: bool
    nothing_selected: bool
    steps: list[StepView]
    current_step_index: int
    current_stage_label: str | None = None
    button: ButtonState
    can_start: bool
    blocked_reason: str | None = None
    can_reset: bool
    error: str | None = None


class CalibrationSession(BaseInterface):
    """The calibration overlay of one device.

    A session consumes status snapshots and operator actions, each applied atomically under ``self.lock``. Closing
    only unsubscribes from snapshots. Re-opening rebuilds progress from the persisted selection and the next snapshot,
    unless a start request is still outstanding in which case the session is resumed as is.
    """

    class Config(BaseInterface.Config):
        device_id: str

    def __init__(self, *args, device: Device, store: KeyValueStore, **kwargs):
        self.device = device
        super().__init__(*args, **kwargs)
        self.lock = RLock()
        self.selection_model = SelectionModel(
            name=f"{self.name}.selection",
            device_id=self.device_id,
            dual_extrusion=self.device.dual_extrusion,
            store=store,
        )
        self.dispatcher = ActionDispatcher(
            name=f"{self.name}.dispatcher",
            device_id=self.device_id,
            device=device,
            selection_model=self.selection_model,
        )
        self.progress = ProgressState()
        self.snapshot: StatusSnapshot | None = None
        self.initialized = False
        self.subscribed = False

    @property
    def dual_extrusion(self) -> bool:
        return self.device.dual_extrusion

    @property
    def flow(self) -> list[FlowStep]:
        return build_flow(self.selection_model.selection, self.dual_extrusion)

    @property
    def connected(self) -> bool:
        return self.snapshot is not None and self.snapshot.connected

    @property
    def stage_code(self) -> int:
        return self.snapshot.stage_code if self.snapshot is not None else NO_STAGE

    def _log_event(self, message, **extra):
        self.logger.log(EVENT, message, extra=LogInfo(device=self.device_id, **extra))

    def _update_lock(self):
        self.selection_model.locked = self.progress.phase is Phase.RUNNING or not self.connected

    def open(self):
        with self.lock:
            if self.subscribed:
                return
            if not self.dispatcher.in_flight:
                self.progress = ProgressState()
                self.snapshot = None
                self.initialized = False
                self.dispatcher.error = None
                self.selection_model.restore()
            self.subscribed = True
            self._update_lock()
            self.logger.debug(f"Calibration overlay opened for '{self.device_id}'")

    def close(self):
        with self.lock:
            self.subscribed = False
            self.logger.debug(f"Calibration overlay closed for '{self.device_id}'")

    def on_snapshot(self, snapshot: StatusSnapshot) -> bool:
        """Apply a status snapshot. Returns False if ignored because the session is not subscribed."""
        with self.lock:
            if not self.subscribed:
                return False

            if not self.initialized:
                self.initialized = True
                self.progress = initial_state(snapshot)
                if self.progress.started:
                    self._log_event("Calibration already in progress", stage_code=snapshot.stage_code)

            previous = self.progress

            self.progress = advance(self.progress, self.flow, snapshot)
            self.snapshot = snapshot

            if previous.phase is not self.progress.phase:
                if self.progress.phase is Phase.RUNNING and not previous.started:
                    self._log_event("Calibration detected running", stage_code=snapshot.stage_code)
                elif self.progress.phase is Phase.COMPLETED:
                    self._log_event("Calibration completed", stage_code=snapshot.stage_code)
            self._update_lock()
            return True

    def set_option(self, option: CalibrationOption, value: bool):
        with self.lock:
            # The selection sent with an outstanding request must stay as it was sent.
            if self.dispatcher.in_flight:
                raise SelectionLockedError(self.device_id)
            self.selection_model.set(option, value)

    async def start(self) -> DispatchResult:
        with self.lock:
            progress, snapshot = self.progress, self.snapshot
        result = await self.dispatcher.start(progress, snapshot)
        if result.outcome is DispatchOutcome.ACCEPTED:
            with self.lock:
                self.progress = mark_started(self.progress)
                self._update_lock()
        return result

    def reset(self, clear_selection: bool = True):
        """Return to idle, discarding progress. With ``clear_selection`` also forget the persisted selection."""
        with self.lock:
            if self.dispatcher.in_flight:
                raise StartPendingError(self.device_id)
            self.progress = ProgressState()
            self.dispatcher.error = None
            if clear_selection:
                self.selection_model.reset()
            self._update_lock()
            self._log_event("Calibration reset", clear_selection=clear_selection)

    def view(self) -> CalibrationView:
        with self.lock:
            flow = self.flow
            selection = self.selection_model.selection
            stage_code = self.stage_code
            blocked_reason = self.dispatcher.blocked_reason(selection, self.progress, self.snapshot)

            if self.progress.completed:
                button = ButtonState.COMPLETED
            elif self.progress.phase is Phase.RUNNING:
                button = ButtonState.CALIBRATING
            elif self.dispatcher.in_flight:
                button = ButtonState.STARTING
            else:
                button = ButtonState.START

            steps = [
                StepView(
                    number=status.step.order + 1,
                    name=status.step.name,
                    active=status.active,
                    complete=status.complete,
                    is_last=status.step.order == len(flow) - 1,
                )
                for status in step_statuses(self.progress, flow, stage_code)
            ]

            return CalibrationView(
                device_id=self.device_id,
                subscribed=self.subscribed,
                connected=self.connected,
                dual_extrusion=self.dual_extrusion,
                phase=self.progress.phase,
                progress=self.progress,
                options=[
                    OptionView(option=option, label=OPTION_LABELS[option], selected=selection.is_selected(option))
                    for option in self.selection_model.available_options()
                ],
                selection_locked=self.selection_model.locked or self.dispatcher.in_flight,
                nothing_selected=not flow,
                steps=steps,
                current_step_index=current_step_index(flow, stage_code),
                current_stage_label=fallback_label(flow, self.snapshot),
                button=button,
                can_start=blocked_reason is None,
                blocked_reason=blocked_reason,
                can_reset=self.progress.started and not self.dispatcher.in_flight,
                error=self.dispatcher.error,
            )
