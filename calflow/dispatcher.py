from enum import Enum

import pydantic

from calflow.base import BaseInterface
from calflow.device.interface import Device, StartRejectedError
from calflow.logutils import EVENT, LogInfo
from calflow.progress import Phase, ProgressState
from calflow.selection import Selection, SelectionModel
from calflow.settings import settings
from calflow.stages import StatusSnapshot


class DispatchOutcome(str, Enum):
    SKIPPED = "skipped"
    ACCEPTED = "accepted"
    FAILED = "failed"


class DispatchResult(pydantic.BaseModel):
    outcome: DispatchOutcome
    message: str | None = None


class ActionDispatcher(BaseInterface):
    """Issues start-calibration requests to a device, at most one at a time.

    Preconditions are checked client side and a request violating them is never sent. On success the selection that
    was sent is persisted, marking progress as started is left to the owner of the progress state.
    """

    class Config(BaseInterface.Config):
        device_id: str

    def __init__(self, *args, device: Device, selection_model: SelectionModel, **kwargs):
        self.device = device
        self.selection_model = selection_model
        super().__init__(*args, **kwargs)
        self.in_flight = False
        self.error: str | None = None

    def blocked_reason(
        self, selection: Selection, progress: ProgressState, snapshot: StatusSnapshot | None
    ) -> str | None:
        """Return why a start is not possible right now, or None if it is."""
        if snapshot is None or not snapshot.connected:
            return "Printer not connected"
        if not selection.has_selection:
            return "No calibration step selected"
        if self.in_flight:
            return "Start request already in progress"
        if snapshot.is_calibrating or progress.phase is Phase.RUNNING:
            return "Calibration already running"
        if progress.completed:
            return "Calibration completed, reset to start a new one"
        return None

    def can_start(self, selection, progress, snapshot) -> bool:
        return self.blocked_reason(selection, progress, snapshot) is None

    async def start(self, progress: ProgressState, snapshot: StatusSnapshot | None) -> DispatchResult:
        selection = self.selection_model.selection
        if reason := self.blocked_reason(selection, progress, snapshot):
            self.logger.debug(f"Not starting calibration on '{self.device_id}': {reason}")
            return DispatchResult(outcome=DispatchOutcome.SKIPPED, message=reason)

        self.in_flight = True
        self.error = None
        try:
            await self.device.start_calibration(selection)
        except StartRejectedError as exc:
            self.error = exc.message or settings.DEFAULT_START_FAILURE_MESSAGE
        except Exception as exc:
            self.logger.exception(f"Error requesting calibration on '{self.device_id}'")
            self.error = str(exc) or settings.DEFAULT_START_FAILURE_MESSAGE
        finally:
            self.in_flight = False

        if self.error:
            self.logger.log(EVENT, f"Start calibration failed: {self.error}", extra=LogInfo(device=self.device_id))
            return DispatchResult(outcome=DispatchOutcome.FAILED, message=self.error)

        self.selection_model.commit(selection)
        self.logger.log(
            EVENT, "Start calibration accepted", extra=LogInfo(device=self.device_id, **selection.request_payload())
        )
        return DispatchResult(outcome=DispatchOutcome.ACCEPTED)
