"""Progress inference from the device status feed.

Progress is tracked with three flags held by ``ProgressState``:

* ``started``: a run was requested from here, or one was observed (e.g. started from the device's own panel).
* ``ever_seen_running``: the device was observed calibrating at least once during this attempt. Only an explicit
  reset clears it.
* ``completed``: the device was observed calibrating and subsequently observed not calibrating.

``advance`` is the single transition function, applied to every snapshot. It is idempotent, i.e., applying it
again with the same snapshot yields the same state.
"""

from enum import Enum

import pydantic

from calflow.flow import FlowStep
from calflow.stages import StatusSnapshot


class Phase(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"


class ProgressState(pydantic.BaseModel):
    model_config = pydantic.ConfigDict(frozen=True)

    started: bool = False
    ever_seen_running: bool = False
    completed: bool = False

    @property
    def phase(self) -> Phase:
        if self.completed:
            return Phase.COMPLETED
        if self.started:
            return Phase.RUNNING
        return Phase.IDLE


class StepStatus(pydantic.BaseModel):
    step: FlowStep
    active: bool
    complete: bool


def advance(previous: ProgressState, flow: list[FlowStep], snapshot: StatusSnapshot) -> ProgressState:
    """Return the progress state following ``previous`` once ``snapshot`` has been observed.

    ``flow`` does not influence the flags, it is accepted so that callers hold one signature for the whole
    transition (previous state, flow, snapshot).
    """
    started = previous.started
    ever_seen_running = previous.ever_seen_running
    completed = previous.completed

    if snapshot.is_calibrating:
        # Also covers runs started outside this interface.
        started = True
        if not ever_seen_running:
            ever_seen_running = True
            # Stale completion from an earlier attempt.
            completed = False
    elif ever_seen_running and not completed:
        completed = True

    return ProgressState(started=started, ever_seen_running=ever_seen_running, completed=completed)


def initial_state(snapshot: StatusSnapshot | None) -> ProgressState:
    """Progress state of a freshly opened session given its first snapshot."""
    if snapshot is not None and snapshot.is_calibrating:
        return ProgressState(started=True, ever_seen_running=True)
    return ProgressState()


def mark_started(previous: ProgressState) -> ProgressState:
    """Optimistically mark a run as started once its start request was accepted by the device."""
    return previous.model_copy(update={"started": True})


def current_step_index(flow: list[FlowStep], stage_code: int) -> int:
    """Index of the first step bound to ``stage_code``, or -1 if none is."""
    for index, step in enumerate(flow):
        if step.matches(stage_code):
            return index
    return -1


def fallback_label(flow: list[FlowStep], snapshot: StatusSnapshot | None) -> str | None:
    """The raw stage name when the device reports a stage outside the expected flow."""
    if snapshot is None or snapshot.stage_code < 0 or not snapshot.stage_name:
        return None
    if current_step_index(flow, snapshot.stage_code) != -1:
        return None
    return snapshot.stage_name


def step_statuses(progress: ProgressState, flow: list[FlowStep], stage_code: int) -> list[StepStatus]:
    """Active/complete status of each step in ``flow``.

    A step is active while running and the device reports one of its stage codes. A step is complete once the
    whole run completed, or while running when a later step is the current one.
    """
    running = progress.phase is Phase.RUNNING
    index = current_step_index(flow, stage_code)
    return [
        StepStatus(
            step=step,
            active=running and step.matches(stage_code),
            complete=progress.completed or (running and step.order < index),
        )
        for step in flow
    ]
