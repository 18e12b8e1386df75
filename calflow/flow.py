"""The expected calibration flow for a given selection.

The device executes the selected routines in a fixed order which is modelled here as a table rather than inferred.
"""

from typing import Callable, NamedTuple

import pydantic

from calflow.selection import Selection


class FlowStep(pydantic.BaseModel):
    model_config = pydantic.ConfigDict(frozen=True)

    name: str
    stage_codes: frozenset[int]
    order: int

    def matches(self, stage_code: int) -> bool:
        return stage_code in self.stage_codes


class _StepRule(NamedTuple):
    name: str
    stage_codes: frozenset[int]
    guard: Callable[[Selection, bool], bool]


# Order matters: steps are appended in this order whenever their guard holds.
FLOW_TABLE = (
    _StepRule("Homing", frozenset({13}), lambda s, dual: True),
    _StepRule("Cooling", frozenset({50}), lambda s, dual: s.bed_leveling or s.high_temp_heatbed),
    # Two codes depending on firmware version.
    _StepRule("Bed leveling (phase 1)", frozenset({1, 47}), lambda s, dual: s.bed_leveling),
    _StepRule("Motor noise cancellation", frozenset({25}), lambda s, dual: s.motor_noise),
    _StepRule("Vibration compensation", frozenset({3}), lambda s, dual: s.vibration),
    _StepRule("Bed leveling (phase 2)", frozenset({48}), lambda s, dual: s.bed_leveling),
    _StepRule("Nozzle offset calibration", frozenset({39}), lambda s, dual: dual and s.nozzle_offset),
    _StepRule("High-temperature heatbed calibration", frozenset({40}), lambda s, dual: s.high_temp_heatbed),
)


def build_flow(selection: Selection, dual_extrusion: bool = False) -> list[FlowStep]:
    """Return the ordered steps expected for ``selection``.

    An empty list is returned when nothing is selected, callers should present that as such rather than as a
    timeline holding only the homing step.
    """
    if not selection.has_selection:
        return []

    flow = []
    for rule in FLOW_TABLE:
        if rule.guard(selection, dual_extrusion):
            flow.append(FlowStep(name=rule.name, stage_codes=rule.stage_codes, order=len(flow)))
    return flow
