"""Classification of device status into "calibrating" or not.

Stage codes are opaque to this package. The only thing known about them is which ones the device reports while it
is executing a calibration routine.
"""

from enum import Enum

import pydantic

# Stage codes reported while a calibration routine is executing.
CALIBRATION_STAGES = frozenset({1, 3, 13, 25, 39, 40, 47, 48, 50})

NO_STAGE = -1


class DeviceState(str, Enum):
    """Coarse run state reported by the device. Only ``RUNNING`` carries meaning here."""

    RUNNING = "RUNNING"
    IDLE = "IDLE"
    PAUSE = "PAUSE"
    FINISH = "FINISH"
    FAILED = "FAILED"
    OTHER = "OTHER"

    @classmethod
    def _missing_(cls, value):
        return cls.OTHER


def is_calibrating(stage_code: int, device_state: DeviceState | str | None) -> bool:
    """Return True iff ``stage_code`` is a known calibration stage and the device is running.

    Both are required since a device may keep reporting the last calibration stage after it has finished.
    """
    return stage_code in CALIBRATION_STAGES and device_state == DeviceState.RUNNING


class StatusSnapshot(pydantic.BaseModel):
    """A single status report of the device, as delivered by the status feed."""

    model_config = pydantic.ConfigDict(frozen=True, populate_by_name=True)

    connected: bool = False
    state: DeviceState = DeviceState.OTHER
    stage_code: int = pydantic.Field(
        NO_STAGE, validation_alias=pydantic.AliasChoices("stage_code", "currentStageCode", "stg_cur")
    )
    stage_name: str | None = pydantic.Field(
        None, validation_alias=pydantic.AliasChoices("stage_name", "currentStageName", "stg_cur_name")
    )

    @pydantic.field_validator("state", mode="before")
    @classmethod
    def validate_state(cls, v):
        return DeviceState.OTHER if v is None else DeviceState(v)

    @pydantic.field_validator("stage_code", mode="before")
    @classmethod
    def validate_stage_code(cls, v):
        return NO_STAGE if v is None else v

    @property
    def is_calibrating(self) -> bool:
        return is_calibrating(self.stage_code, self.state)
