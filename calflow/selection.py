import json
from enum import Enum

import pydantic
from pydantic.alias_generators import to_camel

from calflow.base import BaseInterface
from calflow.storage.interface import KeyValueStore
from calflow.util import selection_key


class CalibrationOption(str, Enum):
    BED_LEVELING = "bed_leveling"
    VIBRATION = "vibration"
    MOTOR_NOISE = "motor_noise"
    NOZZLE_OFFSET = "nozzle_offset"
    HIGH_TEMP_HEATBED = "high_temp_heatbed"


OPTION_LABELS = {
    CalibrationOption.BED_LEVELING: "Bed leveling",
    CalibrationOption.VIBRATION: "Vibration compensation",
    CalibrationOption.MOTOR_NOISE: "Motor noise cancellation",
    CalibrationOption.NOZZLE_OFFSET: "Nozzle offset calibration",
    CalibrationOption.HIGH_TEMP_HEATBED: "High-temperature Heatbed Calibration",
}


class SelectionLockedError(ValueError):
    def __init__(self, device_id: str):
        super().__init__(f"Calibration selection for device '{device_id}' cannot be changed right now")


class OptionUnavailableError(ValueError):
    def __init__(self, option: CalibrationOption, device_id: str):
        super().__init__(f"Option '{option.value}' is not available on device '{device_id}'")


class Selection(pydantic.BaseModel):
    """Which calibration routines are requested.

    Persisted with camelCase keys, as sent to and stored by the web frontend.
    """

    model_config = pydantic.ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    bed_leveling: bool = True
    vibration: bool = True
    motor_noise: bool = True
    nozzle_offset: bool = False
    high_temp_heatbed: bool = False

    @classmethod
    def default(cls, dual_extrusion: bool = False) -> "Selection":
        return cls(nozzle_offset=dual_extrusion)

    def is_selected(self, option: CalibrationOption) -> bool:
        return getattr(self, option.value)

    def with_option(self, option: CalibrationOption, value: bool) -> "Selection":
        return self.model_copy(update={option.value: value})

    @property
    def has_selection(self) -> bool:
        return any(getattr(self, option.value) for option in CalibrationOption)

    def request_payload(self) -> dict[str, bool]:
        """Named booleans as sent with a start request."""
        return self.model_dump(by_alias=False)


class SelectionModel(BaseInterface):
    """Current calibration selection of one device, persisted to a key-value store.

    The persisted record is only written on commit (i.e. once a start request was accepted) so that it reflects the
    last selection actually sent to the device.
    """

    class Config(BaseInterface.Config):
        device_id: str
        dual_extrusion: bool = False

    def __init__(self, *args, store: KeyValueStore, **kwargs):
        self.store = store
        super().__init__(*args, **kwargs)
        self.selection = self.defaults()
        self.locked = False

    @property
    def key(self) -> str:
        return selection_key(self.device_id)

    def defaults(self) -> Selection:
        return Selection.default(self.dual_extrusion)

    def available_options(self) -> list[CalibrationOption]:
        return [o for o in CalibrationOption if o is not CalibrationOption.NOZZLE_OFFSET or self.dual_extrusion]

    def get(self, option: CalibrationOption) -> bool:
        return self.selection.is_selected(CalibrationOption(option))

    def set(self, option: CalibrationOption, value: bool):
        option = CalibrationOption(option)
        if self.locked:
            raise SelectionLockedError(self.device_id)
        if option not in self.available_options():
            raise OptionUnavailableError(option, self.device_id)
        self.selection = self.selection.with_option(option, value)

    def load(self) -> Selection | None:
        """Return the persisted selection, or None if absent or unreadable."""
        raw = self.store.get(self.key)
        if raw is None:
            return None
        try:
            record = json.loads(raw)
            if not isinstance(record, dict):
                raise TypeError(f"expected a mapping, got {type(record).__name__}")
            # Options missing from the record take this device's defaults.
            record = {to_camel(k) if k in Selection.model_fields else k: v for k, v in record.items()}
            selection = Selection.model_validate({**self.defaults().model_dump(by_alias=True), **record})
        except (ValueError, TypeError):
            self.logger.debug(f"Ignoring malformed selection record for '{self.device_id}'")
            return None
        if not self.dual_extrusion and selection.nozzle_offset:
            selection = selection.with_option(CalibrationOption.NOZZLE_OFFSET, False)
        return selection

    def restore(self) -> Selection:
        """Replace the current selection with the persisted one, falling back to defaults."""
        self.selection = self.load() or self.defaults()
        return self.selection

    def commit(self, selection: Selection | None = None):
        """Persist ``selection`` (defaults to the current one)."""
        selection = selection or self.selection
        self.store.set(self.key, selection.model_dump_json(by_alias=True))

    def reset(self) -> Selection:
        """Clear the persisted record and return to defaults."""
        self.store.remove(self.key)
        self.selection = self.defaults()
        return self.selection
