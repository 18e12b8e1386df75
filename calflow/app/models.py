import pydantic

from calflow.dispatcher import DispatchResult
from calflow.selection import CalibrationOption
from calflow.service import CalibrationService
from calflow.session import CalibrationView


class DeviceInfo(pydantic.BaseModel):
    device_id: str
    dual_extrusion: bool
    session_open: bool


class ServiceDescription(pydantic.BaseModel):
    config: CalibrationService.Config
    devices: list[DeviceInfo]


class SelectionUpdate(pydantic.RootModel[dict[CalibrationOption, bool]]):
    """Partial update of a selection, e.g. ``{"vibration": false}``."""


class StartResponse(pydantic.BaseModel):
    result: DispatchResult
    view: CalibrationView
