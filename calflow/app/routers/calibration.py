from fastapi import APIRouter, Request
from fastapi.params import Query

from calflow.app.exceptions import DeviceNotFoundError, SessionNotFoundError
from calflow.app.models import DeviceInfo, SelectionUpdate, StartResponse
from calflow.service import CalibrationService, DeviceNotConfiguredError
from calflow.session import CalibrationSession, CalibrationView
from calflow.stages import StatusSnapshot

router = APIRouter(prefix="/devices", tags=["calibration"], responses={404: {"description": "Not found"}})


def get_service(request: Request) -> CalibrationService:
    return request.app.state.service


def get_session(request: Request, device_id: str) -> CalibrationSession:
    try:
        session = get_service(request).get_session(device_id)
    except DeviceNotConfiguredError:
        raise DeviceNotFoundError
    if session is None:
        raise SessionNotFoundError
    return session


def describe_devices(service: CalibrationService) -> list[DeviceInfo]:
    return [
        DeviceInfo(
            device_id=device_id,
            dual_extrusion=device.dual_extrusion,
            session_open=bool((session := service.sessions.get(device_id)) and session.subscribed),
        )
        for device_id, device in service.devices.items()
    ]


@router.get("/")
def get_devices(request: Request) -> list[DeviceInfo]:
    return describe_devices(get_service(request))


@router.get("/{device_id}/calibration")
def get_calibration(device_id: str, request: Request) -> CalibrationView:
    """Return the calibration overlay state of the device."""
    return get_session(request, device_id).view()


@router.post("/{device_id}/calibration/open")
def open_calibration(device_id: str, request: Request) -> CalibrationView:
    """Open the calibration overlay of the device.

    The device status is read immediately, so that a calibration already running (e.g. started from the printer's
    touchscreen) is reflected straight away along with the last selection started from here. Re-opening while a
    start request is still outstanding resumes the existing session as is.
    """
    try:
        session = get_service(request).open_session(device_id)
    except DeviceNotConfiguredError:
        raise DeviceNotFoundError
    return session.view()


@router.post("/{device_id}/calibration/close")
def close_calibration(device_id: str, request: Request) -> CalibrationView:
    """Close the overlay. Progress is kept, and an outstanding start request is not cancelled."""
    session = get_session(request, device_id)
    session.close()
    return session.view()


@router.post("/{device_id}/calibration/snapshot")
def push_snapshot(device_id: str, snapshot: StatusSnapshot, request: Request) -> CalibrationView:
    """Feed a device status snapshot, for deployments where status is pushed rather than polled."""
    session = get_session(request, device_id)
    session.on_snapshot(snapshot)
    return session.view()


@router.put("/{device_id}/calibration/selection")
def update_selection(device_id: str, update: SelectionUpdate, request: Request) -> CalibrationView:
    session = get_session(request, device_id)
    for option, value in update.root.items():
        session.set_option(option, value)
    return session.view()


@router.post("/{device_id}/calibration/start")
async def start_calibration(device_id: str, request: Request) -> StartResponse:
    """Request the device to start calibrating with the current selection.

    A start that is not currently possible (disconnected, nothing selected, already running or completed, or a
    request already outstanding) is not sent, the result outcome is then ``skipped``.
    """
    session = get_session(request, device_id)
    result = await session.start()
    request.app.state.trigger.set()
    return StartResponse(result=result, view=session.view())


@router.post("/{device_id}/calibration/reset")
def reset_calibration(device_id: str, request: Request, clear_selection: bool = Query(True)) -> CalibrationView:
    """Discard progress, ready for a new calibration. By default also forgets the persisted selection."""
    session = get_session(request, device_id)
    session.reset(clear_selection=clear_selection)
    return session.view()
