import logging

from pydantic import Field, field_validator

from calflow.base import BaseInterface, ConfigDescriptor, to_descriptor
from calflow.device.demo import SimulatedDevice
from calflow.device.interface import Device
from calflow.history import InMemoryHistory
from calflow.logutils import EVENT, LogHistoryCaptureHandler
from calflow.session import CalibrationSession
from calflow.settings import settings
from calflow.stages import StatusSnapshot
from calflow.storage.standard import YamlFileStore

DEFAULT_STORE = YamlFileStore


class DeviceNotConfiguredError(KeyError):
    def __init__(self, device_id: str):
        super().__init__(f"Device '{device_id}' is not configured")


class CalibrationService(BaseInterface):
    """Owns the configured devices, the selection store and one calibration session per device."""

    class Config(BaseInterface.Config):
        name: str = "CalibrationService"
        devices: dict[str, ConfigDescriptor] = Field(
            default_factory=lambda: {"demo": ConfigDescriptor.model_validate(SimulatedDevice)},
            description="Devices mapped by their identity.",
        )
        store: ConfigDescriptor = Field(
            default_factory=lambda: ConfigDescriptor.model_validate(DEFAULT_STORE),
            description="Key-value store persisting calibration selections.",
        )
        poll_interval: float = settings.DEFAULT_POLL_INTERVAL
        enable_polling: bool = True
        log_level: int = EVENT

        @field_validator("devices", mode="before")
        @classmethod
        def validate_devices(cls, v):
            return {} if v is None else {k: to_descriptor(d) for k, d in v.items()}

        @field_validator("store", mode="before")
        @classmethod
        def validate_store(cls, v):
            return to_descriptor(v)

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.sessions: dict[str, CalibrationSession] = {}
        self.history = InMemoryHistory()
        self._setup_log_capture()

    def _setup_log_capture(self):
        self._log_capture_handler = LogHistoryCaptureHandler(self.history)
        self._log_capture_handler.setLevel(self.log_level)
        logger = logging.getLogger(settings.DEFAULT_LOGGER)
        logger.addHandler(self._log_capture_handler)
        logger.setLevel(self.log_level)

    def __del__(self):
        if handler := getattr(self, "_log_capture_handler", None):
            logging.getLogger(settings.DEFAULT_LOGGER).removeHandler(handler)

    def get_device(self, device_id: str) -> Device:
        try:
            return self.devices[device_id]
        except KeyError:
            raise DeviceNotConfiguredError(device_id) from None

    def get_session(self, device_id: str) -> CalibrationSession | None:
        self.get_device(device_id)
        return self.sessions.get(device_id)

    def open_session(self, device_id: str, read_status: bool = True) -> CalibrationSession:
        """Open (or re-open) the calibration session of ``device_id``.

        With ``read_status`` the device is asked for its status right away so that a run already in progress is
        picked up without waiting for the next poll.
        """
        device = self.get_device(device_id)
        if (session := self.sessions.get(device_id)) is None:
            session = CalibrationSession(
                name=f"session.{device_id}", device_id=device_id, device=device, store=self.store
            )
            self.sessions[device_id] = session
        session.open()
        if read_status:
            self._poll_session(session)
        return session

    def close_session(self, device_id: str):
        if session := self.get_session(device_id):
            session.close()

    def push_snapshot(self, device_id: str, snapshot: StatusSnapshot) -> bool:
        """Feed a snapshot delivered by an external status feed. Returns False if no session is subscribed."""
        session = self.get_session(device_id)
        return session.on_snapshot(snapshot) if session else False

    def _poll_session(self, session: CalibrationSession):
        try:
            snapshot = session.device.read_status()
        except Exception as exc:
            self.logger.exception(f"Error reading status of device '{session.device_id}'")
            return exc
        session.on_snapshot(snapshot)
        return None

    def poll_once(self) -> list:
        """Read status of every device with a subscribed session and feed it. Returns read errors (None if OK)."""
        if not self.enable_polling:
            return []
        return [self._poll_session(s) for s in list(self.sessions.values()) if s.subscribed]

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.config_model.save(settings.SNAPSHOT)
