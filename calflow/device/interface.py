from abc import abstractmethod

from pydantic import Field

from calflow.base import BaseInterface
from calflow.selection import Selection
from calflow.stages import StatusSnapshot


class StartRejectedError(Exception):
    """The device, or the transport to it, refused a start-calibration request."""

    def __init__(self, message: str | None = None):
        self.message = message
        super().__init__(message)


class Device(BaseInterface):
    """A calibratable device, as seen by this package: something that takes a start-calibration request and reports
    status snapshots.
    """

    class Config(BaseInterface.Config):
        dual_extrusion: bool = Field(False, description="Whether the device has two nozzles.")

    @abstractmethod
    async def start_calibration(self, selection: Selection):
        """Request the device to run the routines selected by ``selection``.

        Raises:
            StartRejectedError: the request was rejected, the error carries a human-readable message.
        """
        pass

    @abstractmethod
    def read_status(self) -> StatusSnapshot:
        """Return the current status of the device."""
        pass
