import asyncio

import requests
from pydantic import Field

from calflow.device.interface import Device, StartRejectedError
from calflow.settings import settings
from calflow.stages import StatusSnapshot


class HttpDevice(Device):
    """A printer reached through the printer management HTTP API.

    Status is read from ``GET {base_url}/printers/{printer_id}/status`` and calibration is started with
    ``POST {base_url}/printers/{printer_id}/calibration``.
    """

    class Config(Device.Config):
        name: str = "HttpDevice"
        base_url: str = Field("http://127.0.0.1:8000/api/v1", description="Root URL of the printer API.")
        printer_id: str
        timeout: float = settings.DEFAULT_HTTP_TIMEOUT

    @property
    def url(self) -> str:
        return f"{self.base_url.rstrip('/')}/printers/{self.printer_id}"

    @staticmethod
    def _error_message(response: requests.Response) -> str:
        try:
            detail = response.json().get("detail")
        except (ValueError, AttributeError):
            detail = None
        return str(detail) if detail else f"{response.status_code} {response.reason}"

    def _post_calibration(self, payload: dict):
        try:
            response = requests.post(f"{self.url}/calibration", json=payload, timeout=self.timeout)
        except requests.RequestException as exc:
            raise StartRejectedError(f"Unable to reach printer: {exc}") from exc
        if not response.ok:
            raise StartRejectedError(self._error_message(response))

    async def start_calibration(self, selection):
        self.logger.info(f"Requesting calibration on printer '{self.printer_id}'")
        await asyncio.to_thread(self._post_calibration, selection.request_payload())

    def read_status(self):
        response = requests.get(f"{self.url}/status", timeout=self.timeout)
        response.raise_for_status()
        return StatusSnapshot.model_validate(response.json())
