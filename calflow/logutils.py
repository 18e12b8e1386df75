import json
import logging

from calflow.settings import settings

# Level of calibration lifecycle events (run detected, started, completed, failed to start, reset).
EVENT = logging.INFO + 1
logging.addLevelName(EVENT, "EVENT")


class LogInfo:
    """Structured ``extra`` for log records that end up in the history.

    Fields are nested under a single key, so they cannot clash with the attributes logging sets on a record. They
    must be json-serializable.

    Example:
        self.logger.log(EVENT, "Calibration completed", extra=LogInfo(device="x1", stage_code=48))
    """

    EXTRA_KEY = "calflow_extra"

    @staticmethod
    def json_check(data, silent=False):
        try:
            json.dumps(data)
        except TypeError as exc:
            if silent:
                return {}
            raise ValueError(f"Extra data must be json-serializable, got error: {exc}") from exc
        return data

    def __init__(self, **kwargs):
        self._dict = self.json_check(kwargs)

    def dump(self):
        return {self.EXTRA_KEY: self._dict}

    # logging only iterates the keys of ``extra`` and looks each one up.
    def __iter__(self):
        yield self.EXTRA_KEY

    def __getitem__(self, _):
        return self._dict


class LogHistoryCaptureHandler(logging.Handler):
    """Store log records in a history, events under kind ``"event"`` and all else under ``"log"``."""

    def __init__(self, history):
        super().__init__()
        self.history = history

    def emit(self, record):
        extra = LogInfo.json_check(getattr(record, LogInfo.EXTRA_KEY, {}), silent=True)
        data = {"level": record.levelname, "message": record.getMessage(), **extra}
        kind = "event" if record.levelno == EVENT else "log"
        name = record.name.removeprefix(f"{settings.DEFAULT_LOGGER}.")
        self.history.put(name, kind, data, device=data.get("device"))
