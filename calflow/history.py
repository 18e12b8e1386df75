import time
from collections import defaultdict, deque
from typing import Any

from pydantic import BaseModel

from calflow.base import BaseInterface
from calflow.settings import settings


class HistoricDatum(BaseModel):
    timestamp: float
    kind: str
    device: str | None
    data: Any


class HistoryResult(BaseModel):
    data: dict[str, list[HistoricDatum]]


class InMemoryHistory(BaseInterface):
    """Bounded in-memory record of log and event entries, per component name."""

    class Config(BaseInterface.Config):
        name: str = "History"
        buffer_size: int = settings.HISTORY_BUFFER_SIZE

    def __init__(self, *args, **kwargs):
        self.history = defaultdict(lambda: deque(maxlen=self.buffer_size))
        super().__init__(*args, **kwargs)

    def put(self, name: str, kind: str, data: Any, device: str = None):
        self.history[name].append(HistoricDatum(timestamp=time.time(), kind=kind, device=device, data=data))

    def get(
        self,
        names: list[str] = None,
        kinds: list[str] = None,
        devices: list[str] | None = None,
        t_start: float = None,
        n_max: int = None,
    ) -> HistoryResult:
        """Return stored records, optionally filtered by component name, kind, device and start time.

        ``n_max`` limits the number of most recent records returned per name.
        """
        query_names = [n for n in self.history.keys() if names is None or n in names]

        def keep(record):
            if kinds and record.kind not in kinds:
                return False
            if devices and record.device not in devices:
                return False
            if t_start is not None and record.timestamp < t_start:
                return False
            return True

        data = {}
        for n in query_names:
            records = [r for r in self.history[n] if keep(r)]
            if n_max is not None:
                records = records[-n_max:] if n_max > 0 else []
            data[n] = records
        return HistoryResult(data=data)
