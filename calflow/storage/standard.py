from pathlib import Path
from threading import RLock

import yaml
from pydantic import Field

from calflow.settings import settings
from calflow.storage.interface import KeyValueStore


def default_store_file():
    """Defer this such that it can be monkeypatched during tests."""
    return settings.STORE_FILE


class YamlFileStore(KeyValueStore):
    """Key-value store persisted as a single yaml mapping on disk.

    The file is re-read on every access so that edits made by other processes are picked up. A file that cannot be
    parsed, or that does not hold a mapping, is treated as empty and is overwritten by the next ``set``.
    """

    class Config(KeyValueStore.Config):
        name: str = "YamlFileStore"
        path: Path = Field(default_factory=default_store_file, description="File holding the store contents.")

    def __init__(self, *args, **kwargs):
        self.lock = RLock()
        super().__init__(*args, **kwargs)
        self.path = Path(self.path)

    def _read(self) -> dict:
        if not self.path.exists():
            return {}
        try:
            with open(self.path) as f:
                data = yaml.safe_load(f)
        except yaml.YAMLError:
            self.logger.warning(f"Unable to parse store file '{self.path}', treating as empty")
            return {}
        return data if isinstance(data, dict) else {}

    def _write(self, data: dict):
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "w") as f:
            yaml.safe_dump(data, f)

    def get(self, key):
        with self.lock:
            value = self._read().get(key)
        return None if value is None else str(value)

    def set(self, key, value):
        with self.lock:
            data = self._read()
            data[key] = value
            self._write(data)

    def remove(self, key):
        with self.lock:
            data = self._read()
            if data.pop(key, None) is not None:
                self._write(data)
