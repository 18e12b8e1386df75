from abc import abstractmethod

from calflow.base import BaseInterface


class KeyValueStore(BaseInterface):
    """A string key-value store. Any backend offering get/set/remove satisfies it."""

    class Config(BaseInterface.Config):
        pass

    @abstractmethod
    def get(self, key: str) -> str | None:
        """Return the value stored under ``key``, or None if absent."""
        pass

    @abstractmethod
    def set(self, key: str, value: str):
        pass

    @abstractmethod
    def remove(self, key: str):
        """Remove ``key``. Removing an absent key is not an error."""
        pass
