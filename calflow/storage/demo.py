from calflow.storage.interface import KeyValueStore


class InMemoryStore(KeyValueStore):
    class Config(KeyValueStore.Config):
        name: str = "InMemoryStore"

    def __init__(self, *args, **kwargs):
        self.data = {}
        super().__init__(*args, **kwargs)

    def get(self, key):
        return self.data.get(key)

    def set(self, key, value):
        self.data[key] = value

    def remove(self, key):
        self.data.pop(key, None)
