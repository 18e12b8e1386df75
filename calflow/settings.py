from pathlib import Path

import pydantic_settings


class BaseSettings(pydantic_settings.BaseSettings):
    model_config = pydantic_settings.SettingsConfigDict(env_prefix="CALFLOW_", case_sensitive=True)


class Settings(BaseSettings):
    DEFAULT_LOGGER: str = "calflow"
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    SELECTION_KEY_PREFIX: str = "calibration_options_"
    STORE_FILE: Path = Path("calflow_store.yml")
    DEFAULT_POLL_INTERVAL: float = 2.0
    DEFAULT_HTTP_TIMEOUT: float = 10.0
    HISTORY_BUFFER_SIZE: int = 100
    DEFAULT_START_FAILURE_MESSAGE: str = "Failed to start calibration"
    SNAPSHOT: Path = Path("calflow_snapshot.yml")  # in current directory


class AppSettings(BaseSettings):
    def find_project_root(self, marker: str = "pyproject.toml") -> Path:
        """
        Find the project root by looking for a marker file in parent directories.
        Defaults to "pyproject.toml".
        """
        path = Path(__file__).resolve()
        for parent in path.parents:
            if (parent / marker).exists():
                return parent
        raise FileNotFoundError(f"Project root marker '{marker}' not found in any parent directories.")

    CONFIG_FILE: Path | None = None
    LOAD_FROM_CONFIG_ON_STARTUP: bool = True
    HOST: str = "127.0.0.1"
    PORT: int = 8080

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        if self.CONFIG_FILE is None:
            try:
                self.CONFIG_FILE = self.find_project_root() / "calflow.yml"
            except FileNotFoundError:
                self.CONFIG_FILE = Path("calflow.yml")


settings = Settings()
app_settings = AppSettings()
