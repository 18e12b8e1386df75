import logging

from calflow.settings import settings


def fully_qualified_name(cls):
    """The fully qualified classname for cls."""
    return f"{cls.__module__}.{cls.__qualname__}"


def setup_logging(level=settings.LOG_LEVEL, format=settings.LOG_FORMAT):
    logging.basicConfig(level=level, format=format)


def selection_key(device_id: str) -> str:
    """Storage key under which the last committed selection of a device is kept."""
    return f"{settings.SELECTION_KEY_PREFIX}{device_id}"
