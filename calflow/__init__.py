__project__ = "calflow"

try:
    from importlib.metadata import PackageNotFoundError, version

    __version__ = version(__project__)
except PackageNotFoundError:
    __version__ = None
