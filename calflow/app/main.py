import logging
import threading
from contextlib import asynccontextmanager
from http import HTTPStatus

from fastapi import FastAPI
from fastapi.responses import JSONResponse, ORJSONResponse
from fastapi.params import Query
from pydantic import ValidationError

import calflow.util
from calflow import __project__, __version__
from calflow.app.exceptions import SelectionConflictError
from calflow.app.models import ServiceDescription
from calflow.app.routers import calibration
from calflow.history import HistoryResult
from calflow.selection import OptionUnavailableError, SelectionLockedError
from calflow.service import CalibrationService
from calflow.session import StartPendingError
from calflow.settings import app_settings

# Setup logging.
calflow.util.setup_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup:
    if app_settings.LOAD_FROM_CONFIG_ON_STARTUP and app_settings.CONFIG_FILE.exists():
        app.state.service = CalibrationService.create(CalibrationService.Config.load(app_settings.CONFIG_FILE))
    else:
        app.state.service = CalibrationService.create()
        app.state.service.config_model.save(app_settings.CONFIG_FILE)

    with app.state.service:
        threading.Thread(target=service_thread_loop, daemon=True).start()
        yield

    # Shutdown:
    ...


app = FastAPI(lifespan=lifespan, default_response_class=ORJSONResponse)
app.state.service = None
app.state.trigger = threading.Event()


def poll_service():
    """Run one poll of the service. Errors are logged and returned so that the polling thread keeps running."""
    try:
        app.state.service.poll_once()
        return None
    except Exception as exc:
        logger.exception("Error in loop: service poll")
        return exc


def service_thread_loop():
    while True:
        poll_service()
        app.state.trigger.wait(timeout=app.state.service.poll_interval)
        app.state.trigger.clear()


@app.exception_handler(ValidationError)
async def validation_error_handler(_, exc):
    return JSONResponse(status_code=HTTPStatus.UNPROCESSABLE_ENTITY, content=exc.errors())


@app.exception_handler(SelectionLockedError)
@app.exception_handler(OptionUnavailableError)
@app.exception_handler(StartPendingError)
async def selection_error_handler(_, exc):
    error = SelectionConflictError(exc)
    return JSONResponse(status_code=error.status_code, content={"detail": error.detail})


app.include_router(calibration.router)


@app.get("/", operation_id="describe")
async def describe_service() -> ServiceDescription:
    """Return the current applied configuration and the configured devices.

    The config returned by this endpoint can be used in a POST request to update the configuration.
    """
    service = app.state.service
    return ServiceDescription(
        config=service.config_model,
        devices=calibration.describe_devices(service),
    )


@app.post("/", operation_id="update")
async def update_service(config: CalibrationService.Config):
    """Update the configuration of the service.

    note:
      Applying the configuration replaces the in-memory service, open calibration sessions are dropped. Selections
      that were committed by a successful start request are kept in the configured store, so re-opening a session
      while a device is calibrating restores them.
    """
    app.state.service = CalibrationService.create(config)
    app.state.service.config_model.save(app_settings.CONFIG_FILE)
    app.state.trigger.set()


@app.get("/history/", operation_id="history")
async def get_history(
    names: list[str] | None = Query(None),
    kinds: list[str] | None = Query(["event"]),
    devices: list[str] | None = Query(None),
    t_start: float = None,
    n_max: int = None,
) -> HistoryResult:
    """Get logged calibration events (and, with ``kinds=log``, other log records) per component.

    Events are recorded for runs detected, started, completed, failed to start and reset.
    """
    return app.state.service.history.get(names=names, kinds=kinds, devices=devices, t_start=t_start, n_max=n_max)


@app.get("/healthz", operation_id="healthcheck")
async def healthz():
    return {
        "message": f"Running '{__project__}' ver: '{__version__}'",
        "name": app.state.service.name,
        "devices": len(app.state.service.devices),
    }


def start_app():
    import uvicorn

    uvicorn.run(app, host=app_settings.HOST, port=app_settings.PORT, log_level="info")


if __name__ == "__main__":
    start_app()
