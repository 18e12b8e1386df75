from http import HTTPStatus

from fastapi import HTTPException


class DeviceNotFoundError(HTTPException):
    def __init__(self, **kwargs):
        return super().__init__(status_code=HTTPStatus.NOT_FOUND, detail="Device not found", **kwargs)


class SessionNotFoundError(HTTPException):
    def __init__(self, **kwargs):
        return super().__init__(
            status_code=HTTPStatus.NOT_FOUND,
            detail="No calibration session is open for this device. Please open one first",
            **kwargs,
        )


class SelectionConflictError(HTTPException):
    def __init__(self, exception, **kwargs):
        return super().__init__(status_code=HTTPStatus.CONFLICT, detail=str(exception), **kwargs)
