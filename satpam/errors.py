from __future__ import annotations

from fastapi import Request
from fastapi.responses import JSONResponse


class ApiError(Exception):
    def __init__(self, status_code: int, code: str, message: str):
        super().__init__(message)
        self.status_code = status_code
        self.code = code
        self.message = message


class StorageUnavailableError(Exception):
    """An assignment, event, location or profile query could not be served.

    Raised by the read services so a projection fails as a whole instead of
    degrading into "no duty" or "all complete". Callers own the retry policy.
    """

    def __init__(self, resource: str, message: str | None = None):
        super().__init__(message or f"Storage query failed: {resource}")
        self.resource = resource
        self.message = message or f"Storage query failed: {resource}"


def get_request_id(request: Request) -> str:
    request_id = getattr(request.state, "request_id", None)
    if request_id:
        return str(request_id)
    return "unknown"


def error_response(request: Request, *, status_code: int, code: str, message: str) -> JSONResponse:
    payload = {
        "error": {
            "code": code,
            "message": message,
            "request_id": get_request_id(request),
        }
    }
    return JSONResponse(status_code=status_code, content=payload)
