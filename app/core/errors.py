from dataclasses import dataclass, field
from typing import Any

from fastapi import HTTPException


@dataclass
class ApiError:
    code: str
    message: str
    details: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {"code": self.code, "message": self.message}
        if self.details:
            body["details"] = self.details
        return body


class AppHTTPException(HTTPException):
    def __init__(self, status_code: int, error: ApiError):
        super().__init__(status_code=status_code, detail=error.to_dict())
        self.error = error


def unauthorized(code: str, message: str) -> AppHTTPException:
    return AppHTTPException(status_code=401, error=ApiError(code=code, message=message))


def not_found(message: str, **details: Any) -> AppHTTPException:
    return AppHTTPException(status_code=404, error=ApiError(code="not_found", message=message, details=details))


def conflict(code: str, message: str) -> AppHTTPException:
    return AppHTTPException(status_code=409, error=ApiError(code=code, message=message))
