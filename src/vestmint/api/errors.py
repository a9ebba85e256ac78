from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from fastapi import Request
from fastapi.responses import JSONResponse

Json = Dict[str, Any]


def error_body(code: str, message: str, details: Optional[Json] = None) -> Json:
    """Wire shape of every API error: {"ok": false, "error": {code, message, details}}."""
    return {"ok": False, "error": {"code": code, "message": message, "details": dict(details or {})}}


@dataclass
class ApiError(Exception):
    """Raised from route handlers; rendered by api_error_handler."""

    status_code: int
    code: str
    message: str
    details: Json = field(default_factory=dict)

    @classmethod
    def bad_request(cls, code: str, message: str, details: Optional[Json] = None) -> "ApiError":
        return cls(400, code, message, details or {})

    @classmethod
    def forbidden(cls, code: str, message: str, details: Optional[Json] = None) -> "ApiError":
        return cls(403, code, message, details or {})

    @classmethod
    def not_found(cls, code: str, message: str, details: Optional[Json] = None) -> "ApiError":
        return cls(404, code, message, details or {})

    @classmethod
    def conflict(cls, code: str, message: str, details: Optional[Json] = None) -> "ApiError":
        return cls(409, code, message, details or {})

    @classmethod
    def internal(cls, code: str, message: str, details: Optional[Json] = None) -> "ApiError":
        return cls(500, code, message, details or {})

    def to_response(self, headers: Optional[Dict[str, str]] = None) -> JSONResponse:
        return JSONResponse(
            status_code=int(self.status_code),
            content=error_body(self.code, self.message, self.details),
            headers=headers,
        )


async def api_error_handler(request: Request, exc: ApiError) -> JSONResponse:
    return exc.to_response()
