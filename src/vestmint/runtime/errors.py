from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict


@dataclass
class ApplyError(Exception):
    """Raised by apply/dispatch when a tx cannot be applied; state is left untouched."""

    code: str
    reason: str
    details: Any | None = None

    @classmethod
    def from_domain(cls, exc: Exception, *, tx_type: str, domain: str) -> "ApplyError":
        """Wrap a per-domain error (anything with code/reason/details) or a stray exception."""
        code = getattr(exc, "code", None)
        reason = getattr(exc, "reason", None)
        if code is None and reason is None:
            return cls("domain_error", type(exc).__name__, {"tx_type": tx_type, "domain": domain, "error": str(exc)})
        details = getattr(exc, "details", None)
        return cls(
            str(code or "domain_error"),
            str(reason or type(exc).__name__),
            details if details is not None else {"tx_type": tx_type, "domain": domain},
        )

    def to_json(self) -> Dict[str, Any]:
        return {"code": self.code, "reason": self.reason, "details": self.details}

    def __str__(self) -> str:  # pragma: no cover
        if self.details is None:
            return f"{self.code}:{self.reason}"
        return f"{self.code}:{self.reason}:{self.details}"
