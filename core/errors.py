"""
core/errors.py -- Error taxonomy shared by every layer of the catalog API.

Four kinds of failure, each with a stable machine-readable code and a message
that is safe to show to an untrusted client:

  ValidationError  -- malformed or out-of-bound input (limit, offset, fields,
                      email, password length). HTTP 400.
  AuthError        -- bad credentials, invalid/expired/malformed token,
                      insufficient permission. HTTP 401 (403 for forbidden).
  ParseError       -- malformed filter expression. HTTP 400. Carries the
                      character position of the first offending token.
  DataAccessError  -- opaque failure from the storage layer. HTTP 500. The
                      raw driver text is kept in `detail` for the log only;
                      it is never copied into the response body.

ValidationError and ParseError are always raised before any store call, so a
rejected request has no partial side effects.

api/main.py registers one exception handler for CatalogError that renders the
same {"error": {...}} envelope used for HTTPException.

Layer rule: core/ is the kernel. No imports from api/, auth/, catalog/, query/.
"""

from __future__ import annotations

from typing import Any, Optional


class CatalogError(Exception):
    """Base class for every expected failure raised by the catalog core."""

    status_code: int = 500
    default_code: str = "error"

    def __init__(self, message: str, code: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code

    def to_dict(self) -> dict[str, Any]:
        return {"code": self.code, "message": self.message}


class ValidationError(CatalogError):
    status_code = 400
    default_code = "validation_error"


class AuthError(CatalogError):
    """Authentication or authorization failure.

    `code` is one of: bad_credentials, unauthorized, invalid_signature,
    expired, malformed, forbidden.
    """

    status_code = 401
    default_code = "unauthorized"

    BAD_CREDENTIALS = "bad_credentials"
    UNAUTHORIZED = "unauthorized"
    INVALID_SIGNATURE = "invalid_signature"
    EXPIRED = "expired"
    MALFORMED = "malformed"
    FORBIDDEN = "forbidden"

    def __init__(self, code: str, message: str) -> None:
        super().__init__(message, code=code)
        if code == self.FORBIDDEN:
            self.status_code = 403


class ParseError(CatalogError):
    status_code = 400
    default_code = "parse_error"

    def __init__(self, reason: str, position: int) -> None:
        super().__init__(f"{reason} at position {position}")
        self.reason = reason
        self.position = position

    def to_dict(self) -> dict[str, Any]:
        return {
            "code": self.code,
            "message": self.message,
            "detail": f"reason={self.reason}; position={self.position}",
        }


class DataAccessError(CatalogError):
    status_code = 500
    default_code = "data_access_error"

    def __init__(self, detail: str, message: str = "The data store could not complete the request.") -> None:
        super().__init__(message)
        # Diagnostic text from the driver -- log it, never return it.
        self.detail = detail
