from __future__ import annotations

from typing import Any, Optional


class BoardError(Exception):
    """Base class for failures that map onto an HTTP status."""

    status_code = 500

    def __init__(self, message: str, details: Optional[Any] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict:
        body: dict[str, Any] = {"error": self.message}
        if self.details is not None:
            body["details"] = self.details
        return body


class ValidationError(BoardError):
    status_code = 400


class ForbiddenError(BoardError):
    status_code = 403


class NotFoundError(BoardError):
    status_code = 404


class ConflictError(BoardError):
    status_code = 409
