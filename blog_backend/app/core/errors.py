from __future__ import annotations

from typing import Any, Sequence

from fastapi import HTTPException


class ValidationFailure(HTTPException):
    """One or more field or existence rules were violated.

    Rendered as a single structured envelope. The status is 404 when a
    referenced resource is missing and 422 otherwise.
    """

    def __init__(self, violations: Sequence[Any]) -> None:
        self.violations = list(violations)
        not_found = any(v.kind == "not_found" for v in self.violations)
        super().__init__(
            status_code=404 if not_found else 422,
            detail={
                "message": "Validation failed",
                "errors": [v.model_dump() for v in self.violations],
            },
        )


class Unauthenticated(HTTPException):
    def __init__(self) -> None:
        super().__init__(status_code=401, detail="Unauthorized")


class InvalidToken(Unauthenticated):
    pass


class Forbidden(HTTPException):
    def __init__(self, detail: str = "Forbidden") -> None:
        super().__init__(status_code=403, detail=detail)


class NotFoundAtMutation(HTTPException):
    def __init__(self, detail: str = "Not found") -> None:
        super().__init__(status_code=404, detail=detail)


class StorageFailure(HTTPException):
    def __init__(self, detail: str = "Storage failure") -> None:
        super().__init__(status_code=500, detail=detail)


class Conflict(HTTPException):
    def __init__(self, detail: str) -> None:
        super().__init__(status_code=409, detail=detail)
