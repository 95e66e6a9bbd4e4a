# memoria/core/errors.py
# Error taxonomy. Anything that reaches HTTP is a MemoriaError and is rendered
# by the handler registered in memoria.main as {"detail": message}.
from __future__ import annotations
from typing import Dict, Optional


class MemoriaError(Exception):
    """Base error carrying the HTTP status it maps to."""

    status: int = 500

    def __init__(self, message: str, *, status: Optional[int] = None,
                 headers: Optional[Dict[str, str]] = None) -> None:
        super().__init__(message)
        self.message = message
        if status is not None:
            self.status = status
        self.headers = headers or {}


class ValidationError(MemoriaError):
    """Malformed request input (bad path, bad id, bad record body)."""
    status = 400


class ForbiddenPathError(ValidationError):
    """A path that resolves outside its root."""
    status = 403


class NotFoundError(MemoriaError):
    status = 404


class ConflictError(MemoriaError):
    status = 409


class RangeNotSatisfiableError(MemoriaError):
    status = 416

    def __init__(self, size: int, message: str = "requested range not satisfiable") -> None:
        super().__init__(message, headers={"Content-Range": f"bytes */{size}"})
        self.size = size


class GenerationFailure(MemoriaError):
    """Thumbnail decode/encode/tool failure. Caught inside the thumbnail cache."""


class WatchSetupFailure(MemoriaError):
    """Media root could not be created or observed. Logged; the service keeps running."""
