"""Response envelope shared by every endpoint.

{ success: bool, data: T | None, error: str | None, meta: dict | None }
"""

from __future__ import annotations

from typing import Any, Generic, TypeVar

from pydantic import BaseModel

T = TypeVar("T")


class ApiResponse(BaseModel, Generic[T]):
    """JSON envelope for all API responses."""

    success: bool
    data: T | None = None
    error: str | None = None
    meta: dict | None = None

    @classmethod
    def ok(cls, data: Any, meta: dict | None = None) -> dict:
        """Dump a successful envelope around ``data``."""
        return cls(success=True, data=data, meta=meta).model_dump()
