"""Shared Pydantic response models for the agenda API.

Every response uses the ``{"success": ..., ...}`` envelope the ERP frontend
expects: ``ApiResponse`` for successes and ``ErrorResponse`` for failures.
"""

from __future__ import annotations

from pydantic import BaseModel


class ApiResponse[T](BaseModel):
    """Generic success wrapper: ``{"success": true, "data": T}``."""

    success: bool = True
    data: T


class ErrorResponse(BaseModel):
    """Standard error envelope: ``{"success": false, "message": ..., "code": ...}``."""

    success: bool = False
    message: str
    code: str
