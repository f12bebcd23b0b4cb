"""Shared response envelopes."""

from typing import Generic, TypeVar

from pydantic import BaseModel

DataT = TypeVar("DataT")


class ApiResponse(BaseModel, Generic[DataT]):
    """Success envelope wrapping every verification endpoint payload."""

    success: bool = True
    data: DataT


class ErrorResponse(BaseModel):
    """Failure envelope produced by the exception handlers."""

    success: bool = False
    error: str
    retryAfter: int | None = None


class HealthResponse(BaseModel):
    status: str
    timestamp: str
