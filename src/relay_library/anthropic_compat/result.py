"""
Explicit success/failure values returned by every translation step.

Translators never raise for expected failures. They return a
``ConversionResult`` and the caller decides which error envelope to emit.
"""

from typing import Generic, Optional, TypeVar

from pydantic import BaseModel, ConfigDict

T = TypeVar("T")


class ConversionResult(BaseModel, Generic[T]):
    """Either ``success`` with ``data`` or a failure with a readable ``error``."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    success: bool
    data: Optional[T] = None
    error: Optional[str] = None

    @classmethod
    def ok(cls, data: Optional[T] = None) -> "ConversionResult[T]":
        return cls(success=True, data=data)

    @classmethod
    def fail(cls, error: str) -> "ConversionResult[T]":
        return cls(success=False, error=error)
