"""
Explicit success/failure values returned by the auth components.

Components never raise for expected failures (bad token, unknown user, lost
rotation race); they return a Result carrying an ErrorKind. The HTTP boundary
(api.errors.unwrap) turns a failed Result into the uniform error envelope.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Generic, Optional, TypeVar

T = TypeVar("T")


class ErrorKind(Enum):
    VALIDATION = (400, "VALIDATION_ERROR")
    AUTHENTICATION = (401, "UNAUTHORIZED")
    AUTHORIZATION = (403, "FORBIDDEN")
    NOT_FOUND = (404, "NOT_FOUND")
    CONFLICT = (409, "CONFLICT")
    INTERNAL = (500, "INTERNAL_ERROR")

    @property
    def status(self) -> int:
        return self.value[0]

    @property
    def code(self) -> str:
        return self.value[1]


@dataclass(frozen=True)
class Result(Generic[T]):
    value: Optional[T] = None
    error: Optional[ErrorKind] = None
    message: str = ""

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: T) -> "Result[T]":
        return cls(value=value)

    @classmethod
    def failure(cls, error: ErrorKind, message: str) -> "Result[T]":
        return cls(error=error, message=message)
