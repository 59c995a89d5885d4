"""Result variants returned by entity services.

Services never raise for expected failures. They return one of these
variants and the HTTP layer matches on it to choose the status code.
"""

from dataclasses import dataclass
from typing import Any, Generic, TypeVar

T = TypeVar("T")


@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T


@dataclass(frozen=True)
class NotFound:
    message: str = "No data found."


@dataclass(frozen=True)
class InvalidArgument:
    message: str


Result = Ok[Any] | NotFound | InvalidArgument
