from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, Literal, TypeVar, Union

T = TypeVar("T")

# Bucket a tracked pull request falls into
PullRequestStatus = Literal["merged", "open", "closed"]


@dataclass(frozen=True)
class Found(Generic[T]):
    value: T

    def __bool__(self) -> bool:
        return True


@dataclass(frozen=True)
class NotFound:
    def __bool__(self) -> bool:
        return False


Lookup = Union[Found[T], NotFound]
