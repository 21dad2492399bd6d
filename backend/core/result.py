# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20260206v1
# ---------------------------------------------------------------------------
"""
Result types for expected outcomes.

Operations whose failures are a normal part of the business flow (a locked
account, a rejected setting value, a wrong 2FA code …) return a ``Result``
instead of raising.  Exceptions stay reserved for the unexpected.

Usage:
    result = await store.update("site_name", "Test Club")
    if isinstance(result, Failure):
        raise result.error.to_http_exception()
    setting = result.value
"""

from dataclasses import dataclass
from typing import Generic, TypeVar, Union

T = TypeVar("T")  # Success type
E = TypeVar("E")  # Error type


@dataclass(frozen=True, slots=True)
class Success(Generic[T]):
    value: T


@dataclass(frozen=True, slots=True)
class Failure(Generic[E]):
    error: E


Result = Union[Success[T], Failure[E]]
