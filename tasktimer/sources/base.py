"""Task model and the abstract calendar client used by the sync manager."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Iterable, Optional, Protocol, Union

# Priority given to items that do not specify one (RFC 5545 uses 1-9).
DEFAULT_PRIORITY = 11


@dataclass(frozen=True)
class Task:
    """A single outstanding to-do item."""
    uid: str
    stamp: datetime
    summary: str
    starts: Optional[datetime] = None  # not eligible before this
    due: Optional[datetime] = None
    priority: int = DEFAULT_PRIORITY  # 1 = most urgent


@dataclass(frozen=True)
class BasicCredentials:
    username: str
    password: str


@dataclass(frozen=True)
class BearerCredentials:
    token: str  # empty token means anonymous


Credentials = Union[BasicCredentials, BearerCredentials]


class RawItem(Protocol):
    """A to-do item as returned by a calendar client."""

    def properties(self) -> Iterable[tuple[str, str]]:
        ...


class CalendarClient(ABC):
    """Abstract base class for calendar backends.

    Subclass this to fetch to-do items from something other than CalDAV.
    Both methods may raise any exception; the sync manager drops the
    affected branch and carries on with the rest.
    """

    @abstractmethod
    def list_subcalendars(self, url: str, credentials: Credentials) -> list[Any]:
        """Return the calendars reachable from the configured URL."""
        ...

    @abstractmethod
    def list_todo_items(self, subcalendar: Any, credentials: Credentials) -> list[RawItem]:
        """Return every to-do item of one calendar, completed ones included."""
        ...
