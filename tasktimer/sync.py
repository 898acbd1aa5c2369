"""Background refresh of to-do items from the configured calendars.

The foreground tick loop owns a single :class:`CalendarSync`. ``reset()``
hands one refresh ("generation") to a worker thread and returns at once;
``poll()`` later picks the finished result up without blocking. A refresh
superseded by another ``reset()`` is not cancelled: it runs to completion
in the background and its result is dropped.
"""

import itertools
import logging
import re
import threading
from concurrent.futures import Executor, Future
from dataclasses import dataclass, replace
from typing import Iterable, Optional, Union, assert_never

from tasktimer.config import CalendarConfig
from tasktimer.icaldate import EPOCH, parse_optional
from tasktimer.sources.base import (
    DEFAULT_PRIORITY,
    BasicCredentials,
    BearerCredentials,
    CalendarClient,
    Credentials,
    RawItem,
    Task,
)

logger = logging.getLogger(__name__)

_PRIORITY_RE = re.compile(r"[+-]?[0-9]+")
# Priorities are small signed integers; anything outside is treated as unset
PRIORITY_MIN, PRIORITY_MAX = -128, 127


class SyncWorkerError(RuntimeError):
    """A refresh crashed instead of completing; there is no way to recover."""


@dataclass(frozen=True)
class InFlight:
    pass


@dataclass(frozen=True)
class Ready:
    tasks: tuple[Task, ...] = ()


SyncState = Union[InFlight, Ready]


def credentials_for(settings: CalendarConfig) -> Credentials:
    """Basic auth if both username and password are set, else a bearer token."""
    if settings.username is not None and settings.password is not None:
        return BasicCredentials(settings.username, settings.password)
    if settings.token is not None:
        return BearerCredentials(settings.token)
    return BearerCredentials("")


def item_properties(item: RawItem) -> dict[str, str]:
    """Collect an item's properties into a dict keyed by lower-case name."""
    return {key.lower(): str(value) for key, value in item.properties()}


def is_outstanding(properties: dict[str, str]) -> bool:
    """False for completed items and for recurring ones, which are not expanded."""
    if properties.get("status") == "COMPLETED":
        return False
    if "completed" in properties:
        return False
    if properties.get("percent-complete") == "100":
        return False
    if "rrule" in properties:
        return False
    return True


def parse_priority(value: Optional[str]) -> int:
    if value is None or not _PRIORITY_RE.fullmatch(value):
        return DEFAULT_PRIORITY
    priority = int(value)
    if not PRIORITY_MIN <= priority <= PRIORITY_MAX:
        return DEFAULT_PRIORITY
    return priority


def task_from_properties(properties: dict[str, str]) -> Task:
    """Build a Task, substituting defaults for missing or unparseable fields."""
    return Task(
        uid=properties.get("uid", "???"),
        stamp=parse_optional(properties.get("dtstamp")) or EPOCH,
        summary=properties.get("summary", "???"),
        starts=parse_optional(properties.get("dtstart")),
        due=parse_optional(properties.get("due")),
        priority=parse_priority(properties.get("priority")),
    )


def _todo_properties(client: CalendarClient, settings: CalendarConfig) -> Iterable[dict[str, str]]:
    credentials = credentials_for(settings)

    for url in settings.urls:
        try:
            subcalendars = list(client.list_subcalendars(url, credentials))
        except Exception as e:
            logger.warning("Failed to list calendars at %s: %s", url, e)
            continue

        for subcalendar in subcalendars:
            try:
                items = list(client.list_todo_items(subcalendar, credentials))
            except Exception as e:
                logger.warning("Failed to fetch todos from %s: %s", subcalendar, e)
                continue

            for item in items:
                try:
                    properties = item_properties(item)
                except Exception as e:
                    logger.warning("Skipping unreadable todo in %s: %s", subcalendar, e)
                    continue
                yield properties


def fetch_tasks(client: CalendarClient, settings: CalendarConfig) -> tuple[Task, ...]:
    """Fetch, filter and parse the outstanding tasks of every configured calendar.

    Unreachable calendars are skipped, so this returns whatever subset of
    the calendars answered. Runs on a worker thread.
    """
    tasks = []
    skipped = 0
    for properties in _todo_properties(client, settings):
        if not is_outstanding(properties):
            skipped += 1
            continue
        tasks.append(task_from_properties(properties))

    logger.info("Fetched %d outstanding tasks (%d completed or recurring skipped)", len(tasks), skipped)
    return tuple(tasks)


class DaemonThreadExecutor(Executor):
    """Runs each submitted call on its own daemon thread.

    The threads are not joined at interpreter exit, so a fetch that never
    returns does not keep the process alive after the user quits.
    """

    def __init__(self, thread_name_prefix: str = "calendar-sync"):
        self._thread_name_prefix = thread_name_prefix
        self._counter = itertools.count(1)

    def submit(self, fn, /, *args, **kwargs) -> Future:
        future: Future = Future()

        def run() -> None:
            if not future.set_running_or_notify_cancel():
                return
            try:
                result = fn(*args, **kwargs)
            except BaseException as e:
                future.set_exception(e)
            else:
                future.set_result(result)

        name = f"{self._thread_name_prefix}-{next(self._counter)}"
        threading.Thread(target=run, name=name, daemon=True).start()
        return future


class CalendarSync:
    """Owns the refresh lifecycle and the resulting task list.

    Not thread safe: every method must be called from the tick loop's thread.
    """

    def __init__(self, client: CalendarClient, executor: Optional[Executor] = None):
        self.client = client
        self._owns_executor = executor is None
        self._executor = executor or DaemonThreadExecutor()
        self._state: SyncState = Ready()
        self._future: Optional[Future] = None
        self._generation = 0
        self._last_tasks: tuple[Task, ...] = ()

    @property
    def state(self) -> SyncState:
        return self._state

    @property
    def generation(self) -> int:
        """Number of refreshes started so far."""
        return self._generation

    @property
    def last_tasks(self) -> tuple[Task, ...]:
        """Most recently materialized task list, kept while a refresh runs."""
        return self._last_tasks

    @property
    def in_flight(self) -> bool:
        return isinstance(self._state, InFlight)

    def reset(self, settings: CalendarConfig) -> None:
        """Start a new refresh, abandoning any refresh still running."""
        if self._future is not None:
            logger.debug("Abandoning calendar refresh generation %d", self._generation)

        # Workers must not see later changes to the caller's list
        settings = replace(settings, urls=list(settings.urls))
        self._generation += 1
        logger.info("Refreshing %d calendar(s), generation %d", len(settings.urls), self._generation)
        self._future = self._executor.submit(fetch_tasks, self.client, settings)
        self._state = InFlight()

    def poll(self) -> bool:
        """Pick up the current refresh if it has finished. Never blocks.

        Returns:
            True if the state became Ready on this call.

        Raises:
            SyncWorkerError: if the refresh raised instead of completing.
        """
        match self._state:
            case Ready():
                return False
            case InFlight():
                pass
            case _:
                assert_never(self._state)

        future = self._future
        if future is None or not future.done():
            return False

        self._future = None
        try:
            tasks = future.result()
        except Exception as e:
            raise SyncWorkerError(f"Calendar refresh generation {self._generation} died: {e}") from e

        self._last_tasks = tasks
        self._state = Ready(tasks)
        logger.debug("Calendar refresh generation %d ready with %d tasks", self._generation, len(tasks))
        return True

    def shutdown(self) -> None:
        """Stop using the executor. Refreshes still running are left to die with the process."""
        if self._owns_executor:
            self._executor.shutdown(wait=False, cancel_futures=True)
