from concurrent.futures import Executor, Future
from datetime import datetime, timezone

import pytest

from tasktimer.config import CalendarConfig, Config, TimerConfig
from tasktimer.sources.base import CalendarClient


class FakeItem:
    def __init__(self, **properties):
        # Keys come back upper-cased, the way servers send them
        self._properties = [(key.upper().replace("_", "-"), value) for key, value in properties.items()]

    def properties(self):
        return list(self._properties)


class FakeCalendarClient(CalendarClient):
    """In-memory calendars.

    ``calendars`` maps a URL to its sub-calendar names (or an exception to
    raise); ``todos`` maps a sub-calendar name to its items (or an exception).
    """

    def __init__(self, calendars=None, todos=None):
        self.calendars = calendars or {}
        self.todos = todos or {}
        self.credentials_seen = []

    def list_subcalendars(self, url, credentials):
        self.credentials_seen.append(credentials)
        result = self.calendars[url]
        if isinstance(result, Exception):
            raise result
        return result

    def list_todo_items(self, subcalendar, credentials):
        result = self.todos[subcalendar]
        if isinstance(result, Exception):
            raise result
        return result


class ImmediateExecutor(Executor):
    """Runs submitted work synchronously."""

    def submit(self, fn, /, *args, **kwargs):
        future = Future()
        try:
            future.set_result(fn(*args, **kwargs))
        except Exception as e:
            future.set_exception(e)
        return future


class RecordingNotifier:
    def __init__(self, result=True):
        self.result = result
        self.sent = []

    def notify(self, title, body):
        self.sent.append((title, body))
        return self.result


class FakeClock:
    def __init__(self, now):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, delta):
        self.now += delta


@pytest.fixture
def now():
    return datetime(2024, 1, 15, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def timer_config():
    return TimerConfig(work_time=2.0, short_rest_time=1.0, long_rest_time=3.0, long_rest_interval=3)


@pytest.fixture
def config(timer_config):
    return Config(timer=timer_config, calendar=CalendarConfig(urls=["https://dav.example.com/"]))


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def clock(now):
    return FakeClock(now)
