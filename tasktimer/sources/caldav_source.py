"""CalDAV calendar client for fetching to-do items."""

import logging
from typing import Iterable

import caldav
from caldav.lib import error as caldav_error
from requests import PreparedRequest
from requests.auth import AuthBase, HTTPBasicAuth

from tasktimer.sources.base import (
    BasicCredentials,
    BearerCredentials,
    CalendarClient,
    Credentials,
)

logger = logging.getLogger(__name__)


class HTTPBearerAuth(AuthBase):
    """Attach an OAuth-style bearer token to every request."""

    def __init__(self, token: str):
        self.token = token

    def __call__(self, r: PreparedRequest) -> PreparedRequest:
        r.headers["Authorization"] = f"Bearer {self.token}"
        return r


def build_auth(credentials: Credentials) -> AuthBase:
    """Turn configured credentials into a requests auth object."""
    if isinstance(credentials, BasicCredentials):
        return HTTPBasicAuth(credentials.username, credentials.password)
    if isinstance(credentials, BearerCredentials):
        return HTTPBearerAuth(credentials.token)
    raise TypeError(f"Unsupported credentials: {credentials!r}")


def _ical_text(value) -> str:
    """Render an icalendar property value the way it appears in the feed."""
    if isinstance(value, list):
        # Repeated property, keep the first occurrence
        value = value[0] if value else ""
    if isinstance(value, str):
        return str(value)
    if hasattr(value, "to_ical"):
        raw = value.to_ical()
        return raw.decode("utf-8") if isinstance(raw, bytes) else str(raw)
    return str(value)


class CalDavItem:
    """Adapter exposing a VTODO's properties as string pairs."""

    def __init__(self, todo: caldav.Todo):
        self.todo = todo

    def properties(self) -> Iterable[tuple[str, str]]:
        component = self.todo.icalendar_component
        for key, value in component.items():
            yield key, _ical_text(value)


class CalDavClient(CalendarClient):
    """Fetch to-do items from CalDAV servers."""

    def _client(self, url: str, credentials: Credentials) -> caldav.DAVClient:
        return caldav.DAVClient(url=url, auth=build_auth(credentials))

    def list_subcalendars(self, url: str, credentials: Credentials) -> list[caldav.Calendar]:
        """Discover calendars under the URL, or use the URL itself as one."""
        logger.info("Connecting to CalDAV server at %s", url)
        client = self._client(url, credentials)

        try:
            principal = client.principal()
            discovered = principal.calendars()
        except caldav_error.DAVError as e:
            logger.debug("Principal discovery failed for %s (%s), using URL as calendar", url, e)
            return [client.calendar(url=url)]

        if not discovered:
            logger.debug("No calendars discovered at %s, using URL as calendar", url)
            return [client.calendar(url=url)]

        logger.info("Discovered %d calendars at %s", len(discovered), url)
        return list(discovered)

    def list_todo_items(self, subcalendar: caldav.Calendar, credentials: Credentials) -> list[CalDavItem]:
        """Fetch every to-do of one calendar; filtering happens in the sync manager."""
        try:
            cal_name = subcalendar.name or str(subcalendar.url)
        except caldav_error.DAVError:
            cal_name = str(subcalendar.url)

        logger.info("Fetching todos from calendar: %s", cal_name)
        todos = subcalendar.todos(include_completed=True)
        logger.debug("Calendar %s returned %d todos", cal_name, len(todos))
        return [CalDavItem(todo) for todo in todos]
