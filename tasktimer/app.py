"""The application core: one timer, one calendar sync, one shown task.

The front end calls :meth:`Application.tick` once per frame and forwards
user actions to the other public methods. Everything runs on the front
end's thread; only the calendar fetch itself happens elsewhere.
"""

import logging
import random
from datetime import datetime, timedelta
from typing import Callable, Optional

from dateutil import tz

from tasktimer import selector, timer
from tasktimer.config import Config
from tasktimer.notifier import Notifier
from tasktimer.sources.base import Task
from tasktimer.sync import CalendarSync, Ready
from tasktimer.timer import Idle, Phase, Working

logger = logging.getLogger(__name__)

NOTIFICATION_TITLE = "Pomodoro timer"


def local_now() -> datetime:
    return datetime.now(tz.tzlocal())


class Application:
    """Ties the phase scheduler, calendar sync and task selector together."""

    def __init__(
        self,
        config: Config,
        sync: CalendarSync,
        notifier: Notifier,
        clock: Optional[Callable[[], datetime]] = None,
        rng: Optional[random.Random] = None,
    ):
        self.config = config
        self.sync = sync
        self.notifier = notifier
        self.clock = clock or local_now
        self.rng = rng
        self.phase: Phase = Idle()
        self.shown_task: Optional[Task] = None
        self.paused_for = timedelta(0)
        self.paused_at: Optional[datetime] = None

    # ── Time ──────────────────────────────────────────────────────────────

    @property
    def paused(self) -> bool:
        return self.paused_at is not None

    def now(self) -> datetime:
        """Wall-clock time minus all time spent paused."""
        wall = self.clock()
        paused = self.paused_for
        if self.paused_at is not None:
            paused += wall - self.paused_at
        return wall - paused

    def remaining(self, now: Optional[datetime] = None) -> timedelta:
        return timer.remaining(self.phase, now or self.now(), self.config.timer)

    # ── Frame ─────────────────────────────────────────────────────────────

    def tick(self, now: Optional[datetime] = None) -> None:
        """Advance the timer, collect finished refreshes, pick a task if needed.

        Raises:
            SyncWorkerError: if a calendar refresh crashed.
        """
        now = now or self.now()

        phase, changed = timer.tick(self.phase, self.config.timer, now)
        if changed:
            self._set_phase(phase)

        self.sync.poll()

        state = self.sync.state
        if (
            isinstance(self.phase, Working)
            and isinstance(state, Ready)
            and state.tasks
            and self.shown_task is None
        ):
            self.shown_task = selector.choose(state.tasks, now, self.rng)
            if self.shown_task is not None:
                logger.info("Showing task: %s", self.shown_task.summary)

    def _set_phase(self, phase: Phase) -> None:
        previous, self.phase = self.phase, phase
        if isinstance(previous, Idle) and isinstance(phase, Idle):
            return
        logger.info("Phase changed: %s -> %s", timer.phase_name(previous), timer.phase_name(phase))
        self._notify(timer.phase_name(phase))

    def _notify(self, body: str) -> None:
        try:
            self.notifier.notify(NOTIFICATION_TITLE, body)
        except Exception as e:
            logger.warning("Notification failed: %s", e)

    # ── User actions ──────────────────────────────────────────────────────

    def start(self) -> None:
        self._set_phase(timer.start(self.now()))

    def stop(self) -> None:
        self._set_phase(timer.stop())

    def pause(self) -> None:
        if self.paused_at is None:
            self.paused_at = self.clock()
            logger.debug("Paused")

    def resume(self) -> None:
        if self.paused_at is not None:
            self.paused_for += self.clock() - self.paused_at
            self.paused_at = None
            logger.debug("Resumed, paused for %s in total", self.paused_for)

    def skip(self) -> None:
        """End the current phase now."""
        phase, changed = timer.tick(self.phase, self.config.timer, self.now(), force=True)
        if changed:
            self._set_phase(phase)

    def reload(self, config: Optional[Config] = None) -> None:
        """Apply a freshly loaded config (if given) and refetch the calendars."""
        if config is not None:
            self.config = config
        self.sync.reset(self.config.calendar)

    def pick_another(self) -> Optional[Task]:
        """Replace the shown task with a new random pick."""
        self.shown_task = selector.choose(self.sync.last_tasks, self.now(), self.rng)
        return self.shown_task
