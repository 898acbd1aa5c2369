"""Work / short break / long break phase scheduling.

Phases are immutable values; :func:`tick` returns the next phase instead of
mutating anything, so the caller decides what to do with a transition.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Union, assert_never

from tasktimer.config import TimerConfig


@dataclass(frozen=True)
class Idle:
    pass


@dataclass(frozen=True)
class Working:
    cycles: int  # work phases completed since the last long break
    started_at: datetime


@dataclass(frozen=True)
class ShortBreak:
    cycles: int
    started_at: datetime


@dataclass(frozen=True)
class LongBreak:
    started_at: datetime


Phase = Union[Idle, Working, ShortBreak, LongBreak]


def phase_name(phase: Phase) -> str:
    """Tag shown to the user and sent with notifications."""
    return type(phase).__name__


def start(now: datetime) -> Working:
    return Working(0, now)


def stop() -> Idle:
    return Idle()


def _elapsed(now: datetime, started_at: datetime) -> float:
    return (now - started_at).total_seconds()


def tick(phase: Phase, settings: TimerConfig, now: datetime, force: bool = False) -> tuple[Phase, bool]:
    """Advance the phase if its time is up, or unconditionally with ``force``.

    Returns:
        The resulting phase and whether it differs from the given one.
    """
    match phase:
        case Working(cycles, started_at):
            if force or _elapsed(now, started_at) >= settings.work_time:
                cycles += 1
                if cycles >= settings.long_rest_interval:
                    return LongBreak(now), True
                return ShortBreak(cycles, now), True
        case ShortBreak(cycles, started_at):
            if force or _elapsed(now, started_at) >= settings.short_rest_time:
                return Working(cycles, now), True
        case LongBreak(started_at):
            if force or _elapsed(now, started_at) >= settings.long_rest_time:
                return Working(0, now), True
        case Idle():
            pass
        case _:
            assert_never(phase)
    return phase, False


def duration(phase: Phase, settings: TimerConfig) -> timedelta:
    """Configured length of the phase."""
    match phase:
        case Idle():
            return timedelta(0)
        case Working():
            return timedelta(seconds=settings.work_time)
        case ShortBreak():
            return timedelta(seconds=settings.short_rest_time)
        case LongBreak():
            return timedelta(seconds=settings.long_rest_time)
        case _:
            assert_never(phase)


def remaining(phase: Phase, now: datetime, settings: TimerConfig) -> timedelta:
    """Time left until the phase is due to end; negative once overrun."""
    match phase:
        case Idle():
            return timedelta(0)
        case Working(started_at=started_at) | ShortBreak(started_at=started_at) | LongBreak(started_at=started_at):
            return started_at + duration(phase, settings) - now
        case _:
            assert_never(phase)
