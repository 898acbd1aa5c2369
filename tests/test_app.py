"""
Tests for the application tick loop and user actions.
"""

import random
from datetime import timedelta

import pytest

from tasktimer.app import NOTIFICATION_TITLE, Application
from tasktimer.config import CalendarConfig, Config
from tasktimer.sync import CalendarSync, SyncWorkerError
from tasktimer.timer import Idle, LongBreak, ShortBreak, Working

from conftest import FakeCalendarClient, FakeItem, ImmediateExecutor

URL = "https://dav.example.com/"


def make_app(config, notifier, clock, todos=None):
    client = FakeCalendarClient(calendars={URL: ["cal"]}, todos={"cal": todos or []})
    sync = CalendarSync(client, executor=ImmediateExecutor())
    return Application(config, sync, notifier, clock=clock, rng=random.Random(0))


class TestTick:
    def test_idle_does_nothing(self, config, notifier, clock):
        app = make_app(config, notifier, clock)
        clock.advance(timedelta(hours=1))
        app.tick()
        assert app.phase == Idle()
        assert notifier.sent == []

    def test_phase_change_notifies_once(self, config, notifier, clock):
        app = make_app(config, notifier, clock)
        app.start()
        notifier.sent.clear()

        clock.advance(timedelta(seconds=2))
        app.tick()
        app.tick()

        assert isinstance(app.phase, ShortBreak)
        assert notifier.sent == [(NOTIFICATION_TITLE, "ShortBreak")]

    def test_notifier_errors_are_swallowed(self, config, clock):
        class BrokenNotifier:
            def notify(self, title, body):
                raise OSError("no dbus")

        app = make_app(config, BrokenNotifier(), clock)
        app.start()
        app.skip()
        assert isinstance(app.phase, ShortBreak)

    def test_chooses_task_when_working(self, config, notifier, clock):
        app = make_app(config, notifier, clock, todos=[FakeItem(uid="1", summary="Write report")])
        app.reload()
        app.start()
        app.tick()
        assert app.shown_task is not None
        assert app.shown_task.summary == "Write report"

    def test_no_task_outside_work(self, config, notifier, clock):
        app = make_app(config, notifier, clock, todos=[FakeItem(uid="1")])
        app.reload()
        app.tick()
        assert app.shown_task is None

        app.start()
        app.skip()
        app.tick()
        assert isinstance(app.phase, ShortBreak)
        assert app.shown_task is None

    def test_task_chosen_in_the_tick_that_collects_refresh(self, config, notifier, clock):
        app = make_app(config, notifier, clock, todos=[FakeItem(uid="1")])
        app.start()
        app.reload()
        assert app.sync.in_flight
        app.tick()
        assert app.shown_task is not None

    def test_shown_task_is_kept(self, config, notifier, clock):
        todos = [FakeItem(uid=str(i), summary=f"Task {i}") for i in range(10)]
        app = make_app(config, notifier, clock, todos=todos)
        app.reload()
        app.start()
        app.tick()
        first = app.shown_task
        for _ in range(20):
            app.tick()
        assert app.shown_task == first

    def test_shown_task_survives_breaks(self, config, notifier, clock):
        app = make_app(config, notifier, clock, todos=[FakeItem(uid="1")])
        app.reload()
        app.start()
        app.tick()
        app.skip()
        app.tick()
        assert app.shown_task is not None

    def test_crashed_refresh_propagates(self, config, notifier, clock, monkeypatch):
        app = make_app(config, notifier, clock)

        def boom(client, settings):
            raise KeyError("bug")

        monkeypatch.setattr("tasktimer.sync.fetch_tasks", boom)
        app.reload()
        with pytest.raises(SyncWorkerError):
            app.tick()


class TestActions:
    def test_start_and_stop_notify(self, config, notifier, clock):
        app = make_app(config, notifier, clock)
        app.start()
        assert app.phase == Working(0, clock.now)
        app.stop()
        assert app.phase == Idle()
        app.stop()
        assert [body for _, body in notifier.sent] == ["Working", "Idle"]

    def test_skip_through_cycle(self, config, notifier, clock):
        app = make_app(config, notifier, clock)
        app.start()
        for _ in range(5):
            app.skip()
        assert isinstance(app.phase, LongBreak)
        assert [body for _, body in notifier.sent] == [
            "Working", "ShortBreak", "Working", "ShortBreak", "Working", "LongBreak",
        ]

    def test_skip_when_idle(self, config, notifier, clock):
        app = make_app(config, notifier, clock)
        app.skip()
        assert app.phase == Idle()
        assert notifier.sent == []

    def test_pick_another_runs_unconditionally(self, config, notifier, clock):
        app = make_app(config, notifier, clock, todos=[FakeItem(uid="1", summary="Only")])
        app.reload()
        app.tick()
        assert app.shown_task is None

        task = app.pick_another()
        assert task is not None
        assert app.shown_task == task

    def test_pick_another_without_tasks(self, config, notifier, clock):
        app = make_app(config, notifier, clock)
        assert app.pick_another() is None

    def test_reload_applies_new_config(self, config, notifier, clock):
        app = make_app(config, notifier, clock, todos=[FakeItem(uid="1")])
        new_config = Config(timer=config.timer, calendar=CalendarConfig(urls=[]))
        app.reload(new_config)
        app.tick()
        assert app.config is new_config
        assert app.sync.last_tasks == ()
        assert app.sync.generation == 1


class TestPause:
    def test_now_excludes_paused_time(self, config, notifier, clock):
        app = make_app(config, notifier, clock)
        start = app.now()

        app.pause()
        clock.advance(timedelta(minutes=5))
        assert app.paused
        assert app.now() == start

        app.resume()
        assert not app.paused
        assert app.now() == start
        clock.advance(timedelta(seconds=30))
        assert app.now() == start + timedelta(seconds=30)

    def test_pause_freezes_remaining(self, config, notifier, clock):
        app = make_app(config, notifier, clock)
        app.start()
        clock.advance(timedelta(seconds=1))
        app.pause()
        clock.advance(timedelta(minutes=10))
        app.resume()
        app.tick()
        assert isinstance(app.phase, Working)
        assert app.remaining() == timedelta(seconds=1)

    def test_repeated_pause_and_resume(self, config, notifier, clock):
        app = make_app(config, notifier, clock)
        start = app.now()
        for _ in range(3):
            app.pause()
            app.pause()
            clock.advance(timedelta(seconds=10))
            app.resume()
            app.resume()
        assert app.paused_for == timedelta(seconds=30)
        assert app.now() == start
