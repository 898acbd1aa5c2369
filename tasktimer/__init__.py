"""Pomodoro timer that suggests tasks from CalDAV to-do lists."""

__version__ = "0.1.0"
