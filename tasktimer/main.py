"""Task Timer CLI entry point.

Usage:
    python -m tasktimer                          # Use ./task-timer.json if present
    python -m tasktimer -C https://dav.example.com/ -u me -p secret
    python -m tasktimer --work-time 3000 --long-rest-interval 3

While running, type a command and press Enter:
    s start   x stop   p pause   r resume   k skip
    l reload calendars   n new task   q quit
"""

import argparse
import logging
import queue
import sys
import threading
import time
from datetime import timedelta
from typing import Callable, Optional, TextIO

from tasktimer import timer
from tasktimer.app import Application
from tasktimer.config import Config, ConfigError, load_config
from tasktimer.notifier import DesktopNotifier
from tasktimer.sources.caldav_source import CalDavClient
from tasktimer.sync import CalendarSync, SyncWorkerError

logger = logging.getLogger("tasktimer")


def setup_logging(verbose: bool = False) -> None:
    """Configure logging."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        prog="task-timer",
        description="Pomodoro timer that suggests tasks from your CalDAV to-do lists.",
    )
    parser.add_argument(
        "--config", "-c",
        type=str,
        default=None,
        help="Path to a JSON config file (default: ./task-timer.json)",
    )
    parser.add_argument("--work-time", type=float, default=None, help="Work phase length in seconds (default: 1500)")
    parser.add_argument("--short-rest-time", type=float, default=None, help="Short break length in seconds (default: 600)")
    parser.add_argument("--long-rest-time", type=float, default=None, help="Long break length in seconds (default: 1800)")
    parser.add_argument(
        "--long-rest-interval",
        type=int,
        default=None,
        help="Work phases between long breaks (default: 4)",
    )
    parser.add_argument(
        "--calendar", "-C",
        dest="urls",
        action="append",
        default=None,
        help="CalDAV URL to fetch todos from (repeatable)",
    )
    parser.add_argument("--username", "-u", type=str, default=None, help="CalDAV username")
    parser.add_argument("--password", "-p", type=str, default=None, help="CalDAV password")
    parser.add_argument("--token", "-t", type=str, default=None, help="CalDAV bearer token (used without username/password)")
    parser.add_argument(
        "--fps",
        type=float,
        default=4.0,
        help="Screen refreshes per second (default: 4)",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose/debug logging",
    )
    return parser.parse_args(argv)


def config_overrides(args: argparse.Namespace) -> dict[str, dict]:
    """Map command-line arguments onto config sections."""
    return {
        "timer": {
            "work_time": args.work_time,
            "short_rest_time": args.short_rest_time,
            "long_rest_time": args.long_rest_time,
            "long_rest_interval": args.long_rest_interval,
        },
        "calendar": {
            "urls": args.urls,
            "username": args.username,
            "password": args.password,
            "token": args.token,
        },
    }


def format_duration(value: timedelta) -> str:
    """Format as [-]H:MM:SS, or [-]MM:SS below an hour."""
    seconds = int(value.total_seconds())
    sign = "-" if seconds < 0 else ""
    minutes, seconds = divmod(abs(seconds), 60)
    hours, minutes = divmod(minutes, 60)
    if hours:
        return f"{sign}{hours}:{minutes:02d}:{seconds:02d}"
    return f"{sign}{minutes:02d}:{seconds:02d}"


def render_status(app: Application) -> str:
    """One-line summary of the timer and the shown task."""
    now = app.now()
    parts = [f"{timer.phase_name(app.phase)} : {format_duration(app.remaining(now))}"]
    if app.paused:
        parts.append("(paused)")
    if app.sync.in_flight:
        parts.append("[calendar loading]")

    task = app.shown_task
    if task is not None:
        parts.append(f"| E: {task.summary}")
        if task.starts is not None:
            parts.append(f"S: {task.starts:%Y-%m-%d %H:%M}")
        if task.due is not None:
            parts.append(f"D: {task.due:%Y-%m-%d %H:%M}")
    return " ".join(parts)


def read_commands(stream: TextIO, commands: queue.Queue) -> None:
    """Forward typed commands to the tick loop. Runs on a daemon thread."""
    for line in stream:
        command = line.strip().lower()
        if command:
            commands.put(command)


def handle_command(app: Application, command: str, reload: Callable[[], None]) -> bool:
    """Apply one user command. Returns False when the user asked to quit."""
    actions: dict[str, Callable[[], object]] = {
        "s": app.start,
        "x": app.stop,
        "p": app.pause,
        "r": app.resume,
        "k": app.skip,
        "l": reload,
        "n": app.pick_another,
    }
    if command == "q":
        return False
    action = actions.get(command)
    if action is None:
        logger.warning("Unknown command: %s", command)
    else:
        action()
    return True


def run(app: Application, commands: queue.Queue, reload: Callable[[], None], fps: float, out: TextIO = sys.stdout) -> None:
    """Drive the application until the user quits."""
    frame = 1.0 / fps
    while True:
        while True:
            try:
                command = commands.get_nowait()
            except queue.Empty:
                break
            if not handle_command(app, command, reload):
                return

        if not app.paused:
            app.tick()

        out.write("\r\033[K" + render_status(app))
        out.flush()
        time.sleep(frame)


def main(argv: Optional[list[str]] = None) -> None:
    """Main entry point."""
    args = parse_args(argv)
    setup_logging(verbose=args.verbose)

    overrides = config_overrides(args)
    try:
        config = load_config(args.config, overrides)
    except ConfigError as e:
        logger.error("%s", e)
        sys.exit(1)

    if args.fps <= 0:
        logger.error("Invalid --fps: %s (must be positive)", args.fps)
        sys.exit(1)

    if not config.calendar.urls:
        logger.warning("No calendars configured, no tasks will be suggested")

    sync = CalendarSync(CalDavClient())
    app = Application(config, sync, DesktopNotifier())

    def reload() -> None:
        new_config: Optional[Config]
        try:
            new_config = load_config(args.config, overrides)
        except ConfigError as e:
            logger.error("Reload failed, keeping current config: %s", e)
            new_config = None
        app.reload(new_config)

    commands: queue.Queue = queue.Queue()
    reader = threading.Thread(target=read_commands, args=(sys.stdin, commands), name="stdin-commands", daemon=True)
    reader.start()

    app.reload()
    try:
        run(app, commands, reload, args.fps)
    except KeyboardInterrupt:
        pass
    except SyncWorkerError as e:
        logger.critical("%s", e, exc_info=True)
        sys.exit(1)
    finally:
        sync.shutdown()
        sys.stdout.write("\n")

    logger.info("Bye!")


if __name__ == "__main__":
    main()
