"""CLI entry point for lesson-runner.

Usage:
  python -m lesson_runner serve [--port PORT] [--host HOST]
  python -m lesson_runner stop
  python -m lesson_runner restart [--port PORT]
  python -m lesson_runner status
  python -m lesson_runner days
  python -m lesson_runner reset
"""
from __future__ import annotations

import os
import signal
import sys
from pathlib import Path

PID_FILE = Path(__file__).resolve().parent.parent / ".server.pid"


def main():
    args = sys.argv[1:]
    command = args[0] if args else "serve"

    if command == "serve":
        _serve(args[1:])
    elif command == "stop":
        _stop()
    elif command == "restart":
        _restart(args[1:])
    elif command == "status":
        _status()
    elif command == "days":
        _days()
    elif command == "reset":
        _reset()
    else:
        print(f"Unknown command: {command}")
        print("Commands: serve, stop, restart, status, days, reset")
        sys.exit(1)


def _parse_flag(args: list[str], name: str, default: str) -> str:
    for i, a in enumerate(args):
        if a == name and i + 1 < len(args):
            return args[i + 1]
    return default


def _read_pid() -> int | None:
    """Read PID from file, return None if stale or missing."""
    if not PID_FILE.exists():
        return None
    try:
        pid = int(PID_FILE.read_text().strip())
        # Check if process is actually running
        os.kill(pid, 0)
        return pid
    except (ValueError, ProcessLookupError, PermissionError):
        PID_FILE.unlink(missing_ok=True)
        return None


def _write_pid() -> None:
    PID_FILE.write_text(str(os.getpid()))


def _remove_pid() -> None:
    PID_FILE.unlink(missing_ok=True)


def _stop() -> bool:
    """Stop a running server. Returns True if a server was stopped."""
    pid = _read_pid()
    if pid is None:
        print("Server is not running.")
        return False
    try:
        os.kill(pid, signal.SIGTERM)
        print(f"Stopped server (PID {pid}).")
        PID_FILE.unlink(missing_ok=True)
        return True
    except ProcessLookupError:
        print("Server was not running (stale PID file removed).")
        PID_FILE.unlink(missing_ok=True)
        return False


def _status():
    pid = _read_pid()
    if pid is None:
        print("Server is not running.")
    else:
        print(f"Server is running (PID {pid}).")


def _restart(args: list[str]):
    import time
    _stop()
    time.sleep(1)
    _serve(args)


def _serve(args: list[str]):
    import uvicorn

    existing = _read_pid()
    if existing is not None:
        print(f"Server already running (PID {existing}). Use 'restart' or 'stop' first.")
        sys.exit(1)

    port = int(_parse_flag(args, "--port", "8765"))
    host = _parse_flag(args, "--host", "127.0.0.1")
    _write_pid()

    if host == "0.0.0.0":
        import socket
        local_ip = socket.gethostbyname(socket.gethostname())
        print(f"Starting Lesson Runner on http://{local_ip}:{port}")
    else:
        print(f"Starting Lesson Runner on http://{host}:{port}")
    print("Press Ctrl+C to stop\n")
    try:
        uvicorn.run(
            "lesson_runner.app:app",
            host=host,
            port=port,
            reload=False,
            timeout_graceful_shutdown=5,
        )
    finally:
        _remove_pid()


def _reset():
    from lesson_runner.config import load_settings
    from lesson_runner.db import Database
    from lesson_runner.progress import ProgressStore

    settings = load_settings()
    db = Database(settings.db_full_path)
    ProgressStore(db, key=settings.progress_key).reset()
    print("Progress reset to Day 1.")
    db.close()


def _days():
    from lesson_runner.config import load_settings
    from lesson_runner.content import LessonContent
    from lesson_runner.db import Database
    from lesson_runner.progress import ProgressStore

    settings = load_settings()
    content = LessonContent.from_file(settings.day_plans_full_path)
    db = Database(settings.db_full_path)
    progress = ProgressStore(db, key=settings.progress_key).progress
    db.close()

    print(f"Day plans: {len(content)}   unlocked up to Day {progress.max_unlocked_day}")
    print("=" * 40)
    for day in content.days:
        plan = content.get_day(day)
        marker = ">" if day == progress.active_day else " "
        lock = "" if day <= progress.max_unlocked_day else "  (locked)"
        print(f"{marker} Day {day:>3}: {plan.topic}{lock}")


if __name__ == "__main__":
    main()
