"""Persisted day progress for the single learner on this device.

The whole snapshot lives under one key as JSON and is overwritten on every
change. Anything unreadable falls back to day 1 in learn mode.
"""
from __future__ import annotations

import json
import logging
from dataclasses import replace

from lesson_runner.db import Database
from lesson_runner.models import Mode, Progress

log = logging.getLogger("lesson_runner.progress")

DEFAULT_KEY = "progress"


def _day_field(raw: dict, name: str) -> int:
    value = raw.get(name)
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        return 1
    return value


def _mode_field(raw: dict) -> Mode:
    try:
        return Mode(raw.get("mode", Mode.LEARN.value))
    except ValueError:
        return Mode.LEARN


class ProgressStore:
    def __init__(self, db: Database, key: str = DEFAULT_KEY):
        self.db = db
        self.key = key
        self.progress = self.load()

    @property
    def active_day(self) -> int:
        return self.progress.active_day

    def load(self) -> Progress:
        try:
            payload = self.db.get_value(self.key)
        except Exception as e:
            log.warning("Could not read progress, using defaults: %s", e)
            return Progress()
        if payload is None:
            return Progress()
        try:
            raw = json.loads(payload)
        except (json.JSONDecodeError, TypeError):
            log.warning("Stored progress is not valid JSON, using defaults")
            return Progress()
        if not isinstance(raw, dict):
            log.warning("Stored progress has unexpected shape, using defaults")
            return Progress()
        return Progress(
            current_day=_day_field(raw, "currentDay"),
            max_unlocked_day=_day_field(raw, "maxUnlockedDay"),
            mode=_mode_field(raw),
        )

    def save(self, progress: Progress) -> None:
        self.db.set_value(self.key, json.dumps(progress.to_dict()))
        self.progress = progress

    def set_mode(self, mode: Mode) -> Progress:
        self.save(replace(self.progress, mode=Mode(mode)))
        return self.progress

    def go_to_day(self, day: int) -> bool:
        """Move to an unlocked day. Returns False (and changes nothing) otherwise."""
        if day < 1 or day > self.progress.max_unlocked_day:
            return False
        self.save(replace(self.progress, current_day=day, mode=Mode.LEARN))
        return True

    def advance_past(self, day: int) -> Progress:
        """Unlock and enter the day after *day* in a single write."""
        next_day = day + 1
        self.save(Progress(
            current_day=next_day,
            max_unlocked_day=max(self.progress.max_unlocked_day, next_day),
            mode=Mode.LEARN,
        ))
        log.info("Unlocked day %d", next_day)
        return self.progress

    def reset(self) -> Progress:
        self.db.delete_value(self.key)
        self.progress = Progress()
        log.info("Progress reset to day 1")
        return self.progress
