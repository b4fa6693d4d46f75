"""Lesson content provider: read-only day plans keyed by day number."""
from __future__ import annotations

import logging
from pathlib import Path

from lesson_runner.models import DayPlan, ListeningSegment
from lesson_runner.parsers.day_plan_parser import parse_day_plans_file

log = logging.getLogger("lesson_runner.content")


class LessonContent:
    def __init__(self, plans: list[DayPlan]):
        self._plans: dict[int, DayPlan] = {}
        for plan in plans:
            if plan.day in self._plans:
                log.warning("Duplicate day %d in day plans, keeping the first", plan.day)
                continue
            self._plans[plan.day] = plan

    @classmethod
    def from_file(cls, path: Path) -> LessonContent:
        if not path.exists():
            raise FileNotFoundError(f"Day plans not found: {path}")
        plans = parse_day_plans_file(path)
        log.info("Loaded %d day plans from %s", len(plans), path.name)
        return cls(plans)

    @property
    def days(self) -> list[int]:
        return sorted(self._plans)

    def get_day(self, day: int) -> DayPlan | None:
        return self._plans.get(day)

    def __len__(self) -> int:
        return len(self._plans)


# ── Listening helpers ──────────────────────────────────────────────────────

def segment_texts(segment: ListeningSegment) -> list[str]:
    """A segment's text, once per configured repeat."""
    return [segment.text] * max(1, segment.repeat_count)


def lesson_texts(segments: list[ListeningSegment]) -> list[str]:
    texts: list[str] = []
    for seg in segments:
        texts.extend(segment_texts(seg))
    return texts


def build_transcript(segments: list[ListeningSegment]) -> str:
    return "\n\n".join(f"# {s.title}\n{s.text}" for s in segments)
