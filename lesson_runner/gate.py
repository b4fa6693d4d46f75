"""Day gating: per-day quiz/writing state and the pass-to-unlock check."""
from __future__ import annotations

import logging
from collections.abc import Hashable
from dataclasses import asdict, dataclass

from lesson_runner.assessment import OutputReport, evaluate_output
from lesson_runner.content import LessonContent, build_transcript, lesson_texts, segment_texts
from lesson_runner.models import DayPlan, Mode, Progress
from lesson_runner.progress import ProgressStore
from lesson_runner.quiz import FlattenedListeningQuestion, QuizScorer, flatten_listening_quiz
from lesson_runner.speech import SpeechQueueController

log = logging.getLogger("lesson_runner.gate")

QUIZ_SETS = ("vocab", "grammar", "listening")


@dataclass
class Verdict:
    vocab_score: float
    grammar_score: float
    listening_score: float
    output_ok: bool
    passed: bool

    def to_dict(self) -> dict:
        return asdict(self)


class LessonSession:
    """State of the day currently on screen.

    Quiz answers, the writing text and the last reports belong to one day;
    any change of the active day discards them and silences narration.
    """

    def __init__(
        self,
        content: LessonContent,
        store: ProgressStore,
        speech: SpeechQueueController | None = None,
    ):
        self.content = content
        self.store = store
        self.speech = speech
        self._loaded_day: int | None = None
        self._load_day()

    # ── Day state ─────────────────────────────────────────────────────────

    @property
    def progress(self) -> Progress:
        return self.store.progress

    @property
    def day(self) -> int:
        return self.store.active_day

    @property
    def plan(self) -> DayPlan | None:
        return self.content.get_day(self.day)

    @property
    def completed(self) -> bool:
        return self.plan is None

    @property
    def can_go_back(self) -> bool:
        return self.day > 1

    @property
    def can_go_forward(self) -> bool:
        return self.day + 1 <= self.progress.max_unlocked_day

    def _load_day(self) -> None:
        plan = self.plan
        self.listening_items: list[FlattenedListeningQuestion] = (
            flatten_listening_quiz(plan.listening) if plan else []
        )
        self.quizzes: dict[str, QuizScorer] = {
            "vocab": QuizScorer.indexed(plan.vocab_quiz if plan else []),
            "grammar": QuizScorer.indexed(plan.grammar.quiz if plan else []),
            "listening": QuizScorer([(i.key, i.question) for i in self.listening_items]),
        }
        self.output_text = ""
        self.output_report: OutputReport | None = None
        self.verdict: Verdict | None = None
        self._loaded_day = self.day

    def _day_changed(self) -> None:
        if self.speech is not None:
            self.speech.stop()
        self._load_day()

    def _sync_day(self) -> None:
        if self.day != self._loaded_day:
            log.info("Active day is now %d", self.day)
            self._day_changed()

    # ── Navigation ────────────────────────────────────────────────────────

    def set_mode(self, mode: Mode) -> Progress:
        return self.store.set_mode(mode)

    def go_to_day(self, day: int) -> bool:
        moved = self.store.go_to_day(day)
        self._sync_day()
        return moved

    def reset(self) -> Progress:
        progress = self.store.reset()
        self._day_changed()
        return progress

    # ── Quizzes ───────────────────────────────────────────────────────────

    def quiz(self, quiz_set: str) -> QuizScorer:
        return self.quizzes[quiz_set]

    def answer(self, quiz_set: str, key: Hashable, choice: str) -> bool | None:
        return self.quizzes[quiz_set].record_answer(key, choice)

    @property
    def transcript_visible(self) -> bool:
        return bool(self.quizzes["listening"].answered)

    def transcript(self) -> str | None:
        if not self.transcript_visible or self.plan is None:
            return None
        return build_transcript(self.plan.listening)

    # ── Writing ───────────────────────────────────────────────────────────

    def check_output(self) -> OutputReport | None:
        plan = self.plan
        if plan is None:
            return None
        self.output_report = evaluate_output(
            self.output_text, plan.output_rules, plan.pass_rules, plan.vocab_terms
        )
        return self.output_report

    # ── Gate ──────────────────────────────────────────────────────────────

    def evaluate_and_advance(self) -> Verdict | None:
        """Score the day and unlock the next one if every threshold is met.

        Returns None when there is no lesson for the active day.
        """
        plan = self.plan
        if plan is None:
            return None
        report = self.check_output()
        rules = plan.pass_rules
        vocab = self.quizzes["vocab"].score()
        grammar = self.quizzes["grammar"].score()
        listening = self.quizzes["listening"].score()
        passed = (
            vocab >= rules.min_vocab_quiz_ratio
            and grammar >= rules.min_grammar_quiz_ratio
            and listening >= rules.min_listening_quiz_ratio
            and report.passed
        )
        verdict = Verdict(
            vocab_score=vocab,
            grammar_score=grammar,
            listening_score=listening,
            output_ok=report.passed,
            passed=passed,
        )
        self.verdict = verdict

        if passed:
            self.store.advance_past(self.day)
            self._sync_day()
        else:
            log.info("Day %d not passed: %s", self.day, verdict)
        return verdict

    # ── Listening playback ────────────────────────────────────────────────

    def play_lesson(self) -> bool:
        if self.speech is None or self.plan is None:
            return False
        return self.speech.play(lesson_texts(self.plan.listening))

    def play_segment(self, index: int) -> bool:
        if self.speech is None or self.plan is None:
            return False
        segments = self.plan.listening
        if not 0 <= index < len(segments):
            return False
        return self.speech.play(segment_texts(segments[index]))

    def stop_speech(self) -> None:
        if self.speech is not None:
            self.speech.stop()
