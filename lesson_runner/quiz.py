"""One-shot multiple-choice scoring for a single question set."""
from __future__ import annotations

from collections.abc import Hashable
from dataclasses import dataclass

from lesson_runner.models import ListeningSegment, QuizQuestion


@dataclass(frozen=True)
class FlattenedListeningQuestion:
    segment_index: int
    question_index: int
    question: QuizQuestion

    @property
    def key(self) -> tuple[int, int]:
        return (self.segment_index, self.question_index)

    @property
    def key_str(self) -> str:
        return f"{self.segment_index}-{self.question_index}"


def flatten_listening_quiz(segments: list[ListeningSegment]) -> list[FlattenedListeningQuestion]:
    """All listening questions in (segment, question) order."""
    return [
        FlattenedListeningQuestion(seg_idx, q_idx, q)
        for seg_idx, seg in enumerate(segments)
        for q_idx, q in enumerate(seg.quiz)
    ]


def parse_listening_key(key: str) -> tuple[int, int] | None:
    """Inverse of FlattenedListeningQuestion.key_str; None if malformed."""
    parts = key.split("-")
    if len(parts) != 2:
        return None
    try:
        return int(parts[0]), int(parts[1])
    except ValueError:
        return None


class QuizScorer:
    """Answers are write-once per key; the score is correct / total.

    An empty question set scores 1.0.
    """

    def __init__(self, questions: list[tuple[Hashable, QuizQuestion]]):
        self._questions: dict[Hashable, QuizQuestion] = dict(questions)
        self._chosen: dict[Hashable, str] = {}
        self.correct_count = 0

    @classmethod
    def indexed(cls, questions: list[QuizQuestion]) -> QuizScorer:
        return cls(list(enumerate(questions)))

    @property
    def total(self) -> int:
        return len(self._questions)

    @property
    def answered(self) -> dict[Hashable, str]:
        return dict(self._chosen)

    def question(self, key: Hashable) -> QuizQuestion | None:
        return self._questions.get(key)

    def is_answered(self, key: Hashable) -> bool:
        return key in self._chosen

    def record_answer(self, key: Hashable, choice: str) -> bool | None:
        """Store *choice* for *key* and return whether it was correct.

        Returns None, changing nothing, when the key is unknown or was
        already answered.
        """
        q = self._questions.get(key)
        if q is None or key in self._chosen:
            return None
        self._chosen[key] = choice
        correct = choice == q.correct_choice
        if correct:
            self.correct_count += 1
        return correct

    def score(self) -> float:
        if self.total == 0:
            return 1.0
        return self.correct_count / self.total

    def reset(self) -> None:
        self._chosen.clear()
        self.correct_count = 0
