"""Tests for quiz scoring and listening question flattening."""
from __future__ import annotations

from lesson_runner.models import ListeningSegment, QuizQuestion
from lesson_runner.quiz import QuizScorer, flatten_listening_quiz, parse_listening_key


def _q(answer: str = "a") -> QuizQuestion:
    return QuizQuestion("?", ["a", "b", "c"], answer)


class TestQuizScorer:
    def test_empty_set_scores_one(self):
        assert QuizScorer([]).score() == 1

    def test_correct_answer_counts(self):
        scorer = QuizScorer.indexed([_q("a"), _q("b")])
        assert scorer.record_answer(0, "a") is True
        assert scorer.correct_count == 1
        assert scorer.score() == 0.5

    def test_wrong_answer(self):
        scorer = QuizScorer.indexed([_q("a")])
        assert scorer.record_answer(0, "b") is False
        assert scorer.correct_count == 0
        assert scorer.score() == 0

    def test_second_answer_rejected(self):
        scorer = QuizScorer.indexed([_q("a")])
        scorer.record_answer(0, "b")
        assert scorer.record_answer(0, "a") is None
        assert scorer.answered == {0: "b"}
        assert scorer.correct_count == 0

    def test_second_answer_cannot_double_count(self):
        scorer = QuizScorer.indexed([_q("a")])
        scorer.record_answer(0, "a")
        assert scorer.record_answer(0, "a") is None
        assert scorer.correct_count == 1
        assert scorer.score() == 1

    def test_unknown_key_rejected(self):
        scorer = QuizScorer.indexed([_q("a")])
        assert scorer.record_answer(5, "a") is None
        assert scorer.answered == {}

    def test_reset(self):
        scorer = QuizScorer.indexed([_q("a")])
        scorer.record_answer(0, "a")
        scorer.reset()
        assert scorer.answered == {}
        assert scorer.correct_count == 0
        assert scorer.record_answer(0, "b") is False


class TestFlattenListening:
    def test_order_and_keys(self):
        segs = [
            ListeningSegment(1, "A", "a", quiz=[_q(), _q()]),
            ListeningSegment(2, "B", "b", quiz=[]),
            ListeningSegment(3, "C", "c", quiz=[_q()]),
        ]
        flat = flatten_listening_quiz(segs)
        assert [item.key for item in flat] == [(0, 0), (0, 1), (2, 0)]
        assert [item.key_str for item in flat] == ["0-0", "0-1", "2-0"]
        assert len({item.key for item in flat}) == len(flat)

    def test_question_identity_preserved(self):
        q1, q2 = _q("a"), _q("b")
        flat = flatten_listening_quiz([ListeningSegment(1, "A", "a", quiz=[q1, q2])])
        assert flat[0].question is q1
        assert flat[1].question is q2

    def test_scorer_over_flattened_keys(self):
        segs = [
            ListeningSegment(1, "A", "a", quiz=[_q("a")]),
            ListeningSegment(2, "B", "b", quiz=[_q("b")]),
        ]
        scorer = QuizScorer([(i.key, i.question) for i in flatten_listening_quiz(segs)])
        assert scorer.record_answer((1, 0), "b") is True
        assert scorer.score() == 0.5


class TestParseListeningKey:
    def test_valid(self):
        assert parse_listening_key("2-1") == (2, 1)

    def test_invalid(self):
        assert parse_listening_key("2") is None
        assert parse_listening_key("a-b") is None
        assert parse_listening_key("1-2-3") is None
