"""Shared test fixtures."""
from __future__ import annotations

import json

import pytest

from lesson_runner.content import LessonContent
from lesson_runner.db import Database
from lesson_runner.models import (
    DayPlan,
    GrammarBlock,
    ListeningSegment,
    OutputRules,
    PassRules,
    QuizQuestion,
    VocabEntry,
)
from lesson_runner.progress import ProgressStore
from lesson_runner.providers.base import SpeechEngine, Utterance, Voice
from lesson_runner.speech import SpeechQueueController


class FakeEngine(SpeechEngine):
    """Records every call; callbacks fire only when a test says so."""

    def __init__(self, supported: bool = True, voices: list[Voice] | None = None):
        self._supported = supported
        self._voices = voices if voices is not None else [
            Voice("en-US-Guy", "Guy", "en-US"),
            Voice("de-DE-Katja", "Katja", "de-DE"),
        ]
        self.on_voices_changed = None
        self.spoken: list[Utterance] = []
        self.calls: list[str] = []
        self.fail_speak = False

    @property
    def supported(self) -> bool:
        return self._supported

    def voices(self) -> list[Voice]:
        return list(self._voices)

    def speak(self, utterance: Utterance) -> None:
        self.calls.append("speak")
        if self.fail_speak and utterance.text:
            raise RuntimeError("engine refused")
        self.spoken.append(utterance)

    def cancel(self) -> None:
        self.calls.append("cancel")

    def pause(self) -> None:
        self.calls.append("pause")

    @property
    def texts(self) -> list[str]:
        """Non-flush utterances, in the order they were spoken."""
        return [u.text for u in self.spoken if u.text]

    def last(self) -> Utterance:
        return [u for u in self.spoken if u.text][-1]

    def finish(self, utterance: Utterance) -> None:
        if utterance.on_start:
            utterance.on_start()
        if utterance.on_end:
            utterance.on_end()

    def fail(self, utterance: Utterance, error: str = "synthesis-failed") -> None:
        if utterance.on_error:
            utterance.on_error(error)


def run_now(delay, fn):
    fn()


@pytest.fixture
def tmp_db(tmp_path):
    """Create a fresh temporary database."""
    db = Database(tmp_path / "test.db")
    yield db
    db.close()


@pytest.fixture
def store(tmp_db):
    return ProgressStore(tmp_db)


@pytest.fixture
def engine():
    return FakeEngine()


@pytest.fixture
def make_engine():
    """Build a FakeEngine with custom voices or support."""
    return FakeEngine


@pytest.fixture
def speech(engine):
    """Controller whose fallback timer fires immediately."""
    return SpeechQueueController(engine, target_language="de", call_later=run_now)


@pytest.fixture
def output_rules():
    return OutputRules(
        required_any_keyword=["schule"],
        required_patterns=[],
        min_sentence_count=2,
        min_vocab_usage_count=1,
    )


@pytest.fixture
def pass_rules():
    return PassRules(
        min_output_characters=10,
        min_vocab_quiz_ratio=1.0,
        min_grammar_quiz_ratio=1.0,
        min_listening_quiz_ratio=1.0,
    )


@pytest.fixture
def day_one(output_rules, pass_rules):
    """Two vocabulary questions, no grammar or listening questions."""
    return DayPlan(
        day=1,
        topic="Schule",
        vocabulary=[VocabEntry("Schule", "school"), VocabEntry("Haus", "house")],
        vocab_quiz=[
            QuizQuestion("Schule", ["school", "house"], "school"),
            QuizQuestion("Haus", ["school", "house"], "house"),
        ],
        grammar=GrammarBlock(title="Verbzweit", rules=["V2"], examples=["Ich gehe."]),
        listening=[
            ListeningSegment(id=1, title="Morgen", text="Anna steht auf.", repeat_count=2),
            ListeningSegment(id=2, title="Schule", text="Anna lernt.", repeat_count=1),
        ],
        output_prompt="Schreibe zwei Sätze.",
        output_rules=output_rules,
        pass_rules=pass_rules,
    )


@pytest.fixture
def day_two():
    return DayPlan(
        day=2,
        topic="Gründe",
        vocabulary=[VocabEntry("weil", "because")],
        vocab_quiz=[],
        grammar=GrammarBlock(
            title="weil",
            quiz=[QuizQuestion("Ich bin ___", ["müde", "Haus"], "müde")],
        ),
        listening=[
            ListeningSegment(
                id=1, title="Paul", text="Paul bleibt zu Hause.",
                quiz=[
                    QuizQuestion("Wo ist Paul?", ["zu Hause", "draußen"], "zu Hause"),
                    QuizQuestion("Wer?", ["Paul", "Anna"], "Paul"),
                ],
            ),
        ],
        output_prompt="Warum?",
        output_rules=OutputRules(),
        pass_rules=PassRules(),
    )


@pytest.fixture
def content(day_one, day_two):
    return LessonContent([day_one, day_two])


@pytest.fixture
def scenario_text():
    return "Ich gehe heute in die Schule. Das macht Spaß."


@pytest.fixture
def day_plans_json():
    """Day plan file content: one segmented day, one legacy listening day."""
    return json.dumps([
        {
            "day": 1,
            "topic": "Schule",
            "vocab_list": [{"de": "Schule", "en": "school"}],
            "vocab_quiz": [{"word": "Schule", "choices": ["school", "house"], "answer": "school"}],
            "grammar": {
                "title": "V2",
                "rules": ["Verb an Position zwei"],
                "examples": ["Heute gehe ich."],
                "quiz": [{"q": "Heute ___ ich.", "choices": ["gehe", "gehen"], "a": "gehe"}],
            },
            "listening": {
                "segments": [
                    {"id": 1, "title": "Eins", "text": "Erster Text.", "repeat": 2,
                     "quiz": [{"q": "A?", "choices": ["a", "b"], "a": "a"}]},
                    {"id": 2, "title": "Zwei", "text": "Zweiter Text.",
                     "quiz": [{"q": "B?", "choices": ["a", "b"], "a": "b"},
                              {"q": "C?", "choices": ["a", "b"], "a": "a"}]},
                ]
            },
            "output": {"prompt": "Schreibe."},
            "outputRules": {"mustIncludeAny": ["schule"], "mustIncludeAllPatterns": [],
                            "minSentences": 2, "mustUseVocabAtLeast": 1},
            "passRules": {"minOutputChars": 10, "vocabMinCorrect": 1,
                          "grammarMinCorrect": 1, "listeningMinCorrect": 0.5},
        },
        {
            "day": 2,
            "topic": "Legacy",
            "listening": {"text": "Alter Text.", "quiz": [{"q": "D?", "choices": ["x"], "a": "x"}]},
        },
    ])
