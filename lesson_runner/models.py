from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class Mode(str, Enum):
    LEARN = "learn"
    QUIZ = "quiz"


@dataclass
class VocabEntry:
    term: str  # target-language word
    gloss: str


@dataclass
class QuizQuestion:
    prompt: str
    choices: list[str]
    correct_choice: str


@dataclass
class GrammarBlock:
    title: str
    rules: list[str] = field(default_factory=list)
    examples: list[str] = field(default_factory=list)
    quiz: list[QuizQuestion] = field(default_factory=list)


@dataclass
class ListeningSegment:
    id: int | str
    title: str
    text: str
    repeat_count: int = 1
    quiz: list[QuizQuestion] = field(default_factory=list)


@dataclass
class OutputRules:
    required_any_keyword: list[str] = field(default_factory=list)
    required_patterns: list[str] = field(default_factory=list)
    min_sentence_count: int = 0
    min_vocab_usage_count: int = 0


@dataclass
class PassRules:
    min_output_characters: int = 0
    min_vocab_quiz_ratio: float = 0.0
    min_grammar_quiz_ratio: float = 0.0
    min_listening_quiz_ratio: float = 0.0


@dataclass
class DayPlan:
    day: int
    topic: str
    vocabulary: list[VocabEntry]
    vocab_quiz: list[QuizQuestion]
    grammar: GrammarBlock
    listening: list[ListeningSegment]  # always the canonical segment list
    output_prompt: str
    output_rules: OutputRules
    pass_rules: PassRules

    @property
    def vocab_terms(self) -> list[str]:
        return [v.term for v in self.vocabulary]


@dataclass
class Progress:
    current_day: int = 1
    max_unlocked_day: int = 1
    mode: Mode = Mode.LEARN

    @property
    def active_day(self) -> int:
        return min(self.current_day, self.max_unlocked_day)

    def to_dict(self) -> dict:
        return {
            "currentDay": self.current_day,
            "maxUnlockedDay": self.max_unlocked_day,
            "mode": self.mode.value,
        }
