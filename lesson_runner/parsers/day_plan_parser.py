"""Parse day_plans.json into DayPlan objects.

Each day in the file looks like:
  {"day": 1, "topic": "...",
   "vocab_list": [{"de": "...", "en": "..."}],
   "vocab_quiz": [{"word": "...", "choices": [...], "answer": "..."}],
   "grammar": {"title": "...", "rules": [...], "examples": [...],
               "quiz": [{"q": "...", "choices": [...], "a": "..."}]},
   "listening": {"segments": [{"id": 1, "title": "...", "text": "...",
                               "repeat": 2, "quiz": [...]}]},
   "output": {"prompt": "..."},
   "outputRules": {"mustIncludeAny": [...], "mustIncludeAllPatterns": [...],
                   "minSentences": 2, "mustUseVocabAtLeast": 1},
   "passRules": {"minOutputChars": 10, "vocabMinCorrect": 0.8,
                 "grammarMinCorrect": 0.8, "listeningMinCorrect": 0.6}}

Older days carry a flat listening block ({"text": "...", "quiz": [...]})
instead of segments; it becomes a single segment here so nothing downstream
ever sees the legacy shape. Missing rule fields default to permissive values.
"""
from __future__ import annotations

import json
from pathlib import Path

from lesson_runner.models import (
    DayPlan,
    GrammarBlock,
    ListeningSegment,
    OutputRules,
    PassRules,
    QuizQuestion,
    VocabEntry,
)


def _as_list(value) -> list:
    return value if isinstance(value, list) else []


def _as_dict(value) -> dict:
    return value if isinstance(value, dict) else {}


def _as_int(value, default: int = 0) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def _as_float(value, default: float = 0.0) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def _parse_question(raw: dict, prompt_key: str, answer_key: str) -> QuizQuestion:
    return QuizQuestion(
        prompt=str(raw.get(prompt_key, "")),
        choices=[str(c) for c in _as_list(raw.get("choices"))],
        correct_choice=str(raw.get(answer_key, "")),
    )


def _parse_quiz(raw, prompt_key: str = "q", answer_key: str = "a") -> list[QuizQuestion]:
    return [
        _parse_question(q, prompt_key, answer_key)
        for q in _as_list(raw)
        if isinstance(q, dict)
    ]


def parse_listening(raw) -> list[ListeningSegment]:
    """Normalize a listening block into the canonical segment list."""
    block = _as_dict(raw)
    segments = [s for s in _as_list(block.get("segments")) if isinstance(s, dict)]
    if segments:
        return [
            ListeningSegment(
                id=s.get("id", i + 1),
                title=str(s.get("title", "")),
                text=str(s.get("text", "")),
                repeat_count=max(1, _as_int(s.get("repeat"), 1)),
                quiz=_parse_quiz(s.get("quiz")),
            )
            for i, s in enumerate(segments)
        ]

    # Legacy: one flat block
    if block.get("text"):
        return [
            ListeningSegment(
                id=1,
                title="Listening",
                text=str(block["text"]),
                repeat_count=1,
                quiz=_parse_quiz(block.get("quiz")),
            )
        ]
    return []


def parse_output_rules(raw) -> OutputRules:
    rules = _as_dict(raw)
    return OutputRules(
        required_any_keyword=[str(k) for k in _as_list(rules.get("mustIncludeAny"))],
        required_patterns=[str(p) for p in _as_list(rules.get("mustIncludeAllPatterns"))],
        min_sentence_count=_as_int(rules.get("minSentences")),
        min_vocab_usage_count=_as_int(rules.get("mustUseVocabAtLeast")),
    )


def parse_pass_rules(raw) -> PassRules:
    rules = _as_dict(raw)
    return PassRules(
        min_output_characters=_as_int(rules.get("minOutputChars")),
        min_vocab_quiz_ratio=_as_float(rules.get("vocabMinCorrect")),
        min_grammar_quiz_ratio=_as_float(rules.get("grammarMinCorrect")),
        min_listening_quiz_ratio=_as_float(rules.get("listeningMinCorrect")),
    )


def parse_day_plan(raw: dict) -> DayPlan:
    grammar = _as_dict(raw.get("grammar"))
    return DayPlan(
        day=_as_int(raw.get("day")),
        topic=str(raw.get("topic", "")),
        vocabulary=[
            VocabEntry(term=str(v.get("de", "")), gloss=str(v.get("en", "")))
            for v in _as_list(raw.get("vocab_list"))
            if isinstance(v, dict) and str(v.get("de", "")).strip()
        ],
        vocab_quiz=_parse_quiz(raw.get("vocab_quiz"), prompt_key="word", answer_key="answer"),
        grammar=GrammarBlock(
            title=str(grammar.get("title", "")),
            rules=[str(r) for r in _as_list(grammar.get("rules"))],
            examples=[str(e) for e in _as_list(grammar.get("examples"))],
            quiz=_parse_quiz(grammar.get("quiz")),
        ),
        listening=parse_listening(raw.get("listening")),
        output_prompt=str(_as_dict(raw.get("output")).get("prompt", "")),
        output_rules=parse_output_rules(raw.get("outputRules")),
        pass_rules=parse_pass_rules(raw.get("passRules")),
    )


def parse_day_plans_file(path: Path) -> list[DayPlan]:
    data = json.loads(path.read_text(encoding="utf-8"))
    if isinstance(data, dict):
        data = data.get("days", [])
    return [parse_day_plan(d) for d in _as_list(data) if isinstance(d, dict)]
