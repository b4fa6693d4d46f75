"""Rule-based checks for the free-text writing task.

Keyword and vocabulary matching are plain case-insensitive substring tests,
not whole-word matches: a term found inside a longer word still counts.
"""
from __future__ import annotations

import logging
import re
from dataclasses import asdict, dataclass, field

from lesson_runner.models import OutputRules, PassRules

log = logging.getLogger("lesson_runner.assessment")

_SENTENCE_SPLIT = re.compile(r"[.!?]+")


@dataclass
class OutputReport:
    char_count: int
    min_chars: int
    chars_ok: bool

    sentence_count: int
    min_sentences: int
    sentences_ok: bool

    required_any_keyword: list[str]
    keyword_ok: bool

    required_patterns: list[str]
    pattern_checks: list[bool]
    patterns_ok: bool

    vocab_used_count: int
    min_vocab_usage: int
    vocab_ok: bool

    passed: bool = field(init=False)

    def __post_init__(self):
        self.passed = (
            self.chars_ok
            and self.sentences_ok
            and self.keyword_ok
            and self.patterns_ok
            and self.vocab_ok
        )

    def to_dict(self) -> dict:
        return asdict(self)


def count_sentences(text: str) -> int:
    return sum(1 for part in _SENTENCE_SPLIT.split(text or "") if part.strip())


def includes_any(text: str, keywords: list[str]) -> bool:
    t = (text or "").lower()
    return any(str(k).lower() in t for k in keywords)


def count_vocab_used(text: str, terms: list[str]) -> int:
    t = (text or "").lower()
    return sum(1 for term in terms if str(term).strip() and str(term).lower() in t)


def check_patterns(text: str, patterns: list[str]) -> list[bool]:
    """One boolean per pattern; an invalid expression simply fails."""
    results = []
    for p in patterns:
        try:
            results.append(re.search(p, text or "", re.IGNORECASE) is not None)
        except re.error as e:
            log.warning("Invalid output pattern %r: %s", p, e)
            results.append(False)
    return results


def evaluate_output(
    text: str,
    output_rules: OutputRules,
    pass_rules: PassRules,
    vocab_terms: list[str],
) -> OutputReport:
    """Run every writing check against *text*. Pure; nothing is stored."""
    text = text or ""
    char_count = len(text.strip())
    sentences = count_sentences(text)
    keywords = list(output_rules.required_any_keyword or [])
    patterns = list(output_rules.required_patterns or [])
    pattern_checks = check_patterns(text, patterns)
    vocab_used = count_vocab_used(text, vocab_terms or [])

    return OutputReport(
        char_count=char_count,
        min_chars=pass_rules.min_output_characters,
        chars_ok=char_count >= pass_rules.min_output_characters,
        sentence_count=sentences,
        min_sentences=output_rules.min_sentence_count,
        sentences_ok=sentences >= output_rules.min_sentence_count,
        required_any_keyword=keywords,
        keyword_ok=includes_any(text, keywords) if keywords else True,
        required_patterns=patterns,
        pattern_checks=pattern_checks,
        patterns_ok=all(pattern_checks),
        vocab_used_count=vocab_used,
        min_vocab_usage=output_rules.min_vocab_usage_count,
        vocab_ok=vocab_used >= output_rules.min_vocab_usage_count,
    )
