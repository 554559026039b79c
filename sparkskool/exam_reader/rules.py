"""
sparkskool/exam_reader/rules.py
Pattern rules for classifying exam text.

Every rule is a tag plus the patterns that select it; tables are scanned in
order and the first hit wins. New phrasings are added as new patterns or new
rows without touching the existing ones.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Pattern, Sequence, Tuple

from sparkskool.exam_reader.models import OcrLine, SegmentType, TrueFalseFormat


@dataclass(frozen=True)
class Rule:
    tag: str
    patterns: Tuple[Pattern[str], ...]

    def matches(self, text: str) -> bool:
        return any(p.search(text) for p in self.patterns)


# ---------------------------------------------------------------------------
# True / false answer formats
# ---------------------------------------------------------------------------

_TF_WORD = r"\b(?:T|F|True|False)\b"

TRUE_FALSE_RULES: Tuple[Rule, ...] = (
    Rule("arabic", (re.compile(r"صح|خطأ"),)),
    Rule("hebrew", (re.compile(r"נכון|לא נכון"),)),
    Rule("checkbox", (
        re.compile(rf"\[\s*\].*{_TF_WORD}", re.IGNORECASE),
        re.compile(r"\[\s*[✓×]\s*\]"),
    )),
    Rule("circle", (
        re.compile(rf"\(\s*\).*{_TF_WORD}", re.IGNORECASE),
        re.compile(rf"○.*{_TF_WORD}", re.IGNORECASE),
    )),
    Rule("parentheses", (
        re.compile(r"\(T\)|\(F\)", re.IGNORECASE),
        re.compile(r"\(True\)|\(False\)", re.IGNORECASE),
    )),
    # A lone × is also a multiplication sign, so it only counts next to a ✓.
    Rule("symbol", (
        re.compile(r"✓.*×|×.*✓"),
        re.compile(r"[✔✗]"),
        re.compile(r"[⭕❌]"),
    )),
)

_TRUE_LABELS = {"ara": "صح", "heb": "נכון"}
_FALSE_LABELS = {"ara": "خطأ", "heb": "לא נכון"}


def _labels(language: str) -> Tuple[str, str]:
    return _TRUE_LABELS.get(language, "True"), _FALSE_LABELS.get(language, "False")


def _checkbox(language: str) -> TrueFalseFormat:
    t, f = _labels(language)
    return TrueFalseFormat(type="checkbox", true_value=f"[ ] {t}", false_value=f"[ ] {f}")


def _circle(language: str) -> TrueFalseFormat:
    t, f = _labels(language)
    return TrueFalseFormat(type="circle", true_value=f"○ {t}", false_value=f"○ {f}")


_TF_BUILDERS: Dict[str, Callable[[str], TrueFalseFormat]] = {
    "arabic": lambda _lang: TrueFalseFormat(type="arabic", true_value="صح", false_value="خطأ"),
    "hebrew": lambda _lang: TrueFalseFormat(type="hebrew", true_value="נכון", false_value="לא נכון"),
    "checkbox": _checkbox,
    "circle": _circle,
    "parentheses": lambda _lang: TrueFalseFormat(type="parentheses", true_value="(T)", false_value="(F)"),
    "symbol": lambda _lang: TrueFalseFormat(type="symbol", true_value="✓", false_value="×", is_symbol=True),
}


def detect_true_false_format(
    text: str,
    language: str,
    rules: Sequence[Rule] = TRUE_FALSE_RULES,
) -> Optional[TrueFalseFormat]:
    for rule in rules:
        if rule.matches(text):
            return _TF_BUILDERS[rule.tag](language)
    return None


# ---------------------------------------------------------------------------
# OCR line segments
# ---------------------------------------------------------------------------

SEGMENT_TEXT_RULES: Tuple[Rule, ...] = (
    Rule("header", (re.compile(r"^(?:section|part|question|instructions?)", re.IGNORECASE),)),
    Rule("instructions", (re.compile(r"^(?:note|please|read|answer|write|choose|select)", re.IGNORECASE),)),
)

SEGMENT_CONTENT_RULES: Tuple[Rule, ...] = (
    Rule("question", (re.compile(r"^(?:\d+[.)]\s|[A-Z][.)]\s|\(\d+\))", re.IGNORECASE),)),
    Rule("answer", (
        re.compile(r"^(?:answer|solution|response):", re.IGNORECASE),
        re.compile(r"[\[({□○]"),
        re.compile(r"true|false|صح|خطأ|נכון"),
    )),
)


def determine_segment_type(lines: Sequence[OcrLine]) -> Optional[SegmentType]:
    """Classify a region of OCR lines; None when no rule applies."""
    if not lines:
        return None

    text = " ".join(line.text or "" for line in lines).lower()

    for rule in SEGMENT_TEXT_RULES:
        if rule.matches(text):
            return rule.tag  # type: ignore[return-value]

    if any(line.style == "handwriting" for line in lines):
        return "handwriting"

    for rule in SEGMENT_CONTENT_RULES:
        if rule.matches(text):
            return rule.tag  # type: ignore[return-value]

    return None
