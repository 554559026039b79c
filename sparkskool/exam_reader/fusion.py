"""
sparkskool/exam_reader/fusion.py
Merging of several OCR reads of the same image.

Each read is split into lines; identical lines (after normalization) vote for
each other, and every line keeps the best confidence it was seen with,
weighted by how much the kind of read is trusted. A line read only once must
be confident on its own to survive.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Dict, Iterable, List, Sequence

from sparkskool.exam_reader.models import AnalysisPass, ExtractedResult

PASS_WEIGHTS = {
    "handwriting": 1.2,
    "segment": 1.1,
    "structure": 1.0,
    "full": 0.9,
}
KEEP_THRESHOLD = 0.7

_PUNCT_RE = re.compile(r"[^\w\s\u0590-\u07FF]")


@dataclass(frozen=True)
class FusedText:
    text: str
    confidence: float


@dataclass
class _Vote:
    original: str
    count: int
    confidence: float


def pass_weight(analysis_pass: AnalysisPass) -> float:
    return PASS_WEIGHTS.get(analysis_pass.analysis_type, 1.0)


def normalize_segment(text: str) -> str:
    s = re.sub(r"\s+", " ", text.strip().lower())
    return _PUNCT_RE.sub("", s)


def combine_analysis_passes(passes: Iterable[AnalysisPass]) -> FusedText:
    votes: Dict[str, _Vote] = {}

    for analysis_pass in passes:
        weighted = analysis_pass.confidence * pass_weight(analysis_pass)
        for line in analysis_pass.text.split("\n"):
            key = normalize_segment(line)
            if not key:
                continue
            vote = votes.get(key)
            if vote is None:
                votes[key] = _Vote(original=line.strip(), count=1, confidence=weighted)
            else:
                vote.count += 1
                vote.confidence = max(vote.confidence, weighted)

    kept = [v for v in votes.values() if v.count > 1 or v.confidence > KEEP_THRESHOLD]
    kept.sort(key=lambda v: v.confidence, reverse=True)

    if not kept:
        return FusedText(text="", confidence=0.0)

    return FusedText(
        text="\n".join(v.original for v in kept),
        confidence=sum(v.confidence for v in kept) / len(kept),
    )


def choose_best_result(results: Sequence[ExtractedResult]) -> ExtractedResult:
    """
    Pick the engine result to keep.

    Mixed-script exams are read completely only by engines that saw more than
    one language, so those are preferred; ties go to the highest confidence.
    """
    if not results:
        raise ValueError("choose_best_result needs at least one result")

    multilingual: List[ExtractedResult] = [r for r in results if len(r.languages_detected) > 1]
    pool = multilingual or list(results)
    return max(pool, key=lambda r: r.confidence)
