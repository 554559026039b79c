"""
sparkskool/exam_reader/postprocess.py
Cleanup of fused OCR text before and after the LLM enhancement pass.
"""
from __future__ import annotations

import re

from sparkskool.config import Settings
from sparkskool.exam_reader.models import RTL_LANGUAGES, LanguageAnalysis
from sparkskool.exam_reader.scripts import PDF, RLE, has_rtl

_INLINE_WS_RE = re.compile(r"[^\S\n]+")
_MANY_NEWLINES_RE = re.compile(r"\n{3,}")

# Known OCR confusions, applied in order.
OCR_CONFUSIONS = (
    (re.compile(r"[إأآ]"), "ا"),
    (re.compile(r"ي"), "ى"),
    (re.compile(r"װ"), "ו"),
    (re.compile(r"ײ"), "י"),
)
TEH_MARBUTA_FIX = (re.compile(r"ة"), "ه")
ARABIC_INDIC_DIGITS = str.maketrans("٠١٢٣٤٥٦٧٨٩", "0123456789")


def is_isolated(line: str) -> bool:
    return line.startswith(RLE) and line.endswith(PDF)


def isolate_rtl_lines(text: str) -> str:
    """Wrap every line holding Hebrew/Arabic in RLE…PDF; already-wrapped lines are left alone."""
    out = []
    for line in text.split("\n"):
        if has_rtl(line) and not is_isolated(line):
            line = f"{RLE}{line}{PDF}"
        out.append(line)
    return "\n".join(out)


def normalize_whitespace(text: str) -> str:
    text = _INLINE_WS_RE.sub(" ", text)
    text = _MANY_NEWLINES_RE.sub("\n\n", text)
    return text.strip()


def post_process_text(text: str, has_rtl_content: bool) -> str:
    processed = text or ""
    if has_rtl_content:
        processed = isolate_rtl_lines(processed)
    return normalize_whitespace(processed)


def correct_ocr_confusions(text: str, correct_teh_marbuta: bool = False) -> str:
    for pattern, replacement in OCR_CONFUSIONS:
        text = pattern.sub(replacement, text)
    if correct_teh_marbuta:
        pattern, replacement = TEH_MARBUTA_FIX
        text = pattern.sub(replacement, text)
    return text.translate(ARABIC_INDIC_DIGITS)


def post_process_enhanced_text(text: str, analysis: LanguageAnalysis, settings: Settings) -> str:
    processed = text or ""
    if any(lang in RTL_LANGUAGES for lang in analysis.languages):
        processed = isolate_rtl_lines(processed)
    processed = correct_ocr_confusions(processed, settings.correct_teh_marbuta)
    return normalize_whitespace(processed)
