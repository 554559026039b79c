"""
sparkskool/exam_reader/scripts.py
Script (writing system) detection for Latin / Arabic / Hebrew text.
"""
from __future__ import annotations

import re
from typing import List

LATIN_RE = re.compile(r"[A-Za-z]")
ARABIC_RE = re.compile(r"[\u0600-\u06FF]")
HEBREW_RE = re.compile(r"[\u0590-\u05FF]")
RTL_RE = re.compile(r"[\u0591-\u07FF]")

# Right-to-left embedding / pop directional formatting
RLE = "\u202B"
PDF = "\u202C"
BIDI_CONTROLS_RE = re.compile(r"[\u200E\u200F\u202A-\u202E\u2066-\u2069]")


def has_rtl(text: str) -> bool:
    return bool(RTL_RE.search(text or ""))


def detect_language(text: str) -> str:
    """Language code of the first script found: Arabic, then Hebrew, else English."""
    if ARABIC_RE.search(text or ""):
        return "ara"
    if HEBREW_RE.search(text or ""):
        return "heb"
    return "eng"


def detect_languages(text: str) -> List[str]:
    languages: List[str] = []
    if LATIN_RE.search(text or ""):
        languages.append("eng")
    if ARABIC_RE.search(text or ""):
        languages.append("ara")
    if HEBREW_RE.search(text or ""):
        languages.append("heb")
    return languages


def strip_bidi_controls(text: str) -> str:
    return BIDI_CONTROLS_RE.sub("", text or "")
