"""
sparkskool/exam_reader/language_analyzer.py
First look at an exam image: which languages, which direction, and whether
handwriting or math is present. The answer steers every extractor.

Never raises. Anything unexpected yields LanguageAnalysis.default().
"""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, Optional

from sparkskool.config import Settings
from sparkskool.exam_reader.models import KNOWN_LANGUAGES, RTL_LANGUAGES, ExamImage, LanguageAnalysis
from sparkskool.llm import VisionModel, parse_json_object

logger = logging.getLogger(__name__)

LANGUAGE_PROMPT = """Analyze this exam image and provide detailed language information:
1. What is the primary language used?
2. Are there any secondary languages?
3. Is the text right-to-left (RTL) or left-to-right (LTR)?
4. Is there handwritten text?
5. Are there mathematical equations or symbols?
6. What percentage of text is in each detected language?
7. Are there any special characters or symbols?

Respond ONLY with JSON in this exact format:
{
  "primaryLanguage": "language code (eng/ara/heb)",
  "secondaryLanguages": ["list of other language codes"],
  "direction": "rtl or ltr",
  "confidence": 0.95,
  "hasHandwriting": true,
  "hasMathematical": false,
  "hasSymbols": false,
  "languageDistribution": {"eng": 70, "ara": 30}
}"""

_ALIASES = {
    "en": "eng", "english": "eng",
    "ar": "ara", "arabic": "ara",
    "he": "heb", "iw": "heb", "hebrew": "heb",
}


def _language_code(value: Any) -> Optional[str]:
    code = str(value or "").strip().lower()
    code = _ALIASES.get(code, code)
    return code if code in KNOWN_LANGUAGES else None


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in {"true", "yes", "1"}
    return bool(value)


def _as_confidence(value: Any) -> float:
    try:
        conf = float(value)
    except (TypeError, ValueError):
        return 0.0
    if conf > 1.0:
        conf /= 100.0
    return min(max(conf, 0.0), 1.0)


def analysis_from_json(data: Dict[str, Any]) -> LanguageAnalysis:
    """Build an analysis from the model's JSON, dropping codes we cannot OCR."""
    primary = _language_code(data.get("primaryLanguage")) or "eng"

    raw_secondary = data.get("secondaryLanguages") or []
    if not isinstance(raw_secondary, list):
        raw_secondary = [raw_secondary]
    secondary = []
    for value in raw_secondary:
        code = _language_code(value)
        if code and code != primary and code not in secondary:
            secondary.append(code)

    direction = str(data.get("direction") or "").strip().lower()
    if direction not in ("ltr", "rtl"):
        direction = "rtl" if primary in RTL_LANGUAGES else "ltr"

    return LanguageAnalysis(
        primary_language=primary,
        secondary_languages=tuple(secondary),
        direction=direction,  # type: ignore[arg-type]
        confidence=_as_confidence(data.get("confidence")),
        has_handwriting=_as_bool(data.get("hasHandwriting")),
        has_mathematical=_as_bool(data.get("hasMathematical")),
        has_symbols=_as_bool(data.get("hasSymbols")),
    )


async def analyze_image_language(
    image: ExamImage,
    vision_model: Optional[VisionModel],
    settings: Settings,
) -> LanguageAnalysis:
    if vision_model is None:
        return LanguageAnalysis.default()

    try:
        raw = await asyncio.wait_for(
            vision_model.generate(LANGUAGE_PROMPT, image.content, image.mime_type),
            timeout=settings.llm_timeout_seconds,
        )
    except Exception as exc:
        logger.warning(f"Language analysis failed: {exc!r}")
        return LanguageAnalysis.default()

    data = parse_json_object(raw)
    if data is None:
        logger.warning("Language analysis returned no JSON object, using defaults")
        return LanguageAnalysis.default()

    analysis = analysis_from_json(data)
    logger.info(
        f"Language analysis: primary={analysis.primary_language} "
        f"secondary={list(analysis.secondary_languages)} direction={analysis.direction} "
        f"handwriting={analysis.has_handwriting} math={analysis.has_mathematical}"
    )
    return analysis
