"""
sparkskool/exam_reader/enhancement.py
Final LLM pass over the chosen OCR text: restore layout, fix OCR slips,
keep question numbering and point values intact.

Degrades gracefully: without a model, or on any error, the input comes back unchanged.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Optional

from sparkskool.config import Settings
from sparkskool.exam_reader.models import LanguageAnalysis
from sparkskool.exam_reader.postprocess import post_process_enhanced_text
from sparkskool.llm import TextModel

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You restore OCR output of school exams. Return only the corrected exam text, "
    "never commentary, never translations."
)

ENHANCE_PROMPT = """EXAM CONTEXT:
Languages: {languages}
Text direction: {direction}
Content Type: Educational Assessment

ENHANCEMENT TASKS:
1. Layout reconstruction: restore the original structure, keep section breaks and question grouping.
2. Language processing: fix common OCR errors and language-specific characters; handle mixed-language lines.
3. Question analysis: keep question numbers, answer choices (A) B) C) ...), answer markings and point values such as "(5 points)".
4. Formatting: consistent spacing, keep special characters and mathematical notation.

Do not invent questions or answers that are not in the text.

Original Text:
{text}"""


def build_enhance_prompt(text: str, analysis: LanguageAnalysis) -> str:
    return ENHANCE_PROMPT.format(
        languages=", ".join(analysis.languages),
        direction=analysis.direction,
        text=text,
    )


async def enhance_extracted_text(
    text: str,
    analysis: LanguageAnalysis,
    text_model: Optional[TextModel],
    settings: Settings,
) -> str:
    if text_model is None or not text.strip():
        return text

    try:
        enhanced = await asyncio.wait_for(
            text_model.complete(build_enhance_prompt(text, analysis), system=SYSTEM_PROMPT, temperature=0.1),
            timeout=settings.llm_timeout_seconds,
        )
    except Exception as exc:
        logger.warning(f"Enhancement failed, keeping OCR text: {exc!r}")
        return text

    if not (enhanced or "").strip():
        logger.warning("Enhancement returned empty text, keeping OCR text")
        return text

    return post_process_enhanced_text(enhanced, analysis, settings)
