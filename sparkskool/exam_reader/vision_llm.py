"""
sparkskool/exam_reader/vision_llm.py
Gemini vision extractor: the model reads the exam image directly and writes
it back out in a fixed layout the structure parser understands.

Gemini reports no confidence, so results get a fixed 0.8.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Optional

from sparkskool.config import Settings
from sparkskool.exam_reader.models import ExamImage, ExtractedResult, LanguageAnalysis
from sparkskool.exam_reader.scripts import detect_languages, has_rtl
from sparkskool.llm import VisionModel

logger = logging.getLogger(__name__)

FIXED_CONFIDENCE = 0.8

EXAM_PROMPT = """You are an expert exam analysis system specialized in educational assessments. Analyze this exam with extreme precision.

EXAM STRUCTURE ANALYSIS:
1. Header information: course/subject name, stream/track, duration, total marks, date.
2. Section recognition: reading comprehension, question sections, sub-questions, point allocations per section.
3. Question components:
   - Reading text: main passage, quoted text, reference material, tables/figures.
   - Question types: multiple choice [A, B, C, D], true/false [T/F], fill in blanks [___], matching, open-ended, short answer.
4. Answer format detection: answer spaces [________], bubbles [○], checkboxes [□], matching tables, writing lines, point values in margins.
5. Special elements: instruction blocks, section headers, point distributions, time allocations, notes, grading rubrics.

OUTPUT FORMAT:
EXAM METADATA:
Subject: [Subject]
Level: [Level/Stream]
Duration: [Time]
Total Marks: [Total]
Date: [Date]

SECTIONS:
[Section Name] ([Points])
Instructions: [Section instructions]
1. [Full question with all components] ([X] points)
   A) [option]  B) [option]  C) [option]  D) [option]

2. [Next question...]

RULES:
- Preserve exact wording, numbering and point values.
- Keep Arabic and Hebrew text in its original script; do not translate.
- Output only the extracted exam, no commentary."""

FOCUS_PROMPTS = {
    "handwriting": """Transcribe ALL handwritten text on this exam image: student answers, margin notes, ticks and crosses, teacher corrections and marks.
Languages that may appear: {languages}. Text direction: {direction}.
Keep each answer on its own line next to the number of the question it answers, e.g. "3. [answer]".
Write exactly what is written, including spelling mistakes. Mark illegible words as [illegible].
Output only the transcription.""",
    "mathematical": """Transcribe every mathematical expression, equation, formula and symbol on this exam image.
Languages that may appear: {languages}. Text direction: {direction}.
Write expressions in plain text (e.g. x^2 + 3x = 10, sqrt(16), 3/4), one per line, keeping the question number each belongs to, e.g. "2. 3 x 4 = ___".
Keep surrounding question text in its original language. Output only the transcription.""",
}

_SOURCES = {None: "gemini", "handwriting": "gemini-handwriting", "mathematical": "gemini-mathematical"}


def build_prompt(focus: Optional[str], analysis: LanguageAnalysis) -> str:
    if focus is None:
        return EXAM_PROMPT
    return FOCUS_PROMPTS[focus].format(
        languages=", ".join(analysis.languages),
        direction=analysis.direction,
    )


class GeminiVisionExtractor:
    def __init__(self, settings: Settings, vision_model: Optional[VisionModel], focus: Optional[str] = None):
        if focus not in _SOURCES:
            raise ValueError(f"Unknown extraction focus: {focus}")
        self.settings = settings
        self.vision_model = vision_model
        self.focus = focus
        self.source = _SOURCES[focus]

    async def extract(self, image: ExamImage, analysis: LanguageAnalysis) -> ExtractedResult:
        if self.vision_model is None:
            return ExtractedResult.empty(self.source)

        try:
            text = await asyncio.wait_for(
                self.vision_model.generate(build_prompt(self.focus, analysis), image.content, image.mime_type),
                timeout=self.settings.llm_timeout_seconds,
            )
        except Exception as exc:
            logger.warning(f"Gemini extraction ({self.source}) failed: {exc!r}")
            return ExtractedResult.empty(self.source)

        text = (text or "").strip()
        return ExtractedResult(
            text=text,
            confidence=FIXED_CONFIDENCE if text else 0.0,
            source=self.source,
            languages_detected=tuple(detect_languages(text)),
            rtl_content=has_rtl(text),
        )
