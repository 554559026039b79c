"""
sparkskool/exam_reader/pipeline.py
Exam image → text → structure.

  1. analyze the image's languages (one vision call, everything else depends on it)
  2. run Azure, Tesseract and Gemini concurrently, plus handwriting/math
     Gemini passes when the analysis calls for them
  3. drop empty results and keep the best one
  4. bidi/whitespace cleanup, then an LLM enhancement pass
  5. (analyze_exam only) parse sections and questions
"""
from __future__ import annotations

import asyncio
import logging
from typing import List, Optional, Protocol

from sparkskool.config import Settings
from sparkskool.exam_reader.cloud_ocr import AzureReadExtractor
from sparkskool.exam_reader.enhancement import enhance_extracted_text
from sparkskool.exam_reader.fusion import choose_best_result
from sparkskool.exam_reader.language_analyzer import analyze_image_language
from sparkskool.exam_reader.local_ocr import TesseractExtractor
from sparkskool.exam_reader.models import (
    ExamAnalysis,
    ExamImage,
    ExtractedResult,
    ExtractionError,
    LanguageAnalysis,
)
from sparkskool.exam_reader.postprocess import post_process_text
from sparkskool.exam_reader.structure import parse_exam_structure
from sparkskool.exam_reader.vision_llm import GeminiVisionExtractor
from sparkskool.llm import TextModel, VisionModel, get_text_model, get_vision_model

logger = logging.getLogger(__name__)


class Extractor(Protocol):
    async def extract(self, image: ExamImage, analysis: LanguageAnalysis) -> ExtractedResult: ...


class ExamReader:
    def __init__(
        self,
        settings: Settings,
        vision_model: Optional[VisionModel] = None,
        text_model: Optional[TextModel] = None,
        cloud_ocr: Optional[Extractor] = None,
        local_ocr: Optional[Extractor] = None,
    ):
        self.settings = settings
        self.vision_model = vision_model
        self.text_model = text_model
        self.cloud_ocr = cloud_ocr or AzureReadExtractor(settings)
        self.local_ocr = local_ocr or TesseractExtractor(settings)

    @classmethod
    def from_settings(cls, settings: Settings) -> "ExamReader":
        return cls(
            settings,
            vision_model=get_vision_model(settings),
            text_model=get_text_model(settings),
        )

    def extractors_for(self, analysis: LanguageAnalysis) -> List[Extractor]:
        extractors: List[Extractor] = [
            self.cloud_ocr,
            self.local_ocr,
            GeminiVisionExtractor(self.settings, self.vision_model),
        ]
        if analysis.has_handwriting:
            extractors.append(GeminiVisionExtractor(self.settings, self.vision_model, focus="handwriting"))
        if analysis.has_mathematical:
            extractors.append(GeminiVisionExtractor(self.settings, self.vision_model, focus="mathematical"))
        return extractors

    async def _extract(self, image: ExamImage) -> str:
        analysis = await analyze_image_language(image, self.vision_model, self.settings)

        extractors = self.extractors_for(analysis)
        results = await asyncio.gather(*(e.extract(image, analysis) for e in extractors))

        valid = [r for r in results if not r.is_empty]
        for r in results:
            logger.info(f"{r.source}: {len(r.text)} chars, confidence={r.confidence:.2f}, languages={list(r.languages_detected)}")
        if not valid:
            raise ExtractionError("No service could extract text successfully")

        best = choose_best_result(valid)
        logger.info(f"Using {best.source} result")

        text = post_process_text(best.text, analysis.is_rtl or best.rtl_content)
        return await enhance_extracted_text(text, analysis, self.text_model, self.settings)

    async def extract_text_from_image(self, image: ExamImage) -> str:
        try:
            return await self._extract(image)
        except Exception as exc:
            logger.error(f"Text extraction failed: {exc}")
            raise ExtractionError(f"Failed to analyze exam: {exc}") from exc

    async def analyze_exam(self, image: ExamImage) -> ExamAnalysis:
        text = await self.extract_text_from_image(image)
        return ExamAnalysis(text=text, structure=parse_exam_structure(text))
