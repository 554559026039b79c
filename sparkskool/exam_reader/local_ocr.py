"""
sparkskool/exam_reader/local_ocr.py
Tesseract extractor.

The same image is read under several language hypotheses at once; the
hypothesis with the best mean word confidence wins. Every hypothesis runs in
its own short-lived worker that is always terminated, success or not.
"""
from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from io import BytesIO
from typing import AsyncIterator, Dict, List, Optional, Sequence, Tuple

import pytesseract
from PIL import Image, ImageEnhance, ImageFilter, ImageOps

from sparkskool.config import Settings
from sparkskool.exam_reader.models import ExamImage, ExtractedResult, LanguageAnalysis
from sparkskool.exam_reader.scripts import has_rtl

logger = logging.getLogger(__name__)

SOURCE = "tesseract"
MIN_OCR_SIDE = 1000
MAX_OCR_SIDE = 4000
TESSERACT_CONFIG = "--oem 3 --psm 4"


def prepare_for_ocr(image: Image.Image) -> Image.Image:
    """Grayscale, scale into a readable range, sharpen and binarise."""
    img = image.convert("L")

    w, h = img.size
    if max(w, h) > MAX_OCR_SIDE:
        scale = MAX_OCR_SIDE / float(max(w, h))
        img = img.resize((max(1, int(w * scale)), max(1, int(h * scale))), Image.LANCZOS)
    elif min(w, h) < MIN_OCR_SIDE:
        # Tesseract loses thin Arabic/Hebrew strokes on small scans
        scale = MIN_OCR_SIDE / float(min(w, h))
        img = img.resize((int(w * scale), int(h * scale)), Image.LANCZOS)

    img = img.filter(ImageFilter.SHARPEN)
    img = ImageEnhance.Contrast(ImageOps.autocontrast(img, cutoff=2)).enhance(1.5)
    return img.point(lambda p: 255 if p > 140 else 0)


def words_to_text(data: Dict[str, list]) -> Tuple[str, float]:
    """Rebuild line text from image_to_data output and average the word confidences (0..1)."""
    lines: Dict[Tuple[int, int, int], List[str]] = {}
    confidences: List[float] = []

    for i, word in enumerate(data.get("text", [])):
        word = (word or "").strip()
        try:
            conf = float(data["conf"][i])
        except (KeyError, IndexError, TypeError, ValueError):
            conf = -1.0
        if not word or conf < 0:
            continue
        key = (data["block_num"][i], data["par_num"][i], data["line_num"][i])
        lines.setdefault(key, []).append(word)
        confidences.append(conf)

    text = "\n".join(" ".join(words) for _, words in sorted(lines.items()))
    confidence = (sum(confidences) / len(confidences) / 100.0) if confidences else 0.0
    return text, confidence


class TesseractWorker:
    """Holds a prepared copy of the image for one recognition language set."""

    def __init__(self, content: bytes, languages: str, timeout: float):
        self.languages = languages
        self.timeout = timeout
        with Image.open(BytesIO(content)) as raw:
            self.image: Optional[Image.Image] = prepare_for_ocr(raw)

    def recognize(self) -> Tuple[str, float]:
        if self.image is None:
            raise RuntimeError("worker already terminated")
        data = pytesseract.image_to_data(
            self.image,
            lang=self.languages,
            config=TESSERACT_CONFIG,
            output_type=pytesseract.Output.DICT,
            timeout=self.timeout,
        )
        return words_to_text(data)

    def terminate(self) -> None:
        if self.image is not None:
            self.image.close()
            self.image = None


@asynccontextmanager
async def tesseract_worker(content: bytes, languages: str, timeout: float) -> AsyncIterator[TesseractWorker]:
    worker = await asyncio.to_thread(TesseractWorker, content, languages, timeout)
    try:
        yield worker
    finally:
        worker.terminate()


def language_hypotheses(analysis: LanguageAnalysis, defaults: Sequence[str]) -> List[str]:
    """The configured sets, with the analysed combination moved to the front when it is one of them."""
    preferred = "+".join(analysis.languages)
    if preferred not in defaults:
        return list(defaults)
    return [preferred] + [s for s in defaults if s != preferred]


class TesseractExtractor:
    def __init__(self, settings: Settings):
        self.settings = settings

    async def _recognize(self, image: ExamImage, languages: str) -> Optional[Tuple[str, str, float]]:
        try:
            async with tesseract_worker(image.content, languages, self.settings.tesseract_timeout) as worker:
                text, confidence = await asyncio.to_thread(worker.recognize)
        except Exception as exc:
            logger.warning(f"Tesseract ({languages}) failed: {exc!r}")
            return None
        logger.debug(f"Tesseract ({languages}): confidence={confidence:.2f}")
        return languages, text, confidence

    async def extract(self, image: ExamImage, analysis: LanguageAnalysis) -> ExtractedResult:
        hypotheses = language_hypotheses(analysis, self.settings.tesseract_language_sets)
        results = await asyncio.gather(*(self._recognize(image, langs) for langs in hypotheses))

        best: Optional[Tuple[str, str, float]] = None
        for result in results:
            if result is None:
                continue
            if best is None or result[2] > best[2]:
                best = result

        if best is None:
            return ExtractedResult.empty(SOURCE)

        languages, text, confidence = best
        logger.info(f"Tesseract: best language set {languages} (confidence={confidence:.2f})")
        return ExtractedResult(
            text=text,
            confidence=confidence,
            source=SOURCE,
            languages_detected=tuple(languages.split("+")),
            rtl_content=has_rtl(text),
        )
