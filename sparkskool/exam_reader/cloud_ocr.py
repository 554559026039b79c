"""
sparkskool/exam_reader/cloud_ocr.py
Azure Computer Vision Read (v3.2) extractor.

A read is asynchronous on Azure's side: the image is POSTed, the response
carries an Operation-Location, and that URL is polled until the status is
"succeeded" or "failed". Polling is bounded by settings.azure_poll_timeout.

The extractor issues four kinds of read concurrently (full document, line
segments, handwriting model versions, structure) and fuses them into one
result tagged "azure-combined".
"""
from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence

import httpx

from sparkskool.config import Settings
from sparkskool.exam_reader.fusion import combine_analysis_passes
from sparkskool.exam_reader.models import (
    AnalysisPass,
    Bounds,
    ExamImage,
    ExtractedResult,
    ImageSegment,
    LanguageAnalysis,
    OcrLine,
)
from sparkskool.exam_reader.rules import determine_segment_type
from sparkskool.exam_reader.scripts import detect_languages, has_rtl

logger = logging.getLogger(__name__)

SOURCE = "azure-combined"
READ_PATH = "/vision/v3.2/read/analyze"
HANDWRITING_MODEL_VERSIONS = ("latest", "2022-04-30", "2021-04-12")
FIXED_CONFIDENCE = 0.8

_AZURE_LANGUAGES = {"eng": "en", "ara": "ar", "heb": "he"}


class AzureReadError(RuntimeError):
    pass


def calculate_average_confidence(lines: Sequence[OcrLine]) -> float:
    scores = [line.confidence for line in lines if line.confidence is not None]
    if not scores:
        return 0.0
    return sum(scores) / len(scores)


def _bounds(box: Sequence[float]) -> Bounds:
    if len(box) < 8:
        return Bounds()
    xs, ys = box[0::2], box[1::2]
    return Bounds(x=min(xs), y=min(ys), width=max(xs) - min(xs), height=max(ys) - min(ys))


def _parse_line(raw: Dict[str, Any]) -> OcrLine:
    words = raw.get("words") or []
    word_conf = [w["confidence"] for w in words if isinstance(w.get("confidence"), (int, float))]
    style = ((raw.get("appearance") or {}).get("style") or {}).get("name")
    return OcrLine(
        text=raw.get("text") or "",
        bounding_box=tuple(raw.get("boundingBox") or ()),
        confidence=sum(word_conf) / len(word_conf) if word_conf else None,
        style=style,
    )


def parse_read_result(payload: Dict[str, Any]) -> List[OcrLine]:
    """All lines of all pages, in page order."""
    pages = (payload.get("analyzeResult") or {}).get("readResults") or []
    return [_parse_line(line) for page in pages for line in (page.get("lines") or [])]


def read_language(analysis: LanguageAnalysis) -> Optional[str]:
    # A single language hint makes Azure skip the other scripts on mixed pages.
    if analysis.secondary_languages:
        return None
    return _AZURE_LANGUAGES.get(analysis.primary_language)


class AzureReadExtractor:
    def __init__(
        self,
        settings: Settings,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.settings = settings
        self.transport = transport
        self.sleep = sleep

    async def read(
        self,
        client: httpx.AsyncClient,
        image: ExamImage,
        language: Optional[str] = None,
        model_version: Optional[str] = None,
    ) -> List[OcrLine]:
        params = {"readingOrder": "natural"}
        if language:
            params["language"] = language
        if model_version:
            params["model-version"] = model_version

        resp = await client.post(
            f"{self.settings.azure_vision_endpoint}{READ_PATH}",
            params=params,
            content=image.content,
            headers={"Content-Type": "application/octet-stream"},
        )
        resp.raise_for_status()

        operation_url = resp.headers.get("Operation-Location")
        if not operation_url:
            raise AzureReadError("Read response carried no Operation-Location")

        deadline = time.monotonic() + self.settings.azure_poll_timeout
        while True:
            poll = await client.get(operation_url)
            poll.raise_for_status()
            payload = poll.json()
            status = str(payload.get("status", "")).lower()

            if status == "succeeded":
                return parse_read_result(payload)
            if status == "failed":
                raise AzureReadError(f"Read operation failed: {operation_url}")
            if time.monotonic() >= deadline:
                raise TimeoutError(
                    f"Read operation still '{status}' after {self.settings.azure_poll_timeout:.0f}s"
                )
            await self.sleep(self.settings.azure_poll_interval)

    # ------------------------------------------------------------------
    # Sub-passes
    # ------------------------------------------------------------------

    async def analyze_full_document(self, client, image, language) -> List[AnalysisPass]:
        lines = await self.read(client, image, language)
        return [AnalysisPass(
            text="\n".join(line.text for line in lines),
            confidence=calculate_average_confidence(lines),
            source="azure-full",
            analysis_type="full",
        )]

    async def analyze_segments(self, client, image, language) -> List[AnalysisPass]:
        lines = await self.read(client, image, language)
        passes = []
        for line in lines:
            segment_type = determine_segment_type([line])
            if segment_type is None:
                continue
            segment = ImageSegment(
                type=segment_type,
                content=line.text,
                bounds=_bounds(line.bounding_box),
                confidence=FIXED_CONFIDENCE,
            )
            passes.append(AnalysisPass(
                text=segment.content,
                confidence=segment.confidence,
                source="azure-segment",
                analysis_type="segment",
                segments=(segment,),
            ))
        return passes

    async def analyze_handwriting(self, client, image, language) -> List[AnalysisPass]:
        passes = []
        error: Optional[Exception] = None
        for version in HANDWRITING_MODEL_VERSIONS:
            try:
                lines = await self.read(client, image, language, model_version=version)
            except Exception as exc:
                logger.warning(f"Azure handwriting read ({version}) failed: {exc!r}")
                error = exc
                continue
            passes.append(AnalysisPass(
                text="\n".join(line.text for line in lines),
                confidence=calculate_average_confidence(lines),
                source=f"azure-{version}",
                analysis_type="handwriting",
            ))
        if not passes and error is not None:
            raise error
        return passes

    async def analyze_structure(self, client, image, language) -> List[AnalysisPass]:
        lines = await self.read(client, image, language)
        return [AnalysisPass(
            text="\n".join(line.text for line in lines),
            confidence=FIXED_CONFIDENCE,
            source="azure-structure",
            analysis_type="structure",
        )]

    async def _collect_passes(self, image: ExamImage, analysis: LanguageAnalysis) -> List[AnalysisPass]:
        language = read_language(analysis)
        headers = {"Ocp-Apim-Subscription-Key": self.settings.azure_vision_key}

        async with httpx.AsyncClient(
            headers=headers,
            timeout=self.settings.azure_http_timeout,
            transport=self.transport,
        ) as client:
            results = await asyncio.gather(
                self.analyze_full_document(client, image, language),
                self.analyze_segments(client, image, language),
                self.analyze_handwriting(client, image, language),
                self.analyze_structure(client, image, language),
                return_exceptions=True,
            )

        passes: List[AnalysisPass] = []
        errors: List[BaseException] = []
        for name, result in zip(("full", "segment", "handwriting", "structure"), results):
            if isinstance(result, BaseException):
                logger.warning(f"Azure {name} pass failed: {result!r}")
                errors.append(result)
            else:
                passes.extend(result)

        if len(errors) == len(results):
            raise errors[0]
        return passes

    async def extract(self, image: ExamImage, analysis: LanguageAnalysis) -> ExtractedResult:
        if not self.settings.azure_configured:
            logger.info("Azure Vision not configured, skipping cloud OCR")
            return ExtractedResult.empty(SOURCE)

        try:
            passes = await self._collect_passes(image, analysis)
        except Exception as exc:
            logger.warning(f"Azure extraction failed: {exc!r}")
            return ExtractedResult.empty(SOURCE)

        fused = combine_analysis_passes(passes)
        logger.info(f"Azure: {len(passes)} passes fused, confidence={fused.confidence:.2f}")
        return ExtractedResult(
            text=fused.text,
            confidence=min(fused.confidence, 1.0),
            source=SOURCE,
            languages_detected=tuple(detect_languages(fused.text)),
            rtl_content=has_rtl(fused.text),
        )
