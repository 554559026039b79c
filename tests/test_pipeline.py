import asyncio
import json

import pytest

from sparkskool.exam_reader.models import ExtractedResult, ExtractionError
from sparkskool.exam_reader.pipeline import ExamReader
from sparkskool.exam_reader.scripts import PDF, RLE

from fakes import FakeTextModel, FakeVisionModel, StaticExtractor


def _reader(settings, cloud, local, vision=None, text_model=None):
    return ExamReader(
        settings,
        vision_model=vision,
        text_model=text_model,
        cloud_ocr=StaticExtractor(cloud),
        local_ocr=StaticExtractor(local),
    )


def test_all_engines_empty_raises(settings, image):
    reader = _reader(settings, ExtractedResult.empty("azure-combined"), ExtractedResult.empty("tesseract"))
    with pytest.raises(ExtractionError) as exc_info:
        asyncio.run(reader.extract_text_from_image(image))
    assert "Failed to analyze exam" in str(exc_info.value)
    assert "No service could extract text successfully" in str(exc_info.value)


def test_cloud_only_exam_is_parsed_end_to_end(settings, image):
    cloud = ExtractedResult(
        text="Question 1: What is 2+2? (5 points)",
        confidence=0.9,
        source="azure-combined",
        languages_detected=("eng",),
    )
    reader = _reader(settings, cloud, ExtractedResult.empty("tesseract"))
    analysis = asyncio.run(reader.analyze_exam(image))

    assert analysis.text == "Question 1: What is 2+2? (5 points)"
    question = analysis.structure.questions[0]
    assert question.type == "open-ended"
    assert question.points == 5
    assert "What is 2+2?" in question.text


def test_conditional_vision_passes_follow_analysis(settings, image):
    analysis_reply = json.dumps({
        "primaryLanguage": "eng",
        "direction": "ltr",
        "hasHandwriting": True,
        "hasMathematical": True,
    })

    def respond(prompt):
        if "Analyze this exam image and provide detailed language information" in prompt:
            return analysis_reply
        return ""

    vision = FakeVisionModel(respond=respond)
    local = ExtractedResult(text="1. x + 1 = 2", confidence=0.7, source="tesseract", languages_detected=("eng",))
    reader = _reader(settings, ExtractedResult.empty("azure-combined"), local, vision=vision)

    text = asyncio.run(reader.extract_text_from_image(image))

    assert text == "1. x + 1 = 2"
    # language analysis, exam layout, handwriting, math
    assert len(vision.prompts) == 4
    assert any("handwritten" in p for p in vision.prompts)
    assert any("mathematical expression" in p for p in vision.prompts)


def test_multilingual_result_preferred_and_rtl_wrapped(settings, image):
    analysis_reply = json.dumps({"primaryLanguage": "ara", "secondaryLanguages": ["eng"], "direction": "rtl"})
    vision = FakeVisionModel(respond=lambda p: analysis_reply if "language information" in p else "")
    cloud = ExtractedResult(text="Question 1", confidence=0.95, source="azure-combined", languages_detected=("eng",))
    local = ExtractedResult(
        text="Question 1\nما هو؟",
        confidence=0.6,
        source="tesseract",
        languages_detected=("ara", "eng"),
        rtl_content=True,
    )
    reader = _reader(settings, cloud, local, vision=vision)

    text = asyncio.run(reader.extract_text_from_image(image))

    assert text.split("\n")[0] == "Question 1"
    assert text.split("\n")[1].startswith(RLE)


def test_enhancement_applied_when_model_present(settings, image):
    cloud = ExtractedResult(text="Qestion 1: Wht is 2+2?", confidence=0.9, source="azure-combined")
    text_model = FakeTextModel(reply="Question 1: What is 2+2?")
    reader = _reader(settings, cloud, ExtractedResult.empty("tesseract"), text_model=text_model)

    assert asyncio.run(reader.extract_text_from_image(image)) == "Question 1: What is 2+2?"
    assert "Qestion 1: Wht is 2+2?" in text_model.calls[0]["prompt"]


def test_enhancement_failure_keeps_ocr_text(settings, image):
    cloud = ExtractedResult(text="Question 1: What is 2+2?", confidence=0.9, source="azure-combined")
    reader = _reader(
        settings,
        cloud,
        ExtractedResult.empty("tesseract"),
        text_model=FakeTextModel(error=RuntimeError("503 service unavailable")),
    )
    assert asyncio.run(reader.extract_text_from_image(image)) == "Question 1: What is 2+2?"


def test_rtl_lines_wrapped_when_language_analysis_falls_back(settings, image):
    cloud = ExtractedResult(
        text="Question 1\nما هو؟",
        confidence=0.9,
        source="azure-combined",
        languages_detected=("eng", "ara"),
        rtl_content=True,
    )
    reader = _reader(settings, cloud, ExtractedResult.empty("tesseract"))

    text = asyncio.run(reader.extract_text_from_image(image))

    assert text == f"Question 1\n{RLE}ما هو؟{PDF}"
