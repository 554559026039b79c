import asyncio

import pytest

from sparkskool.exam_reader.enhancement import enhance_extracted_text
from sparkskool.exam_reader.models import LanguageAnalysis
from sparkskool.exam_reader.scripts import PDF, RLE
from sparkskool.exam_reader.vision_llm import GeminiVisionExtractor, build_prompt

from fakes import FakeTextModel, FakeVisionModel


def test_gemini_result_has_fixed_confidence(settings, image):
    vision = FakeVisionModel(["SECTIONS:\nReading (10)\n1. ما هو؟ Explain."])
    result = asyncio.run(GeminiVisionExtractor(settings, vision).extract(image, LanguageAnalysis.default()))
    assert result.source == "gemini"
    assert result.confidence == 0.8
    assert result.languages_detected == ("eng", "ara")
    assert result.rtl_content


def test_gemini_failure_is_empty(settings, image):
    vision = FakeVisionModel(error=RuntimeError("500 internal"))
    result = asyncio.run(GeminiVisionExtractor(settings, vision).extract(image, LanguageAnalysis.default()))
    assert result.is_empty
    assert result.confidence == 0.0


def test_focus_prompts_mention_languages():
    analysis = LanguageAnalysis(primary_language="heb", secondary_languages=("eng",), direction="rtl")
    prompt = build_prompt("handwriting", analysis)
    assert "heb, eng" in prompt
    assert "rtl" in prompt


def test_unknown_focus_rejected(settings):
    with pytest.raises(ValueError):
        GeminiVisionExtractor(settings, None, focus="diagrams")


def test_enhancement_without_model_returns_input(settings):
    assert asyncio.run(enhance_extracted_text("abc", LanguageAnalysis.default(), None, settings)) == "abc"


def test_enhancement_post_processes_model_output(settings):
    analysis = LanguageAnalysis(primary_language="ara", direction="rtl")
    model = FakeTextModel(reply="1.  أجب   عن السؤال ٣")
    out = asyncio.run(enhance_extracted_text("raw", analysis, model, settings))
    assert out == f"{RLE}1. اجب عن السؤال 3{PDF}"
    assert "ara" in model.calls[0]["prompt"]


def test_enhancement_empty_reply_keeps_input(settings):
    out = asyncio.run(enhance_extracted_text("raw text", LanguageAnalysis.default(), FakeTextModel(reply="  "), settings))
    assert out == "raw text"


def test_focus_passes_are_tagged_by_focus(settings, image):
    vision = FakeVisionModel(respond=lambda prompt: "x = 2")
    analysis = LanguageAnalysis.default()
    math = asyncio.run(GeminiVisionExtractor(settings, vision, focus="mathematical").extract(image, analysis))
    handwriting = asyncio.run(GeminiVisionExtractor(settings, vision, focus="handwriting").extract(image, analysis))
    assert math.source == "gemini-mathematical"
    assert handwriting.source == "gemini-handwriting"
