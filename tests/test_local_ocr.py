import asyncio
from io import BytesIO

import pytest
from PIL import Image

from sparkskool.exam_reader import local_ocr
from sparkskool.exam_reader.local_ocr import (
    TesseractExtractor,
    TesseractWorker,
    language_hypotheses,
    prepare_for_ocr,
    words_to_text,
)
from sparkskool.exam_reader.models import ExamImage, LanguageAnalysis
from sparkskool.config import DEFAULT_LANGUAGE_SETS


@pytest.fixture
def png_image():
    buf = BytesIO()
    Image.new("RGB", (200, 100), "white").save(buf, format="PNG")
    return ExamImage(content=buf.getvalue(), mime_type="image/png")


def _data(words, conf):
    n = len(words)
    return {
        "text": words,
        "conf": [conf] * n,
        "block_num": [1] * n,
        "par_num": [1] * n,
        "line_num": list(range(1, n + 1)),
    }


def test_words_to_text_skips_layout_rows():
    data = {
        "text": ["", "Question", "1", "What"],
        "conf": ["-1", "90", "80", 70.0],
        "block_num": [1, 1, 1, 1],
        "par_num": [1, 1, 1, 1],
        "line_num": [0, 1, 1, 2],
    }
    text, confidence = words_to_text(data)
    assert text == "Question 1\nWhat"
    assert confidence == pytest.approx(0.8)


def test_words_to_text_empty():
    assert words_to_text({"text": []}) == ("", 0.0)


def test_prepare_for_ocr_upscales_small_images():
    prepared = prepare_for_ocr(Image.new("RGB", (200, 100), "white"))
    assert prepared.mode == "L"
    assert min(prepared.size) >= local_ocr.MIN_OCR_SIDE


def test_analysed_combination_is_tried_first():
    analysis = LanguageAnalysis(primary_language="heb", secondary_languages=("eng",))
    hypotheses = language_hypotheses(analysis, DEFAULT_LANGUAGE_SETS)
    assert hypotheses[0] == "heb+eng"
    assert len(hypotheses) == len(DEFAULT_LANGUAGE_SETS)

    analysis = LanguageAnalysis(primary_language="ara")
    assert language_hypotheses(analysis, DEFAULT_LANGUAGE_SETS) == list(DEFAULT_LANGUAGE_SETS)


def test_default_analysis_runs_only_configured_sets(monkeypatch, settings, png_image):
    seen = []

    def recording_image_to_data(image, lang, config, output_type, timeout):
        seen.append(lang)
        return _data(["Question"], 50)

    monkeypatch.setattr(local_ocr.pytesseract, "image_to_data", recording_image_to_data)

    asyncio.run(TesseractExtractor(settings).extract(png_image, LanguageAnalysis.default()))

    assert sorted(seen) == sorted(DEFAULT_LANGUAGE_SETS)


def test_best_hypothesis_wins(monkeypatch, settings, png_image):
    scores = {"eng+ara+heb": 85, "ara+heb+eng": 85, "eng+ara": 70}

    def fake_image_to_data(image, lang, config, output_type, timeout):
        if lang == "heb+eng":
            raise RuntimeError("traineddata missing")
        return _data(["Question", "مرحبا"], scores.get(lang, 10))

    monkeypatch.setattr(local_ocr.pytesseract, "image_to_data", fake_image_to_data)

    result = asyncio.run(TesseractExtractor(settings).extract(png_image, LanguageAnalysis.default()))

    assert result.source == "tesseract"
    assert result.confidence == pytest.approx(0.85)
    # first of the tied hypotheses in order wins
    assert result.languages_detected == ("eng", "ara", "heb")
    assert result.rtl_content
    assert result.text == "Question\nمرحبا"


def test_every_worker_is_terminated_even_on_failure(monkeypatch, settings, png_image):
    terminated = []
    original_terminate = TesseractWorker.terminate

    def tracking_terminate(self):
        terminated.append(self.languages)
        original_terminate(self)

    def failing_image_to_data(*args, **kwargs):
        raise RuntimeError("tesseract crashed")

    monkeypatch.setattr(TesseractWorker, "terminate", tracking_terminate)
    monkeypatch.setattr(local_ocr.pytesseract, "image_to_data", failing_image_to_data)

    result = asyncio.run(TesseractExtractor(settings).extract(png_image, LanguageAnalysis.default()))

    assert result.is_empty
    assert sorted(terminated) == sorted(language_hypotheses(LanguageAnalysis.default(), DEFAULT_LANGUAGE_SETS))


def test_unreadable_image_degrades_to_empty(settings):
    result = asyncio.run(
        TesseractExtractor(settings).extract(ExamImage(content=b"not an image"), LanguageAnalysis.default())
    )
    assert result.is_empty
