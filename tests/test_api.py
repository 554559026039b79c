import json

import pytest
from fastapi.testclient import TestClient

from sparkskool.api.app import create_app
from sparkskool.config import Settings
from sparkskool.exam_reader.models import ExtractedResult
from sparkskool.exam_reader.pipeline import ExamReader

from fakes import FakeTextModel, StaticExtractor

SETTINGS = Settings(max_upload_mb=1.0)


def _client(cloud_text="Question 1: What is 2+2? (5 points)", text_model=None):
    cloud = (
        ExtractedResult(text=cloud_text, confidence=0.9, source="azure-combined", languages_detected=("eng",))
        if cloud_text
        else ExtractedResult.empty("azure-combined")
    )
    reader = ExamReader(
        SETTINGS,
        cloud_ocr=StaticExtractor(cloud),
        local_ocr=StaticExtractor(ExtractedResult.empty("tesseract")),
    )
    return TestClient(create_app(SETTINGS, exam_reader=reader, text_model=text_model))


@pytest.fixture
def client():
    return _client()


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_extract_text(client):
    response = client.post("/exams/extract", files={"file": ("exam.png", b"png-bytes", "image/png")})
    assert response.status_code == 200
    body = response.json()
    assert body["text"] == "Question 1: What is 2+2? (5 points)"
    assert body["structure"] is None


def test_extract_with_structure(client):
    response = client.post(
        "/exams/extract?structure=true",
        files={"file": ("exam.jpg", b"jpeg-bytes", "image/jpeg")},
    )
    assert response.status_code == 200
    question = response.json()["structure"]["sections"][0]["questions"][0]
    assert question["type"] == "open-ended"
    assert question["points"] == 5


def test_extract_rejects_unsupported_type(client):
    response = client.post("/exams/extract", files={"file": ("exam.pdf", b"%PDF-1.4", "application/pdf")})
    assert response.status_code == 400
    assert "Unsupported file type" in response.json()["detail"]


def test_extract_rejects_oversized_upload(client):
    big = b"0" * (SETTINGS.max_upload_bytes + 1)
    response = client.post("/exams/extract", files={"file": ("exam.png", big, "image/png")})
    assert response.status_code == 400
    assert "too large" in response.json()["detail"]


def test_extract_requires_file(client):
    response = client.post("/exams/extract", data={"other": "x"})
    assert response.status_code == 400


def test_extract_guesses_type_from_filename(client):
    response = client.post(
        "/exams/extract",
        files={"file": ("scan.png", b"png-bytes", "application/octet-stream")},
    )
    assert response.status_code == 200


def test_extract_all_engines_failed_is_502():
    response = _client(cloud_text="").post(
        "/exams/extract", files={"file": ("exam.png", b"png-bytes", "image/png")}
    )
    assert response.status_code == 502
    assert "No service could extract text successfully" in response.json()["detail"]


def test_parse_exam(client):
    text = "Science Studies\nTime: 1:30\nTotal Marks (40)\nSECTION A (40 points)\n1. Water boils at 100C. (T) (F)"
    response = client.post("/exams/parse", json={"text": text})
    assert response.status_code == 200
    body = response.json()
    assert body["metadata"]["subject"] == "Science Studies"
    assert body["metadata"]["total_marks"] == 40
    assert body["sections"][0]["questions"][0]["format"]["type"] == "parentheses"


def test_format_questions(client):
    payload = {"questions": [{"type": "multiple-choice", "text": "Pick", "options": ["a", "b"]}]}
    response = client.post("/exams/questions/format", json=payload)
    assert response.status_code == 200
    assert response.json()["text"] == "Question 1:\nPick\n[ ] a\n[ ] b\n"


def test_compare_answers_closed_question(client):
    response = client.post(
        "/grading/compare",
        json={"student_answer": "Paris", "correct_answer": "paris", "question_type": "multiple-choice"},
    )
    assert response.status_code == 200
    assert response.json()["score"] == 100


def test_compare_answers_uses_app_text_model():
    model = FakeTextModel(reply=json.dumps({"score": 70, "feedback": "Close", "isCorrect": False, "confidence": 0.8}))
    response = _client(text_model=model).post(
        "/grading/compare",
        json={"student_answer": "plants eat light", "correct_answer": "photosynthesis", "question_type": "short-answer"},
    )
    assert response.status_code == 200
    assert response.json()["score"] == 70
    assert response.json()["match_type"] == "incorrect"
