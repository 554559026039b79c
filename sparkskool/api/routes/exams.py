"""
sparkskool/api/routes/exams.py
Exam image extraction, text parsing and question formatting endpoints.
"""
from __future__ import annotations

import logging
import mimetypes
from dataclasses import asdict
from typing import Tuple

from fastapi import APIRouter, Depends, HTTPException, Request

from sparkskool.api.deps import get_exam_reader, get_settings
from sparkskool.api.schemas import (
    ExamStructureModel,
    ExtractExamResponse,
    FormatQuestionsRequest,
    FormatQuestionsResponse,
    ParseExamRequest,
    QuestionModel,
)
from sparkskool.config import Settings
from sparkskool.exam_reader.formatting import format_questions
from sparkskool.exam_reader.models import (
    ExamImage,
    ExtractionError,
    QuestionData,
    TeacherMarks,
    TrueFalseFormat,
)
from sparkskool.exam_reader.pipeline import ExamReader
from sparkskool.exam_reader.structure import parse_exam_structure

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/exams", tags=["Exams"])

ALLOWED_IMAGE_TYPES = {
    "image/jpeg",
    "image/png",
    "image/webp",
    "image/gif",
    "image/bmp",
    "image/tiff",
}


def validate_image_upload(file_bytes: bytes, filename: str, content_type: str, settings: Settings) -> Tuple[bytes, str]:
    if not file_bytes:
        raise ValueError("Uploaded file is empty.")
    if len(file_bytes) > settings.max_upload_bytes:
        raise ValueError(f"File too large. Max allowed size is {settings.max_upload_mb:g} MB.")

    mime_type = (content_type or "").split(";")[0].strip().lower()
    if not mime_type or mime_type == "application/octet-stream":
        mime_type = mimetypes.guess_type(filename)[0] or ""
    if mime_type not in ALLOWED_IMAGE_TYPES:
        raise ValueError("Unsupported file type. Upload an exam image (JPEG, PNG, WEBP, GIF, BMP or TIFF).")
    return file_bytes, mime_type


def to_question_data(model: QuestionModel) -> QuestionData:
    return QuestionData(
        type=model.type,
        text=model.text,
        language=model.language,
        options=model.options,
        correct_answer=model.correct_answer,
        points=model.points,
        format=TrueFalseFormat(**model.format.model_dump()) if model.format else None,
        student_answer=model.student_answer,
        teacher_marks=TeacherMarks(**model.teacher_marks.model_dump()) if model.teacher_marks else None,
    )


@router.post("/extract", response_model=ExtractExamResponse)
async def extract_exam_endpoint(
    request: Request,
    structure: bool = False,
    reader: ExamReader = Depends(get_exam_reader),
    settings: Settings = Depends(get_settings),
):
    try:
        form = await request.form()
    except Exception:
        raise HTTPException(
            status_code=400,
            detail="Could not parse uploaded form data. Send multipart/form-data with field 'file'.",
        )

    file = form.get("file")
    if file is None or isinstance(file, str):
        raise HTTPException(status_code=400, detail="Missing file field. Use form field name 'file'.")

    try:
        file_bytes = await file.read()
    except Exception as exc:
        raise HTTPException(status_code=400, detail=f"Could not read uploaded file: {exc}")

    try:
        content, mime_type = validate_image_upload(
            file_bytes,
            filename=file.filename or "upload",
            content_type=file.content_type or "",
            settings=settings,
        )
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))

    image = ExamImage(content=content, mime_type=mime_type)
    try:
        if structure:
            analysis = await reader.analyze_exam(image)
            return ExtractExamResponse(
                text=analysis.text,
                structure=ExamStructureModel(**asdict(analysis.structure)),
            )
        text = await reader.extract_text_from_image(image)
    except ExtractionError as exc:
        raise HTTPException(status_code=502, detail=str(exc))
    except Exception as exc:
        logger.exception("Exam extraction crashed")
        raise HTTPException(status_code=500, detail=f"Extraction failed: {exc}")

    return ExtractExamResponse(text=text)


@router.post("/parse", response_model=ExamStructureModel)
def parse_exam_endpoint(req: ParseExamRequest):
    return ExamStructureModel(**asdict(parse_exam_structure(req.text)))


@router.post("/questions/format", response_model=FormatQuestionsResponse)
def format_questions_endpoint(req: FormatQuestionsRequest):
    questions = [to_question_data(q) for q in req.questions]
    return FormatQuestionsResponse(text=format_questions(questions))
