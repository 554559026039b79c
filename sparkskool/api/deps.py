"""
sparkskool/api/deps.py
Request-scoped access to the objects create_app() builds once.
"""
from typing import Optional

from fastapi import Request

from sparkskool.config import Settings
from sparkskool.exam_reader.pipeline import ExamReader
from sparkskool.llm import TextModel


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_exam_reader(request: Request) -> ExamReader:
    return request.app.state.exam_reader


def get_text_model(request: Request) -> Optional[TextModel]:
    return request.app.state.text_model
