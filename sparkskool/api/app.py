"""
sparkskool/api/app.py
FastAPI application factory. Builds settings, models and the exam reader
once and mounts all routers. This is the only place that wires layers together.
"""
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from sparkskool.api.routes import exams, grading
from sparkskool.config import Settings, configure_logging
from sparkskool.exam_reader.pipeline import ExamReader
from sparkskool.llm import TextModel, get_text_model

VERSION = "0.3.0"


def create_app(
    settings: Optional[Settings] = None,
    exam_reader: Optional[ExamReader] = None,
    text_model: Optional[TextModel] = None,
) -> FastAPI:
    settings = settings or Settings.from_env()
    configure_logging(settings.log_level)

    app = FastAPI(
        title="SparkSkool Exam Reader API",
        version=VERSION,
        description="Multi-engine OCR for Arabic/Hebrew/English exam images, exam structure parsing and answer grading.",
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.settings = settings
    app.state.exam_reader = exam_reader or ExamReader.from_settings(settings)
    app.state.text_model = text_model if text_model is not None else get_text_model(settings)

    # Routers
    app.include_router(exams.router)
    app.include_router(grading.router)

    @app.get("/health")
    def health():
        return {
            "status": "ok",
            "version": VERSION,
            "engines": {
                "azure": settings.azure_configured,
                "gemini": bool(settings.gemini_api_key),
                "groq": bool(settings.groq_api_key),
            },
        }

    return app
