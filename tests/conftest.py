import pytest

from sparkskool.config import Settings
from sparkskool.exam_reader.models import ExamImage


@pytest.fixture
def settings():
    return Settings(
        azure_vision_endpoint="https://vision.example.com",
        azure_vision_key="test-key",
        azure_poll_interval=0.01,
        azure_poll_timeout=0.2,
        llm_timeout_seconds=5.0,
    )


@pytest.fixture
def image():
    return ExamImage(content=b"\x89PNG fake image bytes", mime_type="image/png")
