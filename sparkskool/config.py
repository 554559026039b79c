"""
sparkskool/config.py
Runtime settings, read once from the environment (.env supported) and passed
explicitly into every component.
"""
from __future__ import annotations

import logging
import os
import sys
from dataclasses import dataclass, field
from typing import Optional, Tuple

from dotenv import load_dotenv

DEFAULT_LANGUAGE_SETS: Tuple[str, ...] = (
    "eng+ara+heb",
    "ara+heb+eng",
    "eng+ara",
    "ara+eng",
    "heb+eng",
)


def _env_bool(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


@dataclass(frozen=True)
class Settings:
    azure_vision_endpoint: str = ""
    azure_vision_key: str = ""
    gemini_api_key: str = ""
    gemini_vision_model: str = "gemini-1.5-flash"
    groq_api_key: str = ""
    groq_model: str = "llama-3.3-70b-versatile"

    azure_poll_interval: float = 1.0
    azure_poll_timeout: float = 30.0
    azure_http_timeout: float = 30.0
    llm_timeout_seconds: float = 60.0
    tesseract_timeout: float = 60.0
    tesseract_language_sets: Tuple[str, ...] = field(default=DEFAULT_LANGUAGE_SETS)

    # ة→ه changes word-final meaning; keep off unless a corpus shows it helps.
    correct_teh_marbuta: bool = False
    max_upload_mb: float = 12.0
    log_level: str = "INFO"

    @property
    def azure_configured(self) -> bool:
        return bool(self.azure_vision_endpoint and self.azure_vision_key)

    @property
    def max_upload_bytes(self) -> int:
        return int(self.max_upload_mb * 1024 * 1024)

    @classmethod
    def from_env(cls, dotenv_path: Optional[str] = None) -> "Settings":
        load_dotenv(dotenv_path)

        raw_sets = os.getenv("TESSERACT_LANGUAGE_SETS", "").strip()
        language_sets = (
            tuple(s.strip() for s in raw_sets.split(",") if s.strip())
            if raw_sets
            else DEFAULT_LANGUAGE_SETS
        )

        return cls(
            azure_vision_endpoint=os.getenv("AZURE_VISION_ENDPOINT", "").strip().rstrip("/"),
            azure_vision_key=os.getenv("AZURE_VISION_KEY", "").strip(),
            gemini_api_key=os.getenv("GEMINI_API_KEY", "").strip(),
            gemini_vision_model=os.getenv("GEMINI_VISION_MODEL", "gemini-1.5-flash"),
            groq_api_key=os.getenv("GROQ_API_KEY", "").strip(),
            groq_model=os.getenv("GROQ_MODEL", "llama-3.3-70b-versatile"),
            azure_poll_interval=_env_float("AZURE_POLL_INTERVAL", 1.0),
            azure_poll_timeout=_env_float("AZURE_POLL_TIMEOUT", 30.0),
            azure_http_timeout=_env_float("AZURE_HTTP_TIMEOUT", 30.0),
            llm_timeout_seconds=_env_float("LLM_TIMEOUT_SECONDS", 60.0),
            tesseract_timeout=_env_float("TESSERACT_TIMEOUT", 60.0),
            tesseract_language_sets=language_sets,
            correct_teh_marbuta=_env_bool("CORRECT_TEH_MARBUTA", False),
            max_upload_mb=_env_float("MAX_UPLOAD_MB", 12.0),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        )


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )
