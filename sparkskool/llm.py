"""
sparkskool/llm.py
LLM clients used by the exam reader and grading.

Text completions go to Groq, vision prompts (image + text) go to Gemini.
Both are wrapped in small async adapters so the pipeline can be handed fakes
in tests.
"""
from __future__ import annotations

import asyncio
import json
import logging
import re
from typing import Any, Awaitable, Callable, Dict, List, Optional, Protocol

from sparkskool.config import Settings

logger = logging.getLogger(__name__)


class TextModel(Protocol):
    async def complete(
        self,
        prompt: str,
        system: Optional[str] = None,
        json_mode: bool = False,
        temperature: float = 0.3,
    ) -> str: ...


class VisionModel(Protocol):
    async def generate(self, prompt: str, image: bytes, mime_type: str) -> str: ...


class GroqTextModel:
    def __init__(self, api_key: str, model: str):
        from groq import AsyncGroq

        self.client = AsyncGroq(api_key=api_key)
        self.model = model

    async def complete(
        self,
        prompt: str,
        system: Optional[str] = None,
        json_mode: bool = False,
        temperature: float = 0.3,
    ) -> str:
        messages: List[Dict[str, str]] = []
        if system:
            messages.append({"role": "system", "content": system})
        messages.append({"role": "user", "content": prompt})

        kwargs: Dict[str, Any] = {
            "model": self.model,
            "messages": messages,
            "temperature": temperature,
        }
        if json_mode:
            kwargs["response_format"] = {"type": "json_object"}

        response = await self.client.chat.completions.create(**kwargs)
        if not response.choices:
            return ""
        return (response.choices[0].message.content or "").strip()


class GeminiVisionModel:
    def __init__(self, api_key: str, model: str):
        import google.generativeai as genai

        genai.configure(api_key=api_key)
        self.model = genai.GenerativeModel(model)
        self.model_name = model

    async def generate(self, prompt: str, image: bytes, mime_type: str) -> str:
        response = await self.model.generate_content_async(
            [prompt, {"mime_type": mime_type, "data": image}]
        )
        return response.text or ""


def get_text_model(settings: Settings) -> Optional[TextModel]:
    if not settings.groq_api_key:
        logger.warning("GROQ_API_KEY not set; text enhancement and AI grading disabled")
        return None
    return GroqTextModel(settings.groq_api_key, settings.groq_model)


def get_vision_model(settings: Settings) -> Optional[VisionModel]:
    if not settings.gemini_api_key:
        logger.warning("GEMINI_API_KEY not set; vision extraction disabled")
        return None
    return GeminiVisionModel(settings.gemini_api_key, settings.gemini_vision_model)


def parse_json_object(raw: str) -> Optional[Dict[str, Any]]:
    """Parse a JSON object from a model reply, tolerating code fences and chatter."""
    raw = (raw or "").strip()
    if not raw:
        return None
    try:
        obj = json.loads(raw)
        return obj if isinstance(obj, dict) else None
    except json.JSONDecodeError:
        pass

    start = raw.find("{")
    end = raw.rfind("}")
    if start >= 0 and end > start:
        try:
            obj = json.loads(raw[start : end + 1])
            return obj if isinstance(obj, dict) else None
        except json.JSONDecodeError:
            return None
    return None


_RETRY_AFTER_RE = re.compile(r"try again in (\d+(?:\.\d+)?)s", re.IGNORECASE)


def should_retry(exc: Exception) -> bool:
    name = exc.__class__.__name__.lower()
    msg = str(exc).lower()
    transient_tokens = [
        "timeout",
        "temporarily",
        "rate limit",
        "rate_limit",
        "ratelimit",
        "connection",
        "503",
        "502",
        "429",
    ]
    return any(t in name or t in msg for t in transient_tokens)


def retry_delay(exc: Exception, fallback: float) -> float:
    """Use the server's 'try again in Ns' hint when the error carries one."""
    m = _RETRY_AFTER_RE.search(str(exc))
    if m:
        return float(m.group(1))
    return fallback


async def with_retry(
    fn: Callable[[], Awaitable[Any]],
    retries: int = 3,
    base_sleep: float = 3.0,
) -> Any:
    for attempt in range(1, retries + 1):
        try:
            return await fn()
        except Exception as exc:
            if attempt >= retries or not should_retry(exc):
                raise
            wait = retry_delay(exc, base_sleep * (1.5 ** (attempt - 1)))
            logger.info(f"Rate limited, waiting {wait:.1f}s before retry ({attempt}/{retries})")
            await asyncio.sleep(wait)
    raise RuntimeError("with_retry called with retries < 1")
