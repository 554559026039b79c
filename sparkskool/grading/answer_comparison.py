"""
sparkskool/grading/answer_comparison.py
Scores a student's answer against the answer key.

Closed questions (multiple choice, true/false) are compared as text.
Short answers and essays are graded by the Groq model; when the model is
unavailable each kind falls back to a fixed rule.
"""
from __future__ import annotations

import difflib
import logging
import re
from dataclasses import asdict, dataclass
from functools import partial
from typing import Any, Dict, Optional

from sparkskool.exam_reader.models import QuestionData, TeacherMarks
from sparkskool.llm import TextModel, parse_json_object, with_retry

logger = logging.getLogger(__name__)

EXACT_THRESHOLD = 0.8
PARTIAL_THRESHOLD = 0.5
PARTIAL_SCALE = 70

_PUNCT_RE = re.compile(r"[.,/#!$%^&*;:{}=\-_`~()]")

_TF_ALIASES = {
    "t": "true", "true": "true", "صح": "true", "נכון": "true", "✓": "true",
    "f": "false", "false": "false", "خطأ": "false", "לא נכון": "false", "×": "false",
}


@dataclass
class GradingResult:
    score: int
    feedback: str
    is_correct: bool
    confidence: float
    match_type: str

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def normalize_answer(text: str) -> str:
    text = _PUNCT_RE.sub("", (text or "").lower())
    return re.sub(r"\s{2,}", " ", text).strip()


def similarity(a: str, b: str) -> float:
    a, b = normalize_answer(a), normalize_answer(b)
    if not a and not b:
        return 1.0
    return difflib.SequenceMatcher(None, a, b).ratio()


def compare_closed_answer(student_answer: str, correct_answer: str, question_type: str) -> GradingResult:
    student, correct = student_answer, correct_answer
    if question_type == "true-false":
        student = _TF_ALIASES.get(normalize_answer(student), student)
        correct = _TF_ALIASES.get(normalize_answer(correct), correct)

    sim = similarity(student, correct)
    if sim > EXACT_THRESHOLD:
        return GradingResult(
            score=100,
            feedback="Correct! Your answer matches the expected response.",
            is_correct=True,
            confidence=sim,
            match_type="exact",
        )
    if sim > PARTIAL_THRESHOLD:
        return GradingResult(
            score=round(sim * PARTIAL_SCALE),
            feedback="Partially correct. Your answer contains some elements of the correct response.",
            is_correct=False,
            confidence=sim,
            match_type="partial",
        )
    return GradingResult(
        score=0,
        feedback=f"Incorrect. The correct answer is: {correct_answer}",
        is_correct=False,
        confidence=1 - sim,
        match_type="incorrect",
    )


# ---------------------------------------------------------------------------
# Model-graded answers
# ---------------------------------------------------------------------------

_JSON_FIELDS = """Respond in JSON format with the following fields:
{
  "score": <number 0-100>,
  "feedback": "<feedback>",
  "isCorrect": <boolean>,
  "confidence": <number 0.0-1.0>,
  "matchType": "<match_type>"
}"""

SHORT_ANSWER_PROMPT = """Grade the following student's answer to a short answer question:

Question answer key: "{correct}"
Student's answer: "{student}"

Score the answer from 0-100 based on accuracy and completeness.
Provide constructive feedback.
Indicate if the answer is correct (80+ points), partially correct (40-79 points), or incorrect (0-39 points).
Rate your confidence in this assessment from 0.0 to 1.0.
Specify the match type as one of: "exact", "semantic", "partial", or "incorrect".

""" + _JSON_FIELDS

ESSAY_PROMPT = """Grade the following student's essay answer:

Expected key points: "{correct}"
Student's answer: "{student}"

Evaluate the essay on the following criteria:
1. Content (50%): Inclusion of key points and accuracy
2. Organization (20%): Logical flow and structure
3. Evidence (20%): Support for arguments
4. Language (10%): Grammar and clarity

Score the answer from 0-100.
Provide detailed, constructive feedback.
Rate your confidence in this assessment from 0.0 to 1.0.
Use "essay" as the match type.

""" + _JSON_FIELDS

GENERIC_PROMPT = """Grade the following student's answer:

Question type: {question_type}
Expected answer: "{correct}"
Student's answer: "{student}"

Score the answer from 0-100.
Provide constructive feedback.
Indicate if the answer is correct (score >= 80).
Rate your confidence in this assessment from 0.0 to 1.0.
Specify the match type as one of: "exact", "semantic", "partial", or "incorrect".

""" + _JSON_FIELDS

_SYSTEM_PROMPTS = {
    "short-answer": "You are an AI grading assistant with expertise in evaluating student answers.",
    "essay": "You are an AI grading assistant with expertise in evaluating essay answers.",
}
_GENERIC_SYSTEM = "You are an AI grading assistant that objectively evaluates student answers."


def _result_from_json(data: Dict[str, Any], match_type: Optional[str] = None) -> GradingResult:
    try:
        score = int(round(float(data.get("score") or 0)))
    except (TypeError, ValueError):
        score = 0
    score = min(max(score, 0), 100)

    try:
        confidence = float(data.get("confidence") or 0.5)
    except (TypeError, ValueError):
        confidence = 0.5

    is_correct = data.get("isCorrect")
    if match_type == "essay" or not isinstance(is_correct, bool):
        is_correct = score >= 80

    return GradingResult(
        score=score,
        feedback=str(data.get("feedback") or "Unable to evaluate answer."),
        is_correct=is_correct,
        confidence=confidence,
        match_type=match_type or str(data.get("matchType") or "incorrect"),
    )


async def _grade_with_model(text_model: TextModel, prompt: str, system: str) -> Dict[str, Any]:
    raw = await with_retry(
        lambda: text_model.complete(prompt, system=system, json_mode=True, temperature=0.3)
    )
    data = parse_json_object(raw)
    if data is None:
        raise ValueError(f"Grader returned no JSON object: {raw[:200]!r}")
    return data


def _short_answer_fallback(student_answer: str, correct_answer: str) -> GradingResult:
    score = round(similarity(student_answer, correct_answer) * 100)
    return GradingResult(
        score=score,
        feedback="Your answer was evaluated using text similarity.",
        is_correct=score >= 80,
        confidence=0.5,
        match_type="semantic" if score >= 80 else "partial" if score >= 40 else "incorrect",
    )


def _essay_fallback() -> GradingResult:
    return GradingResult(
        score=50,
        feedback="Your essay was received but could not be fully evaluated.",
        is_correct=False,
        confidence=0.3,
        match_type="essay",
    )


def _generic_fallback() -> GradingResult:
    return GradingResult(
        score=0,
        feedback="Your answer could not be evaluated at this time.",
        is_correct=False,
        confidence=0.1,
        match_type="incorrect",
    )


async def compare_answers(
    student_answer: Optional[str],
    correct_answer: str,
    question_type: str,
    text_model: Optional[TextModel] = None,
) -> GradingResult:
    if not (student_answer or "").strip():
        return GradingResult(
            score=0,
            feedback="No answer was provided.",
            is_correct=False,
            confidence=1.0,
            match_type="no-answer",
        )

    if question_type in ("multiple-choice", "true-false"):
        return compare_closed_answer(student_answer, correct_answer, question_type)

    if question_type == "short-answer":
        prompt = SHORT_ANSWER_PROMPT.format(correct=correct_answer, student=student_answer)
        fallback = partial(_short_answer_fallback, student_answer, correct_answer)
        match_type = None
    elif question_type == "essay":
        prompt = ESSAY_PROMPT.format(correct=correct_answer, student=student_answer)
        fallback = _essay_fallback
        match_type = "essay"
    else:
        prompt = GENERIC_PROMPT.format(
            question_type=question_type, correct=correct_answer, student=student_answer
        )
        fallback = _generic_fallback
        match_type = None

    if text_model is None:
        logger.info(f"No grading model configured, using fallback for {question_type}")
        return fallback()

    system = _SYSTEM_PROMPTS.get(question_type, _GENERIC_SYSTEM)
    try:
        data = await _grade_with_model(text_model, prompt, system)
    except Exception as exc:
        logger.error(f"Error evaluating {question_type} answer: {exc}")
        return fallback()
    return _result_from_json(data, match_type)


async def grade_question(
    question: QuestionData,
    student_answer: Optional[str],
    text_model: Optional[TextModel] = None,
    question_type: Optional[str] = None,
) -> GradingResult:
    """Grade one parsed question in place: sets student_answer and teacher_marks."""
    result = await compare_answers(
        student_answer,
        question.correct_answer or "",
        question_type or question.type,
        text_model,
    )
    if question.type == "true-false" and student_answer:
        student_answer = _TF_ALIASES.get(normalize_answer(student_answer), student_answer)
    question.student_answer = student_answer
    question.teacher_marks = TeacherMarks(
        correct=result.is_correct,
        points=(question.points or 0) * result.score / 100,
        feedback=result.feedback,
    )
    return result
