"""
sparkskool/exam_reader/structure.py
Turns the cleaned exam text into metadata, sections and typed questions.

Everything here is best effort: a field or question that cannot be parsed is
left at its default or skipped, never fatal for the whole exam.
"""
from __future__ import annotations

import logging
import re
from typing import List, Optional

from sparkskool.exam_reader.models import (
    ExamMetadata,
    ExamSection,
    ExamStructure,
    QuestionData,
    QuestionType,
)
from sparkskool.exam_reader.rules import detect_true_false_format
from sparkskool.exam_reader.scripts import detect_language, strip_bidi_controls

logger = logging.getLogger(__name__)

# Section headers sit at the start of a line.
SECTION_SPLIT_RE = re.compile(
    r"(?=^[ \t]*(?:SECTION|PART|Reading Comprehension)\b)",
    re.IGNORECASE | re.MULTILINE,
)

_QUESTION_MARKER = r"[ \t]*(?:\d+\.(?!\d)|\((?-i:[a-z])\)|(?:question|q)\s*\d+\s*[:.)\-]?)"
QUESTION_SPLIT_RE = re.compile(rf"(?=^{_QUESTION_MARKER})", re.IGNORECASE | re.MULTILINE)
QUESTION_MARKER_RE = re.compile(rf"^{_QUESTION_MARKER}\s*", re.IGNORECASE)

INSTRUCTIONS_RE = re.compile(
    rf"Instructions?:(.*?)(?=^{_QUESTION_MARKER}|\Z)",
    re.IGNORECASE | re.MULTILINE | re.DOTALL,
)
SECTION_POINTS_RE = re.compile(r"\((\d+)[^)]*\)")
POINTS_RE = re.compile(r"\((\d+)\s*(?:points?|marks?|نقاط|درجات)\)", re.IGNORECASE)
OPTION_MARKER_RE = re.compile(r"(?:^|(?<=\s))(?:\([A-D]\)|[A-D]\)|\d+\))\s+", re.IGNORECASE | re.MULTILINE)

_METADATA_PATTERNS = {
    "subject": (
        re.compile(r"(\w+\s+Language|\w+\s+Studies)", re.IGNORECASE),
        re.compile(r"(?:Subject|Course)\s*:\s*([^\n]+)", re.IGNORECASE),
    ),
    "level": (
        re.compile(r"(Scientific|Humanities|Grade \d+)", re.IGNORECASE),
        re.compile(r"(?:Level|Class)\s*:\s*([^\n]+)", re.IGNORECASE),
    ),
    "duration": (re.compile(r"(?:Time|Duration)\s*:\s*(\d+:\d+)", re.IGNORECASE),),
    "date": (re.compile(r"Date\s*:\s*(\d{1,2}/\d{1,2}/\d{4})", re.IGNORECASE),),
}
TOTAL_MARKS_RE = re.compile(r"Total\s+Marks\s*(?:\(|:)\s*(\d+)", re.IGNORECASE)


def _clean(text: str) -> str:
    return re.sub(r"\s+", " ", text).strip()


def extract_metadata(header_text: str) -> ExamMetadata:
    """Fields that no pattern finds stay empty (or 0 for total marks)."""
    metadata = ExamMetadata()
    for name, patterns in _METADATA_PATTERNS.items():
        for pattern in patterns:
            m = pattern.search(header_text)
            if m:
                setattr(metadata, name, m.group(1).strip())
                break

    m = TOTAL_MARKS_RE.search(header_text)
    if m:
        metadata.total_marks = int(m.group(1))
    return metadata


def _split_options(block: str) -> Optional[tuple]:
    """Return (stem, options) when the block lists at least two markers."""
    parts = OPTION_MARKER_RE.split(block)
    if len(parts) < 3:
        return None
    stem = _clean(parts[0])
    options = [_clean(POINTS_RE.sub("", p)) for p in parts[1:]]
    options = [o for o in options if o]
    if len(options) < 2:
        return None
    return stem, options


def parse_question_block(block: str) -> Optional[QuestionData]:
    lines = [line.strip() for line in block.strip().split("\n") if line.strip()]
    if not lines:
        return None

    first_line = lines[0]
    language = detect_language(first_line)
    body = QUESTION_MARKER_RE.sub("", "\n".join(lines), count=1)
    text = _clean(POINTS_RE.sub("", QUESTION_MARKER_RE.sub("", first_line, count=1))) or first_line

    points_match = POINTS_RE.search(block)
    points = int(points_match.group(1)) if points_match else None

    tf_format = detect_true_false_format(block, language)
    if tf_format is not None:
        return QuestionData(type="true-false", text=text, language=language, format=tf_format, points=points)

    split = _split_options(body)
    if split is not None:
        stem, options = split
        stem = _clean(POINTS_RE.sub("", stem))
        return QuestionData(
            type="multiple-choice",
            text=stem or text,
            language=language,
            options=options,
            points=points,
        )

    return QuestionData(type="open-ended", text=text, language=language, points=points)


def parse_section(section_text: str, named: bool = True) -> ExamSection:
    """
    Parse one section chunk.

    A named section's first line is its header: "Name (N points)".
    The implicit section (no header anywhere in the exam) has an empty name.
    """
    body = section_text.strip()
    name = ""
    points = 0

    if named and body:
        header, _, body = body.partition("\n")
        name = header.split("(", 1)[0].strip()
        m = SECTION_POINTS_RE.search(header)
        if m:
            points = int(m.group(1))

    instructions = None
    m = INSTRUCTIONS_RE.search(body)
    if m:
        instructions = m.group(1).strip() or None
        body = body[: m.start()] + body[m.end():]

    section = ExamSection(name=name, points=points, instructions=instructions)

    for block in QUESTION_SPLIT_RE.split(body):
        if not block.strip() or not QUESTION_MARKER_RE.match(block):
            continue
        try:
            question = parse_question_block(block)
        except Exception as exc:
            logger.warning(f"Skipping unparseable question block: {exc}")
            continue
        if question is not None:
            section.questions.append(question)

    return section


def parse_exam_structure(text: str) -> ExamStructure:
    text = strip_bidi_controls(text or "")
    chunks = SECTION_SPLIT_RE.split(text)
    structure = ExamStructure(metadata=extract_metadata(chunks[0]))
    headed = [c for c in chunks[1:] if c.strip()]

    if not headed:
        section = parse_section(text, named=False)
        if section.questions or section.instructions:
            structure.sections.append(section)
        return structure

    for chunk in headed:
        try:
            structure.sections.append(parse_section(chunk))
        except Exception as exc:
            logger.warning(f"Skipping unparseable section: {exc}")

    return structure


# ---------------------------------------------------------------------------
# Labeled question lists ("Type: ... Text: ... Options: ...")
# ---------------------------------------------------------------------------

_LABELED_SPLIT_RE = re.compile(r"^[ \t]*(?:\*\*)?Question\b", re.IGNORECASE | re.MULTILINE)
_TYPE_RE = re.compile(r"Type:\s*([^\n]+)", re.IGNORECASE)
_TEXT_RE = re.compile(r"Text:\s*([^\n]+)", re.IGNORECASE)
_OPTIONS_RE = re.compile(r"Options:\s*(.*?)(?=Correct Answer:|Points:|\Z)", re.IGNORECASE | re.DOTALL)
_ANSWER_RE = re.compile(r"Correct Answer:\s*([^\n]+)", re.IGNORECASE)
_LABELED_POINTS_RE = re.compile(r"Points:\s*(\d+)", re.IGNORECASE)


def parse_question_type(type_str: str) -> QuestionType:
    t = (type_str or "").lower()
    if "true" in t or "false" in t or "صح" in t or "خطأ" in t or "נכון" in t:
        return "true-false"
    if "multiple" in t or "choice" in t or "اختيار" in t:
        return "multiple-choice"
    if "match" in t:
        return "matching"
    if "fill" in t or "blank" in t:
        return "fill-blank"
    return "open-ended"


def parse_questions(text: str) -> List[QuestionData]:
    """Parse a model-written list of labeled questions; blocks without a Text: line are dropped."""
    questions: List[QuestionData] = []

    for block in _LABELED_SPLIT_RE.split(strip_bidi_controls(text or "")):
        if not block.strip():
            continue

        text_match = _TEXT_RE.search(block)
        if not text_match:
            continue
        question_text = text_match.group(1).strip()
        language = detect_language(question_text)

        type_match = _TYPE_RE.search(block)
        q_type = parse_question_type(type_match.group(1)) if type_match else "open-ended"

        question = QuestionData(type=q_type, text=question_text, language=language)

        options_match = _OPTIONS_RE.search(block)
        if options_match:
            options = [o.strip() for o in options_match.group(1).split("\n") if o.strip()]
            question.options = options or None

        answer_match = _ANSWER_RE.search(block)
        if answer_match:
            question.correct_answer = answer_match.group(1).strip()

        points_match = _LABELED_POINTS_RE.search(block)
        if points_match:
            question.points = int(points_match.group(1))

        if q_type == "true-false":
            question.format = detect_true_false_format(block, language)

        questions.append(question)

    return questions
