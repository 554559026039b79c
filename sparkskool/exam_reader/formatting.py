"""
sparkskool/exam_reader/formatting.py
Plain-text rendering of parsed questions, with student selections and
teacher marks when present.
"""
from __future__ import annotations

from typing import List, Sequence

from sparkskool.exam_reader.models import QuestionData
from sparkskool.exam_reader.scripts import PDF, RLE

CHECK = "✓"
MARK_CORRECT = "✅"
MARK_WRONG = "❌"
EMPTY_BOX = "[ ]"


def _tf_value_line(value: str, side: str, question: QuestionData) -> str:
    line = value
    if question.student_answer == side:
        line += f" {CHECK}"
        if question.teacher_marks is not None:
            line += f" {MARK_CORRECT}" if question.teacher_marks.correct else f" {MARK_WRONG}"
    return line


def format_question(question: QuestionData, number: int) -> str:
    start, end = (RLE, PDF) if question.is_rtl else ("", "")
    lines: List[str] = [f"Question {number}:", question.text]

    if question.type == "true-false" and question.format is not None:
        fmt = question.format
        if fmt.is_symbol:
            if question.student_answer == "true":
                lines.append(fmt.true_value)
            elif question.student_answer == "false":
                lines.append(fmt.false_value)
            else:
                lines.append(EMPTY_BOX)
        else:
            lines.append(_tf_value_line(fmt.true_value, "true", question))
            lines.append(_tf_value_line(fmt.false_value, "false", question))
    elif question.type == "multiple-choice" and question.options:
        lines.extend(f"{EMPTY_BOX} {option}" for option in question.options)

    if question.points:
        lines.append(f"({question.points} points)")
    if question.teacher_marks is not None and question.teacher_marks.feedback:
        lines.append(f"Feedback: {question.teacher_marks.feedback}")

    return "\n".join(f"{start}{line}{end}" for line in lines) + "\n"


def format_questions(questions: Sequence[QuestionData]) -> str:
    return "\n".join(format_question(q, i) for i, q in enumerate(questions, start=1))
