import re

from sparkskool.exam_reader.models import OcrLine
from sparkskool.exam_reader.rules import (
    Rule,
    TRUE_FALSE_RULES,
    detect_true_false_format,
    determine_segment_type,
)


def test_arabic_true_false_wins_over_other_patterns():
    fmt = detect_true_false_format("الشمس نجم ( ) صح ( ) خطأ", "ara")
    assert fmt.type == "arabic"
    assert fmt.true_value == "صح"
    assert fmt.false_value == "خطأ"


def test_hebrew_true_false():
    fmt = detect_true_false_format("השמש היא כוכב נכון / לא נכון", "heb")
    assert fmt.type == "hebrew"
    assert fmt.false_value == "לא נכון"


def test_checkbox_format_uses_language_labels():
    fmt = detect_true_false_format("The sun is a star [ ] True [ ] False", "eng")
    assert fmt.type == "checkbox"
    assert fmt.true_value == "[ ] True"


def test_circle_and_parentheses_and_symbol():
    assert detect_true_false_format("Water boils at 100C ○ T ○ F", "eng").type == "circle"
    assert detect_true_false_format("Paris is in France (T) (F)", "eng").type == "parentheses"
    fmt = detect_true_false_format("2 + 2 = 4  ✓ ×", "eng")
    assert fmt.type == "symbol"
    assert fmt.is_symbol


def test_multiplication_sign_alone_is_not_true_false():
    assert detect_true_false_format("What is 3 × 4?", "eng") is None


def test_checkbox_needs_a_true_false_word():
    assert detect_true_false_format("[ ] the answer", "eng") is None


def test_plain_question_has_no_format():
    assert detect_true_false_format("Explain photosynthesis.", "eng") is None


def test_custom_rule_table():
    rules = (Rule("symbol", (re.compile(r"yes/no"),)),) + TRUE_FALSE_RULES
    assert detect_true_false_format("Is it raining? yes/no", "eng", rules=rules).type == "symbol"


def test_segment_types():
    assert determine_segment_type([OcrLine(text="Section A: Grammar")]) == "header"
    assert determine_segment_type([OcrLine(text="Read the passage carefully")]) == "instructions"
    assert determine_segment_type([OcrLine(text="my answer", style="handwriting")]) == "handwriting"
    assert determine_segment_type([OcrLine(text="1. What is a noun?")]) == "question"
    assert determine_segment_type([OcrLine(text="[ ] option")]) == "answer"
    assert determine_segment_type([OcrLine(text="random words here")]) is None
    assert determine_segment_type([]) is None
