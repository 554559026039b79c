"""
sparkskool/exam_reader/models.py
Value types passed between the stages of the exam reader.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Literal, Optional, Tuple

Direction = Literal["ltr", "rtl"]
AnalysisType = Literal["full", "segment", "handwriting", "structure"]
SegmentType = Literal["question", "answer", "header", "instructions", "handwriting"]
QuestionType = Literal["true-false", "multiple-choice", "open-ended", "matching", "fill-blank"]
TrueFalseType = Literal["checkbox", "circle", "parentheses", "symbol", "arabic", "hebrew"]

RTL_LANGUAGES = {"ara", "heb"}
KNOWN_LANGUAGES = ("eng", "ara", "heb")


class ExtractionError(RuntimeError):
    """Raised when no extraction engine produced any text."""


@dataclass(frozen=True)
class ExamImage:
    content: bytes
    mime_type: str = "image/jpeg"


@dataclass(frozen=True)
class ExtractedResult:
    text: str
    confidence: float
    source: str
    languages_detected: Tuple[str, ...] = ()
    rtl_content: bool = False

    @classmethod
    def empty(cls, source: str) -> "ExtractedResult":
        return cls(text="", confidence=0.0, source=source)

    @property
    def is_empty(self) -> bool:
        return not self.text.strip()


@dataclass(frozen=True)
class LanguageAnalysis:
    primary_language: str = "eng"
    secondary_languages: Tuple[str, ...] = ()
    direction: Direction = "ltr"
    confidence: float = 0.0
    has_handwriting: bool = False
    has_mathematical: bool = False
    has_symbols: bool = False

    @classmethod
    def default(cls) -> "LanguageAnalysis":
        return cls()

    @property
    def languages(self) -> List[str]:
        return [self.primary_language, *self.secondary_languages]

    @property
    def is_rtl(self) -> bool:
        return self.direction == "rtl"


@dataclass(frozen=True)
class Bounds:
    x: float = 0.0
    y: float = 0.0
    width: float = 0.0
    height: float = 0.0


@dataclass(frozen=True)
class OcrLine:
    """One line as returned by a cloud read, with its word-level confidence averaged."""
    text: str
    bounding_box: Tuple[float, ...] = ()
    confidence: Optional[float] = None
    style: Optional[str] = None


@dataclass(frozen=True)
class ImageSegment:
    type: SegmentType
    content: str
    bounds: Bounds = field(default_factory=Bounds)
    confidence: float = 0.8


@dataclass(frozen=True)
class AnalysisPass:
    text: str
    confidence: float
    source: str
    analysis_type: AnalysisType
    segments: Tuple[ImageSegment, ...] = ()


@dataclass(frozen=True)
class TrueFalseFormat:
    type: TrueFalseType
    true_value: str
    false_value: str
    is_symbol: bool = False
    selected: Optional[Literal["true", "false"]] = None
    correct: Optional[Literal["true", "false"]] = None


@dataclass
class TeacherMarks:
    correct: bool
    points: float
    feedback: Optional[str] = None


@dataclass
class QuestionData:
    type: QuestionType
    text: str
    language: str = "eng"
    options: Optional[List[str]] = None
    correct_answer: Optional[str] = None
    points: Optional[int] = None
    format: Optional[TrueFalseFormat] = None
    student_answer: Optional[str] = None
    teacher_marks: Optional[TeacherMarks] = None

    @property
    def is_rtl(self) -> bool:
        return self.language in RTL_LANGUAGES


@dataclass
class ExamMetadata:
    subject: str = ""
    level: str = ""
    duration: str = ""
    total_marks: int = 0
    date: str = ""


@dataclass
class ExamSection:
    name: str
    points: int = 0
    instructions: Optional[str] = None
    questions: List[QuestionData] = field(default_factory=list)


@dataclass
class ExamStructure:
    metadata: ExamMetadata = field(default_factory=ExamMetadata)
    sections: List[ExamSection] = field(default_factory=list)

    @property
    def questions(self) -> List[QuestionData]:
        return [q for section in self.sections for q in section.questions]


@dataclass
class ExamAnalysis:
    text: str
    structure: ExamStructure
