"""
sparkskool/api/schemas.py
All Pydantic request/response models for the API layer.
No logic here, only data shapes.
"""
from pydantic import BaseModel, Field
from typing import List, Literal, Optional


QuestionType = Literal["true-false", "multiple-choice", "open-ended", "matching", "fill-blank"]


# --- Exam structure ---

class TrueFalseFormatModel(BaseModel):
    type: Literal["checkbox", "circle", "parentheses", "symbol", "arabic", "hebrew"]
    true_value: str
    false_value: str
    is_symbol: bool = False
    selected: Optional[Literal["true", "false"]] = None
    correct: Optional[Literal["true", "false"]] = None


class TeacherMarksModel(BaseModel):
    correct: bool
    points: float
    feedback: Optional[str] = None


class QuestionModel(BaseModel):
    type: QuestionType
    text: str
    language: str = "eng"
    options: Optional[List[str]] = None
    correct_answer: Optional[str] = None
    points: Optional[int] = None
    format: Optional[TrueFalseFormatModel] = None
    student_answer: Optional[str] = None
    teacher_marks: Optional[TeacherMarksModel] = None


class ExamMetadataModel(BaseModel):
    subject: str = ""
    level: str = ""
    duration: str = ""
    total_marks: int = 0
    date: str = ""


class ExamSectionModel(BaseModel):
    name: str
    points: int = 0
    instructions: Optional[str] = None
    questions: List[QuestionModel] = Field(default_factory=list)


class ExamStructureModel(BaseModel):
    metadata: ExamMetadataModel
    sections: List[ExamSectionModel]


# --- Exams ---

class ExtractExamResponse(BaseModel):
    text: str
    structure: Optional[ExamStructureModel] = None


class ParseExamRequest(BaseModel):
    text: str = Field(..., min_length=1)


class FormatQuestionsRequest(BaseModel):
    questions: List[QuestionModel]


class FormatQuestionsResponse(BaseModel):
    text: str


# --- Grading ---

class CompareAnswersRequest(BaseModel):
    student_answer: Optional[str] = None
    correct_answer: str
    question_type: str = Field(..., min_length=1, description="multiple-choice, true-false, short-answer, essay, ...")


class GradingResultModel(BaseModel):
    score: int = Field(..., ge=0, le=100)
    feedback: str
    is_correct: bool
    confidence: float
    match_type: str
