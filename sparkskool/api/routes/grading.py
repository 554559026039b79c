"""
sparkskool/api/routes/grading.py
Answer comparison endpoint.
"""
from typing import Optional

from fastapi import APIRouter, Depends

from sparkskool.api.deps import get_text_model
from sparkskool.api.schemas import CompareAnswersRequest, GradingResultModel
from sparkskool.grading.answer_comparison import compare_answers
from sparkskool.llm import TextModel

router = APIRouter(prefix="/grading", tags=["Grading"])


@router.post("/compare", response_model=GradingResultModel)
async def compare_answers_endpoint(
    req: CompareAnswersRequest,
    text_model: Optional[TextModel] = Depends(get_text_model),
):
    result = await compare_answers(req.student_answer, req.correct_answer, req.question_type, text_model)
    return GradingResultModel(**result.to_dict())
