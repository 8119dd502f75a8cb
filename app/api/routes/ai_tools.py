"""Kind-specific AI routes: batch CV analysis, history and quick heuristics"""
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import Field

from app.api.dependencies import ai_service, get_app_settings, get_current_user, get_repository
from app.core.auth import is_admin
from app.core.config import Settings
from app.core.error_codes import ErrorCodeDictionary
from app.exceptions import AccessDeniedError, AnalysisNotFoundError, InvalidRequestError, PersistenceError
from app.queues.processors import JobKind
from app.repositories.analysis_repository import AnalysisRepository
from app.schemas.ai import BatchCVAnalysisRequest, CamelModel, InterviewAnalysisRequest
from app.services.ai.base import require_fields
from app.services.ai.cv_analysis import CVAnalysisService
from app.services.ai.interview_analysis import InterviewAnalysisService
from app.services.ai.job_requirements import JobRequirementsService
from app.services.ai.question_generation import QuestionGenerationService
from app.utils.responses import format_success_response

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/ai", tags=["ai-tools"])

MAX_BATCH_ITEMS = 50


class TextRequest(CamelModel):
    text: Optional[str] = None


class QuestionsByDifficultyRequest(CamelModel):
    job_title: Optional[str] = None
    skills: Optional[List[str]] = None
    easy: int = Field(0, ge=0, le=20)
    medium: int = Field(0, ge=0, le=20)
    hard: int = Field(0, ge=0, le=20)


def configured(repository: Optional[AnalysisRepository]) -> AnalysisRepository:
    if repository is None or not repository.is_configured:
        raise PersistenceError(error_code=ErrorCodeDictionary.PERSISTENCE_NOT_CONFIGURED)
    return repository


async def owned_analysis(repository: AnalysisRepository, analysis_id: str, user: dict) -> dict:
    """Load an analysis the caller may see; admins see every row."""
    analysis = await repository.get_cv_analysis(analysis_id)
    if analysis is None:
        raise AnalysisNotFoundError(f"Analysis {analysis_id} not found")
    if str(analysis.get("user_id")) != user["user_id"] and not is_admin(user):
        raise AccessDeniedError()
    return analysis


@router.post("/cv-analysis/batch")
async def batch_cv_analysis(
    request: BatchCVAnalysisRequest,
    user: dict = Depends(get_current_user),
    settings: Settings = Depends(get_app_settings),
    service: CVAnalysisService = Depends(ai_service(JobKind.CV_ANALYSIS)),
):
    """Analyze several CVs against one set of requirements."""
    require_fields(request, "items", "job_requirements")
    if len(request.items) > MAX_BATCH_ITEMS:
        raise InvalidRequestError(f"A batch holds at most {MAX_BATCH_ITEMS} CVs")

    user_id = user["user_id"] if user["auth_type"] == "jwt" else (request.user_id or user["user_id"])
    results = await service.batch_analyze(
        request.items, request.job_requirements, user_id, delay_seconds=settings.batch_delay_seconds
    )
    return format_success_response(
        data=results,
        total=len(results),
        failed=sum(1 for r in results if r.get("error")),
    )


@router.get("/cv-analysis/history")
async def cv_analysis_history(
    limit: int = Query(10, ge=1, le=100),
    offset: int = Query(0, ge=0),
    status: Optional[str] = Query(None, pattern="^(completed|failed|processing)$"),
    user: dict = Depends(get_current_user),
    repository: Optional[AnalysisRepository] = Depends(get_repository),
):
    """Persisted CV analyses of the caller, newest first."""
    rows = await configured(repository).get_cv_analysis_history(
        user["user_id"], limit=limit, offset=offset, status=status
    )
    return format_success_response(data=rows, limit=limit, offset=offset)


@router.get("/cv-analysis/history/stats")
async def cv_analysis_stats(
    user: dict = Depends(get_current_user),
    repository: Optional[AnalysisRepository] = Depends(get_repository),
):
    """Counts per status and the average score of the caller's analyses."""
    stats = await configured(repository).get_cv_analysis_stats(user["user_id"])
    return format_success_response(data=stats)


@router.get("/cv-analysis/history/{analysis_id}")
async def cv_analysis_detail(
    analysis_id: str,
    user: dict = Depends(get_current_user),
    repository: Optional[AnalysisRepository] = Depends(get_repository),
):
    analysis = await owned_analysis(configured(repository), analysis_id, user)
    return format_success_response(data=analysis)


@router.delete("/cv-analysis/history/{analysis_id}")
async def delete_cv_analysis(
    analysis_id: str,
    user: dict = Depends(get_current_user),
    repository: Optional[AnalysisRepository] = Depends(get_repository),
):
    repository = configured(repository)
    await owned_analysis(repository, analysis_id, user)
    await repository.delete_cv_analysis(analysis_id)
    logger.info("user %s deleted cv analysis %s", user["user_id"], analysis_id)
    return format_success_response(message="Analysis deleted successfully")


@router.post("/cv-analysis/summary")
async def cv_summary(
    request: TextRequest,
    service: CVAnalysisService = Depends(ai_service(JobKind.CV_ANALYSIS)),
):
    """Keyword overview of a CV without a model call."""
    require_fields(request, "text")
    return format_success_response(data=service.extract_cv_summary(request.text))


@router.post("/job-requirements/title-summary")
async def job_title_summary(
    request: TextRequest,
    service: JobRequirementsService = Depends(ai_service(JobKind.JOB_REQUIREMENTS)),
):
    require_fields(request, "text")
    return format_success_response(data=service.extract_job_title_summary(request.text))


@router.post("/interview-analysis/insights")
async def interview_insights(
    request: InterviewAnalysisRequest,
    service: InterviewAnalysisService = Depends(ai_service(JobKind.INTERVIEW_ANALYSIS)),
):
    require_fields(request, "questions")
    return format_success_response(data=service.extract_insights(request))


@router.post("/question-generation/by-difficulty")
async def questions_by_difficulty(
    request: QuestionsByDifficultyRequest,
    user: dict = Depends(get_current_user),
    service: QuestionGenerationService = Depends(ai_service(JobKind.QUESTION_GENERATION)),
):
    """Separate question sets per difficulty level."""
    require_fields(request, "job_title", "skills")
    if request.easy + request.medium + request.hard == 0:
        raise InvalidRequestError("Request at least one question")
    data = await service.generate_by_difficulty(
        request.job_title,
        request.skills,
        easy=request.easy,
        medium=request.medium,
        hard=request.hard,
        user_id=user["user_id"],
    )
    return format_success_response(data=data)
