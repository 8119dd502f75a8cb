"""Job processors: one per job kind, each delegating to its AI service"""
import logging
from enum import Enum
from typing import Any, Dict, Optional, Protocol, Type, TypeVar, runtime_checkable

from pydantic import BaseModel, ValidationError

from app.exceptions import InvalidRequestError, PersistenceError
from app.repositories.analysis_repository import AnalysisRepository
from app.schemas.ai import (
    CVAnalysisRequest,
    InterviewAnalysisRequest,
    JobRequirementsRequest,
    QuestionGenerationRequest,
)
from app.services.ai.cv_analysis import CVAnalysisService
from app.services.ai.interview_analysis import InterviewAnalysisService
from app.services.ai.job_requirements import JobRequirementsService
from app.services.ai.question_generation import QuestionGenerationService

logger = logging.getLogger(__name__)

R = TypeVar("R", bound=BaseModel)


class JobKind(str, Enum):
    """The closed set of queued AI job kinds; values are the URL segments."""

    CV_ANALYSIS = "cv-analysis"
    JOB_REQUIREMENTS = "job-requirements"
    INTERVIEW_ANALYSIS = "interview-analysis"
    QUESTION_GENERATION = "question-generation"

    @property
    def job_id_prefix(self) -> str:
        return _JOB_ID_PREFIXES[self]


_JOB_ID_PREFIXES = {
    JobKind.CV_ANALYSIS: "cv",
    JobKind.JOB_REQUIREMENTS: "jobreq",
    JobKind.INTERVIEW_ANALYSIS: "interview",
    JobKind.QUESTION_GENERATION: "questions",
}


@runtime_checkable
class JobProcessor(Protocol):
    """What a queue needs from the code that does the work."""

    request_model: Type[BaseModel]

    def validate(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        """Check a submission before it is queued; returns the normalized payload."""
        ...

    async def process(self, payload: Dict[str, Any]) -> Any:
        ...

    def estimate_processing_time(self, payload: Dict[str, Any]) -> float:
        """Expected duration in seconds."""
        ...


def parse_payload(model: Type[R], payload: Dict[str, Any]) -> R:
    try:
        return model.model_validate(payload)
    except ValidationError as e:
        raise InvalidRequestError(f"Malformed job payload: {e.error_count()} invalid field(s)") from e


class CVAnalysisProcessor:
    request_model = CVAnalysisRequest

    def __init__(self, service: CVAnalysisService, repository: Optional[AnalysisRepository] = None):
        self.service = service
        self.repository = repository

    def validate(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        return self.service.validate_request(parse_payload(CVAnalysisRequest, payload)).to_payload()

    async def process(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        request = parse_payload(CVAnalysisRequest, payload)
        result = await self.service.analyze(request)
        await self._persist(request, result)
        return result

    async def _persist(self, request: CVAnalysisRequest, result: Dict[str, Any]):
        if self.repository is None or not self.repository.is_configured:
            return
        try:
            await self.repository.save_cv_analysis(
                user_id=request.user_id,
                job_description=request.job_requirements,
                result=result,
            )
        except PersistenceError as e:
            # The analysis itself succeeded; history is best-effort
            logger.warning("could not persist cv analysis for %s: %s", request.user_id, e.message)

    def estimate_processing_time(self, payload: Dict[str, Any]) -> float:
        return self.service.estimate_processing_time(CVAnalysisRequest.model_validate(payload))


class JobRequirementsProcessor:
    request_model = JobRequirementsRequest

    def __init__(self, service: JobRequirementsService):
        self.service = service

    def validate(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        return self.service.validate_request(parse_payload(JobRequirementsRequest, payload)).to_payload()

    async def process(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        return await self.service.generate(parse_payload(JobRequirementsRequest, payload))

    def estimate_processing_time(self, payload: Dict[str, Any]) -> float:
        return self.service.estimate_processing_time(JobRequirementsRequest.model_validate(payload))


class InterviewAnalysisProcessor:
    request_model = InterviewAnalysisRequest

    def __init__(self, service: InterviewAnalysisService, repository: Optional[AnalysisRepository] = None):
        self.service = service
        self.repository = repository

    def validate(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        return self.service.validate_request(parse_payload(InterviewAnalysisRequest, payload)).to_payload()

    async def process(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        request = parse_payload(InterviewAnalysisRequest, payload)
        result = await self.service.analyze(request)
        await self._persist(request, result)
        return result

    async def _persist(self, request: InterviewAnalysisRequest, result: Dict[str, Any]):
        if self.repository is None or not self.repository.is_configured:
            return
        try:
            await self.repository.save_interview_analysis(request.session_id, result)
            await self.repository.mark_session_completed(request.session_id)
        except PersistenceError as e:
            logger.warning("could not persist interview analysis for %s: %s", request.session_id, e.message)

    def estimate_processing_time(self, payload: Dict[str, Any]) -> float:
        return self.service.estimate_processing_time(InterviewAnalysisRequest.model_validate(payload))


class QuestionGenerationProcessor:
    request_model = QuestionGenerationRequest

    def __init__(self, service: QuestionGenerationService):
        self.service = service

    def validate(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        return self.service.validate_request(parse_payload(QuestionGenerationRequest, payload)).to_payload()

    async def process(self, payload: Dict[str, Any]) -> list:
        return await self.service.generate(parse_payload(QuestionGenerationRequest, payload))

    def estimate_processing_time(self, payload: Dict[str, Any]) -> float:
        return self.service.estimate_processing_time(QuestionGenerationRequest.model_validate(payload))


def build_processors(
    cv_analysis: CVAnalysisService,
    job_requirements: JobRequirementsService,
    interview_analysis: InterviewAnalysisService,
    question_generation: QuestionGenerationService,
    repository: Optional[AnalysisRepository] = None,
) -> Dict[JobKind, JobProcessor]:
    """Registry mapping every job kind to its processor."""
    return {
        JobKind.CV_ANALYSIS: CVAnalysisProcessor(cv_analysis, repository),
        JobKind.JOB_REQUIREMENTS: JobRequirementsProcessor(job_requirements),
        JobKind.INTERVIEW_ANALYSIS: InterviewAnalysisProcessor(interview_analysis, repository),
        JobKind.QUESTION_GENERATION: QuestionGenerationProcessor(question_generation),
    }
