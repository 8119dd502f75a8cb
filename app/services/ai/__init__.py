"""AI domain services"""
from app.services.ai.base import BaseAIService, build_openai_client
from app.services.ai.cv_analysis import CVAnalysisService
from app.services.ai.interview_analysis import InterviewAnalysisService
from app.services.ai.job_requirements import JobRequirementsService
from app.services.ai.question_generation import QuestionGenerationService

__all__ = [
    "BaseAIService",
    "build_openai_client",
    "CVAnalysisService",
    "InterviewAnalysisService",
    "JobRequirementsService",
    "QuestionGenerationService",
]
