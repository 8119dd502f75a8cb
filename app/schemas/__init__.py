"""Pydantic schemas for API requests and responses"""
# Import all schemas for easy access
from app.schemas.ai import (
    CamelModel,
    CVAnalysisRequest,
    CVAnalysisResult,
    BatchCVAnalysisRequest,
    JobRequirementsRequest,
    JobRequirementsResult,
    InterviewAnalysisRequest,
    InterviewAnalysisResult,
    QuestionGenerationRequest,
    Question,
)
from app.schemas.jobs import Job, JobStatus, JobStatusResponse, JobSubmittedResponse, JobSummary

__all__ = [
    # AI requests and results
    "CamelModel",
    "CVAnalysisRequest",
    "CVAnalysisResult",
    "BatchCVAnalysisRequest",
    "JobRequirementsRequest",
    "JobRequirementsResult",
    "InterviewAnalysisRequest",
    "InterviewAnalysisResult",
    "QuestionGenerationRequest",
    "Question",
    # Jobs
    "Job",
    "JobStatus",
    "JobStatusResponse",
    "JobSubmittedResponse",
    "JobSummary",
]
