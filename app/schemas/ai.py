"""Pydantic schemas for AI requests and results.

Request fields are optional at the schema level so that missing fields are
reported by the services as ``MISSING_FIELDS`` instead of a generic
validation error. Results are serialized with camelCase aliases.
"""
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base model accepting both snake_case and camelCase keys"""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_payload(self) -> dict:
        """Serialize for JSON responses, queue payloads and cache values."""
        return self.model_dump(by_alias=True, mode="json")


QuestionType = Literal["technical", "behavioral"]
Difficulty = Literal["easy", "medium", "hard"]


# ---------- CV analysis ----------
class CVAnalysisRequest(CamelModel):
    cv_text: Optional[str] = None
    job_requirements: Optional[str] = None
    user_id: Optional[str] = None


class CVExperience(CamelModel):
    years: float = 0
    relevant_experience: List[str] = Field(default_factory=list)


class CVEducation(CamelModel):
    degree: str = ""
    relevant_courses: List[str] = Field(default_factory=list)


class CVAnalysisResult(CamelModel):
    score: int = Field(0, ge=0, le=100)
    strengths: List[str] = Field(default_factory=list)
    weaknesses: List[str] = Field(default_factory=list)
    recommendations: List[str] = Field(default_factory=list)
    key_skills: List[str] = Field(default_factory=list)
    experience: CVExperience = Field(default_factory=CVExperience)
    education: CVEducation = Field(default_factory=CVEducation)
    summary: str = ""
    match_percentage: int = Field(0, ge=0, le=100)


class BatchCVItem(CamelModel):
    cv_text: Optional[str] = None
    candidate_id: Optional[str] = None


class BatchCVAnalysisRequest(CamelModel):
    items: List[BatchCVItem] = Field(default_factory=list)
    job_requirements: Optional[str] = None
    user_id: Optional[str] = None


class BatchCVAnalysisResult(CamelModel):
    candidate_id: str
    result: CVAnalysisResult
    error: Optional[str] = None


# ---------- Job requirements ----------
class JobRequirementsRequest(CamelModel):
    job_title: Optional[str] = None
    industry: Optional[str] = None
    seniority: Optional[str] = None
    company_size: Optional[str] = None
    location: Optional[str] = None
    user_id: Optional[str] = None


class SkillSet(CamelModel):
    technical: List[str] = Field(default_factory=list)
    soft: List[str] = Field(default_factory=list)
    certifications: List[str] = Field(default_factory=list)


class ExperienceRequirements(CamelModel):
    minimum_years: float = 0
    preferred_years: float = 0
    relevant_experience: List[str] = Field(default_factory=list)


class EducationRequirements(CamelModel):
    minimum: str = ""
    preferred: str = ""
    relevant_fields: List[str] = Field(default_factory=list)


class Qualifications(CamelModel):
    essential: List[str] = Field(default_factory=list)
    desired: List[str] = Field(default_factory=list)


class SalaryRange(CamelModel):
    min: float = 0
    max: float = 0
    currency: str = "USD"


class JobRequirementsResult(CamelModel):
    job_title: str = ""
    summary: str = ""
    key_responsibilities: List[str] = Field(default_factory=list)
    required_skills: SkillSet = Field(default_factory=SkillSet)
    preferred_skills: SkillSet = Field(default_factory=SkillSet)
    experience: ExperienceRequirements = Field(default_factory=ExperienceRequirements)
    education: EducationRequirements = Field(default_factory=EducationRequirements)
    qualifications: Qualifications = Field(default_factory=Qualifications)
    benefits: List[str] = Field(default_factory=list)
    work_environment: str = ""
    career_growth: str = ""
    salary_range: SalaryRange = Field(default_factory=SalaryRange)
    employment_type: str = ""
    location: str = ""
    remote_policy: str = ""


# ---------- Interview questions ----------
class Question(CamelModel):
    id: str
    question: str
    type: QuestionType = "technical"
    difficulty: Difficulty = "medium"
    expected_answer: Optional[str] = None
    scoring_criteria: List[str] = Field(default_factory=list)


class QuestionGenerationRequest(CamelModel):
    job_title: Optional[str] = None
    skills: Optional[List[str]] = None
    count: Optional[int] = None
    difficulty: Optional[str] = None
    type: Optional[str] = None
    user_id: Optional[str] = None


class QuestionSet(CamelModel):
    questions: List[Question] = Field(default_factory=list)


# ---------- Interview analysis ----------
class InterviewQuestion(CamelModel):
    id: Optional[str] = None
    question: Optional[str] = None
    type: Optional[str] = None
    difficulty: Optional[str] = None
    expected_answer: Optional[str] = None


class InterviewAnswer(CamelModel):
    question_id: Optional[str] = None
    answer: Optional[str] = None
    duration: Optional[float] = None


class InterviewAnalysisRequest(CamelModel):
    session_id: Optional[str] = None
    user_id: Optional[str] = None
    questions: Optional[List[InterviewQuestion]] = None
    answers: Optional[List[InterviewAnswer]] = None


class QuestionScore(CamelModel):
    question_id: str = ""
    score: int = Field(0, ge=0, le=100)
    feedback: str = ""
    strengths: List[str] = Field(default_factory=list)
    improvements: List[str] = Field(default_factory=list)


class InterviewAnalysisResult(CamelModel):
    overall_score: int = Field(0, ge=0, le=100)
    question_scores: List[QuestionScore] = Field(default_factory=list)
    summary: str = ""
    recommendations: List[str] = Field(default_factory=list)
    strengths: List[str] = Field(default_factory=list)
    weaknesses: List[str] = Field(default_factory=list)
