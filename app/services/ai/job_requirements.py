"""Job requirements generation from a job title"""
import logging
from typing import Any, Dict

from app.exceptions import InvalidRequestError
from app.schemas.ai import JobRequirementsRequest, JobRequirementsResult
from app.services.ai.base import BaseAIService, require_fields
from app.services.ai.normalize import as_dict, string_list, to_number

logger = logging.getLogger(__name__)

MIN_TITLE_LENGTH = 3

VALID_SENIORITIES = (
    "entry", "junior", "associate", "mid-level", "mid", "intermediate",
    "senior", "lead", "principal", "staff", "manager", "director", "executive",
)
VALID_INDUSTRIES = (
    "technology", "healthcare", "finance", "education", "retail", "manufacturing",
    "consulting", "media", "non-profit", "government", "real estate", "transportation",
)
COMMON_DOMAINS = (
    "frontend", "backend", "full-stack", "mobile", "data", "ai", "ml", "devops",
    "security", "cloud", "ui/ux", "product", "marketing", "sales", "hr", "finance",
)
SPECIALIZATIONS = (
    "react", "angular", "vue", "node.js", "python", "java", "c#", "sql", "aws",
    "docker", "kubernetes", "machine learning", "data science", "cybersecurity",
)

SYSTEM_PROMPT = (
    "You are an expert HR consultant and talent acquisition specialist. You write "
    "realistic, market-aware job requirements. Return valid JSON only."
)

USER_PROMPT = """
Generate comprehensive job requirements for the following position.

Job Title: {job_title}
Industry: {industry}
Seniority: {seniority}
Company Size: {company_size}
Location: {location}

Return the requirements in the following JSON format:
{{
  "jobTitle": string,
  "summary": string,
  "keyResponsibilities": string[],
  "requiredSkills": {{"technical": string[], "soft": string[], "certifications": string[]}},
  "preferredSkills": {{"technical": string[], "soft": string[], "certifications": string[]}},
  "experience": {{"minimumYears": number, "preferredYears": number, "relevantExperience": string[]}},
  "education": {{"minimum": string, "preferred": string, "relevantFields": string[]}},
  "qualifications": {{"essential": string[], "desired": string[]}},
  "benefits": string[],
  "workEnvironment": string,
  "careerGrowth": string,
  "salaryRange": {{"min": number, "max": number, "currency": string}},
  "employmentType": string,
  "location": string,
  "remotePolicy": string
}}
"""


def _skill_set(value: Any) -> Dict[str, Any]:
    data = as_dict(value)
    return {
        "technical": string_list(data.get("technical")),
        "soft": string_list(data.get("soft")),
        "certifications": string_list(data.get("certifications")),
    }


class JobRequirementsService(BaseAIService):
    operation = "job_requirements"

    def validate_request(self, request: JobRequirementsRequest) -> JobRequirementsRequest:
        """Validate and fill defaults for optional context fields."""
        require_fields(request, "job_title", "user_id")

        job_title = request.job_title.strip()
        if len(job_title) < MIN_TITLE_LENGTH:
            raise InvalidRequestError(f"jobTitle must be at least {MIN_TITLE_LENGTH} characters")
        if request.seniority and not any(s in request.seniority.lower() for s in VALID_SENIORITIES):
            raise InvalidRequestError(f"Unsupported seniority: {request.seniority}")
        if request.industry and not any(i in request.industry.lower() for i in VALID_INDUSTRIES):
            raise InvalidRequestError(f"Unsupported industry: {request.industry}")

        return JobRequirementsRequest(
            job_title=job_title,
            industry=(request.industry or "").strip() or "Technology",
            seniority=(request.seniority or "").strip() or "Mid-level",
            company_size=(request.company_size or "").strip() or "Medium to Large",
            location=(request.location or "").strip() or "Remote/Hybrid",
            user_id=request.user_id.strip(),
        )

    async def generate(self, request: JobRequirementsRequest) -> Dict[str, Any]:
        request = self.validate_request(request)
        key = self.cache.job_requirements_key(
            request.job_title,
            request.industry,
            request.seniority,
            request.company_size,
            request.location,
            request.user_id,
        )
        return await self.cache.get_or_set(
            key,
            lambda: self.with_retry(lambda: self._generate(request)),
            ttl=self.settings.cache_ttl_job_requirements,
        )

    async def _generate(self, request: JobRequirementsRequest) -> Dict[str, Any]:
        content = await self.generate_completion(
            SYSTEM_PROMPT,
            USER_PROMPT.format(
                job_title=request.job_title,
                industry=request.industry,
                seniority=request.seniority,
                company_size=request.company_size,
                location=request.location,
            ),
            temperature=0.4,
            max_tokens=2500,
        )
        raw = self.parse_json_response(content)
        result = self.validate_result(JobRequirementsResult, self.normalize(raw, request))
        return result.to_payload()

    def normalize(self, raw: Any, request: JobRequirementsRequest) -> Dict[str, Any]:
        """
        Coerce model output into the result shape.

        Salary min is floored at 0 and swapped with max when inverted;
        preferred years below minimum years become minimum + 2.
        """
        data = as_dict(raw)
        experience = as_dict(data.get("experience"))
        education = as_dict(data.get("education"))
        qualifications = as_dict(data.get("qualifications"))
        salary = as_dict(data.get("salaryRange"))

        salary_min = to_number(salary.get("min"))
        salary_max = to_number(salary.get("max"))
        if salary_min < 0:
            logger.warning("salary min out of range: %s, normalizing to 0", salary_min)
            salary_min = 0.0
        if salary_max < salary_min:
            logger.warning("salary max %s below min %s, swapping", salary_max, salary_min)
            salary_min, salary_max = salary_max, salary_min
            salary_min = max(0.0, salary_min)

        minimum_years = to_number(experience.get("minimumYears"))
        preferred_years = to_number(experience.get("preferredYears"))
        if minimum_years < 0:
            logger.warning("minimum years out of range: %s, normalizing to 0", minimum_years)
            minimum_years = 0.0
        if preferred_years < minimum_years:
            preferred_years = minimum_years + 2

        return {
            "jobTitle": str(data.get("jobTitle") or request.job_title),
            "summary": str(data.get("summary") or ""),
            "keyResponsibilities": string_list(data.get("keyResponsibilities")),
            "requiredSkills": _skill_set(data.get("requiredSkills")),
            "preferredSkills": _skill_set(data.get("preferredSkills")),
            "experience": {
                "minimumYears": minimum_years,
                "preferredYears": preferred_years,
                "relevantExperience": string_list(experience.get("relevantExperience")),
            },
            "education": {
                "minimum": str(education.get("minimum") or ""),
                "preferred": str(education.get("preferred") or ""),
                "relevantFields": string_list(education.get("relevantFields")),
            },
            "qualifications": {
                "essential": string_list(qualifications.get("essential")),
                "desired": string_list(qualifications.get("desired")),
            },
            "benefits": string_list(data.get("benefits")),
            "workEnvironment": str(data.get("workEnvironment") or ""),
            "careerGrowth": str(data.get("careerGrowth") or ""),
            "salaryRange": {
                "min": salary_min,
                "max": salary_max,
                "currency": str(salary.get("currency") or "USD"),
            },
            "employmentType": str(data.get("employmentType") or ""),
            "location": str(data.get("location") or request.location or ""),
            "remotePolicy": str(data.get("remotePolicy") or ""),
        }

    @staticmethod
    def estimate_processing_time(request: JobRequirementsRequest) -> int:
        estimated = 25
        if len(request.job_title or "") > 50:
            estimated += 5
        if len(request.industry or "") > 20:
            estimated += 3
        if len(request.seniority or "") > 15:
            estimated += 3
        if len(request.company_size or "") > 20:
            estimated += 3
        return estimated

    @staticmethod
    def extract_job_title_summary(job_title: str) -> Dict[str, Any]:
        title = job_title.lower()

        seniority = "mid-level"
        if any(word in title for word in ("senior", "lead", "principal")):
            seniority = "senior"
        elif any(word in title for word in ("junior", "entry", "associate")):
            seniority = "junior"
        elif any(word in title for word in ("manager", "director", "executive")):
            seniority = "management"

        key_domain = next((domain for domain in COMMON_DOMAINS if domain in title), "general")
        return {
            "estimatedSeniority": seniority,
            "keyDomain": key_domain,
            "specialization": [s for s in SPECIALIZATIONS if s in title],
        }
