"""CV analysis against job requirements"""
import asyncio
import logging
import time
from typing import Any, Dict, List

from app.core.error_codes import ErrorCodeDictionary
from app.exceptions import InvalidRequestError, RecruiterError
from app.schemas.ai import BatchCVAnalysisResult, BatchCVItem, CVAnalysisRequest, CVAnalysisResult
from app.services.ai.base import BaseAIService, require_fields
from app.services.ai.normalize import as_dict, clamp_score, string_list, to_number

logger = logging.getLogger(__name__)

MIN_CV_LENGTH = 50
MIN_REQUIREMENTS_LENGTH = 20

SYSTEM_PROMPT = (
    "You are an expert HR analyst specializing in CV assessment. You have deep knowledge "
    "of various industries, job roles, and recruitment best practices. Provide detailed, "
    "objective analysis in valid JSON format only."
)

USER_PROMPT = """
Analyze the following CV against the job requirements and provide a comprehensive assessment.

CV Text:
{cv_text}

Job Requirements:
{job_requirements}

Please provide a detailed analysis in the following JSON format:
{{
  "score": number (0-100),
  "strengths": string[],
  "weaknesses": string[],
  "recommendations": string[],
  "keySkills": string[],
  "experience": {{
    "years": number,
    "relevantExperience": string[]
  }},
  "education": {{
    "degree": string,
    "relevantCourses": string[]
  }},
  "summary": string,
  "matchPercentage": number (0-100)
}}

Focus on:
1. Relevant skills and experience
2. Education alignment
3. Career progression
4. Technical competencies
5. Soft skills indicators
6. Overall fit for the role
"""

COMMON_SKILLS = [
    "javascript", "python", "java", "react", "node.js", "sql", "aws", "docker",
    "agile", "scrum", "git", "html", "css", "typescript", "angular", "vue",
]


class CVAnalysisService(BaseAIService):
    """Scores a CV against job requirements, cached per (cv, requirements, user)."""

    operation = "cv_analysis"

    def validate_request(self, request: CVAnalysisRequest) -> CVAnalysisRequest:
        """
        Check required fields and minimum lengths; return a trimmed copy.

        Raises:
            InvalidRequestError: MISSING_FIELDS or INVALID_REQUEST
        """
        require_fields(request, "cv_text", "job_requirements", "user_id")

        cv_text = request.cv_text.strip()
        job_requirements = request.job_requirements.strip()
        if len(cv_text) < MIN_CV_LENGTH:
            raise InvalidRequestError(f"cvText must be at least {MIN_CV_LENGTH} characters")
        if len(job_requirements) < MIN_REQUIREMENTS_LENGTH:
            raise InvalidRequestError(
                f"jobRequirements must be at least {MIN_REQUIREMENTS_LENGTH} characters"
            )

        return CVAnalysisRequest(
            cv_text=cv_text,
            job_requirements=job_requirements,
            user_id=request.user_id.strip(),
        )

    async def analyze(self, request: CVAnalysisRequest) -> Dict[str, Any]:
        """Analyze one CV. Returns the camelCase result payload."""
        request = self.validate_request(request)
        start = time.perf_counter()

        key = self.cache.cv_analysis_key(request.cv_text, request.job_requirements, request.user_id)
        result = await self.cache.get_or_set(
            key,
            lambda: self.with_retry(lambda: self._generate(request)),
            ttl=self.settings.cache_ttl_cv_analysis,
        )

        logger.info(
            "cv analysis done for user %s in %.0fms",
            request.user_id, (time.perf_counter() - start) * 1000,
        )
        return result

    async def _generate(self, request: CVAnalysisRequest) -> Dict[str, Any]:
        content = await self.generate_completion(
            SYSTEM_PROMPT,
            USER_PROMPT.format(cv_text=request.cv_text, job_requirements=request.job_requirements),
            temperature=0.3,
            max_tokens=2000,
        )
        raw = self.parse_json_response(content)
        result = self.validate_result(CVAnalysisResult, self.normalize(raw))
        return result.to_payload()

    def normalize(self, raw: Any) -> Dict[str, Any]:
        """Coerce model output into the result shape; scores clamped to [0, 100]."""
        data = as_dict(raw)
        experience = as_dict(data.get("experience"))
        education = as_dict(data.get("education"))
        return {
            "score": clamp_score(data.get("score"), field="cv score"),
            "strengths": string_list(data.get("strengths")),
            "weaknesses": string_list(data.get("weaknesses")),
            "recommendations": string_list(data.get("recommendations")),
            "keySkills": string_list(data.get("keySkills")),
            "experience": {
                "years": max(0.0, to_number(experience.get("years"))),
                "relevantExperience": string_list(experience.get("relevantExperience")),
            },
            "education": {
                "degree": str(education.get("degree") or ""),
                "relevantCourses": string_list(education.get("relevantCourses")),
            },
            "summary": str(data.get("summary") or ""),
            "matchPercentage": clamp_score(data.get("matchPercentage"), field="cv match percentage"),
        }

    async def batch_analyze(
        self,
        items: List[BatchCVItem],
        job_requirements: str,
        user_id: str,
        delay_seconds: float = 1.0,
    ) -> List[Dict[str, Any]]:
        """
        Analyze several CVs against the same requirements.

        CVs are processed ``batch_size_limit`` at a time. A failing CV does
        not fail the batch: its entry carries an empty result and the error.
        """
        if not items:
            raise InvalidRequestError(
                "items must contain at least one CV",
                error_code=ErrorCodeDictionary.MISSING_FIELDS,
            )

        batch_size = max(1, min(len(items), self.settings.batch_size_limit))
        results: List[Dict[str, Any]] = []
        logger.info("starting batch cv analysis: %d cvs, batch size %d", len(items), batch_size)

        async def analyze_one(item: BatchCVItem) -> Dict[str, Any]:
            candidate_id = item.candidate_id or ""
            try:
                result = await self.analyze(
                    CVAnalysisRequest(cv_text=item.cv_text, job_requirements=job_requirements, user_id=user_id)
                )
                return {"candidateId": candidate_id, "result": result}
            except RecruiterError as e:
                logger.warning("batch cv analysis failed for candidate %s: %s", candidate_id, e.message)
                return BatchCVAnalysisResult(
                    candidate_id=candidate_id,
                    result=CVAnalysisResult(),
                    error=e.message,
                ).to_payload()

        for i in range(0, len(items), batch_size):
            batch = items[i:i + batch_size]
            results.extend(await asyncio.gather(*(analyze_one(item) for item in batch)))
            if i + batch_size < len(items) and delay_seconds > 0:
                await asyncio.sleep(delay_seconds)

        logger.info(
            "batch cv analysis finished: %d/%d succeeded",
            sum(1 for r in results if not r.get("error")), len(results),
        )
        return results

    @staticmethod
    def estimate_processing_time(request: CVAnalysisRequest) -> int:
        cv_text = request.cv_text or ""
        job_requirements = request.job_requirements or ""
        estimated = 20
        if len(cv_text) > 2000:
            estimated += 10
        if len(cv_text) > 5000:
            estimated += 15
        if len(job_requirements) > 500:
            estimated += 5
        if len(job_requirements) > 1000:
            estimated += 10
        return estimated

    @staticmethod
    def extract_cv_summary(cv_text: str) -> Dict[str, Any]:
        """Keyword heuristics for a quick, AI-free CV overview."""
        text = cv_text.lower()

        estimated_experience = 0
        if any(word in text for word in ("senior", "lead", "manager")):
            estimated_experience = 5
        elif any(word in text for word in ("mid", "intermediate")):
            estimated_experience = 3
        elif any(word in text for word in ("junior", "entry")):
            estimated_experience = 1

        education_level = "bachelor"
        if "phd" in text or "doctorate" in text:
            education_level = "phd"
        elif "master" in text or "mba" in text:
            education_level = "master"
        elif "associate" in text or "diploma" in text:
            education_level = "associate"

        return {
            "estimatedExperience": estimated_experience,
            "keySkills": [skill for skill in COMMON_SKILLS if skill in text],
            "educationLevel": education_level,
        }
