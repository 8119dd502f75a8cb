"""Interview question generation"""
import asyncio
import logging
import uuid
from typing import Any, Dict, List, Optional

from app.exceptions import InvalidRequestError
from app.schemas.ai import Question, QuestionGenerationRequest
from app.services.ai.base import BaseAIService, require_fields, trimmed
from app.services.ai.normalize import as_dict, string_list, to_number

logger = logging.getLogger(__name__)

MIN_QUESTIONS = 1
MAX_QUESTIONS = 20
DEFAULT_COUNT = 5

DIFFICULTIES = ("easy", "medium", "hard")

SYSTEM_PROMPT = (
    "You are an expert interview designer specializing in creating highly relevant and "
    "specific interview questions. You understand different industries, job roles, and "
    "assessment techniques. Always return valid JSON only."
)

BASE_PROMPT = """Generate {count} interview questions for a {job_title} position.

Required Skills: {skills}
Difficulty Level: {difficulty}
Question Type: {type}

Please provide questions in the following JSON format:
[
  {{
    "id": "unique_id",
    "question": "question text",
    "type": "technical" | "behavioral",
    "difficulty": "easy" | "medium" | "hard",
    "expectedAnswer": "brief expected answer",
    "scoringCriteria": ["criteria1", "criteria2"]
  }}
]

"""

TYPE_PROMPTS = {
    "technical": """Requirements for Technical Questions:
1. Focus on practical technical skills and knowledge
2. Include coding problems, system design, and technical concepts
3. Keep questions appropriate for the job level and required skills
4. Focus on real-world application of {skills}
5. Include questions about best practices and industry standards""",
    "behavioral": """Requirements for Behavioral Questions:
1. Focus on past behavior and experiences
2. Use the STAR method (Situation, Task, Action, Result)
3. Assess soft skills, teamwork, leadership and problem-solving
4. Assess cultural fit and communication skills""",
    "situational": """Requirements for Situational Questions:
1. Present hypothetical work scenarios relevant to the {job_title} role
2. Cover conflict resolution and decision-making
3. Test adaptability and stress management""",
    "problem_solving": """Requirements for Problem-Solving Questions:
1. Test analytical thinking with technical and business problems
2. Mix structured and open-ended problems
3. Include time-sensitive and resource-constrained scenarios""",
    "leadership": """Requirements for Leadership Questions:
1. Focus on team management, motivation and strategic thinking
2. Include scenarios about leading change
3. Assess decision-making in leadership contexts""",
    "culture_fit": """Requirements for Culture Fit Questions:
1. Assess alignment with company values and work style
2. Evaluate adaptability, growth mindset and response to feedback
3. Cover collaboration and long-term motivations""",
    "mixed": """Requirements for Mixed Questions:
1. Keep questions relevant to the job title and required skills
2. Mix technical, behavioral, and situational questions
3. Balance technical competence and soft skills""",
}

GUIDELINES = """

Additional Guidelines:
- Make questions specific to the {job_title} role and required skills
- Ensure questions are clear, unambiguous, and professional
- Provide realistic scoring criteria that can be objectively evaluated
- Questions should be appropriate for the specified difficulty level"""

# Question types the result schema knows about; prompt types fold into them
TECHNICAL_TYPES = {"technical", "problem_solving"}
BEHAVIORAL_TYPES = {"behavioral", "situational", "leadership", "culture_fit"}


def clamp_count(count: Optional[Any]) -> int:
    if count is None:
        return DEFAULT_COUNT
    number = int(round(to_number(count, default=DEFAULT_COUNT)))
    return min(max(number, MIN_QUESTIONS), MAX_QUESTIONS)


def coerce_type(value: Any, requested: str) -> str:
    text = str(value or "").strip().lower()
    if text in TECHNICAL_TYPES:
        return "technical"
    if text in BEHAVIORAL_TYPES:
        return "behavioral"
    if requested in BEHAVIORAL_TYPES:
        return "behavioral"
    return "technical"


class QuestionGenerationService(BaseAIService):
    operation = "question_generation"

    def validate_request(self, request: QuestionGenerationRequest) -> QuestionGenerationRequest:
        """
        Require a job title and skills, then fill defaults.

        ``count`` is clamped to [1, 20]; ``difficulty`` defaults to medium
        and ``type`` to mixed.
        """
        require_fields(request, "job_title", "skills")

        skills = trimmed(request.skills)
        if not skills:
            raise InvalidRequestError("skills must contain at least one non-empty skill")

        difficulty = (request.difficulty or "medium").strip().lower()
        if difficulty not in DIFFICULTIES:
            raise InvalidRequestError(f"difficulty must be one of {', '.join(DIFFICULTIES)}")

        question_type = (request.type or "mixed").strip().lower()
        if question_type not in TYPE_PROMPTS:
            raise InvalidRequestError(f"Unsupported question type: {request.type}")

        return QuestionGenerationRequest(
            job_title=request.job_title.strip(),
            skills=skills,
            count=clamp_count(request.count),
            difficulty=difficulty,
            type=question_type,
            user_id=(request.user_id or "").strip() or None,
        )

    async def generate(self, request: QuestionGenerationRequest) -> List[Dict[str, Any]]:
        request = self.validate_request(request)
        key = self.cache.questions_key(
            request.job_title, request.skills, request.count, request.difficulty, request.type
        )
        return await self.cache.get_or_set(
            key,
            lambda: self.with_retry(lambda: self._generate(request)),
            ttl=self.settings.cache_ttl_questions,
        )

    def build_prompt(self, request: QuestionGenerationRequest) -> str:
        skills = ", ".join(request.skills)
        values = {
            "count": request.count,
            "job_title": request.job_title,
            "skills": skills,
            "difficulty": request.difficulty,
            "type": request.type,
        }
        type_prompt = TYPE_PROMPTS.get(request.type, TYPE_PROMPTS["mixed"])
        return (
            BASE_PROMPT.format(**values)
            + type_prompt.format(**values)
            + GUIDELINES.format(**values)
        )

    async def _generate(self, request: QuestionGenerationRequest) -> List[Dict[str, Any]]:
        content = await self.generate_completion(
            SYSTEM_PROMPT,
            self.build_prompt(request),
            temperature=0.7,
            max_tokens=1500,
        )
        raw = self.parse_json_response(content)
        return [
            self.validate_result(Question, question).to_payload()
            for question in self.normalize(raw, request)
        ]

    def normalize(self, raw: Any, request: QuestionGenerationRequest) -> List[Dict[str, Any]]:
        """
        Accept a bare list or ``{"questions": [...]}``.

        Every question gets an id; type and difficulty are coerced into their
        enums; at most ``count`` questions are kept.
        """
        if isinstance(raw, dict):
            raw = raw.get("questions")
        if not isinstance(raw, list):
            return []

        questions = []
        for entry in raw:
            entry = as_dict(entry)
            text = str(entry.get("question") or "").strip()
            if not text:
                continue
            difficulty = str(entry.get("difficulty") or "").strip().lower()
            questions.append({
                "id": str(entry.get("id") or uuid.uuid4()),
                "question": text,
                "type": coerce_type(entry.get("type"), request.type),
                "difficulty": difficulty if difficulty in DIFFICULTIES else request.difficulty,
                "expectedAnswer": entry.get("expectedAnswer"),
                "scoringCriteria": string_list(entry.get("scoringCriteria")),
            })
        if len(questions) > request.count:
            logger.info("model returned %d questions, keeping %d", len(questions), request.count)
        return questions[:request.count]

    async def generate_by_difficulty(
        self,
        job_title: str,
        skills: List[str],
        easy: int = 0,
        medium: int = 0,
        hard: int = 0,
        user_id: Optional[str] = None,
    ) -> Dict[str, List[Dict[str, Any]]]:
        """Generate separate question sets per difficulty level concurrently."""
        counts = {"easy": easy, "medium": medium, "hard": hard}

        async def for_level(difficulty: str, count: int) -> List[Dict[str, Any]]:
            if count <= 0:
                return []
            return await self.generate(
                QuestionGenerationRequest(
                    job_title=job_title,
                    skills=skills,
                    count=count,
                    difficulty=difficulty,
                    user_id=user_id,
                )
            )

        results = await asyncio.gather(*(for_level(level, count) for level, count in counts.items()))
        return dict(zip(counts.keys(), results))

    @staticmethod
    def estimate_processing_time(request: QuestionGenerationRequest) -> int:
        count = clamp_count(request.count)
        estimated = 15
        if count > 10:
            estimated += 10
        if len(request.skills or []) > 5:
            estimated += 5
        if (request.difficulty or "").lower() == "hard":
            estimated += 5
        return estimated
