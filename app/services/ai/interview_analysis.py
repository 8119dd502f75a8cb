"""Interview session scoring"""
import logging
import time
from collections import Counter
from typing import Any, Dict, List

from app.exceptions import InvalidRequestError
from app.schemas.ai import InterviewAnalysisRequest, InterviewAnalysisResult, InterviewAnswer, InterviewQuestion
from app.services.ai.base import BaseAIService, require_fields
from app.services.ai.normalize import as_dict, clamp_score, string_list

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You are an expert interview assessor. Provide fair, constructive feedback with "
    "specific examples. Return valid JSON only."
)

USER_PROMPT = """
Analyze the following interview session and provide comprehensive feedback.

Questions and Answers:
{transcript}

Please provide analysis in the following JSON format:
{{
  "overallScore": number (0-100),
  "questionScores": [
    {{
      "questionId": "string",
      "score": number (0-100),
      "feedback": "string",
      "strengths": string[],
      "improvements": string[]
    }}
  ],
  "summary": "string",
  "recommendations": string[],
  "strengths": string[],
  "weaknesses": string[]
}}

Evaluate based on:
1. Answer completeness and accuracy
2. Technical knowledge demonstrated
3. Communication skills
4. Problem-solving approach
5. Cultural fit indicators
6. Response time appropriateness
"""


def _transcript(questions: List[InterviewQuestion], answers: List[InterviewAnswer]) -> str:
    by_question = {answer.question_id: answer for answer in answers}
    blocks = []
    for i, question in enumerate(questions, start=1):
        answer = by_question.get(question.id)
        blocks.append(
            f"Question {i} ({question.type}, {question.difficulty}): {question.question}\n"
            f"Answer: {answer.answer if answer else 'No answer provided'}\n"
            f"Duration: {answer.duration if answer else 0}s\n"
            f"Expected: {question.expected_answer or 'Not specified'}"
        )
    return "\n\n".join(blocks)


class InterviewAnalysisService(BaseAIService):
    operation = "interview_analysis"

    def validate_request(self, request: InterviewAnalysisRequest) -> InterviewAnalysisRequest:
        require_fields(request, "session_id", "user_id", "questions", "answers")

        for question in request.questions:
            if not (question.id and question.question and question.type and question.difficulty):
                raise InvalidRequestError("Each question needs id, question, type and difficulty")
        for answer in request.answers:
            if not (answer.question_id and answer.answer) or answer.duration is None:
                raise InvalidRequestError("Each answer needs questionId, answer and duration")

        return InterviewAnalysisRequest(
            session_id=request.session_id.strip(),
            user_id=request.user_id.strip(),
            questions=[
                InterviewQuestion(
                    id=q.id.strip(),
                    question=q.question.strip(),
                    type=q.type.strip(),
                    difficulty=q.difficulty.strip(),
                    expected_answer=q.expected_answer,
                )
                for q in request.questions
            ],
            answers=[
                InterviewAnswer(
                    question_id=a.question_id.strip(),
                    answer=a.answer.strip(),
                    duration=max(0.0, a.duration),
                )
                for a in request.answers
            ],
        )

    async def analyze(self, request: InterviewAnalysisRequest) -> Dict[str, Any]:
        request = self.validate_request(request)
        start = time.perf_counter()

        answers = {a.question_id: a.answer for a in request.answers}
        key = self.cache.interview_analysis_key(request.session_id, request.user_id, answers)
        result = await self.cache.get_or_set(
            key,
            lambda: self.with_retry(lambda: self._generate(request)),
            ttl=self.settings.cache_ttl_interview_analysis,
        )

        logger.info(
            "interview analysis done for session %s in %.0fms",
            request.session_id, (time.perf_counter() - start) * 1000,
        )
        return result

    async def _generate(self, request: InterviewAnalysisRequest) -> Dict[str, Any]:
        content = await self.generate_completion(
            SYSTEM_PROMPT,
            USER_PROMPT.format(transcript=_transcript(request.questions, request.answers)),
            temperature=0.3,
            max_tokens=2000,
        )
        raw = self.parse_json_response(content)
        result = self.validate_result(InterviewAnalysisResult, self.normalize(raw))
        return result.to_payload()

    def normalize(self, raw: Any) -> Dict[str, Any]:
        """Overall and per-question scores are clamped to [0, 100]."""
        data = as_dict(raw)
        question_scores = []
        for entry in data.get("questionScores") or []:
            entry = as_dict(entry)
            question_scores.append({
                "questionId": str(entry.get("questionId") or ""),
                "score": clamp_score(entry.get("score"), field="question score"),
                "feedback": str(entry.get("feedback") or ""),
                "strengths": string_list(entry.get("strengths")),
                "improvements": string_list(entry.get("improvements")),
            })
        return {
            "overallScore": clamp_score(data.get("overallScore"), field="interview overall score"),
            "questionScores": question_scores,
            "summary": str(data.get("summary") or ""),
            "recommendations": string_list(data.get("recommendations")),
            "strengths": string_list(data.get("strengths")),
            "weaknesses": string_list(data.get("weaknesses")),
        }

    @staticmethod
    def estimate_processing_time(request: InterviewAnalysisRequest) -> int:
        questions = request.questions or []
        total_duration = sum(a.duration or 0 for a in request.answers or [])
        estimated = 30
        if len(questions) > 5:
            estimated += 10
        if len(questions) > 10:
            estimated += 15
        if total_duration > 300:
            estimated += 10
        if total_duration > 600:
            estimated += 15
        return estimated

    @staticmethod
    def extract_insights(request: InterviewAnalysisRequest) -> Dict[str, Any]:
        """Session statistics that need no model call."""
        questions = request.questions or []
        answers = request.answers or []
        total = sum(a.duration or 0 for a in answers)
        return {
            "questionTypes": dict(Counter(q.type for q in questions if q.type)),
            "questionDifficulty": dict(Counter(q.difficulty for q in questions if q.difficulty)),
            "averageAnswerDuration": total / len(answers) if answers else 0,
            "totalInterviewTime": total,
        }
