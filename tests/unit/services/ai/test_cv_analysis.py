"""Unit tests for CV analysis"""
import json

import openai
import pytest

from app.exceptions import InvalidRequestError, UpstreamAIError
from app.schemas.ai import BatchCVItem, CVAnalysisRequest
from app.services.ai.cv_analysis import CVAnalysisService
from conftest import CV_RESULT, CV_TEXT, JOB_REQUIREMENTS


@pytest.fixture
def service(openai_client, cache, test_settings):
    return CVAnalysisService(openai_client, cache, test_settings)


def make_request(**overrides):
    data = {"cv_text": CV_TEXT, "job_requirements": JOB_REQUIREMENTS, "user_id": "user-1"}
    data.update(overrides)
    return CVAnalysisRequest(**data)


class TestValidation:
    def test_missing_fields_are_listed(self, service):
        """Test every missing field is named in camelCase"""
        with pytest.raises(InvalidRequestError) as exc_info:
            service.validate_request(CVAnalysisRequest())
        assert exc_info.value.code == "MISSING_FIELDS"
        assert exc_info.value.context["missing"] == ["cvText", "jobRequirements", "userId"]

    def test_blank_field_counts_as_missing(self, service):
        """Test whitespace-only fields count as missing"""
        with pytest.raises(InvalidRequestError) as exc_info:
            service.validate_request(make_request(cv_text="   "))
        assert exc_info.value.context["missing"] == ["cvText"]

    def test_short_cv_is_rejected(self, service):
        """Test a CV under the minimum length is rejected"""
        with pytest.raises(InvalidRequestError) as exc_info:
            service.validate_request(make_request(cv_text="too short"))
        assert exc_info.value.code == "INVALID_REQUEST"

    def test_short_requirements_are_rejected(self, service):
        """Test requirements under the minimum length are rejected"""
        with pytest.raises(InvalidRequestError) as exc_info:
            service.validate_request(make_request(job_requirements="python"))
        assert exc_info.value.code == "INVALID_REQUEST"

    def test_values_are_trimmed(self, service):
        """Test surrounding whitespace is stripped"""
        request = service.validate_request(make_request(cv_text=f"  {CV_TEXT}  ", user_id=" u "))
        assert request.cv_text == CV_TEXT
        assert request.user_id == "u"

    def test_accepts_camel_case_payload(self, service):
        """Test camelCase payloads validate"""
        request = CVAnalysisRequest.model_validate(
            {"cvText": CV_TEXT, "jobRequirements": JOB_REQUIREMENTS, "userId": "u"}
        )
        assert service.validate_request(request).job_requirements == JOB_REQUIREMENTS


class TestAnalyze:
    async def test_returns_camel_case_result(self, service):
        """Test results serialize with camelCase keys"""
        result = await service.analyze(make_request())
        assert result["score"] == 82
        assert result["matchPercentage"] == 78
        assert result["keySkills"] == ["python", "fastapi", "aws"]
        assert result["experience"]["relevantExperience"] == ["Backend services"]

    async def test_scores_are_clamped(self, service, openai_client):
        """Test scores are clamped to 0..100 integers"""
        openai_client.respond({**CV_RESULT, "score": 150, "matchPercentage": "-5"})
        result = await service.analyze(make_request())
        assert result["score"] == 100
        assert result["matchPercentage"] == 0

    async def test_code_fenced_json_is_accepted(self, service, openai_client):
        """Test JSON inside a code fence is parsed"""
        openai_client.respond(f"```json\n{json.dumps(CV_RESULT)}\n```")
        result = await service.analyze(make_request())
        assert result["summary"] == "Strong backend candidate"

    async def test_identical_request_is_served_from_cache(self, service, openai_client):
        """Test a repeated request makes no second model call"""
        first = await service.analyze(make_request())
        second = await service.analyze(make_request())
        assert first == second
        assert len(openai_client.calls) == 1

    async def test_different_user_misses_cache(self, service, openai_client):
        """Test another user's identical request is a cache miss"""
        await service.analyze(make_request())
        await service.analyze(make_request(user_id="user-2"))
        assert len(openai_client.calls) == 2

    async def test_malformed_response_is_retried(self, service, openai_client):
        """Test invalid JSON is retried"""
        openai_client.respond("this is not json", CV_RESULT)
        result = await service.analyze(make_request())
        assert result["score"] == 82
        assert len(openai_client.calls) == 2

    async def test_gives_up_after_max_retries(self, service, openai_client, cache):
        """Test the service stops after ai_max_retries and caches nothing"""
        openai_client.respond(openai.OpenAIError("provider down"))
        with pytest.raises(UpstreamAIError) as exc_info:
            await service.analyze(make_request())
        assert exc_info.value.code == "AI_REQUEST_FAILED"
        assert len(openai_client.calls) == 3

        key = cache.cv_analysis_key(CV_TEXT, JOB_REQUIREMENTS, "user-1")
        assert await cache.get(key) is None

    async def test_empty_response(self, service, openai_client):
        """Test an empty completion is AI_EMPTY_RESPONSE"""
        openai_client.respond("")
        with pytest.raises(UpstreamAIError) as exc_info:
            await service.analyze(make_request())
        assert exc_info.value.code == "AI_EMPTY_RESPONSE"

    async def test_invalid_request_is_not_sent_to_the_model(self, service, openai_client):
        """Test invalid input never reaches the model"""
        with pytest.raises(InvalidRequestError):
            await service.analyze(make_request(cv_text="short"))
        assert openai_client.calls == []


class TestBatch:
    async def test_one_bad_cv_does_not_fail_the_batch(self, service):
        """Test a failing item is reported without failing the batch"""
        items = [
            BatchCVItem(cv_text=CV_TEXT, candidate_id="c1"),
            BatchCVItem(cv_text="short", candidate_id="c2"),
        ]
        results = await service.batch_analyze(items, JOB_REQUIREMENTS, "user-1", delay_seconds=0)

        assert [r["candidateId"] for r in results] == ["c1", "c2"]
        assert results[0]["result"]["score"] == 82
        assert "error" not in results[0]
        assert results[1]["error"]
        assert results[1]["result"]["score"] == 0

    async def test_empty_batch_is_rejected(self, service):
        """Test an empty batch is rejected"""
        with pytest.raises(InvalidRequestError) as exc_info:
            await service.batch_analyze([], JOB_REQUIREMENTS, "user-1")
        assert exc_info.value.code == "MISSING_FIELDS"


class TestHeuristics:
    def test_estimate_grows_with_input(self):
        """Test longer CVs get longer estimates"""
        short = make_request()
        long = make_request(cv_text="x" * 6000, job_requirements="y" * 1200)
        assert CVAnalysisService.estimate_processing_time(short) == 20
        assert CVAnalysisService.estimate_processing_time(long) == 60

    def test_cv_summary(self):
        """Test the keyword summary finds skills and experience"""
        summary = CVAnalysisService.extract_cv_summary("Senior engineer, PhD. Python, Docker and SQL.")
        assert summary["estimatedExperience"] == 5
        assert summary["educationLevel"] == "phd"
        assert {"python", "docker", "sql"} <= set(summary["keySkills"])
