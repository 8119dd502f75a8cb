"""Shared OpenAI plumbing for the domain AI services"""
import asyncio
import json
import logging
import re
import time
from typing import Any, Awaitable, Callable, Iterable, Optional, Type, TypeVar

import openai
from openai import AsyncOpenAI
from pydantic import BaseModel, ValidationError
from pydantic.alias_generators import to_camel

from app.core.config import Settings
from app.core.error_codes import ErrorCodeDictionary
from app.exceptions import InvalidRequestError, MalformedAIResponseError, RecruiterError, UpstreamAIError
from app.services.cache import CacheService

logger = logging.getLogger(__name__)

T = TypeVar("T")
M = TypeVar("M", bound=BaseModel)

_FENCE_START = re.compile(r"^```(?:json)?\s*", re.IGNORECASE)
_FENCE_END = re.compile(r"\s*```$")


def build_openai_client(settings: Settings) -> AsyncOpenAI:
    """
    Create the AsyncOpenAI client used by every AI service.

    SDK-level retries are disabled; ``BaseAIService.with_retry`` owns retrying.
    """
    return AsyncOpenAI(
        api_key=settings.openai_api_key,
        base_url=settings.openai_base_url,
        timeout=settings.openai_timeout_seconds,
        max_retries=0,
    )


def require_fields(request: BaseModel, *fields: str) -> None:
    """Raise MISSING_FIELDS when any of ``fields`` is None, blank or empty."""
    missing = []
    for name in fields:
        value = getattr(request, name, None)
        if value is None or (isinstance(value, str) and not value.strip()):
            missing.append(name)
        elif isinstance(value, (list, tuple)) and len(value) == 0:
            missing.append(name)
    if missing:
        aliases = [to_camel(name) for name in missing]
        raise InvalidRequestError(
            message=f"Missing required fields: {', '.join(aliases)}",
            error_code=ErrorCodeDictionary.MISSING_FIELDS,
            context={"missing": aliases},
        )


def strip_code_fences(content: str) -> str:
    clean = content.strip()
    if clean.startswith("```"):
        clean = _FENCE_START.sub("", clean)
        clean = _FENCE_END.sub("", clean)
    return clean.strip()


class BaseAIService:
    """
    Base class for services that turn a request into a JSON chat completion.

    Subclasses own validation, prompt construction and normalization; this
    class owns the OpenAI call, retries, JSON parsing and the cache handle.
    """

    operation: str = "ai"

    def __init__(self, client: AsyncOpenAI, cache: CacheService, settings: Settings):
        self.client = client
        self.cache = cache
        self.settings = settings
        self.max_retries = max(1, settings.ai_max_retries)
        self.backoff_seconds = settings.ai_backoff_seconds

    async def with_retry(
        self,
        operation: Callable[[], Awaitable[T]],
        operation_name: Optional[str] = None,
        retries: Optional[int] = None,
    ) -> T:
        """
        Run ``operation`` retrying retryable failures with exponential backoff.

        Non-retryable errors (e.g. InvalidRequestError) are raised at once.
        """
        name = operation_name or self.operation
        retries = retries or self.max_retries
        start = time.perf_counter()

        for attempt in range(1, retries + 1):
            try:
                result = await operation()
            except RecruiterError as e:
                duration_ms = (time.perf_counter() - start) * 1000
                logger.warning(
                    "openai %s attempt %d/%d failed after %.0fms: %s",
                    name, attempt, retries, duration_ms, e.message,
                )
                if not e.retryable or attempt == retries:
                    logger.error("openai %s giving up after %d attempt(s): %s", name, attempt, e.message)
                    raise
                await asyncio.sleep(self.backoff_seconds * 2 ** (attempt - 1))
            else:
                duration_ms = (time.perf_counter() - start) * 1000
                logger.info("openai %s succeeded in %.0fms (attempt %d)", name, duration_ms, attempt)
                return result

        raise UpstreamAIError(f"{name} failed after {retries} attempts")

    async def generate_completion(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float = 0.3,
        max_tokens: int = 2000,
        model: Optional[str] = None,
    ) -> str:
        """Single chat completion; returns the message content."""
        try:
            response = await self.client.chat.completions.create(
                model=model or self.settings.openai_model,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": user_prompt},
                ],
                temperature=temperature,
                max_tokens=max_tokens,
            )
        except openai.OpenAIError as e:
            raise UpstreamAIError(f"OpenAI request failed: {e}") from e

        content = response.choices[0].message.content if response.choices else None
        if not content:
            raise UpstreamAIError(error_code=ErrorCodeDictionary.AI_EMPTY_RESPONSE)
        return content

    def parse_json_response(self, content: str, operation: Optional[str] = None) -> Any:
        """Parse model output as JSON, tolerating markdown code fences."""
        name = operation or self.operation
        try:
            return json.loads(strip_code_fences(content))
        except ValueError as e:
            logger.error("failed to parse %s response: %s (content=%r)", name, e, content[:500])
            raise MalformedAIResponseError(f"Failed to parse {name} response") from e

    def validate_result(self, model: Type[M], data: Any, operation: Optional[str] = None) -> M:
        """Validate normalized output against its result schema."""
        try:
            return model.model_validate(data)
        except ValidationError as e:
            name = operation or self.operation
            logger.error("%s response does not match schema: %s", name, e)
            raise MalformedAIResponseError(f"Unexpected {name} response shape") from e

    async def health_check(self) -> bool:
        try:
            content = await self.generate_completion(
                "You are a health check.",
                'Respond with "OK" if you can process this request.',
                temperature=0,
                max_tokens=10,
            )
        except UpstreamAIError as e:
            logger.error("openai health check failed: %s", e.message)
            return False
        return "OK" in content


def trimmed(values: Iterable[str]) -> list:
    return [v.strip() for v in values if v and v.strip()]
