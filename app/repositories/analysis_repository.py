"""Supabase PostgREST persistence for completed analyses"""
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import httpx

from app.core.error_codes import ErrorCodeDictionary
from app.exceptions import PersistenceError

logger = logging.getLogger(__name__)

CV_ANALYSES_TABLE = "cv_analyses"
INTERVIEW_ANALYSES_TABLE = "interview_analyses"
INTERVIEW_SESSIONS_TABLE = "interview_sessions"


class AnalysisRepository:
    """
    Writes and reads analysis rows through Supabase's PostgREST interface.

    The repository never talks to Postgres directly. When Supabase is not
    configured every call raises ``PersistenceError`` with
    ``PERSISTENCE_NOT_CONFIGURED``; callers decide whether that matters.
    """

    def __init__(
        self,
        base_url: Optional[str],
        service_key: Optional[str],
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = 10.0,
    ):
        self.base_url = base_url.rstrip("/") if base_url else None
        self.service_key = service_key
        self._client = client
        self._owns_client = client is None
        self.timeout = timeout

    @property
    def is_configured(self) -> bool:
        return bool(self.base_url and self.service_key)

    def _get_client(self) -> httpx.AsyncClient:
        if not self.is_configured:
            raise PersistenceError(error_code=ErrorCodeDictionary.PERSISTENCE_NOT_CONFIGURED)
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=f"{self.base_url}/rest/v1",
                timeout=self.timeout,
                headers={
                    "apikey": self.service_key,
                    "Authorization": f"Bearer {self.service_key}",
                    "Content-Type": "application/json",
                },
            )
            self._owns_client = True
        return self._client

    async def close(self):
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def _request(self, method: str, table: str, **kwargs) -> Any:
        client = self._get_client()
        try:
            response = await client.request(method, f"/{table}", **kwargs)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            logger.error(
                "PostgREST %s %s failed with %s: %s",
                method, table, e.response.status_code, e.response.text[:300],
            )
            raise PersistenceError(f"Database error: {e.response.status_code}") from e
        except httpx.HTTPError as e:
            logger.error("PostgREST %s %s failed: %s", method, table, e)
            raise PersistenceError(f"Database error: {e}") from e

        if not response.content:
            return None
        return response.json()

    async def _insert(self, table: str, record: Dict[str, Any]) -> str:
        rows = await self._request(
            "POST",
            table,
            json=record,
            headers={"Prefer": "return=representation"},
        )
        if not rows:
            raise PersistenceError(f"Insert into {table} returned no rows")
        return str(rows[0]["id"])

    # ---------- CV analyses ----------
    async def save_cv_analysis(
        self,
        user_id: str,
        job_description: str,
        result: Dict[str, Any],
        job_title: str = "",
        required_skills: Optional[List[str]] = None,
        file_count: int = 1,
        credits_cost: int = 5,
    ) -> str:
        """Insert a completed CV analysis. Returns the new row id."""
        record_id = await self._insert(
            CV_ANALYSES_TABLE,
            {
                "user_id": user_id,
                "job_title": job_title,
                "job_description": job_description,
                "required_skills": required_skills or [],
                "file_count": file_count,
                "results": result,
                "credits_cost": credits_cost,
                "status": "completed",
            },
        )
        logger.info("saved cv analysis %s for user %s", record_id, user_id)
        return record_id

    async def get_cv_analysis_history(
        self,
        user_id: str,
        limit: int = 10,
        offset: int = 0,
        status: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        params = {
            "select": "*",
            "user_id": f"eq.{user_id}",
            "order": "created_at.desc",
            "limit": str(limit),
            "offset": str(offset),
        }
        if status:
            params["status"] = f"eq.{status}"
        return await self._request("GET", CV_ANALYSES_TABLE, params=params) or []

    async def get_cv_analysis(self, analysis_id: str) -> Optional[Dict[str, Any]]:
        """One CV analysis row, or None when the id is unknown."""
        rows = await self._request(
            "GET",
            CV_ANALYSES_TABLE,
            params={"select": "*", "id": f"eq.{analysis_id}", "limit": "1"},
        )
        return rows[0] if rows else None

    async def delete_cv_analysis(self, analysis_id: str) -> None:
        await self._request("DELETE", CV_ANALYSES_TABLE, params={"id": f"eq.{analysis_id}"})
        logger.info("deleted cv analysis %s", analysis_id)

    async def get_cv_analysis_stats(self, user_id: str) -> Dict[str, int]:
        """
        Counts per status and the average score of completed analyses.

        Rows without a numeric score do not count towards the average.
        """
        rows = await self._request(
            "GET",
            CV_ANALYSES_TABLE,
            params={"select": "status,results", "user_id": f"eq.{user_id}"},
        ) or []

        stats = {"total": len(rows), "completed": 0, "failed": 0, "processing": 0, "averageScore": 0}
        scores = []
        for row in rows:
            status = row.get("status")
            if status in ("completed", "failed", "processing"):
                stats[status] += 1
            score = (row.get("results") or {}).get("score")
            if status == "completed" and isinstance(score, (int, float)):
                scores.append(score)
        if scores:
            stats["averageScore"] = round(sum(scores) / len(scores))
        return stats

    # ---------- Interview analyses ----------
    async def save_interview_analysis(
        self,
        session_id: str,
        result: Dict[str, Any],
        test_type: str = "interview",
    ) -> str:
        record_id = await self._insert(
            INTERVIEW_ANALYSES_TABLE,
            {
                "session_id": session_id,
                "test_type": test_type,
                "score": result.get("overallScore", 0),
                "strengths": result.get("strengths", []),
                "weaknesses": result.get("weaknesses", []),
                "analysis_data": result,
            },
        )
        logger.info("saved interview analysis %s for session %s", record_id, session_id)
        return record_id

    async def mark_session_completed(self, session_id: str) -> None:
        await self._request(
            "PATCH",
            INTERVIEW_SESSIONS_TABLE,
            params={"id": f"eq.{session_id}"},
            json={"status": "completed", "completed_at": datetime.now(timezone.utc).isoformat()},
        )
