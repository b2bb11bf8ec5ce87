from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from functools import lru_cache
from typing import Any, Literal
from urllib.parse import quote, urlencode

import httpx

from preview_reconciler.core.config import get_settings
from preview_reconciler.services.status import JobState, map_job_state

ReportFormat = Literal["pdf", "html"]


class ReviewClientError(Exception):
    """Base error for calls to the review backend."""


class ReviewTransportError(ReviewClientError):
    """Raised when the backend cannot be reached or answers with an unusable response."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class AuthenticationRequired(ReviewClientError):
    """Raised when the backend asks the caller to authenticate first."""

    def __init__(self, message: str = "authentication required", *, redirect_url: str | None = None) -> None:
        super().__init__(message)
        self.redirect_url = redirect_url


@dataclass(slots=True)
class Job:
    id: str
    state: JobState
    created_at: datetime | None = None
    raw_status: str | None = None


class ReviewClient:
    def __init__(
        self,
        base_url: str,
        *,
        api_key: str | None = None,
        timeout_seconds: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout_seconds = timeout_seconds
        self.headers = {"Accept": "application/json"}
        if api_key:
            self.headers["X-API-Key"] = api_key
        self._client = client

    async def get_status(self, job_id: str) -> Job:
        body = await self._get_json(f"/preview/status/{quote(job_id, safe='')}")
        if isinstance(body, dict) and body.get("success") is False:
            raise ReviewTransportError(_failure_message(body) or f"status lookup for job {job_id} was rejected")
        record = body.get("data") if isinstance(body, dict) and isinstance(body.get("data"), dict) else body
        if not isinstance(record, dict):
            raise ReviewTransportError(f"unexpected status body for job {job_id}")
        raw_status = record.get("status") or record.get("latest_status")
        return Job(
            id=job_id,
            state=map_job_state(raw_status),
            created_at=_parse_timestamp(record.get("created_at")),
            raw_status=raw_status if isinstance(raw_status, str) else None,
        )

    async def get_result(self, job_id: str) -> Any:
        return await self._get_json(f"/preview/data/{quote(job_id, safe='')}")

    def download_url(self, job_id: str, report_format: ReportFormat = "pdf") -> str:
        query = urlencode({"format": report_format})
        return f"{self.base_url}/preview/download/{quote(job_id, safe='')}?{query}"

    async def _get_json(self, path: str) -> Any:
        if self._client is not None:
            return await self._request(self._client, path)
        async with httpx.AsyncClient(timeout=self.timeout_seconds) as client:
            return await self._request(client, path)

    async def _request(self, client: httpx.AsyncClient, path: str) -> Any:
        try:
            response = await client.get(f"{self.base_url}{path}", headers=self.headers)
        except httpx.HTTPError as exc:
            raise ReviewTransportError(f"request to {path} failed: {exc}") from exc

        body = _json_or_none(response)
        if response.status_code == httpx.codes.UNAUTHORIZED:
            raise AuthenticationRequired(redirect_url=_redirect_of(body))
        if response.is_error:
            raise ReviewTransportError(
                f"HTTP {response.status_code} from {path}",
                status_code=response.status_code,
            )
        if body is None:
            raise ReviewTransportError(f"invalid JSON from {path}", status_code=response.status_code)
        if isinstance(body, dict) and body.get("need_auth"):
            raise AuthenticationRequired(redirect_url=_redirect_of(body))
        return body


@lru_cache
def get_review_client() -> ReviewClient:
    settings = get_settings()
    return ReviewClient(
        base_url=settings.review_api_base_url,
        api_key=settings.review_api_key,
        timeout_seconds=settings.request_timeout_seconds,
    )


def _json_or_none(response: httpx.Response) -> Any:
    try:
        return response.json()
    except (ValueError, RecursionError):
        return None


def _redirect_of(body: Any) -> str | None:
    if not isinstance(body, dict):
        return None
    for key in ("redirect", "sso_url"):
        value = body.get(key)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return None


def _parse_timestamp(value: Any) -> datetime | None:
    if not isinstance(value, str) or not value.strip():
        return None
    try:
        dt = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    except ValueError:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def _failure_message(body: dict[str, Any]) -> str | None:
    for key in ("errorMsg", "error_msg", "error", "message"):
        value = body.get(key)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return None
