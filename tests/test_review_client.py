from __future__ import annotations

import asyncio
from typing import Any

import httpx
import pytest

from preview_reconciler.services.review_client import (
    AuthenticationRequired,
    Job,
    ReviewClient,
    ReviewTransportError,
)
from preview_reconciler.services.status import JobState

BASE_URL = "https://review.example.gov/api"


def _call(handler, method: str, *args: Any) -> Any:
    async def run() -> Any:
        transport = httpx.MockTransport(handler)
        async with httpx.AsyncClient(transport=transport) as http_client:
            client = ReviewClient(BASE_URL, api_key="secret", client=http_client)
            return await getattr(client, method)(*args)

    return asyncio.run(run())


def test_get_status_reads_wrapped_status_and_sends_api_key() -> None:
    seen: dict[str, Any] = {}

    async def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["api_key"] = request.headers.get("x-api-key")
        return httpx.Response(
            200,
            json={"success": True, "data": {"status": "Finished", "created_at": "2026-03-01T08:00:00Z"}},
            request=request,
        )

    job = _call(handler, "get_status", "job 1")

    assert isinstance(job, Job)
    assert job.state is JobState.COMPLETED
    assert job.raw_status == "Finished"
    assert job.created_at is not None and job.created_at.year == 2026
    assert seen["url"] == "https://review.example.gov/api/preview/status/job%201"
    assert seen["api_key"] == "secret"


def test_get_status_reads_top_level_latest_status() -> None:
    async def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"latest_status": "running"}, request=request)

    assert _call(handler, "get_status", "job-1").state is JobState.PROCESSING


def test_get_result_returns_raw_body() -> None:
    body = {"success": True, "data": {"materials": [{"name": "License"}]}}

    async def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/api/preview/data/job-1"
        return httpx.Response(200, json=body, request=request)

    assert _call(handler, "get_result", "job-1") == body


def test_unauthorized_response_raises_authentication_required() -> None:
    async def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(401, json={"sso_url": "https://sso.example.gov/login"}, request=request)

    with pytest.raises(AuthenticationRequired) as exc_info:
        _call(handler, "get_status", "job-1")

    assert exc_info.value.redirect_url == "https://sso.example.gov/login"


def test_need_auth_marker_raises_authentication_required() -> None:
    async def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"need_auth": True, "redirect": "/login"}, request=request)

    with pytest.raises(AuthenticationRequired) as exc_info:
        _call(handler, "get_result", "job-1")

    assert exc_info.value.redirect_url == "/login"


def test_server_error_raises_transport_error() -> None:
    async def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(503, text="unavailable", request=request)

    with pytest.raises(ReviewTransportError) as exc_info:
        _call(handler, "get_status", "job-1")

    assert exc_info.value.status_code == 503


def test_invalid_json_raises_transport_error() -> None:
    async def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, text="<html>maintenance</html>", request=request)

    with pytest.raises(ReviewTransportError):
        _call(handler, "get_result", "job-1")


def test_network_failure_raises_transport_error() -> None:
    async def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(ReviewTransportError):
        _call(handler, "get_status", "job-1")


def test_download_url() -> None:
    client = ReviewClient(BASE_URL + "/")

    assert client.download_url("job-1") == "https://review.example.gov/api/preview/download/job-1?format=pdf"
    assert client.download_url("job-1", "html").endswith("?format=html")


def test_rejected_status_lookup_raises_transport_error() -> None:
    async def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"success": False, "errorMsg": "preview record not found"}, request=request)

    with pytest.raises(ReviewTransportError, match="preview record not found"):
        _call(handler, "get_status", "job-1")
