from __future__ import annotations

import asyncio
import json
from typing import Any

from preview_reconciler import worker
from preview_reconciler.core.config import Settings
from preview_reconciler.jobs.poller import PollSnapshot, PollState
from preview_reconciler.services.review_client import Job
from preview_reconciler.services.status import JobState


class ScriptedClient:
    def __init__(self, statuses: list[JobState], result: Any) -> None:
        self._statuses = list(statuses)
        self._result = result

    async def get_status(self, job_id: str) -> Job:
        return Job(id=job_id, state=self._statuses.pop(0))

    async def get_result(self, job_id: str) -> Any:
        return self._result


def _settings() -> Settings:
    return Settings(public_origin="https://review.example.gov", otel_enabled=False)


def test_run_poll_drives_job_to_completion() -> None:
    delays: list[float] = []

    async def sleep(delay: float) -> None:
        delays.append(delay)

    client = ScriptedClient(
        [JobState.PROCESSING, JobState.COMPLETED],
        [{"field": "Signature", "result": "fail: missing"}],
    )

    snapshot = asyncio.run(worker.run_poll("job-7", settings=_settings(), client=client, sleep=sleep))

    assert snapshot.state is PollState.COMPLETED
    assert delays == [2.0]
    assert snapshot.result is not None
    assert snapshot.result.aggregate.status.value == "error"


def test_main_prints_snapshot_and_returns_status_code(monkeypatch, capsys) -> None:
    captured: dict[str, Any] = {}

    async def fake_run_poll(job_id: str, **kwargs: Any) -> PollSnapshot:
        captured["job_id"] = job_id
        captured["kwargs"] = kwargs
        return PollSnapshot(
            job_id=job_id,
            state=PollState.FAILED,
            attempts=1,
            empty_retries=0,
            last_status=JobState.FAILED,
            result=None,
            failure=None,
            retry_after_seconds=None,
        )

    monkeypatch.setattr(worker, "get_settings", _settings)
    monkeypatch.setattr(worker, "run_poll", fake_run_poll)

    exit_code = worker.main(["job-9", "--timeout", "30", "--indent", "0"])

    assert exit_code == 1
    assert captured["job_id"] == "job-9"
    assert captured["kwargs"]["poll_timeout_seconds"] == 30.0
    printed = json.loads(capsys.readouterr().out)
    assert printed["job_id"] == "job-9"
    assert printed["state"] == "failed"
    assert printed["last_status"] == "failed"


def test_parse_args_defaults() -> None:
    args = worker.parse_args(["job-1"])

    assert args.job_id == "job-1"
    assert args.timeout is None
    assert args.indent == 2
