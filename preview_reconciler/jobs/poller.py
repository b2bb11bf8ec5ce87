from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Mapping, Protocol

from opentelemetry import trace

from preview_reconciler.core.config import Settings
from preview_reconciler.core.urls import URLContext
from preview_reconciler.services.preview import PreviewResult, build_preview_result
from preview_reconciler.services.review_client import (
    AuthenticationRequired,
    Job,
    ReviewTransportError,
)
from preview_reconciler.services.status import JobState, Status, parse_status_synonyms

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

POLL_INTERVAL_SECONDS = 2.0
EMPTY_RESULT_RETRY_SECONDS = 3.0
EMPTY_RESULT_MAX_RETRIES = 1


class PollState(str, Enum):
    IDLE = "idle"
    POLLING = "polling"
    COMPLETED_BUT_EMPTY = "completed_but_empty"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


TERMINAL_POLL_STATES = {PollState.COMPLETED, PollState.FAILED, PollState.CANCELLED}


class FailureKind(str, Enum):
    TRANSPORT = "transport"
    AUTH_REQUIRED = "auth_required"
    JOB_FAILED = "job_failed"
    EMPTY_RESULT = "empty_result"
    TIMEOUT = "timeout"


@dataclass(slots=True)
class PollFailure:
    kind: FailureKind
    message: str
    redirect_url: str | None = None
    status_code: int | None = None


@dataclass(slots=True)
class PollSnapshot:
    job_id: str
    state: PollState
    attempts: int
    empty_retries: int
    last_status: JobState | None
    result: PreviewResult | None
    failure: PollFailure | None
    retry_after_seconds: float | None


class ReviewBackend(Protocol):
    async def get_status(self, job_id: str) -> Job: ...

    async def get_result(self, job_id: str) -> Any: ...


Sleep = Callable[[float], Awaitable[Any]]
TransitionHook = Callable[[PollState, PollState], None]


class PreviewPoller:
    """Drive one review job from submission to a renderable result.

    ``Idle -> Polling`` on :meth:`run`, which fetches immediately. Non-terminal
    statuses re-poll after ``poll_interval_seconds``. A completed job whose
    result has no material data yet is ``CompletedButEmpty`` and is re-fetched
    after ``empty_result_retry_seconds``, at most ``empty_result_max_retries``
    times before failing with ``empty_result``. A failed job, a transport error
    and an authentication demand all stop polling without retry.

    Only one request is outstanding at a time and the result body is
    normalized once per successful terminal fetch. :meth:`cancel` stops the
    pending timer; a response that lands after cancellation is discarded.
    """

    def __init__(
        self,
        client: ReviewBackend,
        job_id: str,
        *,
        context: URLContext | None = None,
        status_table: Mapping[str, Status] | None = None,
        poll_interval_seconds: float = POLL_INTERVAL_SECONDS,
        empty_result_retry_seconds: float = EMPTY_RESULT_RETRY_SECONDS,
        empty_result_max_retries: int = EMPTY_RESULT_MAX_RETRIES,
        poll_timeout_seconds: float | None = None,
        empty_retries: int = 0,
        sleep: Sleep = asyncio.sleep,
        on_transition: TransitionHook | None = None,
    ) -> None:
        self.client = client
        self.job_id = job_id
        self.context = context or URLContext()
        self.status_table = status_table
        self.poll_interval_seconds = poll_interval_seconds
        self.empty_result_retry_seconds = empty_result_retry_seconds
        self.empty_result_max_retries = max(0, empty_result_max_retries)
        self.poll_timeout_seconds = poll_timeout_seconds
        self._sleep = sleep
        self._on_transition = on_transition

        self.state = PollState.IDLE
        self.attempts = 0
        self.empty_retries = max(0, empty_retries)
        self.last_status: JobState | None = None
        self.result: PreviewResult | None = None
        self.failure: PollFailure | None = None
        self.retry_after_seconds: float | None = None
        self._waited_seconds = 0.0
        self._in_flight = False
        self._cancelled = False
        self._timer: asyncio.Future[Any] | None = None

    @classmethod
    def from_settings(cls, client: ReviewBackend, job_id: str, settings: Settings, **kwargs: Any) -> PreviewPoller:
        options: dict[str, Any] = {
            "context": URLContext.from_origin(settings.public_origin, custom_schemes=settings.custom_url_schemes),
            "status_table": parse_status_synonyms(settings.status_synonyms_json),
            "poll_interval_seconds": settings.poll_interval_seconds,
            "empty_result_retry_seconds": settings.empty_result_retry_seconds,
            "empty_result_max_retries": settings.empty_result_max_retries,
            "poll_timeout_seconds": settings.poll_timeout_seconds,
        }
        options.update(kwargs)
        return cls(client, job_id, **options)

    @property
    def is_terminal(self) -> bool:
        return self.state in TERMINAL_POLL_STATES

    async def run(self) -> PollSnapshot:
        if self.state is not PollState.IDLE:
            raise RuntimeError(f"poller for job {self.job_id} already started")

        delay = await self.tick()
        while delay is not None and not self._cancelled:
            self._timer = asyncio.ensure_future(self._sleep(delay))
            try:
                await self._timer
            except asyncio.CancelledError:
                if not self._cancelled:
                    raise
            finally:
                self._timer = None
            if self._cancelled:
                break
            delay = await self.tick()
        return self.snapshot()

    async def tick(self) -> float | None:
        """Issue one status fetch and apply the resulting transition.

        Returns the delay before the next fetch, or ``None`` once terminal.
        """
        if self.is_terminal:
            return None
        if self._in_flight:
            raise RuntimeError(f"a poll for job {self.job_id} is already in flight")
        if self.state is PollState.IDLE:
            self._transition(PollState.POLLING)

        self._in_flight = True
        self.attempts += 1
        try:
            with tracer.start_as_current_span("preview.poll_tick") as span:
                span.set_attribute("job.id", self.job_id)
                span.set_attribute("poll.attempt", self.attempts)
                return await self._poll_once()
        finally:
            self._in_flight = False

    def cancel(self) -> None:
        if self._cancelled:
            return
        self._cancelled = True
        if self._timer is not None and not self._timer.done():
            self._timer.cancel()
        if not self.is_terminal:
            self.retry_after_seconds = None
            self._transition(PollState.CANCELLED)

    def snapshot(self) -> PollSnapshot:
        return PollSnapshot(
            job_id=self.job_id,
            state=self.state,
            attempts=self.attempts,
            empty_retries=self.empty_retries,
            last_status=self.last_status,
            result=self.result,
            failure=self.failure,
            retry_after_seconds=self.retry_after_seconds,
        )

    async def _poll_once(self) -> float | None:
        try:
            job = await self.client.get_status(self.job_id)
            if self._cancelled:
                return None
            self.last_status = job.state
            if job.state is JobState.FAILED:
                return self._fail(FailureKind.JOB_FAILED, f"review job {self.job_id} failed")
            if job.state is not JobState.COMPLETED:
                self._transition(PollState.POLLING)
                return self._schedule(self.poll_interval_seconds)

            payload = await self.client.get_result(self.job_id)
        except AuthenticationRequired as exc:
            if self._cancelled:
                return None
            return self._fail(FailureKind.AUTH_REQUIRED, str(exc), redirect_url=exc.redirect_url)
        except ReviewTransportError as exc:
            if self._cancelled:
                return None
            return self._fail(FailureKind.TRANSPORT, str(exc), status_code=exc.status_code)

        if self._cancelled:
            return None

        result = build_preview_result(payload, context=self.context, status_table=self.status_table)
        self.result = result
        if result.is_materialized:
            logger.info(
                "preview job %s completed: %s materials, overall=%s",
                self.job_id,
                len(result.materials),
                result.aggregate.status.value,
            )
            self.retry_after_seconds = None
            self._transition(PollState.COMPLETED)
            return None

        if self.empty_retries >= self.empty_result_max_retries:
            return self._fail(
                FailureKind.EMPTY_RESULT,
                f"review job {self.job_id} completed but its result was not available "
                f"after {self.empty_retries} retries",
            )
        self.empty_retries += 1
        self._transition(PollState.COMPLETED_BUT_EMPTY)
        return self._schedule(self.empty_result_retry_seconds)

    def _schedule(self, delay: float) -> float | None:
        if self.poll_timeout_seconds is not None and self._waited_seconds + delay > self.poll_timeout_seconds:
            return self._fail(
                FailureKind.TIMEOUT,
                f"review job {self.job_id} did not finish within {self.poll_timeout_seconds:g}s",
            )
        self._waited_seconds += delay
        self.retry_after_seconds = delay
        return delay

    def _fail(
        self,
        kind: FailureKind,
        message: str,
        *,
        redirect_url: str | None = None,
        status_code: int | None = None,
    ) -> None:
        logger.warning("preview job %s stopped polling: %s (%s)", self.job_id, kind.value, message)
        self.failure = PollFailure(kind=kind, message=message, redirect_url=redirect_url, status_code=status_code)
        self.retry_after_seconds = None
        self._transition(PollState.FAILED)
        return None

    def _transition(self, new_state: PollState) -> None:
        old_state = self.state
        if old_state is new_state:
            return
        self.state = new_state
        logger.info("preview job %s: %s -> %s", self.job_id, old_state.value, new_state.value)
        if self._on_transition is not None:
            self._on_transition(old_state, new_state)
