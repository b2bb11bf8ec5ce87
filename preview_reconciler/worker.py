from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from typing import Any, Sequence

from opentelemetry import trace

from preview_reconciler.core.config import Settings, get_settings
from preview_reconciler.core.telemetry import configure_logging, setup_telemetry, shutdown_telemetry
from preview_reconciler.jobs.poller import PollSnapshot, PollState, PreviewPoller, ReviewBackend, Sleep
from preview_reconciler.schemas.previews import PollSnapshotOut
from preview_reconciler.services.review_client import ReviewClient

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Poll a review job until its preview result is ready.")
    parser.add_argument("job_id", help="Review job identifier.")
    parser.add_argument(
        "--timeout",
        type=float,
        default=None,
        help="Give up after this many seconds of waiting (default: PREVIEW_POLL_TIMEOUT_SECONDS or no limit).",
    )
    parser.add_argument("--indent", type=int, default=2, help="JSON indentation for the printed snapshot.")
    return parser.parse_args(argv)


async def run_poll(
    job_id: str,
    *,
    settings: Settings | None = None,
    client: ReviewBackend | None = None,
    sleep: Sleep = asyncio.sleep,
    **overrides: Any,
) -> PollSnapshot:
    settings = settings or get_settings()
    if client is None:
        client = ReviewClient(
            base_url=settings.review_api_base_url,
            api_key=settings.review_api_key,
            timeout_seconds=settings.request_timeout_seconds,
        )
    poller = PreviewPoller.from_settings(client, job_id, settings, sleep=sleep, **overrides)
    with tracer.start_as_current_span("preview.poll_job") as span:
        span.set_attribute("job.id", job_id)
        try:
            snapshot = await poller.run()
        except asyncio.CancelledError:
            poller.cancel()
            raise
        span.set_attribute("poll.state", snapshot.state.value)
    return snapshot


def main(argv: Sequence[str] | None = None) -> int:
    args = parse_args(argv)
    settings = get_settings()
    configure_logging()
    telemetry_runtime = setup_telemetry(settings)

    overrides: dict[str, Any] = {}
    if args.timeout is not None:
        overrides["poll_timeout_seconds"] = args.timeout

    try:
        snapshot = asyncio.run(run_poll(args.job_id, settings=settings, **overrides))
    except KeyboardInterrupt:
        logger.info("polling for job %s interrupted", args.job_id)
        return 130
    finally:
        shutdown_telemetry(telemetry_runtime)

    print(PollSnapshotOut.from_snapshot(snapshot).model_dump_json(indent=args.indent))
    return 0 if snapshot.state is PollState.COMPLETED else 1


if __name__ == "__main__":
    sys.exit(main())
