from typing import Literal

from fastapi import APIRouter, Depends, HTTPException, Query, status

from preview_reconciler.core.config import Settings, get_settings
from preview_reconciler.jobs.poller import FailureKind, PreviewPoller
from preview_reconciler.schemas.previews import DownloadUrlOut, PollSnapshotOut
from preview_reconciler.services.review_client import ReviewClient, get_review_client

router = APIRouter()


@router.get("/{job_id}", response_model=PollSnapshotOut)
async def get_preview(
    job_id: str,
    empty_retries: int = Query(0, ge=0),
    client: ReviewClient = Depends(get_review_client),
    settings: Settings = Depends(get_settings),
) -> PollSnapshotOut:
    # One poll per request. Callers re-request after retry_after_seconds and echo
    # back empty_retries so the empty-result limit holds across requests.
    poller = PreviewPoller.from_settings(client, job_id, settings, empty_retries=empty_retries)
    await poller.tick()
    snapshot = poller.snapshot()

    failure = snapshot.failure
    if failure is not None and failure.kind is FailureKind.AUTH_REQUIRED:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={"message": failure.message, "redirect_url": failure.redirect_url},
        )
    if failure is not None and failure.kind is FailureKind.TRANSPORT:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=failure.message)
    return PollSnapshotOut.from_snapshot(snapshot)


@router.get("/{job_id}/download-url", response_model=DownloadUrlOut)
async def get_download_url(
    job_id: str,
    report_format: Literal["pdf", "html"] = Query("pdf", alias="format"),
    client: ReviewClient = Depends(get_review_client),
) -> DownloadUrlOut:
    return DownloadUrlOut(job_id=job_id, format=report_format, url=client.download_url(job_id, report_format))
