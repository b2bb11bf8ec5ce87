from __future__ import annotations

from dataclasses import asdict
from typing import Literal

from pydantic import BaseModel, Field

from preview_reconciler.jobs.poller import FailureKind, PollSnapshot, PollState
from preview_reconciler.services.payload import PayloadShape
from preview_reconciler.services.status import JobState, Status


class DocumentOut(BaseModel):
    type: Literal["image", "pdf", "text", "file", "none"] = "none"
    url: str = ""
    thumbnail_url: str = ""
    pages: list[str] = Field(default_factory=list)
    download_url: str = ""
    content: str | None = None
    mime_type: str | None = None
    page_count: int | None = None
    file_size: int | None = None


class ItemOut(BaseModel):
    id: str
    name: str
    status: Status
    document: DocumentOut
    check_point: str = ""
    ocr_success: bool = True


class PreviewImageOut(BaseModel):
    status_icon: str
    has_ocr_image: bool
    ocr_image: str
    preview_url: str


class MaterialOut(BaseModel):
    id: str
    name: str
    status: Status
    items: list[ItemOut]
    count: int
    code: str | None = None
    expanded: bool = False
    image: PreviewImageOut | None = None


class AggregateOut(BaseModel):
    status: Status
    progress: int = Field(ge=0, le=100)
    message: str
    issue_count: int
    passed_count: int
    total: int
    authoritative: bool = False


class BasicInfoOut(BaseModel):
    applicant: str
    application_type: str
    audit_organ: str


class PassedMaterialOut(BaseModel):
    ordinal: int
    name: str


class ReportLinksOut(BaseModel):
    primary: str | None = None
    fallback: str | None = None
    pdf: str | None = None
    html: str | None = None
    pdf_source: str | None = None
    html_source: str | None = None


class PreviewResultOut(BaseModel):
    shape: PayloadShape
    materials: list[MaterialOut]
    aggregate: AggregateOut
    basic_info: BasicInfoOut
    passed_materials: list[PassedMaterialOut] = Field(default_factory=list)
    reports: ReportLinksOut
    error_message: str | None = None


class PollFailureOut(BaseModel):
    kind: FailureKind
    message: str
    redirect_url: str | None = None
    status_code: int | None = None


class PollSnapshotOut(BaseModel):
    job_id: str
    state: PollState
    attempts: int
    empty_retries: int
    last_status: JobState | None = None
    result: PreviewResultOut | None = None
    failure: PollFailureOut | None = None
    retry_after_seconds: float | None = None

    @classmethod
    def from_snapshot(cls, snapshot: PollSnapshot) -> PollSnapshotOut:
        return cls.model_validate(asdict(snapshot))


class DownloadUrlOut(BaseModel):
    job_id: str
    format: Literal["pdf", "html"]
    url: str
