from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping

from preview_reconciler.core.urls import URLContext, canonicalize
from preview_reconciler.services.aggregate import AggregateResult, aggregate
from preview_reconciler.services.materials import Material, materials_from_decoded
from preview_reconciler.services.payload import PayloadShape, decode_payload
from preview_reconciler.services.status import Status

DEFAULT_APPLICANT = "Applicant"
DEFAULT_APPLICATION_TYPE = "Business type"
DEFAULT_AUDIT_ORGAN = "Smart pre-review system"


@dataclass(slots=True)
class BasicInfo:
    applicant: str = DEFAULT_APPLICANT
    application_type: str = DEFAULT_APPLICATION_TYPE
    audit_organ: str = DEFAULT_AUDIT_ORGAN


@dataclass(slots=True)
class PassedMaterial:
    ordinal: int
    name: str


@dataclass(slots=True)
class ReportLinks:
    primary: str | None = None
    fallback: str | None = None
    pdf: str | None = None
    html: str | None = None
    pdf_source: str | None = None
    html_source: str | None = None


@dataclass(slots=True)
class PreviewResult:
    shape: PayloadShape
    materials: list[Material]
    aggregate: AggregateResult
    basic_info: BasicInfo = field(default_factory=BasicInfo)
    passed_materials: list[PassedMaterial] = field(default_factory=list)
    reports: ReportLinks = field(default_factory=ReportLinks)
    error_message: str | None = None

    @property
    def is_materialized(self) -> bool:
        return self.shape is not PayloadShape.UNRECOGNIZED


def build_preview_result(
    payload: Any,
    *,
    context: URLContext | None = None,
    status_table: Mapping[str, Status] | None = None,
) -> PreviewResult:
    """Normalize one raw result body into the canonical preview model.

    Pure: the same payload always yields an equal result, so duplicate or
    late deliveries can simply be normalized again.
    """
    ctx = context or URLContext()
    decoded = decode_payload(payload)
    materials = materials_from_decoded(decoded, context=ctx, status_table=status_table)
    return PreviewResult(
        shape=decoded.shape,
        materials=materials,
        # The sentinel material, not a stray summary, drives an unrecognized result.
        aggregate=aggregate(materials, None if decoded.shape is PayloadShape.UNRECOGNIZED else decoded.summary),
        basic_info=extract_basic_info(decoded.body, decoded.evaluation),
        passed_materials=[
            PassedMaterial(ordinal=ordinal, name=material.name)
            for ordinal, material in enumerate(
                (material for material in materials if material.status is Status.PASSED),
                start=1,
            )
        ],
        reports=resolve_report_links(decoded.body.get("files"), ctx),
        error_message=decoded.error_message,
    )


def extract_basic_info(body: dict[str, Any], evaluation: dict[str, Any] | None) -> BasicInfo:
    source = evaluation.get("basic_info") if evaluation else None
    basic = source if isinstance(source, dict) else {}
    return BasicInfo(
        applicant=_first_text(
            basic.get("applicant_name"),
            body.get("applicant_name"),
            body.get("applicant"),
            _form_value(body, "legalRep.FDDBR"),
            _form_value(body, "self.DWMC"),
        )
        or DEFAULT_APPLICANT,
        application_type=_first_text(basic.get("matter_name"), body.get("matter_name")) or DEFAULT_APPLICATION_TYPE,
        audit_organ=_first_text(basic.get("theme_name"), body.get("theme_name")) or DEFAULT_AUDIT_ORGAN,
    )


def resolve_report_links(files: Any, context: URLContext | None = None) -> ReportLinks:
    if not isinstance(files, dict):
        return ReportLinks()
    pdf_info = files.get("pdf") if isinstance(files.get("pdf"), dict) else {}
    html_info = files.get("html") if isinstance(files.get("html"), dict) else {}

    pdf_url = _report_url(pdf_info, context)
    html_url = _report_url(html_info, context)
    return ReportLinks(
        primary=pdf_url or html_url,
        fallback=html_url or pdf_url,
        pdf=pdf_url,
        html=html_url,
        pdf_source=_report_source(pdf_info),
        html_source=_report_source(html_info),
    )


def _report_url(info: dict[str, Any], context: URLContext | None) -> str | None:
    raw = _first_text(info.get("downloadUrl"), info.get("legacyDownloadUrl"))
    return canonicalize(raw, context) or None


def _report_source(info: dict[str, Any]) -> str | None:
    source = _first_text(info.get("source"))
    if source:
        return source
    if _first_text(info.get("downloadUrl")):
        return "remote"
    if info.get("exists"):
        return "local"
    return None


def _form_value(body: dict[str, Any], code: str) -> str | None:
    form_data = body.get("form_data")
    if not isinstance(form_data, list):
        return None
    for entry in form_data:
        if isinstance(entry, dict) and entry.get("code") == code:
            value = entry.get("value")
            return value if isinstance(value, str) else None
    return None


def _first_text(*values: Any) -> str | None:
    for value in values:
        if isinstance(value, str) and value.strip():
            return value.strip()
    return None
