from __future__ import annotations

import json
from dataclasses import dataclass, field, replace
from typing import Any, Mapping

from preview_reconciler.core.urls import URLContext, canonicalize
from preview_reconciler.services.pages import DocumentType, detect_document_type, extract_pages, unique_strings
from preview_reconciler.services.payload import DecodedPayload, PayloadShape, decode_payload
from preview_reconciler.services.status import (
    Status,
    legacy_rule_status,
    map_status,
    status_from_code,
    worst_status,
)

DOCUMENT_TYPES = {"image", "pdf", "text", "file", "none"}
DEFAULT_STATUS_ICON = "/static/images/material-status.png"
UNAVAILABLE_MATERIAL_ID = "data_unavailable"
UNAVAILABLE_MESSAGE = "Preview data is unavailable or could not be parsed"


@dataclass(slots=True)
class DocumentDescriptor:
    type: DocumentType = "none"
    url: str = ""
    thumbnail_url: str = ""
    pages: list[str] = field(default_factory=list)
    download_url: str = ""
    content: str | None = None
    mime_type: str | None = None
    page_count: int | None = None
    file_size: int | None = None

    @property
    def has_document(self) -> bool:
        return bool(self.url or self.pages or self.content)


@dataclass(slots=True)
class Item:
    id: str
    name: str
    status: Status
    document: DocumentDescriptor = field(default_factory=DocumentDescriptor)
    check_point: str = ""
    ocr_success: bool = True


@dataclass(slots=True)
class PreviewImage:
    status_icon: str
    has_ocr_image: bool
    ocr_image: str
    preview_url: str


@dataclass(slots=True)
class Material:
    id: str
    name: str
    status: Status
    items: list[Item]
    count: int
    code: str | None = None
    expanded: bool = False
    image: PreviewImage | None = None


def normalize(
    payload: Any,
    *,
    context: URLContext | None = None,
    status_table: Mapping[str, Status] | None = None,
) -> list[Material]:
    return materials_from_decoded(decode_payload(payload), context=context, status_table=status_table)


def materials_from_decoded(
    decoded: DecodedPayload,
    *,
    context: URLContext | None = None,
    status_table: Mapping[str, Status] | None = None,
) -> list[Material]:
    """Build canonical materials for an already decoded payload.

    Never raises for an unexpected payload shape: an unrecognized body yields
    a single "data unavailable" material so there is always a row to render.
    """
    ctx = context or URLContext()
    if decoded.shape is PayloadShape.FLAT_MATERIALS:
        return [_flat_material(record, index, ctx, status_table) for index, record in enumerate(decoded.records)]
    if decoded.shape is PayloadShape.EVALUATION_RESULT:
        return [_evaluation_material(record, index, ctx) for index, record in enumerate(decoded.records)]
    if decoded.shape is PayloadShape.LEGACY_RULES:
        return [_legacy_material(record, index) for index, record in enumerate(decoded.records)]
    return [unavailable_material(decoded.error_message)]


def unavailable_material(message: str | None = None) -> Material:
    item = Item(
        id=f"{UNAVAILABLE_MATERIAL_ID}_item",
        name="Data unavailable",
        status=Status.ERROR,
        check_point=message or UNAVAILABLE_MESSAGE,
    )
    return _material(material_id=UNAVAILABLE_MATERIAL_ID, name="Data unavailable", items=[item], floor=Status.ERROR)


def rule_verdict(rule_evaluation: Any, processing_status: Any = None, evaluation_status: Any = None) -> Status:
    if isinstance(evaluation_status, str):
        normalized = evaluation_status.lower()
        if "error" in normalized or "failed" in normalized:
            return Status.ERROR
        if "warning" in normalized:
            return Status.HAS_ISSUES

    status_code = rule_evaluation.get("status_code") if isinstance(rule_evaluation, dict) else None
    verdict = status_from_code(status_code, error_from=400) or Status.PASSED
    if verdict is Status.PASSED and is_partial_success(processing_status):
        return Status.HAS_ISSUES
    return verdict


def attachment_verdict(attachment: dict[str, Any], rule_evaluation: Any) -> Status:
    if attachment.get("ocr_success") is False:
        return Status.HAS_ISSUES
    status_code = rule_evaluation.get("status_code") if isinstance(rule_evaluation, dict) else None
    return status_from_code(status_code, error_from=500) or Status.PASSED


def is_partial_success(processing_status: Any) -> bool:
    if not processing_status:
        return False
    if isinstance(processing_status, str):
        return "partial" in processing_status.lower()
    if isinstance(processing_status, dict):
        return any("partial" in str(key).lower() for key in processing_status)
    return False


def _material(
    *,
    material_id: str,
    name: str,
    items: list[Item],
    floor: Status,
    count: int | None = None,
    code: str | None = None,
    image: PreviewImage | None = None,
) -> Material:
    # A material-level verdict caps every item, and the material is the
    # worst of its items, so "passed iff all items passed" holds by construction.
    capped = [replace(item, status=worst_status([item.status, floor])) for item in items]
    return Material(
        id=material_id,
        name=name,
        status=worst_status(item.status for item in capped),
        items=capped,
        count=count if count is not None else len(capped),
        code=code,
        image=image,
    )


def _flat_material(
    record: dict[str, Any],
    index: int,
    ctx: URLContext,
    status_table: Mapping[str, Status] | None,
) -> Material:
    material_id = _text(record.get("id")) or f"material_{index + 1}"
    name = _text(record.get("name")) or f"Material {index + 1}"
    declared = map_status(record.get("status"), status_table)

    raw_items = record.get("items")
    if isinstance(raw_items, list) and raw_items:
        items = [
            _flat_item(raw if isinstance(raw, dict) else {}, material_id, item_index, ctx, status_table)
            for item_index, raw in enumerate(raw_items)
        ]
    else:
        items = [
            Item(
                id=f"{material_id}_item_1",
                name=name,
                status=declared,
                check_point=_text(record.get("review_notes")) or "Check completed",
            )
        ]

    count = _positive_int(record.get("count")) or _positive_int(record.get("pages"))
    return _material(
        material_id=material_id,
        name=name,
        items=items,
        floor=declared,
        count=count,
        code=_text(record.get("material_code")) or None,
        image=_declared_image(record.get("image"), ctx),
    )


def _flat_item(
    record: dict[str, Any],
    material_id: str,
    index: int,
    ctx: URLContext,
    status_table: Mapping[str, Status] | None,
) -> Item:
    url = canonicalize(_first(record, "documentUrl", "document_url"), ctx)
    thumbnail = canonicalize(_first(record, "documentThumbnail", "document_thumbnail"), ctx) or url
    download = canonicalize(_first(record, "downloadUrl", "download_url"), ctx) or url
    raw_pages = record.get("documentPages") or record.get("document_pages")
    pages = unique_strings([canonicalize(page, ctx) for page in raw_pages]) if isinstance(raw_pages, list) else []
    content = _first(record, "documentContent", "document_content") or None

    declared_type = _text(_first(record, "documentType", "document_type"))
    if declared_type in DOCUMENT_TYPES:
        document_type = declared_type
    else:
        document_type = "file" if (url or pages) else ("text" if content else "none")

    return Item(
        id=_text(record.get("id")) or f"{material_id}_item_{index + 1}",
        name=_text(record.get("name")) or f"Check item {index + 1}",
        status=map_status(record.get("status"), status_table),
        document=DocumentDescriptor(
            type=document_type,
            url=url,
            thumbnail_url=thumbnail,
            pages=pages,
            download_url=download,
            content=content,
            mime_type=_text(_first(record, "documentMime", "document_mime")) or None,
            page_count=_positive_int(record.get("pageCount", record.get("page_count"))),
            file_size=_positive_int(record.get("fileSize", record.get("file_size"))),
        ),
        check_point=_text(_first(record, "checkPoint", "message")),
    )


def _evaluation_material(record: dict[str, Any], index: int, ctx: URLContext) -> Material:
    code = _text(record.get("material_code")) or None
    material_id = code or f"material_{index + 1}"
    rule_evaluation = record.get("rule_evaluation")
    rule_message = _text(rule_evaluation.get("message")) if isinstance(rule_evaluation, dict) else ""
    verdict = rule_verdict(rule_evaluation, record.get("processing_status"), record.get("evaluation_status"))
    name = _text(record.get("material_name")) or code or f"Material {index + 1}"

    attachments = record.get("attachments")
    items = [
        _attachment_item(attachment, material_id, attachment_index, rule_evaluation, rule_message, ctx)
        for attachment_index, attachment in enumerate(attachments if isinstance(attachments, list) else [])
        if isinstance(attachment, dict)
    ]

    ocr_content = _ocr_text(record.get("ocr_content"))
    if ocr_content:
        items.append(
            Item(
                id=f"{material_id}_ocr_{len(items) + 1}",
                name="OCR result",
                status=Status.PASSED,
                document=DocumentDescriptor(type="text", content=ocr_content),
                check_point="Recognized text content",
            )
        )

    if not items:
        items.append(
            Item(
                id=f"{material_id}_placeholder",
                name=name,
                status=verdict,
                check_point=rule_message or "No previewable attachment",
            )
        )

    return _material(
        material_id=material_id,
        name=name,
        items=items,
        floor=verdict,
        code=code,
        image=_preview_image(record, items, ctx),
    )


def _attachment_item(
    attachment: dict[str, Any],
    material_id: str,
    index: int,
    rule_evaluation: Any,
    rule_message: str,
    ctx: URLContext,
) -> Item:
    pages = extract_pages(attachment, ctx)
    document_type: DocumentType = "image" if pages else detect_document_type(attachment)
    url = canonicalize(_first(attachment, "preview_url", "file_url") or (pages[0] if pages else ""), ctx)
    thumbnail = canonicalize(attachment.get("thumbnail_url"), ctx) or url
    download = canonicalize(_first(attachment, "download_url", "file_url"), ctx) or url

    return Item(
        id=f"{material_id}_att_{index + 1}",
        name=_text(attachment.get("file_name")) or f"Attachment {index + 1}",
        status=attachment_verdict(attachment, rule_evaluation),
        document=DocumentDescriptor(
            type=document_type,
            url=url,
            thumbnail_url=thumbnail,
            pages=pages,
            download_url=download,
            mime_type=_text(_first(attachment, "mime_type", "mimeType")) or None,
            page_count=_positive_int(attachment.get("page_count")) or (len(pages) or None),
            file_size=_positive_int(attachment.get("file_size")),
        ),
        check_point=rule_message,
        ocr_success=attachment.get("ocr_success") is not False,
    )


def _legacy_material(record: dict[str, Any], index: int) -> Material:
    status = legacy_rule_status(record.get("result"))
    field_name = _text(record.get("field"))
    description = _text(record.get("description"))
    name = description or field_name or f"Check {index + 1}"
    content = _ocr_text(record.get("ocr_text"))

    item = Item(
        id=f"legacy_rule_item_{index + 1}",
        name=field_name or description or name,
        status=status,
        document=DocumentDescriptor(type="text" if content else "none", content=content),
        check_point=_text(_first(record, "message", "details", "result")) or "Check completed",
    )
    return _material(material_id=f"legacy_rule_{index + 1}", name=name, items=[item], floor=status)


def _preview_image(record: dict[str, Any], items: list[Item], ctx: URLContext) -> PreviewImage | None:
    preview_item = next(
        (item for item in items if item.document.type == "image" and item.document.url),
        None,
    ) or next((item for item in items if item.document.thumbnail_url), None)
    if preview_item is None:
        return _declared_image(record.get("image"), ctx)

    declared = record.get("image") if isinstance(record.get("image"), dict) else {}
    preview_url = preview_item.document.url
    thumbnail = preview_item.document.thumbnail_url or preview_url
    return PreviewImage(
        status_icon=canonicalize(declared.get("status_icon") or DEFAULT_STATUS_ICON, ctx),
        has_ocr_image=bool(preview_url or thumbnail),
        ocr_image=preview_url,
        preview_url=thumbnail or preview_url,
    )


def _declared_image(image: Any, ctx: URLContext) -> PreviewImage | None:
    if not isinstance(image, dict) or not image:
        return None
    preview_url = canonicalize(_first(image, "preview_url", "ocr_image", "previewUrl"), ctx)
    has_ocr_image = image.get("has_ocr_image")
    return PreviewImage(
        status_icon=canonicalize(_first(image, "status_icon", "thumbnail") or DEFAULT_STATUS_ICON, ctx),
        has_ocr_image=has_ocr_image if isinstance(has_ocr_image, bool) else bool(preview_url),
        ocr_image=preview_url,
        preview_url=preview_url,
    )


def _first(record: dict[str, Any], *keys: str) -> str:
    for key in keys:
        value = record.get(key)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return ""


def _ocr_text(value: Any) -> str | None:
    if isinstance(value, str):
        return value.strip() or None
    if isinstance(value, (dict, list)) and value:
        return json.dumps(value, ensure_ascii=False, sort_keys=True)
    return None


def _text(value: Any) -> str:
    if isinstance(value, str):
        return value.strip()
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return ""


def _positive_int(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    try:
        parsed = int(value)
    except (TypeError, ValueError, OverflowError):
        return None
    return parsed if parsed > 0 else None
