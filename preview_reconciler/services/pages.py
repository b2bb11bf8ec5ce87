from __future__ import annotations

import json
from typing import Any, Literal

from preview_reconciler.core.urls import URLContext, canonicalize

DocumentType = Literal["image", "pdf", "text", "file", "none"]

# Producers renamed the page field several times without versioning the
# attachment schema; order is the probe priority.
DIRECT_PAGE_KEYS = ("preview_pages", "previewPages", "page_images", "pageImages", "images", "pages")
EXTRA_PAGE_KEYS = ("preview_pages", "previewPages", "page_images", "pageImages", "pages", "images")
NESTED_PAGE_KEYS = ("pages", "preview_pages", "previewPages", "page_images", "pageImages", "images")
ENTRY_URL_KEYS = ("url", "preview_url", "previewUrl", "src", "image")
EXTRA_URL_KEYS = ("url", "preview_url", "src")

IMAGE_EXTENSIONS = {"png", "jpg", "jpeg", "gif", "bmp", "webp"}
TEXT_EXTENSIONS = {"txt", "text", "md", "log"}


def extract_pages(attachment: Any, context: URLContext | None = None) -> list[str]:
    """Return the renderable page references of an attachment.

    The first candidate location that yields at least one reference wins.
    Without a ``context`` references are only trimmed; with one they are
    canonicalized before de-duplication.
    """
    if not isinstance(attachment, dict):
        return []

    for key in DIRECT_PAGE_KEYS:
        pages = _finish(_collect(attachment.get(key)), context)
        if pages:
            return pages

    extra = attachment.get("extra")
    if isinstance(extra, (str, list)):
        return _finish(_collect(extra), context)
    if not isinstance(extra, dict):
        return []

    for key in EXTRA_PAGE_KEYS:
        pages = _finish(_collect(extra.get(key)), context)
        if pages:
            return pages
    if any(extra.get(key) for key in EXTRA_URL_KEYS):
        return _finish(_collect([extra]), context)
    return []


def detect_document_type(attachment: dict[str, Any]) -> DocumentType:
    mime = _text(attachment.get("mime_type") or attachment.get("mimeType")).lower()
    if mime.startswith("image/"):
        return "image"
    if mime == "application/pdf":
        return "pdf"
    if mime.startswith("text/"):
        return "text"

    extension = _text(attachment.get("file_type") or attachment.get("fileType")).lower() or extract_extension(
        attachment.get("preview_url") or attachment.get("file_url")
    )
    if extension in IMAGE_EXTENSIONS:
        return "image"
    if extension == "pdf":
        return "pdf"
    if extension in TEXT_EXTENSIONS:
        return "text"
    # Attachments are overwhelmingly scanned pages.
    return "image"


def extract_extension(path: Any) -> str:
    if not isinstance(path, str) or not path:
        return ""
    cleaned = path.split("#", 1)[0].split("?", 1)[0]
    segment = cleaned.rsplit("/", 1)[-1]
    _, dot, extension = segment.rpartition(".")
    if not dot or not extension:
        return ""
    return extension.lower()


def unique_strings(values: list[str]) -> list[str]:
    seen: set[str] = set()
    unique: list[str] = []
    for value in values:
        if not value or value in seen:
            continue
        seen.add(value)
        unique.append(value)
    return unique


def _finish(references: list[str], context: URLContext | None) -> list[str]:
    if context is not None:
        references = [canonicalize(reference, context) for reference in references]
    return unique_strings(references)


def _collect(value: Any) -> list[str]:
    if not value:
        return []
    if isinstance(value, list):
        return unique_strings([_entry_reference(entry) for entry in value])
    if isinstance(value, str):
        return _collect_from_string(value)
    if isinstance(value, dict):
        collected: list[str] = []
        for key in NESTED_PAGE_KEYS:
            collected.extend(_collect(value.get(key)))
        collected.append(_entry_reference(value))
        return unique_strings(collected)
    return []


def _collect_from_string(value: str) -> list[str]:
    trimmed = value.strip()
    if not trimmed:
        return []
    try:
        decoded = json.loads(trimmed)
    except (json.JSONDecodeError, RecursionError):
        if "," in trimmed:
            return unique_strings([part.strip() for part in trimmed.split(",")])
        return [trimmed]
    if isinstance(decoded, str):
        # A JSON-quoted single reference; decoding again would loop on itself.
        return [decoded.strip()] if decoded.strip() else []
    return _collect(decoded)


def _entry_reference(entry: Any) -> str:
    if isinstance(entry, str):
        return entry.strip()
    if isinstance(entry, dict):
        for key in ENTRY_URL_KEYS:
            value = entry.get(key)
            if isinstance(value, str) and value.strip():
                return value.strip()
    return ""


def _text(value: Any) -> str:
    return value.strip() if isinstance(value, str) else ""
