from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Iterable
from urllib.parse import urlsplit

HTTP_PREFIX = "http://"
HTTPS_PREFIX = "https://"
INLINE_PREFIXES = ("data:", "blob:")
DEFAULT_CUSTOM_SCHEMES = ("zhzwdxt",)


@dataclass(frozen=True, slots=True)
class URLContext:
    """Where canonicalized references are resolved.

    ``origin`` is ``scheme://host[:port]`` without a trailing slash, or empty
    when relative references should stay host-relative.
    """

    origin: str = ""
    protocol: str = "https:"
    custom_schemes: tuple[str, ...] = DEFAULT_CUSTOM_SCHEMES

    @classmethod
    def from_origin(cls, origin: str, *, custom_schemes: Iterable[str] = DEFAULT_CUSTOM_SCHEMES) -> URLContext:
        parsed = urlsplit(origin.strip())
        scheme = parsed.scheme.lower()
        if scheme not in {"http", "https"} or not parsed.netloc:
            raise ValueError(f"origin must be an absolute http(s) URL, got {origin!r}")
        schemes = tuple(item.strip() for item in custom_schemes if item and item.strip())
        return cls(origin=f"{scheme}://{parsed.netloc.lower()}", protocol=f"{scheme}:", custom_schemes=schemes)

    @property
    def is_secure(self) -> bool:
        return self.protocol == "https:"


def canonicalize(raw: Any, context: URLContext | None = None) -> str:
    if not isinstance(raw, str):
        return ""
    value = raw.strip()
    if not value:
        return ""
    if value.lower().startswith(INLINE_PREFIXES):
        return value

    ctx = context or URLContext()
    value = _strip_custom_scheme(value, ctx.custom_schemes)
    value = _truncate_to_embedded_url(value)
    if value.startswith("//"):
        value = f"{ctx.protocol}{value}"
    value = _lower_http_scheme(value)

    if value.startswith(HTTP_PREFIX) and ctx.is_secure:
        value = HTTPS_PREFIX + value[len(HTTP_PREFIX) :]
    if value.startswith((HTTP_PREFIX, HTTPS_PREFIX)):
        return value

    if not value.startswith("/"):
        value = f"/{value}"
    return f"{ctx.origin}{value}"


def _strip_custom_scheme(value: str, schemes: tuple[str, ...]) -> str:
    for scheme in schemes:
        pattern = re.compile(rf"^{re.escape(scheme)}[:./]+", re.IGNORECASE)
        stripped = pattern.sub("", value, count=1)
        if stripped != value:
            return stripped
    return value


def _truncate_to_embedded_url(value: str) -> str:
    lowered = value.lower()
    indexes = [index for index in (lowered.find(HTTP_PREFIX), lowered.find(HTTPS_PREFIX)) if index >= 0]
    if not indexes:
        return value
    first = min(indexes)
    return value[first:] if first > 0 else value


def _lower_http_scheme(value: str) -> str:
    lowered = value[:8].lower()
    if lowered.startswith(HTTPS_PREFIX):
        return HTTPS_PREFIX + value[len(HTTPS_PREFIX) :]
    if lowered.startswith(HTTP_PREFIX):
        return HTTP_PREFIX + value[len(HTTP_PREFIX) :]
    return value
