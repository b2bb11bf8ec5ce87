import pytest

from preview_reconciler.core.urls import URLContext, canonicalize

SECURE = URLContext.from_origin("https://review.example.gov")
PLAIN = URLContext.from_origin("http://review.example.gov")


def test_canonicalize_strips_custom_scheme_and_resolves_against_origin() -> None:
    assert canonicalize("zhzwdxt://files/a.png", SECURE) == "https://review.example.gov/files/a.png"
    assert canonicalize("ZHZWDXT:files/a.png", SECURE) == "https://review.example.gov/files/a.png"


def test_canonicalize_truncates_to_embedded_absolute_url() -> None:
    raw = "zhzwdxt:/proxy?u=http://cdn.example.gov/a.png"
    assert canonicalize(raw, SECURE) == "https://cdn.example.gov/a.png"
    assert canonicalize(raw, PLAIN) == "http://cdn.example.gov/a.png"


def test_canonicalize_prefixes_protocol_relative_references() -> None:
    assert canonicalize("//cdn.example.gov/a.png", SECURE) == "https://cdn.example.gov/a.png"
    assert canonicalize("//cdn.example.gov/a.png", PLAIN) == "http://cdn.example.gov/a.png"


def test_canonicalize_upgrades_http_only_on_secure_origin() -> None:
    assert canonicalize("http://cdn.example.gov/a.png", SECURE) == "https://cdn.example.gov/a.png"
    assert canonicalize("https://cdn.example.gov/a.png", PLAIN) == "https://cdn.example.gov/a.png"
    assert canonicalize("HTTP://cdn.example.gov/A.png", PLAIN) == "http://cdn.example.gov/A.png"


def test_canonicalize_leaves_inline_data_untouched() -> None:
    assert canonicalize("data:image/png;base64,AAAA", SECURE) == "data:image/png;base64,AAAA"
    assert canonicalize("blob:https://review.example.gov/1234", SECURE) == "blob:https://review.example.gov/1234"


@pytest.mark.parametrize("raw", [None, "", "   ", 42, ["a.png"]])
def test_canonicalize_returns_empty_for_missing_input(raw) -> None:
    assert canonicalize(raw, SECURE) == ""


def test_canonicalize_without_context_keeps_references_host_relative() -> None:
    assert canonicalize("uploads/a.png") == "/uploads/a.png"
    assert canonicalize(" /uploads/a.png ") == "/uploads/a.png"


@pytest.mark.parametrize(
    "raw",
    [
        "zhzwdxt://files/a.png",
        "zhzwdxt:/proxy?u=http://cdn.example.gov/a.png",
        "//cdn.example.gov/a.png",
        "uploads/a.png",
        "data:image/png;base64,AAAA",
    ],
)
def test_canonicalize_is_idempotent(raw: str) -> None:
    once = canonicalize(raw, SECURE)
    assert canonicalize(once, SECURE) == once


def test_url_context_from_origin_normalizes_origin() -> None:
    context = URLContext.from_origin("HTTPS://Review.Example.gov/app/", custom_schemes=["custom", " "])
    assert context.origin == "https://review.example.gov"
    assert context.protocol == "https:"
    assert context.is_secure is True
    assert context.custom_schemes == ("custom",)


@pytest.mark.parametrize("origin", ["", "review.example.gov", "ftp://review.example.gov"])
def test_url_context_from_origin_rejects_non_http_origins(origin: str) -> None:
    with pytest.raises(ValueError):
        URLContext.from_origin(origin)
