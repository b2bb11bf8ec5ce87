import pytest

from preview_reconciler.services.status import (
    JobState,
    Status,
    legacy_rule_status,
    map_job_state,
    map_status,
    overall_result_status,
    parse_status_synonyms,
    status_from_code,
    worst_status,
)


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("success", Status.PASSED),
        (" Passed ", Status.PASSED),
        ("WARNING", Status.HAS_ISSUES),
        ("failed", Status.ERROR),
        ("error", Status.ERROR),
        ("pending", Status.LOADING),
        ("processing", Status.LOADING),
        (Status.HAS_ISSUES, Status.HAS_ISSUES),
    ],
)
def test_map_status_uses_synonym_table(raw, expected: Status) -> None:
    assert map_status(raw) is expected


@pytest.mark.parametrize("raw", [None, "", "mystery", 7])
def test_map_status_defaults_unmapped_values_to_passed(raw) -> None:
    assert map_status(raw) is Status.PASSED


def test_parse_status_synonyms_merges_overrides_and_drops_unknown_targets() -> None:
    table = parse_status_synonyms('{"Rejected": "error", "odd": "unknown", "review": "hasIssues"}')
    assert map_status("rejected", table) is Status.ERROR
    assert map_status("review", table) is Status.HAS_ISSUES
    assert "odd" not in table
    assert map_status("success", table) is Status.PASSED


@pytest.mark.parametrize("raw", [None, "", "not json", "[1, 2]"])
def test_parse_status_synonyms_falls_back_to_defaults(raw) -> None:
    table = parse_status_synonyms(raw)
    assert table["warning"] is Status.HAS_ISSUES
    assert table["failed"] is Status.ERROR


def test_worst_status_orders_by_severity() -> None:
    assert worst_status([]) is Status.PASSED
    assert worst_status([Status.PASSED, Status.LOADING]) is Status.LOADING
    assert worst_status([Status.LOADING, Status.HAS_ISSUES, Status.PASSED]) is Status.HAS_ISSUES
    assert worst_status([Status.HAS_ISSUES, Status.ERROR]) is Status.ERROR


def test_status_from_code_respects_error_threshold() -> None:
    assert status_from_code(200, error_from=400) is Status.PASSED
    assert status_from_code("302", error_from=400) is Status.HAS_ISSUES
    assert status_from_code(404, error_from=400) is Status.ERROR
    assert status_from_code(404, error_from=500) is Status.HAS_ISSUES
    assert status_from_code(503, error_from=500) is Status.ERROR
    assert status_from_code(None, error_from=400) is None
    assert status_from_code(True, error_from=400) is None
    assert status_from_code("n/a", error_from=400) is None


def test_legacy_rule_status_reads_result_keywords() -> None:
    assert legacy_rule_status("warn: missing signature") is Status.HAS_ISSUES
    assert legacy_rule_status("FAILED") is Status.ERROR
    assert legacy_rule_status("internal error") is Status.ERROR
    assert legacy_rule_status("ok") is Status.PASSED
    assert legacy_rule_status(None) is Status.PASSED


def test_overall_result_status_reads_summary_keywords() -> None:
    assert overall_result_status("FAIL") is Status.ERROR
    assert overall_result_status("PASS_WITH_SUGGESTIONS") is Status.HAS_ISSUES
    assert overall_result_status("requires_review") is Status.HAS_ISSUES
    assert overall_result_status("partial") is Status.HAS_ISSUES
    assert overall_result_status("PASS") is Status.PASSED
    assert overall_result_status(None) is Status.PASSED


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("completed", JobState.COMPLETED),
        ("DONE", JobState.COMPLETED),
        ("success", JobState.COMPLETED),
        ("failed", JobState.FAILED),
        ("error", JobState.FAILED),
        ("waiting", JobState.QUEUED),
        ("running", JobState.PROCESSING),
        ("something-new", JobState.PROCESSING),
        (None, JobState.PROCESSING),
    ],
)
def test_map_job_state(raw, expected: JobState) -> None:
    assert map_job_state(raw) is expected


def test_status_from_code_ignores_non_finite_values() -> None:
    assert status_from_code(float("inf"), error_from=400) is None
    assert status_from_code(float("nan"), error_from=400) is None
