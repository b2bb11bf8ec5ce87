from __future__ import annotations

from preview_reconciler.services.aggregate import aggregate, summary_message
from preview_reconciler.services.materials import Material
from preview_reconciler.services.status import Status


def _materials(*statuses: Status) -> list[Material]:
    return [
        Material(id=f"m{index}", name=f"Material {index}", status=status, items=[], count=0)
        for index, status in enumerate(statuses, start=1)
    ]


def test_all_passed_materials_report_full_progress() -> None:
    result = aggregate(_materials(Status.PASSED))

    assert result.status is Status.PASSED
    assert result.progress == 100
    assert result.issue_count == 0
    assert result.message == "All 1 material passed"
    assert result.authoritative is False


def test_fallback_uses_worst_material_status() -> None:
    result = aggregate(_materials(Status.PASSED, Status.HAS_ISSUES, Status.ERROR, Status.PASSED))

    assert result.status is Status.ERROR
    assert result.progress == 50
    assert result.issue_count == 2
    assert result.passed_count == 2
    assert result.total == 4
    assert result.message == "1 material failed, review immediately"


def test_fallback_warning_only_message_and_rounding() -> None:
    result = aggregate(_materials(Status.PASSED, Status.HAS_ISSUES, Status.HAS_ISSUES))

    assert result.status is Status.HAS_ISSUES
    assert result.progress == 33
    assert result.message == "2 materials need manual confirmation"


def test_fallback_ignores_loading_for_overall_status() -> None:
    result = aggregate(_materials(Status.PASSED, Status.LOADING))

    assert result.status is Status.PASSED
    assert result.progress == 50
    assert result.message == "1 material still being processed"


def test_no_materials_is_complete() -> None:
    result = aggregate([])

    assert result.status is Status.PASSED
    assert result.progress == 100
    assert result.message == "Review completed"


def test_backend_summary_is_trusted() -> None:
    summary = {"overall_result": "PASS_WITH_SUGGESTIONS", "passed_materials": 2, "total_materials": 3}

    result = aggregate(_materials(Status.ERROR), summary)

    assert result.status is Status.HAS_ISSUES
    assert result.progress == 67
    assert result.total == 3
    assert result.authoritative is True


def test_backend_summary_rounds_half_up() -> None:
    result = aggregate([], {"overall_result": "PASS", "passed_materials": 1, "total_materials": 8})

    assert result.progress == 13


def test_backend_summary_without_counters() -> None:
    result = aggregate(_materials(Status.PASSED, Status.PASSED), {"overall_result": "FAIL"})

    assert result.status is Status.ERROR
    assert result.progress == 100
    assert result.total == 2


def test_backend_summary_clamps_progress() -> None:
    result = aggregate([], {"passed_materials": 9, "total_materials": 3})

    assert result.progress == 100
    assert result.status is Status.PASSED


def test_summary_message_priority() -> None:
    assert summary_message(Status.ERROR, total=3, failed=2, warnings=1, pending=0) == (
        "2 materials failed, review immediately"
    )
    assert summary_message(Status.HAS_ISSUES, total=3, failed=0, warnings=0, pending=0) == (
        "Some materials need attention, see the details"
    )
    assert summary_message(Status.ERROR, total=0, failed=0, warnings=0, pending=0) == (
        "Critical issues found, check the related materials"
    )


def test_backend_summary_with_non_finite_total_falls_back_to_material_count() -> None:
    result = aggregate(
        _materials(Status.PASSED, Status.HAS_ISSUES),
        {"overall_result": "PASS", "passed_materials": 1, "total_materials": float("inf")},
    )

    assert result.total == 2
    assert result.progress == 50
