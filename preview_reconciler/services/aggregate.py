from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Sequence

from preview_reconciler.services.materials import Material
from preview_reconciler.services.status import Status, overall_result_status, worst_status

SUMMARY_KEYS = ("overall_result", "passed_materials", "total_materials")


@dataclass(slots=True)
class AggregateResult:
    status: Status
    progress: int
    message: str
    issue_count: int
    passed_count: int
    total: int
    authoritative: bool = False


def aggregate(materials: Sequence[Material], raw_summary: Any = None) -> AggregateResult:
    """Overall result and progress for a set of normalized materials.

    A backend-computed ``evaluation_summary`` is trusted when present so that
    client and server never disagree on rounding. Otherwise everything is
    derived from the materials: the overall status is the worst material
    status ignoring ``loading``, and progress is the passed share.
    """
    passed_count = sum(1 for material in materials if material.status is Status.PASSED)
    failed = sum(1 for material in materials if material.status is Status.ERROR)
    warnings = sum(1 for material in materials if material.status is Status.HAS_ISSUES)
    pending = sum(1 for material in materials if material.status is Status.LOADING)
    issue_count = len(materials) - passed_count

    if _is_summary(raw_summary):
        status = overall_result_status(raw_summary.get("overall_result"))
        total = _positive_int(raw_summary.get("total_materials")) or len(materials) or 1
        passed = _non_negative_number(raw_summary.get("passed_materials"))
        progress = _percentage(passed, total) if passed is not None else 100
        authoritative = True
    else:
        status = worst_status(
            material.status for material in materials if material.status is not Status.LOADING
        )
        total = len(materials)
        progress = _percentage(passed_count, total) if total else 100
        authoritative = False

    return AggregateResult(
        status=status,
        progress=progress,
        message=summary_message(
            status,
            total=total,
            failed=failed,
            warnings=warnings,
            pending=pending,
        ),
        issue_count=issue_count,
        passed_count=passed_count,
        total=total,
        authoritative=authoritative,
    )


def summary_message(status: Status, *, total: int, failed: int, warnings: int, pending: int) -> str:
    # Fixed priority: first matching row wins.
    if status is Status.PASSED and not (failed or warnings or pending):
        return f"All {total} {_plural(total)} passed" if total else "Review completed"
    if failed:
        return f"{failed} {_plural(failed)} failed, review immediately"
    if warnings:
        return f"{warnings} {_plural(warnings)} need manual confirmation"
    if pending:
        return f"{pending} {_plural(pending)} still being processed"
    if status is Status.ERROR:
        return "Critical issues found, check the related materials"
    if status is Status.HAS_ISSUES:
        return "Some materials need attention, see the details"
    return "Review completed"


def _is_summary(raw_summary: Any) -> bool:
    return isinstance(raw_summary, dict) and any(key in raw_summary for key in SUMMARY_KEYS)


def _percentage(part: float, total: int) -> int:
    # Half-up rounding, the way the backend reports it.
    value = math.floor(part / max(total, 1) * 100 + 0.5)
    return min(100, max(0, int(value)))


def _plural(count: int) -> str:
    return "material" if count == 1 else "materials"


def _positive_int(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    try:
        parsed = int(value)
    except (TypeError, ValueError, OverflowError):
        return None
    return parsed if parsed > 0 else None


def _non_negative_number(value: Any) -> float | None:
    if isinstance(value, bool) or value is None:
        return None
    try:
        parsed = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(parsed) or parsed < 0:
        return None
    return parsed
