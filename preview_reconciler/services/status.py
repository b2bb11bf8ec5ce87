from __future__ import annotations

import json
import logging
import math
from enum import Enum
from typing import Any, Iterable, Mapping

logger = logging.getLogger(__name__)


class Status(str, Enum):
    PASSED = "passed"
    HAS_ISSUES = "hasIssues"
    ERROR = "error"
    LOADING = "loading"


class JobState(str, Enum):
    QUEUED = "queued"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


# Unmapped statuses fall back to PASSED. Upstream producers historically omit
# the status on healthy records, so absence is treated as success. This also
# means an unknown failure word reads as success; it is logged, not corrected.
DEFAULT_STATUS = Status.PASSED

DEFAULT_STATUS_SYNONYMS: dict[str, Status] = {
    "success": Status.PASSED,
    "passed": Status.PASSED,
    "pass": Status.PASSED,
    "warning": Status.HAS_ISSUES,
    "warn": Status.HAS_ISSUES,
    "error": Status.ERROR,
    "failed": Status.ERROR,
    "fail": Status.ERROR,
    "pending": Status.LOADING,
    "processing": Status.LOADING,
    "running": Status.LOADING,
}

JOB_STATE_SYNONYMS: dict[str, JobState] = {
    "completed": JobState.COMPLETED,
    "finished": JobState.COMPLETED,
    "done": JobState.COMPLETED,
    "success": JobState.COMPLETED,
    "failed": JobState.FAILED,
    "error": JobState.FAILED,
    "pending": JobState.QUEUED,
    "waiting": JobState.QUEUED,
    "queued": JobState.QUEUED,
    "processing": JobState.PROCESSING,
    "running": JobState.PROCESSING,
}

TERMINAL_JOB_STATES = {JobState.COMPLETED, JobState.FAILED}

_SEVERITY: dict[Status, int] = {
    Status.PASSED: 0,
    Status.LOADING: 1,
    Status.HAS_ISSUES: 2,
    Status.ERROR: 3,
}


def map_status(raw: Any, table: Mapping[str, Status] | None = None) -> Status:
    if isinstance(raw, Status):
        return raw
    key = _status_key(raw)
    lookup = DEFAULT_STATUS_SYNONYMS if table is None else table
    mapped = lookup.get(key) if key else None
    if mapped is None:
        if key:
            logger.debug("unmapped material status %r defaulted to %s", raw, DEFAULT_STATUS.value)
        return DEFAULT_STATUS
    return mapped


def parse_status_synonyms(raw: str | None) -> dict[str, Status]:
    """Merge a JSON ``{"synonym": "canonical"}`` object over the default table.

    Entries whose target is not one of the four canonical values are dropped,
    so a raw backend word can never leak into the canonical model.
    """
    table = dict(DEFAULT_STATUS_SYNONYMS)
    if not raw:
        return table
    try:
        decoded = json.loads(raw)
    except json.JSONDecodeError:
        logger.warning("ignoring status synonym overrides: invalid JSON")
        return table
    if not isinstance(decoded, dict):
        return table

    for raw_key, raw_target in decoded.items():
        key = _status_key(raw_key)
        if not key or not isinstance(raw_target, str):
            continue
        try:
            table[key] = Status(raw_target.strip())
        except ValueError:
            logger.warning("ignoring status synonym %r -> %r: unknown canonical status", raw_key, raw_target)
    return table


def worst_status(statuses: Iterable[Status], *, default: Status = Status.PASSED) -> Status:
    worst = default
    for status in statuses:
        if _SEVERITY[status] > _SEVERITY[worst]:
            worst = status
    return worst


def status_from_code(status_code: Any, *, error_from: int) -> Status | None:
    code = _as_status_code(status_code)
    if code is None:
        return None
    if code >= error_from:
        return Status.ERROR
    if code >= 300:
        return Status.HAS_ISSUES
    return Status.PASSED


def legacy_rule_status(result: Any) -> Status:
    if not result:
        return Status.PASSED
    normalized = str(result).lower()
    if "fail" in normalized or "error" in normalized:
        return Status.ERROR
    if "warn" in normalized:
        return Status.HAS_ISSUES
    return Status.PASSED


def overall_result_status(overall_result: Any) -> Status:
    if not overall_result:
        return Status.PASSED
    normalized = str(overall_result).lower()
    if "fail" in normalized:
        return Status.ERROR
    if any(marker in normalized for marker in ("suggest", "require", "partial")):
        return Status.HAS_ISSUES
    return Status.PASSED


def map_job_state(raw: Any) -> JobState:
    key = _status_key(raw)
    return JOB_STATE_SYNONYMS.get(key, JobState.PROCESSING) if key else JobState.PROCESSING


def _status_key(raw: Any) -> str:
    if raw is None or isinstance(raw, bool):
        return ""
    return str(raw).strip().lower()


def _as_status_code(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if math.isfinite(value) else None
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            return None
    return None
