from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

logger = logging.getLogger(__name__)

SHAPE_KEYS = ("materials", "evaluation_result", "evaluationResult", "material_results", "rules")
RULE_KEYS = ("field", "result")
MATERIAL_KEYS = ("name", "items", "material_name")
MAX_ENVELOPE_DEPTH = 3


class PayloadShape(str, Enum):
    FLAT_MATERIALS = "flat_materials"
    EVALUATION_RESULT = "evaluation_result"
    LEGACY_RULES = "legacy_rules"
    UNRECOGNIZED = "unrecognized"


@dataclass(slots=True)
class DecodedPayload:
    """One result body resolved to exactly one authoritative shape.

    ``records`` holds the shape's own entries: material records, evaluation
    ``material_results`` or legacy rules. ``body`` is the unwrapped entity the
    records were found on and still carries side data (files, basic info).
    """

    shape: PayloadShape
    records: list[dict[str, Any]] = field(default_factory=list)
    body: dict[str, Any] = field(default_factory=dict)
    evaluation: dict[str, Any] | None = None
    error_message: str | None = None

    @property
    def summary(self) -> dict[str, Any] | None:
        if self.evaluation is None:
            return None
        summary = self.evaluation.get("evaluation_summary")
        return summary if isinstance(summary, dict) else None


def decode_payload(payload: Any) -> DecodedPayload:
    body, error_message = _unwrap(payload)

    if isinstance(body, list):
        records = [entry if isinstance(entry, dict) else {} for entry in body]
        if records and all(_looks_like_rule(record) for record in records):
            return DecodedPayload(shape=PayloadShape.LEGACY_RULES, records=records)
        if records:
            return DecodedPayload(shape=PayloadShape.FLAT_MATERIALS, records=records)
        return DecodedPayload(shape=PayloadShape.UNRECOGNIZED, error_message=error_message)

    if not isinstance(body, dict):
        return DecodedPayload(shape=PayloadShape.UNRECOGNIZED, error_message=error_message)

    evaluation = _evaluation_of(body)

    materials = _non_empty_list(body.get("materials"))
    if materials:
        return DecodedPayload(
            shape=PayloadShape.FLAT_MATERIALS,
            records=_records(materials),
            body=body,
            evaluation=evaluation,
        )

    material_results = _non_empty_list(evaluation.get("material_results")) if evaluation else None
    if material_results:
        return DecodedPayload(
            shape=PayloadShape.EVALUATION_RESULT,
            records=_records(material_results),
            body=body,
            evaluation=evaluation,
        )

    rules = (_non_empty_list(evaluation.get("rules")) if evaluation else None) or _non_empty_list(body.get("rules"))
    if rules:
        return DecodedPayload(
            shape=PayloadShape.LEGACY_RULES,
            records=_records(rules),
            body=body,
            evaluation=evaluation,
        )

    return DecodedPayload(
        shape=PayloadShape.UNRECOGNIZED,
        body=body,
        evaluation=evaluation,
        error_message=error_message,
    )


def _unwrap(payload: Any) -> tuple[Any, str | None]:
    current = payload
    error_message: str | None = None
    for _ in range(MAX_ENVELOPE_DEPTH):
        if not isinstance(current, dict):
            break
        error_message = error_message or _error_message(current)
        if current.get("success") is False and not current.get("data"):
            return None, error_message or "preview payload is empty or could not be parsed"
        if any(key in current for key in SHAPE_KEYS):
            break
        inner = current.get("data") or current.get("record")
        if not isinstance(inner, (dict, list)):
            break
        current = inner
    return current, error_message


def _evaluation_of(body: dict[str, Any]) -> dict[str, Any] | None:
    raw = body.get("evaluation_result") or body.get("evaluationResult")
    if isinstance(raw, str):
        raw = _decode_json_object(raw)
    if isinstance(raw, dict):
        return raw
    if "material_results" in body or "evaluation_summary" in body:
        return body
    return None


def _decode_json_object(raw: str) -> dict[str, Any] | None:
    trimmed = raw.strip()
    if not trimmed:
        return None
    try:
        decoded = json.loads(trimmed)
    except (json.JSONDecodeError, RecursionError):
        logger.warning("evaluation_result is not valid JSON; ignoring it")
        return None
    return decoded if isinstance(decoded, dict) else None


def _looks_like_rule(record: dict[str, Any]) -> bool:
    return any(key in record for key in RULE_KEYS) and not any(key in record for key in MATERIAL_KEYS)


def _non_empty_list(value: Any) -> list[Any] | None:
    return value if isinstance(value, list) and value else None


def _records(values: list[Any]) -> list[dict[str, Any]]:
    return [value if isinstance(value, dict) else {} for value in values]


def _error_message(level: dict[str, Any]) -> str | None:
    for key in ("errorMsg", "error_msg", "error"):
        value = level.get(key)
        if isinstance(value, str) and value.strip():
            return value.strip()
    if level.get("success") is False:
        value = level.get("message")
        if isinstance(value, str) and value.strip():
            return value.strip()
    return None
