"""Coerce raw backend job fields into canonical record types.

The analysis backend is loose about shapes: list fields arrive as real
lists, JSON-encoded strings, comma-separated strings or not at all, and
numeric fields sometimes arrive as strings. Everything here degrades to a
default instead of raising, so one bad patient row never fails a job.
"""

import json
import logging
import math
from collections.abc import Iterable, Mapping
from typing import Any

from clinaudit.models import JobStats, MatchRecord, PatientRecord

log = logging.getLogger(__name__)

SURGERY_OUTCOMES = frozenset({"success", "failure", "unknown"})

NULL_TOKENS = frozenset({"", "null", "undefined"})
_WRAPPER_CHARS = '"[]'


def normalize_string_list(raw: Any, fallback: list | None = None) -> list:
    """Best-effort conversion of a list-ish field into a list."""
    if isinstance(raw, list):
        return raw
    if isinstance(raw, str) and raw.strip():
        try:
            parsed = json.loads(raw)
        except (ValueError, RecursionError):
            log.debug("Field is not valid JSON, splitting as text: %r", raw[:200])
            if "," in raw:
                pieces = (p.strip().strip(_WRAPPER_CHARS).strip() for p in raw.split(","))
                return [p for p in pieces if p]
            return [raw.strip().strip(_WRAPPER_CHARS)]
        return parsed if isinstance(parsed, list) else [parsed]
    return list(fallback) if fallback is not None else []


def normalize_surgery_outcome(raw: Any) -> str:
    if isinstance(raw, str) and raw in SURGERY_OUTCOMES:
        return raw
    return "unknown"


def normalize_mortality_status(raw: Any) -> str:
    if raw is None or (isinstance(raw, str) and not raw.strip()):
        return "alive"
    return raw if isinstance(raw, str) else str(raw)


def _clean_entries(items: Iterable[Any], name_key: str | None = None) -> list[str]:
    """Trim entries and drop blanks and null tokens.

    With ``name_key`` set, mapping entries are replaced by that key's value.
    """
    cleaned = []
    for item in items:
        if name_key and isinstance(item, Mapping):
            item = item.get(name_key)
        if item is None or isinstance(item, (Mapping, list)):
            continue
        text = str(item).strip()
        if text not in NULL_TOKENS:
            cleaned.append(text)
    return cleaned


def as_int(value: Any) -> int:
    """Non-negative int, 0 for anything unusable."""
    if isinstance(value, bool):
        return int(value)
    try:
        number = int(float(value))
    except (TypeError, ValueError, OverflowError):
        return 0
    return max(number, 0)


def as_float(value: Any, upper: float | None = None) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    if not math.isfinite(number):
        return 0.0
    number = max(number, 0.0)
    if upper is not None:
        number = min(number, upper)
    return number


def as_text(value: Any, default: str | None = "") -> str | None:
    if value is None or value == "":
        return default
    return value if isinstance(value, str) else str(value)


def normalize_patient(raw: Mapping[str, Any]) -> PatientRecord:
    return PatientRecord(
        patient_id=as_int(raw.get("patient_id")),
        total_comorbidities=as_int(raw.get("total_comorbidities")),
        highest_confidence=as_float(raw.get("highest_confidence"), upper=1.0),
        comorbidity_summary=as_text(raw.get("comorbidity_summary")),
        surgery_outcome=normalize_surgery_outcome(raw.get("surgery_outcome")),
        failure_causes=_clean_entries(normalize_string_list(raw.get("failure_causes"))),
        primary_concerns=_clean_entries(
            normalize_string_list(raw.get("primary_concerns")), name_key="comorbidity"
        ),
        comprehensive_summary=as_text(raw.get("comprehensive_summary")),
        columns_analyzed=as_int(raw.get("columns_analyzed")),
        mortality_status=normalize_mortality_status(raw.get("mortality_status")),
        mortality_confidence=as_float(raw.get("mortality_confidence"), upper=1.0),
        mortality_causes=_clean_entries(normalize_string_list(raw.get("mortality_causes"))),
        time_of_death=as_text(raw.get("time_of_death"), default=None),
    )


def normalize_match(raw: Mapping[str, Any]) -> MatchRecord:
    data = dict(raw)
    data["comorbidity_name"] = as_text(raw.get("comorbidity_name"))
    data["column_name"] = as_text(raw.get("column_name"))
    return MatchRecord(**data)


def normalize_stats(raw: Mapping[str, Any] | None) -> JobStats:
    raw = raw if isinstance(raw, Mapping) else {}
    return JobStats(
        rows_processed=as_int(raw.get("rows_processed")),
        matches_found=as_int(raw.get("matches_found")),
        processing_time=as_float(raw.get("processing_time")),
        successful_surgeries=as_int(raw.get("successful_surgeries")),
        failed_surgeries=as_int(raw.get("failed_surgeries")),
        output_file_path=as_text(raw.get("output_file_path"), default=None),
    )


def normalize_patients(items: Any) -> list[PatientRecord]:
    """Normalize every mapping in ``items``; other entries are skipped."""
    if not isinstance(items, (list, tuple)):
        if items is not None:
            log.warning("Ignoring patient summaries of type %s", type(items).__name__)
        return []
    patients = []
    for i, item in enumerate(items):
        if not isinstance(item, Mapping):
            log.warning("Skipping patient summary #%d: expected an object, got %s", i, type(item).__name__)
            continue
        patients.append(normalize_patient(item))
    return patients


def normalize_matches(items: Any) -> list[MatchRecord]:
    if not isinstance(items, (list, tuple)):
        if items is not None:
            log.warning("Ignoring matches of type %s", type(items).__name__)
        return []
    matches = []
    for i, item in enumerate(items):
        if not isinstance(item, Mapping):
            log.warning("Skipping match #%d: expected an object, got %s", i, type(item).__name__)
            continue
        matches.append(normalize_match(item))
    return matches
