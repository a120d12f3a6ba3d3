"""Job results: normalize a backend job payload and attach patient analytics."""

import logging
from typing import Any

from clinaudit.analysis import register
from clinaudit.analysis.aggregate import build_patient_analytics
from clinaudit.analysis.normalize import normalize_matches, normalize_patients, normalize_stats
from clinaudit.models import JobResults, MatchSummary

log = logging.getLogger(__name__)

FORMATS = ("legacy", "enhanced")


def _as_dict(value: Any) -> dict:
    return value if isinstance(value, dict) else {}


@register("job_results")
def transform_job_results(payload: dict[str, Any], fmt: str = "legacy") -> JobResults:
    if fmt not in FORMATS:
        fmt = "legacy"
    log.info("Transforming job results (format=%s, keys=%s)", fmt, sorted(payload))

    summary = _as_dict(payload.get("summary"))
    results = JobResults(
        stats=normalize_stats(payload.get("stats")),
        matches=normalize_matches(payload.get("matches")),
        summary=MatchSummary(
            matches_by_comorbidity=_as_dict(summary.get("matches_by_comorbidity")),
            matches_by_column=_as_dict(summary.get("matches_by_column")),
        ),
    )

    raw_patients = payload.get("patient_summaries")
    if raw_patients is not None:
        results.patient_summaries = normalize_patients(raw_patients)

    if fmt == "enhanced" or raw_patients is not None:
        results.patient_analytics = build_patient_analytics(
            results.patient_summaries or [], results.matches
        )

    log.info(
        "Job results ready: %d patients, %d matches",
        len(results.patient_summaries or []),
        len(results.matches),
    )
    return results
