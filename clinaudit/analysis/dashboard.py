"""Dashboard stats: default missing counters and clean the top-N tables."""

import logging
from typing import Any

from clinaudit.analysis import register
from clinaudit.analysis.normalize import NULL_TOKENS, as_float, as_int, as_text
from clinaudit.models import DashboardStats, EnhancedDashboard, OverallStats, RecentJob

log = logging.getLogger(__name__)


def _positive_counts(table: Any) -> dict[str, int | float]:
    """Keep entries with a usable name and a positive numeric value."""
    if not isinstance(table, dict):
        return {}
    kept: dict[str, int | float] = {}
    for key, value in table.items():
        if not isinstance(key, str) or key.strip() in NULL_TOKENS:
            continue
        number = as_float(value)
        if number > 0:
            kept[key] = value if type(value) is int else number
    return kept


def _or_default(value: Any, default: Any) -> Any:
    if value and isinstance(value, type(default)):
        return value
    return default


def _recent_job(raw: dict[str, Any]) -> RecentJob:
    return RecentJob(
        job_id=as_text(raw.get("job_id"), default=None),
        procedure_code=as_text(raw.get("procedure_code"), default="Unknown"),
        processing_time=as_float(raw.get("processing_time")),
        rows_processed=as_int(raw.get("rows_processed")),
        comorbidities_checked=as_int(raw.get("comorbidities_checked")),
        matches_found=as_int(raw.get("matches_found")),
        successful_surgeries=as_int(raw.get("successful_surgeries")),
        failed_surgeries=as_int(raw.get("failed_surgeries")),
        processed_at=as_text(raw.get("processed_at"), default=None),
        file_name=as_text(raw.get("file_name"), default="Unknown"),
    )


@register("dashboard_stats")
def transform_dashboard_stats(payload: dict[str, Any]) -> DashboardStats:
    overall = payload.get("overall") if isinstance(payload.get("overall"), dict) else {}
    recent = payload.get("recent_jobs") if isinstance(payload.get("recent_jobs"), list) else []

    stats = DashboardStats(
        overall=OverallStats(
            total_jobs=as_int(overall.get("total_jobs")),
            total_rows=as_int(overall.get("total_rows")),
            total_matches=as_int(overall.get("total_matches")),
            avg_processing_time=as_float(overall.get("avg_processing_time")),
        ),
        recent_jobs=[_recent_job(job) for job in recent if isinstance(job, dict)],
    )

    enhanced = payload.get("enhanced")
    if isinstance(enhanced, dict):
        defaults = EnhancedDashboard()
        stats.enhanced = EnhancedDashboard(
            patient_analytics=_or_default(enhanced.get("patient_analytics"), defaults.patient_analytics),
            surgery_analytics=_or_default(enhanced.get("surgery_analytics"), defaults.surgery_analytics),
            top_comorbidities=_positive_counts(enhanced.get("top_comorbidities")),
            top_failure_causes=_positive_counts(enhanced.get("top_failure_causes")),
            column_effectiveness=_or_default(
                enhanced.get("column_effectiveness"), defaults.column_effectiveness
            ),
        )

    log.info(
        "Dashboard stats: %d recent jobs, %d comorbidities, %d failure causes",
        len(stats.recent_jobs),
        len(stats.enhanced.top_comorbidities) if stats.enhanced else 0,
        len(stats.enhanced.top_failure_causes) if stats.enhanced else 0,
    )
    return stats
