"""Per-job patient analytics: outcomes, mortality, risk and cause tables."""

import logging
from collections import Counter
from collections.abc import Iterable, Sequence

from clinaudit.analysis.normalize import NULL_TOKENS
from clinaudit.models import (
    AnalyticsSummary,
    MatchRecord,
    MortalityAnalytics,
    PatientRecord,
    SurgeryOutcomes,
)

log = logging.getLogger(__name__)

# Comorbidities whose in-group mortality rate (percent) exceeds this are flagged.
HIGH_RISK_MORTALITY_THRESHOLD = 20.0

RISK_LEVELS = ("Critical", "High", "Medium", "Low")


def _pct(part: int, whole: int) -> float:
    return part * 100 / whole if whole else 0.0


def _frequency(names: Iterable[str]) -> dict[str, int]:
    return dict(Counter(name for name in names if name not in NULL_TOKENS))


def risk_level(patient: PatientRecord) -> str:
    """Bucket a patient; the first matching rule wins."""
    deceased = patient.mortality_status == "deceased"
    failed = patient.surgery_outcome == "failure"
    if deceased and failed:
        return "Critical"
    if deceased or (failed and patient.total_comorbidities >= 3):
        return "High"
    if failed or patient.total_comorbidities >= 2:
        return "Medium"
    return "Low"


def comorbidity_mortality_rates(patients: Sequence[PatientRecord]) -> dict[str, float]:
    """Mortality rate (percent) among the patients listing each comorbidity."""
    having: Counter[str] = Counter()
    deceased: Counter[str] = Counter()
    for p in patients:
        for name in set(p.primary_concerns):
            having[name] += 1
            if p.mortality_status == "deceased":
                deceased[name] += 1
    return {name: _pct(deceased[name], n) for name, n in having.items()}


def build_patient_analytics(
    patients: Sequence[PatientRecord],
    matches: Sequence[MatchRecord] = (),
) -> AnalyticsSummary:
    total = len(patients)
    if not total:
        return AnalyticsSummary()

    outcomes = Counter(p.surgery_outcome for p in patients)
    surgery = SurgeryOutcomes(
        successful=outcomes["success"],
        failed=outcomes["failure"],
        unknown=total - outcomes["success"] - outcomes["failure"],
        success_rate=_pct(outcomes["success"], total),
    )

    dead = [p for p in patients if p.mortality_status == "deceased"]
    failed_deaths = sum(1 for p in dead if p.surgery_outcome == "failure")
    success_deaths = sum(1 for p in dead if p.surgery_outcome == "success")

    comorbidities = _frequency(name for p in patients for name in p.primary_concerns)
    if not comorbidities and matches:
        comorbidities = _frequency(m.comorbidity_name.strip() for m in matches)

    high_risk = {
        name: rate
        for name, rate in comorbidity_mortality_rates(patients).items()
        if rate > HIGH_RISK_MORTALITY_THRESHOLD
    }

    risk = dict.fromkeys(RISK_LEVELS, 0)
    for p in patients:
        risk[risk_level(p)] += 1

    mortality = MortalityAnalytics(
        deceased_patients=len(dead),
        alive_patients=total - len(dead),
        mortality_rate=_pct(len(dead), total),
        mortality_causes=_frequency(cause for p in dead for cause in p.mortality_causes),
        failed_surgery_deaths=failed_deaths,
        success_surgery_deaths=success_deaths,
        death_rate_in_failed=_pct(failed_deaths, surgery.failed),
        death_rate_in_successful=_pct(success_deaths, surgery.successful),
        high_risk_comorbidities=high_risk,
        risk_distribution=risk,
    )

    summary = AnalyticsSummary(
        total_patients=total,
        avg_comorbidities_per_patient=sum(p.total_comorbidities for p in patients) / total,
        most_common_comorbidities=comorbidities,
        most_effective_columns=_frequency(m.column_name.strip() for m in matches),
        surgery_outcomes=surgery,
        mortality_analytics=mortality,
        failure_causes=_frequency(
            cause for p in patients if p.surgery_outcome == "failure" for cause in p.failure_causes
        ),
    )
    log.info(
        "Patient analytics: %d patients, %d comorbidities, surgery %dS/%dF/%dU, mortality %d/%d",
        total,
        len(comorbidities),
        surgery.successful,
        surgery.failed,
        surgery.unknown,
        mortality.deceased_patients,
        mortality.alive_patients,
    )
    return summary
