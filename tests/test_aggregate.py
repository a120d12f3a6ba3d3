"""
Unit tests for per-job patient analytics
"""

import itertools

import pytest

from clinaudit.analysis.aggregate import (
    HIGH_RISK_MORTALITY_THRESHOLD,
    build_patient_analytics,
    comorbidity_mortality_rates,
    risk_level,
)
from clinaudit.models import MatchRecord, PatientRecord


def _patient(**fields) -> PatientRecord:
    return PatientRecord(**fields)


def _patients_with(name: str, total: int, deceased: int) -> list[PatientRecord]:
    return [
        _patient(
            patient_id=i,
            primary_concerns=[name],
            mortality_status="deceased" if i < deceased else "alive",
        )
        for i in range(total)
    ]


class TestEmptyInput:
    """No patients produces the zero-valued summary"""

    def test_zero_summary(self):
        summary = build_patient_analytics([], [])

        assert summary.total_patients == 0
        assert summary.avg_comorbidities_per_patient == 0
        assert summary.surgery_outcomes.success_rate == 0
        assert summary.mortality_analytics.mortality_rate == 0
        assert summary.mortality_analytics.death_rate_in_failed == 0
        assert summary.most_common_comorbidities == {}
        assert summary.most_effective_columns == {}
        assert summary.failure_causes == {}
        assert summary.mortality_analytics.mortality_causes == {}
        assert summary.mortality_analytics.high_risk_comorbidities == {}
        assert summary.mortality_analytics.risk_distribution == {
            "Critical": 0,
            "High": 0,
            "Medium": 0,
            "Low": 0,
        }

    def test_matches_ignored_without_patients(self):
        summary = build_patient_analytics([], [MatchRecord(comorbidity_name="Diabetes", column_name="Notes")])
        assert summary.most_effective_columns == {}
        assert summary.most_common_comorbidities == {}


class TestSurgeryOutcomes:
    """Outcome partition and success rate"""

    def test_success_rate_uses_all_patients(self):
        patients = (
            [_patient(surgery_outcome="success")] * 6
            + [_patient(surgery_outcome="failure")] * 3
            + [_patient(surgery_outcome="unknown")]
        )
        outcomes = build_patient_analytics(patients).surgery_outcomes

        assert outcomes.successful == 6
        assert outcomes.failed == 3
        assert outcomes.unknown == 1
        assert outcomes.success_rate == pytest.approx(60.0)

    def test_death_rates_by_outcome(self):
        patients = [
            _patient(surgery_outcome="failure", mortality_status="deceased"),
            _patient(surgery_outcome="failure"),
            _patient(surgery_outcome="success", mortality_status="deceased"),
            _patient(surgery_outcome="success"),
            _patient(surgery_outcome="success"),
            _patient(surgery_outcome="success"),
            _patient(surgery_outcome="unknown", mortality_status="deceased"),
        ]
        mortality = build_patient_analytics(patients).mortality_analytics

        assert mortality.deceased_patients == 3
        assert mortality.alive_patients == 4
        assert mortality.failed_surgery_deaths == 1
        assert mortality.success_surgery_deaths == 1
        assert mortality.death_rate_in_failed == pytest.approx(50.0)
        assert mortality.death_rate_in_successful == pytest.approx(25.0)

    def test_death_rate_zero_without_failures(self):
        mortality = build_patient_analytics([_patient(mortality_status="deceased")]).mortality_analytics
        assert mortality.death_rate_in_failed == 0
        assert mortality.death_rate_in_successful == 0
        assert mortality.mortality_rate == pytest.approx(100.0)


class TestRiskLevels:
    """Risk bucket precedence"""

    @pytest.mark.parametrize(
        "outcome, status, comorbidities, expected",
        [
            ("failure", "deceased", 3, "Critical"),
            ("failure", "deceased", 0, "Critical"),
            ("success", "deceased", 0, "High"),
            ("failure", "alive", 3, "High"),
            ("failure", "alive", 0, "Medium"),
            ("success", "alive", 2, "Medium"),
            ("unknown", "alive", 1, "Low"),
            ("success", "alive", 0, "Low"),
        ],
    )
    def test_bucket(self, outcome, status, comorbidities, expected):
        patient = _patient(
            surgery_outcome=outcome, mortality_status=status, total_comorbidities=comorbidities
        )
        assert risk_level(patient) == expected

    def test_single_critical_patient(self):
        patients = [_patient(surgery_outcome="failure", mortality_status="deceased", total_comorbidities=3)]
        distribution = build_patient_analytics(patients).mortality_analytics.risk_distribution

        assert distribution == {"Critical": 1, "High": 0, "Medium": 0, "Low": 0}


class TestHighRiskComorbidities:
    """In-group mortality above the threshold"""

    def test_threshold_default(self):
        assert HIGH_RISK_MORTALITY_THRESHOLD == 20.0

    def test_diabetes_is_high_risk(self):
        summary = build_patient_analytics(_patients_with("Diabetes", total=5, deceased=2))
        assert summary.mortality_analytics.high_risk_comorbidities == {"Diabetes": pytest.approx(40.0)}

    def test_mild_allergy_is_not_high_risk(self):
        summary = build_patient_analytics(_patients_with("Mild Allergy", total=10, deceased=1))
        assert summary.mortality_analytics.high_risk_comorbidities == {}

    def test_exactly_at_threshold_is_excluded(self):
        summary = build_patient_analytics(_patients_with("Asthma", total=5, deceased=1))
        assert "Asthma" not in summary.mortality_analytics.high_risk_comorbidities

    def test_rate_only_counts_patients_with_the_comorbidity(self):
        patients = _patients_with("Diabetes", total=5, deceased=2) + _patients_with("Obesity", total=5, deceased=0)
        rates = comorbidity_mortality_rates(patients)

        assert rates["Diabetes"] == pytest.approx(40.0)
        assert rates["Obesity"] == 0


class TestFrequencyTables:
    """Comorbidity, column, failure and mortality cause tables"""

    def test_comorbidities_from_primary_concerns(self):
        patients = [
            _patient(primary_concerns=["Diabetes", "Hypertension"]),
            _patient(primary_concerns=["Diabetes"]),
        ]
        matches = [MatchRecord(comorbidity_name="Asthma", column_name="Notes")]
        summary = build_patient_analytics(patients, matches)

        assert summary.most_common_comorbidities == {"Diabetes": 2, "Hypertension": 1}
        assert summary.most_effective_columns == {"Notes": 1}

    def test_comorbidities_fall_back_to_matches(self):
        matches = [
            MatchRecord(comorbidity_name="Diabetes", column_name="Notes"),
            MatchRecord(comorbidity_name=" Diabetes ", column_name="History"),
            MatchRecord(comorbidity_name="", column_name="Notes"),
        ]
        summary = build_patient_analytics([_patient()], matches)

        assert summary.most_common_comorbidities == {"Diabetes": 2}
        assert summary.most_effective_columns == {"Notes": 2, "History": 1}

    def test_failure_causes_only_from_failed_surgeries(self):
        patients = [
            _patient(surgery_outcome="failure", failure_causes=["Bleeding", "Infection"]),
            _patient(surgery_outcome="failure", failure_causes=["Bleeding"]),
            _patient(surgery_outcome="success", failure_causes=["Ignored"]),
        ]
        assert build_patient_analytics(patients).failure_causes == {"Bleeding": 2, "Infection": 1}

    def test_null_tokens_never_become_keys(self):
        patients = [_patient(surgery_outcome="failure", failure_causes=["null", "undefined", "", "Leak"])]
        assert build_patient_analytics(patients).failure_causes == {"Leak": 1}

    def test_mortality_causes_only_from_deceased(self):
        patients = [
            _patient(mortality_status="deceased", mortality_causes=["Sepsis"]),
            _patient(mortality_status="deceased", mortality_causes=["Sepsis", "Stroke"]),
            _patient(mortality_causes=["Ignored"]),
        ]
        causes = build_patient_analytics(patients).mortality_analytics.mortality_causes
        assert causes == {"Sepsis": 2, "Stroke": 1}

    def test_average_comorbidities(self):
        patients = [_patient(total_comorbidities=n) for n in (1, 2, 3)]
        assert build_patient_analytics(patients).avg_comorbidities_per_patient == pytest.approx(2.0)


class TestPartitionInvariants:
    """Counts always add up to the patient total"""

    def test_partitions_sum_to_total(self):
        patients = [
            _patient(surgery_outcome=outcome, mortality_status=status, total_comorbidities=n)
            for outcome, status, n in itertools.product(
                ("success", "failure", "unknown"), ("alive", "deceased", "unreported"), range(5)
            )
        ]
        summary = build_patient_analytics(patients)
        outcomes = summary.surgery_outcomes
        mortality = summary.mortality_analytics

        assert summary.total_patients == len(patients)
        assert outcomes.successful + outcomes.failed + outcomes.unknown == len(patients)
        assert mortality.deceased_patients + mortality.alive_patients == len(patients)
        assert sum(mortality.risk_distribution.values()) == len(patients)
        for rate in (
            outcomes.success_rate,
            mortality.mortality_rate,
            mortality.death_rate_in_failed,
            mortality.death_rate_in_successful,
        ):
            assert 0 <= rate <= 100
