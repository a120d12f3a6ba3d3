from pydantic import BaseModel, ConfigDict


class PatientRecord(BaseModel):
    patient_id: int = 0
    total_comorbidities: int = 0
    highest_confidence: float = 0.0
    comorbidity_summary: str = ""
    surgery_outcome: str = "unknown"  # "success" | "failure" | "unknown"
    failure_causes: list[str] = []
    primary_concerns: list[str] = []
    comprehensive_summary: str = ""
    columns_analyzed: int = 0
    mortality_status: str = "alive"
    mortality_confidence: float = 0.0
    mortality_causes: list[str] = []
    time_of_death: str | None = None


class MatchRecord(BaseModel):
    # Backend match rows carry more fields (row_number, excerpt, confidence...);
    # they are passed through untouched.
    model_config = ConfigDict(extra="allow")

    comorbidity_name: str = ""
    column_name: str = ""


class JobStats(BaseModel):
    rows_processed: int = 0
    matches_found: int = 0
    processing_time: float = 0.0
    successful_surgeries: int = 0
    failed_surgeries: int = 0
    output_file_path: str | None = None


class MatchSummary(BaseModel):
    matches_by_comorbidity: dict = {}
    matches_by_column: dict = {}


# ── Analytics ──


class SurgeryOutcomes(BaseModel):
    successful: int = 0
    failed: int = 0
    unknown: int = 0
    success_rate: float = 0.0


class MortalityAnalytics(BaseModel):
    deceased_patients: int = 0
    alive_patients: int = 0
    mortality_rate: float = 0.0
    mortality_causes: dict[str, int] = {}
    failed_surgery_deaths: int = 0
    success_surgery_deaths: int = 0
    death_rate_in_failed: float = 0.0
    death_rate_in_successful: float = 0.0
    high_risk_comorbidities: dict[str, float] = {}
    risk_distribution: dict[str, int] = {"Critical": 0, "High": 0, "Medium": 0, "Low": 0}


class AnalyticsSummary(BaseModel):
    total_patients: int = 0
    avg_comorbidities_per_patient: float = 0.0
    most_common_comorbidities: dict[str, int] = {}
    most_effective_columns: dict[str, int] = {}
    surgery_outcomes: SurgeryOutcomes = SurgeryOutcomes()
    mortality_analytics: MortalityAnalytics = MortalityAnalytics()
    failure_causes: dict[str, int] = {}


class JobResults(BaseModel):
    stats: JobStats
    matches: list[MatchRecord] = []
    summary: MatchSummary = MatchSummary()
    patient_summaries: list[PatientRecord] | None = None
    patient_analytics: AnalyticsSummary | None = None


# ── Dashboard ──


class OverallStats(BaseModel):
    total_jobs: int = 0
    total_rows: int = 0
    total_matches: int = 0
    avg_processing_time: float = 0.0


class RecentJob(BaseModel):
    job_id: str | None = None
    procedure_code: str = "Unknown"
    processing_time: float = 0.0
    rows_processed: int = 0
    comorbidities_checked: int = 0
    matches_found: int = 0
    successful_surgeries: int = 0
    failed_surgeries: int = 0
    processed_at: str | None = None
    file_name: str = "Unknown"


class EnhancedDashboard(BaseModel):
    patient_analytics: dict = {}
    surgery_analytics: dict = {
        "total_successful_surgeries": 0,
        "total_failed_surgeries": 0,
        "overall_success_rate": 0,
        "avg_success_rate": 0,
    }
    top_comorbidities: dict[str, int | float] = {}
    top_failure_causes: dict[str, int | float] = {}
    column_effectiveness: list = []


class DashboardStats(BaseModel):
    overall: OverallStats = OverallStats()
    recent_jobs: list[RecentJob] = []
    enhanced: EnhancedDashboard | None = None
