"""
LaunchCheck Schema Definitions

Pydantic models for every payload the judgment pipeline produces or consumes.
These models are the contract between the core and the API layer.
"""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field, model_validator


# =============================================================================
# ENUMS
# =============================================================================

class ConcurrencyRisk(str, Enum):
    """Coarse concurrency risk tier"""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class RiskSeverity(str, Enum):
    """Severity of a risk scenario"""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class VerdictStatus(str, Enum):
    """Launch verdict status, derived from the confidence score"""
    SAFE = "safe"
    WATCH = "watch"
    FIX = "fix"


class Stage(str, Enum):
    """App stage, derived from the confidence score (finer than status)"""
    MVP = "mvp"
    WATCH = "watch"
    GROWTH = "growth"
    PRODUCTION = "production"


class NextStepMode(str, Enum):
    DO_NOTHING = "do_nothing"
    WATCH_ONE_THING = "watch_one_thing"
    SMALL_UPGRADE = "small_upgrade"


class AlertCategory(str, Enum):
    USAGE_GROWTH = "usage_growth"
    COST_RISK = "cost_risk"
    ARCHITECTURE_DRIFT = "architecture_drift"
    PLATFORM_SUITABILITY = "platform_suitability"
    STABILITY_REGRESSION = "stability_regression"


class AlertSeverity(str, Enum):
    INFORMATIONAL = "informational"
    HEADS_UP = "heads_up"
    ACTION_SOON = "action_soon"


class AnalysisStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


# =============================================================================
# PROFILES
# =============================================================================

class StackProfile(BaseModel):
    """
    Detected technology classification for one source snapshot.

    `database` is always the first entry of `databases`, or both are empty.
    """
    runtime: str | None = Field(None, description="Runtime, e.g. 'node' or 'python'")
    framework: str | None = Field(None, description="Web framework, e.g. 'Express'")
    database: str | None = Field(None, description="Primary database (first detected)")
    databases: list[str] = Field(default_factory=list, description="All detected databases in detection order")
    external_apis: list[str] = Field(default_factory=list, description="Third-party services, deduplicated")
    has_background_jobs: bool = Field(False, description="A job/queue/cron library is declared")
    has_file_uploads: bool = Field(False, description="An upload library is declared")
    deployment_platform: str | None = Field(None, description="Platform inferred from config files")

    @model_validator(mode="after")
    def _primary_database_matches(self) -> "StackProfile":
        if self.databases and self.database is None:
            self.database = self.databases[0]
        elif self.database is not None and not self.databases:
            self.databases = [self.database]
        elif self.databases and self.database != self.databases[0]:
            raise ValueError("database must equal the first entry of databases")
        return self


class BehaviorProfile(BaseModel):
    """Detected runtime-behavior classification for one source snapshot."""
    is_stateful: bool = False
    write_heavy: bool = False
    has_background_jobs: bool = False
    has_file_uploads: bool = False
    estimated_concurrency_risk: ConcurrencyRisk = ConcurrencyRisk.LOW
    external_dependency_count: int = Field(0, ge=0, description="Declared manifest dependencies (regular + dev)")


# =============================================================================
# JUDGMENT OUTPUT
# =============================================================================

class RiskScenario(BaseModel):
    """One plain-English risk explanation."""
    id: str = Field(..., description="Stable identifier")
    title: str
    plain_explanation: str
    trigger_condition: str = Field(..., description="Internal trigger name, not shown to users")
    user_symptom: str
    severity: RiskSeverity
    order: int = Field(..., description="Display order, tie-break key")


class PlatformRecommendation(BaseModel):
    """One hosting option with justification."""
    platform_id: str
    platform_name: str
    recommended_badge: str
    why_bullets: list[str] = Field(default_factory=list, max_length=2)
    when_it_changes: str
    confidence_note: str


class NextBestStepRecommendation(BaseModel):
    """Exactly one recommended action."""
    mode: NextStepMode
    headline: str
    explanation: str
    cta_text: str
    upgrade_required: bool = False


class LaunchVerdict(BaseModel):
    """The aggregate judgment for one analysis."""
    analysis_id: str
    status: VerdictStatus
    confidence_score: int = Field(..., ge=0, le=100)
    one_line_summary: str
    risks: list[RiskScenario] = Field(default_factory=list, max_length=3)
    platform_recommendation: PlatformRecommendation
    next_best_step: NextBestStepRecommendation
    stage: Stage
    factors: list[str] = Field(default_factory=list, description="Confidence factor explanations")


# =============================================================================
# ANALYSIS & ALERTS
# =============================================================================

class AppAnalysis(BaseModel):
    """One analysis of one app, as handed to the verdict generator."""
    id: str
    user_id: str
    github_url: str | None = None
    uploaded_file_name: str | None = None
    status: AnalysisStatus = AnalysisStatus.PENDING
    stack_detection: StackProfile
    behavior_profile: BehaviorProfile
    launch_confidence_score: int = Field(0, ge=0, le=100)
    created_at: datetime | None = None
    updated_at: datetime | None = None


class Alert(BaseModel):
    """One notification derived from a profile diff."""
    id: int | None = Field(None, description="Set by persistence")
    user_id: str
    analysis_id: str
    category: AlertCategory
    severity: AlertSeverity
    title: str
    body: str
    what_changed: str | None = None
    next_step: str | None = None
    created_at: datetime
    read_at: datetime | None = None

    def mark_read(self, now: datetime) -> "Alert":
        """Return a copy marked read. The first read timestamp is kept."""
        if self.read_at is not None:
            return self
        return self.model_copy(update={"read_at": now})


# =============================================================================
# REQUEST / RESPONSE MODELS
# =============================================================================

class AnalyzeRequest(BaseModel):
    """Request body for POST /analyze"""
    repo_url: str = Field(..., description="Full GitHub URL (e.g., https://github.com/user/repo)")


class AnalyzeResponse(BaseModel):
    """Response for POST /analyze and POST /analyze/upload"""
    analysis_id: str
    status: AnalysisStatus
    verdict: LaunchVerdict


class AnalysisDetailResponse(BaseModel):
    """Response for GET /analysis/{analysis_id}"""
    analysis: AppAnalysis
    verdict: LaunchVerdict


class RecheckResponse(BaseModel):
    """Response for POST /analysis/{analysis_id}/recheck"""
    updated: bool = True
    verdict: LaunchVerdict
    new_alerts: list[Alert] = Field(default_factory=list)
    alert_count: int = 0
    previous_confidence_score: int
    new_confidence_score: int


class AlertListResponse(BaseModel):
    """Response for GET /alerts"""
    alerts: list[Alert] = Field(default_factory=list)
    total: int = 0
