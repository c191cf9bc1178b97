"""
Launch confidence scoring.

Additive point model over four independent factors, plus two explanatory
factors that never change the score. Also derives the verdict status and the
app stage from the score, each with its own thresholds.
"""

from typing import NamedTuple

from ..analyzers.behavior_analyzer import is_sqlite_family
from ..schemas import BehaviorProfile, ConcurrencyRisk, Stage, StackProfile, VerdictStatus


# =============================================================================
# POINT TABLE
# =============================================================================

STATELESS_POINTS = 30
STATEFUL_POINTS = 10

READ_HEAVY_POINTS = 30
WRITE_HEAVY_POINTS = 10

FEW_DEPENDENCIES_POINTS = 20  # fewer than 3
SOME_DEPENDENCIES_POINTS = 10  # 3 to 5
MANY_DEPENDENCIES_POINTS = 5  # more than 5

CONCURRENCY_POINTS = {
    ConcurrencyRisk.LOW: 20,
    ConcurrencyRisk.MEDIUM: 10,
    ConcurrencyRisk.HIGH: 5,
}

CONCURRENCY_FACTORS = {
    ConcurrencyRisk.LOW: "low concurrency risk",
    ConcurrencyRisk.MEDIUM: "medium concurrency risk",
    ConcurrencyRisk.HIGH: "high concurrency risk (plan for scaling)",
}

# Status thresholds (verdict)
SAFE_THRESHOLD = 80
WATCH_THRESHOLD = 50

# Stage thresholds (next-step gating)
PRODUCTION_THRESHOLD = 80
GROWTH_THRESHOLD = 65
WATCH_STAGE_THRESHOLD = 50


class ConfidenceResult(NamedTuple):
    """Score plus the explanation of each factor, in evaluation order."""
    score: int
    factors: list[str]


# =============================================================================
# SCORING
# =============================================================================

def _dependency_factor(count: int) -> tuple[int, str]:
    if count < 3:
        return FEW_DEPENDENCIES_POINTS, f"few external dependencies ({count})"
    if count <= 5:
        return SOME_DEPENDENCIES_POINTS, f"{count} external dependencies (moderate)"
    return MANY_DEPENDENCIES_POINTS, f"{count} external dependencies (more moving parts)"


def calculate_launch_confidence(stack: StackProfile, behavior: BehaviorProfile) -> ConfidenceResult:
    """
    Score how safe an app is to share, 0-100.

    Factors are emitted in a fixed order: statefulness, data handling,
    dependencies, concurrency, then database and background jobs.
    """
    score = 0
    factors: list[str] = []

    if behavior.is_stateful:
        score += STATEFUL_POINTS
        factors.append("stateful (needs careful scaling)")
    else:
        score += STATELESS_POINTS
        factors.append("stateless (safer)")

    if behavior.write_heavy:
        score += WRITE_HEAVY_POINTS
        factors.append("write-heavy (watch for bottlenecks)")
    else:
        score += READ_HEAVY_POINTS
        factors.append("clean read-heavy access")

    points, factor = _dependency_factor(behavior.external_dependency_count)
    score += points
    factors.append(factor)

    score += CONCURRENCY_POINTS[behavior.estimated_concurrency_risk]
    factors.append(CONCURRENCY_FACTORS[behavior.estimated_concurrency_risk])

    # Explanatory only
    if stack.database:
        if is_sqlite_family(stack.database):
            factors.append("SQLite database (fine for now, limited under concurrent writes)")
        else:
            factors.append(f"uses managed database ({stack.database}) (lower risk)")

    if behavior.has_background_jobs:
        factors.append("has background jobs (keep them off the request path)")
    else:
        factors.append("no background jobs detected")

    return ConfidenceResult(score=max(0, min(100, score)), factors=factors)


def derive_status(score: int) -> VerdictStatus:
    if score >= SAFE_THRESHOLD:
        return VerdictStatus.SAFE
    if score >= WATCH_THRESHOLD:
        return VerdictStatus.WATCH
    return VerdictStatus.FIX


def derive_stage(score: int) -> Stage:
    if score >= PRODUCTION_THRESHOLD:
        return Stage.PRODUCTION
    if score >= GROWTH_THRESHOLD:
        return Stage.GROWTH
    if score >= WATCH_STAGE_THRESHOLD:
        return Stage.WATCH
    return Stage.MVP
