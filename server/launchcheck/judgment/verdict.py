"""
Launch verdict composition.

confidence -> risks -> platform -> stage -> next step, then status and a
one-line summary keyed on the status and the top risk.
"""

import logging

from ..schemas import AppAnalysis, LaunchVerdict, RiskScenario, VerdictStatus
from .confidence import calculate_launch_confidence, derive_stage, derive_status
from .next_step import recommend_next_step
from .platform import recommend_platform
from .risks import detect_risks

logger = logging.getLogger(__name__)


def build_summary(status: VerdictStatus, top_risk: RiskScenario | None) -> str:
    """Plain-English one-liner for the verdict screen."""
    if status == VerdictStatus.SAFE:
        if top_risk is None:
            return "Your app is safe to share. Nothing needs your attention right now."
        return f"Your app is safe to share. One thing to know for later: {top_risk.plain_explanation}"

    if status == VerdictStatus.WATCH:
        if top_risk is None:
            return "Your app is fine for now. We'll keep an eye on it as it grows."
        return f"Your app is fine for now, but keep an eye on one thing: {top_risk.plain_explanation}"

    if top_risk is None:
        return "Fix one thing before you share widely. A small change will make this much safer."
    return f"Fix one thing before you share widely: {top_risk.plain_explanation}"


def generate_launch_verdict(analysis: AppAnalysis) -> LaunchVerdict:
    """
    Compose the full verdict for one analysis.

    Uses the stack's detected deployment platform as the current platform.
    """
    stack = analysis.stack_detection
    behavior = analysis.behavior_profile

    confidence = calculate_launch_confidence(stack, behavior)
    risks = detect_risks(stack, behavior)
    platform = recommend_platform(stack, behavior, stack.deployment_platform)
    stage = derive_stage(confidence.score)
    next_step = recommend_next_step(stack, behavior, stage)
    status = derive_status(confidence.score)

    logger.debug(
        f"Verdict for analysis {analysis.id}: {status.value} "
        f"(score={confidence.score}, stage={stage.value}, risks={len(risks)})"
    )

    return LaunchVerdict(
        analysis_id=analysis.id,
        status=status,
        confidence_score=confidence.score,
        one_line_summary=build_summary(status, risks[0] if risks else None),
        risks=risks,
        platform_recommendation=platform,
        next_best_step=next_step,
        stage=stage,
        factors=confidence.factors,
    )
