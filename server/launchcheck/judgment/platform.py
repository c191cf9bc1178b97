"""
Platform recommendation.

Each candidate platform has a base fit plus additive adjustments keyed on the
stack and behavior. A current platform that still fits well is kept; moving
is never presented as urgent.
"""

from dataclasses import dataclass
from typing import Callable

from ..catalog import PLATFORM_TEMPLATES, PlatformTemplate, find_platform
from ..schemas import BehaviorProfile, ConcurrencyRisk, PlatformRecommendation, StackProfile

# A current platform at or above this fit is kept
STAY_THRESHOLD = 70

STAY_BADGE = "✅ Stay where you are"
UPGRADE_BADGE = "⬆️ Worth considering when you're ready"
UPGRADE_NOTE = "No rush. Your current setup keeps working while you decide."

FRONTEND_FRAMEWORKS = ("Next.js", "Nuxt", "React", "Vue", "SvelteKit", "Remix")


@dataclass(frozen=True)
class FitAdjustment:
    points: int
    applies: Callable[[StackProfile, BehaviorProfile], bool]


@dataclass(frozen=True)
class PlatformFit:
    """Additive fit table for one candidate platform."""
    platform_id: str
    base: int
    adjustments: tuple[FitAdjustment, ...]

    def score(self, stack: StackProfile, behavior: BehaviorProfile) -> int:
        total = self.base + sum(a.points for a in self.adjustments if a.applies(stack, behavior))
        return max(0, min(100, total))


# Candidate order is the tie-break order
PLATFORM_FITS = [
    # Low-ceremony generalist
    PlatformFit("replit", 50, (
        FitAdjustment(15, lambda s, b: b.estimated_concurrency_risk == ConcurrencyRisk.LOW),
        FitAdjustment(10, lambda s, b: not b.write_heavy),
        FitAdjustment(5, lambda s, b: b.external_dependency_count < 6),
        FitAdjustment(-20, lambda s, b: b.estimated_concurrency_risk == ConcurrencyRisk.HIGH),
        FitAdjustment(-10, lambda s, b: b.has_background_jobs and b.write_heavy),
    )),
    # Frontend / serverless
    PlatformFit("vercel", 50, (
        FitAdjustment(25, lambda s, b: s.framework in FRONTEND_FRAMEWORKS),
        FitAdjustment(10, lambda s, b: not b.is_stateful),
        FitAdjustment(-30, lambda s, b: b.is_stateful),
        FitAdjustment(-25, lambda s, b: b.has_background_jobs),
        FitAdjustment(-10, lambda s, b: b.has_file_uploads),
        FitAdjustment(-10, lambda s, b: b.write_heavy),
    )),
    # Full-stack with managed database
    PlatformFit("railway", 55, (
        FitAdjustment(20, lambda s, b: s.database is not None),
        FitAdjustment(15, lambda s, b: b.write_heavy),
        FitAdjustment(10, lambda s, b: b.has_background_jobs),
    )),
    # Global distribution, stateful-friendly
    PlatformFit("fly", 50, (
        FitAdjustment(25, lambda s, b: b.is_stateful),
        FitAdjustment(10, lambda s, b: b.estimated_concurrency_risk == ConcurrencyRisk.HIGH),
        FitAdjustment(5, lambda s, b: b.has_file_uploads),
    )),
]


def score_platforms(stack: StackProfile, behavior: BehaviorProfile) -> dict[str, int]:
    """Fit score per candidate platform id, in candidate order."""
    return {fit.platform_id: fit.score(stack, behavior) for fit in PLATFORM_FITS}


def _recommendation(
    template: PlatformTemplate,
    badge: str | None = None,
    note: str | None = None,
) -> PlatformRecommendation:
    return PlatformRecommendation(
        platform_id=template.platform_id,
        platform_name=template.platform_name,
        recommended_badge=badge or template.recommended_badge,
        why_bullets=list(template.why_bullets[:2]),
        when_it_changes=template.when_it_changes,
        confidence_note=note or template.confidence_note,
    )


def recommend_platform(
    stack: StackProfile,
    behavior: BehaviorProfile,
    current_platform: str | None = None,
) -> PlatformRecommendation:
    """
    Recommend exactly one hosting platform.

    Args:
        stack: Detected stack
        behavior: Detected behavior
        current_platform: Where the app runs today, if known (any catalog
            id, name or alias; unknown names are treated as absent)
    """
    scores = score_platforms(stack, behavior)
    current = find_platform(current_platform)

    if current is not None and scores[current.platform_id] >= STAY_THRESHOLD:
        return _recommendation(current, badge=STAY_BADGE)

    best_id = None
    for platform_id, score in scores.items():
        if best_id is None or score > scores[best_id]:
            best_id = platform_id
    best = PLATFORM_TEMPLATES[best_id]

    if current is None:
        return _recommendation(best)
    if best.platform_id == current.platform_id:
        # Nothing fits better than where they already are
        return _recommendation(current, badge=STAY_BADGE)
    return _recommendation(best, badge=UPGRADE_BADGE, note=UPGRADE_NOTE)
