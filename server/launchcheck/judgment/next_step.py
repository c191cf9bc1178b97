"""
Next-best-step recommendation.

Per-stage ordered rules; the first match wins and exactly one step is
returned. When no rule matches, the answer is "do nothing".
"""

from dataclasses import dataclass
from typing import Callable

from ..analyzers.behavior_analyzer import is_sqlite_family
from ..catalog import NEXT_STEP_TEMPLATES
from ..schemas import (
    BehaviorProfile,
    ConcurrencyRisk,
    NextBestStepRecommendation,
    Stage,
    StackProfile,
)


@dataclass(frozen=True)
class NextStepRule:
    template_id: str
    applies: Callable[[StackProfile, BehaviorProfile], bool]
    upgrade_required: bool = False

    def build(self) -> NextBestStepRecommendation:
        template = NEXT_STEP_TEMPLATES[self.template_id]
        return NextBestStepRecommendation(
            mode=template.mode,
            headline=template.headline,
            explanation=template.explanation,
            cta_text=template.cta_text,
            upgrade_required=self.upgrade_required,
        )


def _sqlite_under_writes(stack: StackProfile, behavior: BehaviorProfile) -> bool:
    return is_sqlite_family(stack.database) and behavior.write_heavy


DO_NOTHING = NextStepRule("do_nothing", lambda s, b: True)

STAGE_RULES: dict[Stage, list[NextStepRule]] = {
    Stage.MVP: [
        NextStepRule("watch_database", _sqlite_under_writes),
        NextStepRule("watch_background_jobs", lambda s, b: b.has_background_jobs),
    ],
    Stage.WATCH: [
        NextStepRule("upgrade_database", _sqlite_under_writes, upgrade_required=False),
        NextStepRule("watch_memory_state", lambda s, b: b.is_stateful),
        NextStepRule("watch_background_jobs", lambda s, b: b.has_background_jobs),
    ],
    Stage.GROWTH: [
        NextStepRule("upgrade_database", _sqlite_under_writes, upgrade_required=True),
        NextStepRule("move_background_jobs", lambda s, b: b.has_background_jobs and b.write_heavy, upgrade_required=True),
        NextStepRule("share_state", lambda s, b: b.is_stateful, upgrade_required=True),
        NextStepRule("watch_services", lambda s, b: b.external_dependency_count > 5),
    ],
    Stage.PRODUCTION: [
        NextStepRule("plan_for_scale", lambda s, b: b.estimated_concurrency_risk == ConcurrencyRisk.HIGH, upgrade_required=True),
        NextStepRule("watch_background_jobs", lambda s, b: b.has_background_jobs),
        NextStepRule("watch_services", lambda s, b: b.external_dependency_count > 5),
    ],
}


def recommend_next_step(
    stack: StackProfile,
    behavior: BehaviorProfile,
    stage: Stage,
) -> NextBestStepRecommendation:
    """Exactly one recommended action for this stage."""
    for rule in STAGE_RULES[Stage(stage)]:
        if rule.applies(stack, behavior):
            return rule.build()
    return DO_NOTHING.build()
