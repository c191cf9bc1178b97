"""
Risk detection.

Five independent rules, each contributing at most one scenario. Firing
scenarios are ranked by severity, then catalog display order, and capped.
"""

from dataclasses import dataclass
from typing import Callable

from ..analyzers.behavior_analyzer import is_sqlite_family
from ..catalog import RISK_TEMPLATES
from ..schemas import BehaviorProfile, ConcurrencyRisk, RiskScenario, RiskSeverity, StackProfile

MAX_RISKS = 3

# Pay-per-invocation hosting, compared case-insensitively
SERVERLESS_PLATFORMS = ("vercel", "netlify", "aws lambda", "cloudflare workers")

SEVERITY_RANK = {
    RiskSeverity.HIGH: 3,
    RiskSeverity.MEDIUM: 2,
    RiskSeverity.LOW: 1,
}

Predicate = Callable[[StackProfile, BehaviorProfile], bool]


@dataclass(frozen=True)
class RiskRule:
    """When a catalog risk fires, and how severe it is."""
    template_id: str
    fires: Predicate
    severity: Callable[[StackProfile, BehaviorProfile], RiskSeverity]

    def build(self, stack: StackProfile, behavior: BehaviorProfile) -> RiskScenario:
        template = RISK_TEMPLATES[self.template_id]
        return RiskScenario(
            id=template.id,
            title=template.title,
            plain_explanation=template.plain_explanation,
            trigger_condition=template.trigger_condition,
            user_symptom=template.user_symptom,
            severity=self.severity(stack, behavior),
            order=template.order,
        )


def _is_serverless(platform: str | None) -> bool:
    return bool(platform) and platform.strip().lower() in SERVERLESS_PLATFORMS


RISK_RULES = [
    RiskRule(
        "database_contention",
        fires=lambda s, b: b.write_heavy and (s.database is None or is_sqlite_family(s.database)),
        severity=lambda s, b: RiskSeverity.HIGH if b.estimated_concurrency_risk == ConcurrencyRisk.HIGH else RiskSeverity.MEDIUM,
    ),
    RiskRule(
        "cost_explosion",
        fires=lambda s, b: _is_serverless(s.deployment_platform),
        severity=lambda s, b: RiskSeverity.MEDIUM,
    ),
    RiskRule(
        "external_dependency",
        fires=lambda s, b: b.external_dependency_count > 2,
        severity=lambda s, b: RiskSeverity.HIGH if b.external_dependency_count > 5 else RiskSeverity.MEDIUM,
    ),
    RiskRule(
        "background_jobs_block",
        fires=lambda s, b: b.has_background_jobs and (b.write_heavy or b.is_stateful),
        severity=lambda s, b: RiskSeverity.MEDIUM,
    ),
    RiskRule(
        "concurrency_scaling",
        fires=lambda s, b: b.is_stateful or b.estimated_concurrency_risk == ConcurrencyRisk.HIGH,
        severity=lambda s, b: RiskSeverity.HIGH if b.is_stateful else RiskSeverity.MEDIUM,
    ),
]


def detect_risks(stack: StackProfile, behavior: BehaviorProfile) -> list[RiskScenario]:
    """Top risks for this app, most severe first. Empty when nothing fires."""
    candidates = [rule.build(stack, behavior) for rule in RISK_RULES if rule.fires(stack, behavior)]
    candidates.sort(key=lambda risk: (-SEVERITY_RANK[risk.severity], risk.order))
    return candidates[:MAX_RISKS]
