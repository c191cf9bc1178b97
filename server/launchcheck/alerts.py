"""
Alert Orchestrator for LaunchCheck

Decides which alerts a re-check should raise by diffing the new behavior
profile against the previous one. Alerts describe change only, so a first
analysis never alerts.

Rules (one per category, each at most once per 7 days per analysis):
- usage_growth: concurrency risk became high
- cost_risk: more than 2 new dependencies
- architecture_drift: app became stateful
- platform_suitability: background jobs plus write-heavy (current state only)
- stability_regression: background jobs appeared

Persistence is the caller's job; recent alert history is passed in.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Iterable

from .schemas import (
    Alert,
    AlertCategory,
    AlertSeverity,
    BehaviorProfile,
    ConcurrencyRisk,
)

logger = logging.getLogger(__name__)

COOLDOWN = timedelta(days=7)

# Dependency jumps above this raise a cost alert
DEPENDENCY_JUMP = 2


# =============================================================================
# ALERT RULES
# =============================================================================

@dataclass(frozen=True)
class AlertRule:
    """One trigger and the fixed copy it produces."""
    category: AlertCategory
    severity: AlertSeverity
    fires: Callable[[BehaviorProfile, BehaviorProfile], bool]  # (new, previous)
    title: str
    body: str
    what_changed: str
    next_step: str


ALERT_RULES = [
    AlertRule(
        category=AlertCategory.USAGE_GROWTH,
        severity=AlertSeverity.HEADS_UP,
        fires=lambda new, prev: (
            prev.estimated_concurrency_risk != ConcurrencyRisk.HIGH
            and new.estimated_concurrency_risk == ConcurrencyRisk.HIGH
        ),
        title="Your app is handling more at once",
        body="Your app now does more work when many people use it at the same time. That's usually a good sign.",
        what_changed="Busy moments are now more likely to slow your app down than before.",
        next_step="Keep an eye on how fast pages load. If things slow down, we'll tell you what to do.",
    ),
    AlertRule(
        category=AlertCategory.COST_RISK,
        severity=AlertSeverity.INFORMATIONAL,
        fires=lambda new, prev: new.external_dependency_count > prev.external_dependency_count + DEPENDENCY_JUMP,
        title="New outside services added",
        body="Your app now relies on several more outside tools. That's fine, but some of them may charge as you grow.",
        what_changed="Your app uses noticeably more outside packages and services than last time.",
        next_step="Check the pricing of any new services you signed up for.",
    ),
    AlertRule(
        category=AlertCategory.ARCHITECTURE_DRIFT,
        severity=AlertSeverity.HEADS_UP,
        fires=lambda new, prev: not prev.is_stateful and new.is_stateful,
        title="Your app now remembers things in memory",
        body="Your app has started keeping data in memory. This works fine now, but it can get lost if you ever run more than one copy.",
        what_changed="Your app used to keep nothing in memory between requests. Now it does.",
        next_step="Store anything important in your database rather than in memory.",
    ),
    AlertRule(
        category=AlertCategory.PLATFORM_SUITABILITY,
        severity=AlertSeverity.ACTION_SOON,
        fires=lambda new, prev: new.has_background_jobs and new.write_heavy,
        title="Your setup might need an upgrade soon",
        body="Your app runs tasks in the background and saves data often. Together, these work better with a bit more room.",
        what_changed="Your app now combines background tasks with frequent saving of data.",
        next_step="When you're ready, we can show you a smoother setup.",
    ),
    AlertRule(
        category=AlertCategory.STABILITY_REGRESSION,
        severity=AlertSeverity.INFORMATIONAL,
        fires=lambda new, prev: not prev.has_background_jobs and new.has_background_jobs,
        title="Background tasks added",
        body="Your app now runs tasks in the background. That's common, just make sure long tasks don't make people wait.",
        what_changed="Your app started running work in the background.",
        next_step="If pages start to feel slow, move long tasks out of the way of your users.",
    ),
]


# =============================================================================
# EVALUATION
# =============================================================================

def _as_utc(value: datetime) -> datetime:
    """Stored timestamps may be naive; they are always UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def recent_categories(
    alerts: Iterable[Alert],
    analysis_id: str,
    user_id: str,
    now: datetime,
) -> set[AlertCategory]:
    """Categories already alerted for this (user, analysis) within the cooldown."""
    cutoff = _as_utc(now) - COOLDOWN
    return {
        alert.category
        for alert in alerts
        if alert.analysis_id == analysis_id
        and alert.user_id == user_id
        and _as_utc(alert.created_at) > cutoff
    }


def evaluate_alerts(
    analysis_id: str,
    user_id: str,
    new_profile: BehaviorProfile,
    previous_profile: BehaviorProfile | None = None,
    recent_alerts: Iterable[Alert] = (),
    now: datetime | None = None,
) -> list[Alert]:
    """
    Decide which alerts a re-check raises.

    Args:
        analysis_id: Analysis being re-checked
        user_id: Owner of the analysis
        new_profile: Behavior profile from this re-check
        previous_profile: Stored profile from the last check (None on first analysis)
        recent_alerts: Alert history for cooldown, at least the last 7 days
        now: Evaluation time (defaults to current UTC time)

    Returns:
        Unsaved alerts, in rule order
    """
    if previous_profile is None:
        return []

    now = _as_utc(now or datetime.now(timezone.utc))
    blocked = recent_categories(recent_alerts, analysis_id, user_id, now)

    alerts = []
    for rule in ALERT_RULES:
        if rule.category in blocked:
            logger.debug(f"Skipping {rule.category.value} alert for analysis {analysis_id}: in cooldown")
            continue
        if not rule.fires(new_profile, previous_profile):
            continue
        alerts.append(
            Alert(
                user_id=user_id,
                analysis_id=analysis_id,
                category=rule.category,
                severity=rule.severity,
                title=rule.title,
                body=rule.body,
                what_changed=rule.what_changed,
                next_step=rule.next_step,
                created_at=now,
            )
        )

    if alerts:
        logger.info(f"Raised {len(alerts)} alert(s) for analysis {analysis_id}")
    return alerts


def evaluate_alerts_safely(
    analysis_id: str,
    user_id: str,
    new_profile: BehaviorProfile,
    previous_profile: BehaviorProfile | None = None,
    recent_alerts: Iterable[Alert] = (),
    now: datetime | None = None,
) -> list[Alert]:
    """evaluate_alerts for the re-check path: a failure here never fails the re-check."""
    try:
        return evaluate_alerts(analysis_id, user_id, new_profile, previous_profile, recent_alerts, now)
    except Exception:
        logger.exception(f"Alert evaluation failed for analysis {analysis_id}; continuing without alerts")
        return []
