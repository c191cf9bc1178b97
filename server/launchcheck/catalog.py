"""
Reference catalog for LaunchCheck.

Plain-English templates for risk scenarios, hosting platforms and next steps.
The judgment engine maps its rules onto these entries directly; the database
layer seeds the same entries into read-only tables so copy can be edited or
localized later without touching scoring logic.
"""

from dataclasses import dataclass, field

from .schemas import NextStepMode


# =============================================================================
# RISK SCENARIOS
# =============================================================================

@dataclass(frozen=True)
class RiskTemplate:
    """Static text for one risk scenario."""
    id: str
    title: str
    plain_explanation: str
    trigger_condition: str
    user_symptom: str
    order: int


RISK_TEMPLATES: dict[str, RiskTemplate] = {
    "concurrency_scaling": RiskTemplate(
        id="concurrency_scaling",
        title="Slower responses under heavy use",
        plain_explanation="If ~100+ people use this at once, requests may start timing out.",
        trigger_condition="high_concurrent_writes",
        user_symptom="Pages feel slow or fail to load",
        order=1,
    ),
    "cost_explosion": RiskTemplate(
        id="cost_explosion",
        title="Surprise cost increase",
        plain_explanation="If traffic jumps suddenly, your monthly cost could rise faster than expected.",
        trigger_condition="serverless_spike",
        user_symptom="Unexpected bill increase",
        order=2,
    ),
    "external_dependency": RiskTemplate(
        id="external_dependency",
        title="External dependency risk",
        plain_explanation="If a third-party service is slow, parts of your app may feel broken.",
        trigger_condition="external_api_down",
        user_symptom="Entire feature stops working",
        order=3,
    ),
    "database_contention": RiskTemplate(
        id="database_contention",
        title="Database contention",
        plain_explanation="Multiple requests writing at once may cause locks and delays.",
        trigger_condition="write_heavy",
        user_symptom="Intermittent slowdowns during activity spikes",
        order=4,
    ),
    "background_jobs_block": RiskTemplate(
        id="background_jobs_block",
        title="Long-running tasks block users",
        plain_explanation="Background work running in the same process as user requests.",
        trigger_condition="background_jobs_sync",
        user_symptom="App freezes during heavy background work",
        order=5,
    ),
}


# =============================================================================
# PLATFORMS
# =============================================================================

@dataclass(frozen=True)
class PlatformTemplate:
    """Static text for one hosting platform."""
    platform_id: str
    platform_name: str
    recommended_badge: str
    why_bullets: tuple[str, ...]
    when_it_changes: str
    confidence_note: str
    # Names a detected deployment platform may carry
    aliases: tuple[str, ...] = field(default_factory=tuple)


PLATFORM_TEMPLATES: dict[str, PlatformTemplate] = {
    "replit": PlatformTemplate(
        platform_id="replit",
        platform_name="Replit Deployments",
        recommended_badge="✅ Recommended right now",
        why_bullets=("Handles your current usage well", "Keeps things simple while you grow"),
        when_it_changes="If usage grows 5–10×, this setup may need an upgrade.",
        confidence_note="You're not missing out by staying here.",
        aliases=("replit", "replit deployments"),
    ),
    "vercel": PlatformTemplate(
        platform_id="vercel",
        platform_name="Vercel",
        recommended_badge="✅ Great for frontend-heavy apps",
        why_bullets=("Excellent for Next.js and React apps", "Global edge network for fast loads"),
        when_it_changes="If you need persistent connections or heavy backend processing, consider alternatives.",
        confidence_note="Perfect for JAMstack and serverless patterns.",
        aliases=("vercel",),
    ),
    "railway": PlatformTemplate(
        platform_id="railway",
        platform_name="Railway",
        recommended_badge="✅ Good for full-stack apps",
        why_bullets=("Easy database management", "Supports background jobs"),
        when_it_changes="If you need multi-region deployment or complex infrastructure.",
        confidence_note="Great balance of simplicity and power.",
        aliases=("railway",),
    ),
    "fly": PlatformTemplate(
        platform_id="fly",
        platform_name="Fly.io",
        recommended_badge="✅ Best for global distribution",
        why_bullets=("Deploy close to your users worldwide", "Supports stateful applications"),
        when_it_changes="If you need simpler deployment or managed databases.",
        confidence_note="Ideal for performance-critical applications.",
        aliases=("fly", "fly.io"),
    ),
}


def find_platform(name: str | None) -> PlatformTemplate | None:
    """Look up a catalog platform by id, display name or alias (case-insensitive)."""
    if not name:
        return None
    key = name.strip().lower()
    for template in PLATFORM_TEMPLATES.values():
        if key == template.platform_id or key == template.platform_name.lower() or key in template.aliases:
            return template
    return None


# =============================================================================
# NEXT STEPS
# =============================================================================

@dataclass(frozen=True)
class NextStepTemplate:
    """Static text for one next-step recommendation."""
    id: str
    mode: NextStepMode
    headline: str
    explanation: str
    cta_text: str


NEXT_STEP_TEMPLATES: dict[str, NextStepTemplate] = {
    "do_nothing": NextStepTemplate(
        id="do_nothing",
        mode=NextStepMode.DO_NOTHING,
        headline="Nothing right now.",
        explanation="You're in a good place. Focus on your product.",
        cta_text="We can watch this for you",
    ),
    "watch_database": NextStepTemplate(
        id="watch_database",
        mode=NextStepMode.WATCH_ONE_THING,
        headline="Keep an eye on database usage.",
        explanation="If this changes, we'll let you know.",
        cta_text="Enable Watch Mode",
    ),
    "watch_background_jobs": NextStepTemplate(
        id="watch_background_jobs",
        mode=NextStepMode.WATCH_ONE_THING,
        headline="Keep an eye on background tasks.",
        explanation="Long tasks can slow down your users. We'll tell you if that starts happening.",
        cta_text="Enable Watch Mode",
    ),
    "watch_memory_state": NextStepTemplate(
        id="watch_memory_state",
        mode=NextStepMode.WATCH_ONE_THING,
        headline="Keep an eye on data kept in memory.",
        explanation="It works fine with one copy of your app. We'll let you know before that becomes a limit.",
        cta_text="Enable Watch Mode",
    ),
    "watch_services": NextStepTemplate(
        id="watch_services",
        mode=NextStepMode.WATCH_ONE_THING,
        headline="Keep an eye on the services you depend on.",
        explanation="Each outside service is one more thing that can be slow. We'll flag it if one starts to hurt.",
        cta_text="Enable Watch Mode",
    ),
    "upgrade_database": NextStepTemplate(
        id="upgrade_database",
        mode=NextStepMode.SMALL_UPGRADE,
        headline="Before charging users, switch to a managed database.",
        explanation="This reduces contention and makes growth smoother.",
        cta_text="Show me the upgrade",
    ),
    "move_background_jobs": NextStepTemplate(
        id="move_background_jobs",
        mode=NextStepMode.SMALL_UPGRADE,
        headline="Move heavy background work to its own worker.",
        explanation="Your users won't wait on long tasks, and busy moments stay smooth.",
        cta_text="Show me the upgrade",
    ),
    "share_state": NextStepTemplate(
        id="share_state",
        mode=NextStepMode.SMALL_UPGRADE,
        headline="Keep important data in a shared store instead of memory.",
        explanation="That lets you run more than one copy of your app without losing anything.",
        cta_text="Show me the upgrade",
    ),
    "plan_for_scale": NextStepTemplate(
        id="plan_for_scale",
        mode=NextStepMode.SMALL_UPGRADE,
        headline="Give your busiest part a bit more room.",
        explanation="A small change now keeps things fast when more people show up at once.",
        cta_text="Show me the upgrade",
    ),
}
