"""
LaunchCheck Judgment Engine

Pure, deterministic judgment over (StackProfile, BehaviorProfile):
- Confidence: additive 0-100 score with factor explanations
- Risks: up to three ranked plain-English scenarios
- Platform: one hosting recommendation, never urgent
- Next step: exactly one action, gated by stage
- Verdict: all of the above composed for one analysis
"""

from .confidence import calculate_launch_confidence, ConfidenceResult, derive_stage, derive_status
from .risks import detect_risks
from .platform import recommend_platform
from .next_step import recommend_next_step
from .verdict import generate_launch_verdict

__all__ = [
    "calculate_launch_confidence",
    "ConfidenceResult",
    "derive_stage",
    "derive_status",
    "detect_risks",
    "recommend_platform",
    "recommend_next_step",
    "generate_launch_verdict",
]
