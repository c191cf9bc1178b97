"""
LaunchCheck Analyzers

Two analyzers that consume fetched content and produce profiles:
- Stack Detector: runtime, framework, databases, services, platform
- Behavior Analyzer: statefulness, write load, jobs, uploads, concurrency risk
"""

from .stack_detector import detect_stack, StackDetector
from .behavior_analyzer import analyze_patterns, BehaviorAnalyzer, is_sqlite_family

__all__ = [
    "detect_stack",
    "StackDetector",
    "analyze_patterns",
    "BehaviorAnalyzer",
    "is_sqlite_family",
]
