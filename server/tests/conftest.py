"""Shared test fixtures for the LaunchCheck test suite."""

import os
import tempfile

# Must be set before config/database are imported anywhere
_db_dir = tempfile.mkdtemp(prefix="launchcheck-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_db_dir, 'test.db')}"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["GITHUB_TOKEN"] = ""

import pytest

from launchcheck.schemas import BehaviorProfile, ConcurrencyRisk, StackProfile


@pytest.fixture
def make_stack():
    """Factory for StackProfile with overridable fields."""
    def _make(**overrides):
        return StackProfile(**overrides)
    return _make


@pytest.fixture
def make_behavior():
    """Factory for BehaviorProfile; defaults describe a calm, stateless app."""
    def _make(**overrides):
        fields = {
            "is_stateful": False,
            "write_heavy": False,
            "has_background_jobs": False,
            "has_file_uploads": False,
            "estimated_concurrency_risk": ConcurrencyRisk.LOW,
            "external_dependency_count": 0,
        }
        fields.update(overrides)
        return BehaviorProfile(**fields)
    return _make


@pytest.fixture
def express_manifest():
    return {
        "name": "todo-app",
        "dependencies": {"express": "^4.18.0", "pg": "^8.11.0", "stripe": "^14.0.0"},
        "devDependencies": {"jest": "^29.0.0"},
    }
