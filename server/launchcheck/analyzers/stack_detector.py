"""
Stack Detector for LaunchCheck

Classifies runtime, framework, databases, external services and deployment
platform from manifests and file presence. Pure and deterministic: no I/O,
never raises on missing or malformed input.

Rules are evaluated in table order:
- single-valued fields (runtime, framework, deployment_platform): first match wins
- multi-valued fields (databases, external_apis): every match, deduplicated,
  first detection order kept
"""

import re
from dataclasses import dataclass, field

from ..schemas import StackProfile


# =============================================================================
# DETECTION SIGNALS
# =============================================================================

@dataclass
class StackSignals:
    """Everything the rules look at, normalized once per snapshot."""
    has_manifest: bool = False
    has_requirements: bool = False
    node_dependencies: set[str] = field(default_factory=set)
    node_dev_dependencies: set[str] = field(default_factory=set)
    python_dependencies: set[str] = field(default_factory=set)
    filenames: set[str] = field(default_factory=set)
    content: str = ""

    @property
    def all_dependencies(self) -> set[str]:
        return self.node_dependencies | self.node_dev_dependencies | self.python_dependencies

    @property
    def regular_dependencies(self) -> set[str]:
        # Dev-only tools never count as production integrations
        return self.node_dependencies | self.python_dependencies


@dataclass(frozen=True)
class DetectionRule:
    """A (matcher -> field, value) pair."""
    field: str
    value: str | bool
    packages: tuple[str, ...] = ()  # exact dependency names
    prefixes: tuple[str, ...] = ()  # scoped package prefixes, e.g. "@aws-sdk/"
    files: tuple[str, ...] = ()  # file names that must be present
    content: str | None = None  # regex over all file contents
    regular_only: bool = False  # ignore devDependencies

    def matches(self, signals: StackSignals) -> bool:
        dependencies = signals.regular_dependencies if self.regular_only else signals.all_dependencies
        if any(package in dependencies for package in self.packages):
            return True
        if self.prefixes and any(dep.startswith(self.prefixes) for dep in dependencies):
            return True
        if any(name in signals.filenames for name in self.files):
            return True
        if self.content and signals.content and re.search(self.content, signals.content, re.IGNORECASE | re.MULTILINE):
            return True
        return False


# =============================================================================
# RULE TABLES
# =============================================================================

FRAMEWORK_RULES = [
    # Node, in priority order
    DetectionRule("framework", "Express", packages=("express",)),
    DetectionRule("framework", "Next.js", packages=("next",)),
    DetectionRule("framework", "Koa", packages=("koa",)),
    DetectionRule("framework", "Fastify", packages=("fastify",)),
    DetectionRule("framework", "NestJS", packages=("@nestjs/core",)),
    DetectionRule("framework", "Nuxt", packages=("nuxt",)),
    DetectionRule("framework", "Remix", packages=("@remix-run/node", "@remix-run/react")),
    DetectionRule("framework", "SvelteKit", packages=("@sveltejs/kit",)),
    DetectionRule("framework", "Hono", packages=("hono",)),
    DetectionRule("framework", "React", packages=("react",)),
    DetectionRule("framework", "Vue", packages=("vue",)),
    # Python
    DetectionRule("framework", "Django", packages=("django",)),
    DetectionRule("framework", "Flask", packages=("flask",)),
    DetectionRule("framework", "FastAPI", packages=("fastapi",)),
    DetectionRule("framework", "Starlette", packages=("starlette",)),
    DetectionRule("framework", "Tornado", packages=("tornado",)),
    DetectionRule("framework", "aiohttp", packages=("aiohttp",)),
]

DATABASE_RULES = [
    DetectionRule("databases", "PostgreSQL", packages=("pg", "postgres", "psycopg2", "psycopg2-binary", "psycopg", "asyncpg")),
    DetectionRule("databases", "MongoDB", packages=("mongoose", "mongodb", "pymongo", "motor")),
    DetectionRule("databases", "SQLite", packages=("sqlite3", "better-sqlite3", "sqlite", "aiosqlite")),
    DetectionRule("databases", "libSQL", packages=("@libsql/client", "libsql-client")),
    DetectionRule("databases", "MySQL", packages=("mysql", "mysql2", "mysqlclient", "pymysql")),
    DetectionRule("databases", "Redis", packages=("redis", "ioredis")),
    # Connection strings and stdlib drivers, after declared dependencies
    DetectionRule("databases", "PostgreSQL", content=r"\bpostgres(?:ql)?://"),
    DetectionRule("databases", "MongoDB", content=r"\bmongodb(?:\+srv)?://"),
    DetectionRule("databases", "SQLite", content=r"\bsqlite:///|^\s*import\s+sqlite3\b"),
]

EXTERNAL_API_RULES = [
    DetectionRule("external_apis", "Stripe", packages=("stripe", "@stripe/stripe-js"), regular_only=True),
    DetectionRule("external_apis", "Twilio", packages=("twilio",), regular_only=True),
    DetectionRule("external_apis", "SendGrid", packages=("@sendgrid/mail", "sendgrid"), regular_only=True),
    DetectionRule("external_apis", "AWS", packages=("aws-sdk", "boto3", "botocore"), prefixes=("@aws-sdk/",), regular_only=True),
    DetectionRule("external_apis", "Firebase", packages=("firebase", "firebase-admin"), regular_only=True),
    DetectionRule("external_apis", "OpenAI", packages=("openai",), regular_only=True),
    DetectionRule("external_apis", "Anthropic", packages=("@anthropic-ai/sdk", "anthropic"), regular_only=True),
    DetectionRule("external_apis", "Supabase", packages=("@supabase/supabase-js", "supabase"), regular_only=True),
    DetectionRule("external_apis", "Resend", packages=("resend",), regular_only=True),
    DetectionRule("external_apis", "Mailgun", packages=("mailgun.js", "mailgun-js", "mailgun"), regular_only=True),
    DetectionRule("external_apis", "Slack", packages=("@slack/web-api", "@slack/bolt", "slack-sdk", "slack-bolt"), regular_only=True),
    DetectionRule("external_apis", "Plaid", packages=("plaid",), regular_only=True),
    DetectionRule("external_apis", "Algolia", packages=("algoliasearch",), regular_only=True),
    DetectionRule("external_apis", "Sentry", packages=("@sentry/node", "@sentry/nextjs", "@sentry/react", "sentry-sdk"), regular_only=True),
    DetectionRule("external_apis", "Cloudinary", packages=("cloudinary",), regular_only=True),
    DetectionRule("external_apis", "Google APIs", packages=("googleapis", "google-api-python-client"), regular_only=True),
    DetectionRule("external_apis", "Pusher", packages=("pusher", "pusher-js"), regular_only=True),
]

FLAG_RULES = [
    DetectionRule(
        "has_background_jobs", True,
        packages=("bull", "bullmq", "bee-queue", "agenda", "kue", "node-cron", "cron", "node-schedule",
                  "celery", "rq", "apscheduler", "dramatiq", "huey", "schedule"),
        regular_only=True,
    ),
    DetectionRule(
        "has_file_uploads", True,
        packages=("multer", "formidable", "busboy", "express-fileupload", "python-multipart"),
        regular_only=True,
    ),
]

PLATFORM_RULES = [
    DetectionRule("deployment_platform", "Vercel", files=("vercel.json",)),
    DetectionRule("deployment_platform", "Replit", files=(".replit", "replit.nix")),
    DetectionRule("deployment_platform", "Netlify", files=("netlify.toml",)),
    DetectionRule("deployment_platform", "Cloudflare Workers", files=("wrangler.toml",)),
    DetectionRule("deployment_platform", "Fly.io", files=("fly.toml",)),
    DetectionRule("deployment_platform", "Railway", files=("railway.json", "railway.toml")),
    DetectionRule("deployment_platform", "Render", files=("render.yaml",)),
    DetectionRule("deployment_platform", "AWS Lambda", files=("serverless.yml", "serverless.yaml")),
    DetectionRule("deployment_platform", "Heroku", files=("Procfile",)),
]


# =============================================================================
# PARSING HELPERS
# =============================================================================

def _manifest_names(manifest: dict | None, key: str) -> set[str]:
    if not isinstance(manifest, dict):
        return set()
    section = manifest.get(key)
    if not isinstance(section, dict):
        return set()
    return {name.lower() for name in section if isinstance(name, str)}


def parse_requirements(requirements: str | None) -> list[str]:
    """Package names from a requirements.txt, lowercased, in file order.

    VCS and URL lines count only when they name their package with #egg=.
    """
    if not requirements:
        return []
    names = []
    for raw_line in requirements.splitlines():
        raw_line = raw_line.strip()
        if raw_line.startswith("#"):
            continue
        egg = re.search(r"#egg=([\w.-]+)", raw_line)
        if egg:
            names.append(egg.group(1).lower().replace("_", "-"))
            continue
        line = raw_line.split("#", 1)[0].strip()
        if not line or line.startswith("-"):
            continue
        # Extract package name (before ==, >=, extras, markers, @ url)
        name = re.split(r"[=<>!~\[\];@\s]", line, maxsplit=1)[0].strip()
        if not name or ":" in name or "/" in name or name.startswith("."):
            continue
        names.append(name.lower().replace("_", "-"))
    return names


def _unique(values: list[str]) -> list[str]:
    seen = set()
    result = []
    for value in values:
        if value not in seen:
            seen.add(value)
            result.append(value)
    return result


# =============================================================================
# DETECTOR CLASS
# =============================================================================

class StackDetector:
    """Evaluates the rule tables against one snapshot."""

    def __init__(self):
        self.framework_rules = FRAMEWORK_RULES
        self.database_rules = DATABASE_RULES
        self.external_api_rules = EXTERNAL_API_RULES
        self.flag_rules = FLAG_RULES
        self.platform_rules = PLATFORM_RULES

    def build_signals(
        self,
        files: dict[str, str] | None,
        manifest: dict | None = None,
        requirements: str | None = None,
    ) -> StackSignals:
        files = files or {}
        return StackSignals(
            has_manifest=isinstance(manifest, dict),
            has_requirements=requirements is not None,
            node_dependencies=_manifest_names(manifest, "dependencies"),
            node_dev_dependencies=_manifest_names(manifest, "devDependencies"),
            python_dependencies=set(parse_requirements(requirements)),
            filenames={path.rsplit("/", 1)[-1] for path in files},
            content="\n".join(text for text in files.values() if isinstance(text, str)),
        )

    def detect(
        self,
        files: dict[str, str] | None,
        manifest: dict | None = None,
        requirements: str | None = None,
    ) -> StackProfile:
        signals = self.build_signals(files, manifest, requirements)

        # Node priority, Python secondary
        runtime = None
        if signals.has_manifest:
            runtime = "node"
        elif signals.has_requirements:
            runtime = "python"

        databases = _unique([r.value for r in self.database_rules if r.matches(signals)])

        return StackProfile(
            runtime=runtime,
            framework=self._first(self.framework_rules, signals),
            database=databases[0] if databases else None,
            databases=databases,
            external_apis=_unique([r.value for r in self.external_api_rules if r.matches(signals)]),
            has_background_jobs=self._flag("has_background_jobs", signals),
            has_file_uploads=self._flag("has_file_uploads", signals),
            deployment_platform=self._first(self.platform_rules, signals),
        )

    @staticmethod
    def _first(rules: list[DetectionRule], signals: StackSignals) -> str | None:
        for rule in rules:
            if rule.matches(signals):
                return rule.value
        return None

    def _flag(self, name: str, signals: StackSignals) -> bool:
        return any(rule.matches(signals) for rule in self.flag_rules if rule.field == name)


# =============================================================================
# CONVENIENCE FUNCTIONS
# =============================================================================

_detector: StackDetector | None = None


def get_detector() -> StackDetector:
    """Get or create singleton detector instance."""
    global _detector
    if _detector is None:
        _detector = StackDetector()
    return _detector


def detect_stack(
    files: dict[str, str] | None,
    manifest: dict | None = None,
    requirements: str | None = None,
) -> StackProfile:
    """
    Detect the technology stack of one snapshot.

    Args:
        files: Relative path -> text content
        manifest: Parsed package.json, if any
        requirements: Raw requirements.txt, if any

    Returns:
        StackProfile (empty fields when nothing is recognizable)
    """
    return get_detector().detect(files, manifest, requirements)
