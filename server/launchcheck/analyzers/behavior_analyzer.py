"""
Behavior Analyzer for LaunchCheck

Infers how an app behaves at runtime from cheap text signals over the whole
file map. Presence/frequency based, so file order does not matter.

Signals:
- Statefulness: globals, sessions, browser storage, module-level caches
- Write-heavy: write patterns strictly outnumber read patterns
- Background jobs: timers, queue libraries, cron, deferred tasks
- File uploads: upload middleware, multipart form handling
- Concurrency risk: derived from the above plus database and pooling
"""

import re
from dataclasses import dataclass

from ..schemas import BehaviorProfile, ConcurrencyRisk, StackProfile
from .stack_detector import detect_stack, parse_requirements


# =============================================================================
# CONFIGURATION
# =============================================================================

# Declared dependencies above this push concurrency risk to medium
MANY_DEPENDENCIES = 10

# Database names containing any of these are treated as single-file databases
SQLITE_FAMILY_MARKERS = ("sqlite", "libsql")


# =============================================================================
# DETECTION PATTERNS
# =============================================================================

@dataclass
class BehaviorPattern:
    """A textual signal for one behavior."""
    name: str
    kind: str  # "stateful", "write", "read", "background", "upload", "pooling"
    pattern: str  # Regex pattern
    flags: int = 0

    def compiled(self) -> re.Pattern:
        return re.compile(self.pattern, self.flags)


STATEFUL_PATTERNS = [
    BehaviorPattern("python_global", "stateful", r"^\s*global\s+\w+", re.MULTILINE),
    BehaviorPattern("node_global", "stateful", r"\bglobal\.\w+\s*="),
    BehaviorPattern("express_session", "stateful", r"\breq\.session\b"),
    BehaviorPattern("session_item", "stateful", r"\bsession\["),
    BehaviorPattern("browser_storage", "stateful", r"\b(?:localStorage|sessionStorage)\b"),
    BehaviorPattern(
        "module_map_or_set", "stateful",
        r"^(?:const|let|var)\s+\w+\s*=\s*new\s+(?:Map|Set)\s*\(",
        re.MULTILINE,
    ),
    BehaviorPattern(
        "module_cache_js", "stateful",
        r"^(?:const|let|var)\s+\w*(?:cache|store|sessions|state)\s*=\s*(?:\{\s*\}|\[\s*\])",
        re.MULTILINE | re.IGNORECASE,
    ),
    BehaviorPattern(
        "module_cache_py", "stateful",
        r"^_*(?:\w+_)?(?:cache|store|sessions|state)\s*(?::\s*[\w\[\], ]+)?=\s*(?:\{\s*\}|\[\s*\]|dict\(\)|set\(\))",
        re.MULTILINE | re.IGNORECASE,
    ),
]

WRITE_PATTERNS = [
    BehaviorPattern("sql_insert", "write", r"\binsert\s+into\b", re.IGNORECASE),
    BehaviorPattern("sql_update", "write", r"\bupdate\s+\w+\s+set\b", re.IGNORECASE),
    BehaviorPattern("sql_delete", "write", r"\bdelete\s+from\b", re.IGNORECASE),
    BehaviorPattern("orm_save", "write", r"\.save\(", re.IGNORECASE),
    BehaviorPattern("orm_create", "write", r"\.create\(", re.IGNORECASE),
    BehaviorPattern("orm_update", "write", r"\.update\(", re.IGNORECASE),
    BehaviorPattern("orm_delete", "write", r"\.delete\(", re.IGNORECASE),
    BehaviorPattern("write_file", "write", r"\b(?:writeFile|writeFileSync|appendFile|appendFileSync)\s*\(", re.IGNORECASE),
    BehaviorPattern("stream_write", "write", r"\.write\(", re.IGNORECASE),
]

READ_PATTERNS = [
    BehaviorPattern("sql_select", "read", r"\bselect\s+.+?\s+from\b", re.IGNORECASE),
    BehaviorPattern("orm_find", "read", r"\.find(?:One|Many|All|Unique|First|ById)?\(", re.IGNORECASE),
    BehaviorPattern("orm_get", "read", r"\.get\(", re.IGNORECASE),
    BehaviorPattern("read_file", "read", r"\b(?:readFile|readFileSync)\s*\(", re.IGNORECASE),
    BehaviorPattern("stream_read", "read", r"\.read\(", re.IGNORECASE),
]

BACKGROUND_PATTERNS = [
    BehaviorPattern("timer", "background", r"\b(?:setInterval|setTimeout)\s*\("),
    BehaviorPattern(
        "node_queue_import", "background",
        r"""(?:require\(\s*|from\s+)['"](?:bull|bullmq|bee-queue|agenda|node-cron|node-schedule|cron)['"]""",
    ),
    BehaviorPattern("queue_constructor", "background", r"\bnew\s+(?:Queue|Worker)\s*\("),
    BehaviorPattern("python_queue_import", "background", r"^\s*(?:from|import)\s+(?:celery|rq|dramatiq|huey)\b", re.MULTILINE),
    BehaviorPattern("celery_app", "background", r"\bCelery\s*\("),
    BehaviorPattern("task_decorator", "background", r"@(?:shared_task|app\.task|celery\.task)\b"),
    BehaviorPattern("cron_schedule", "background", r"\bcron\.schedule\s*\("),
    BehaviorPattern("apscheduler", "background", r"\bapscheduler\b|\bBackgroundScheduler\s*\("),
    BehaviorPattern("schedule_every", "background", r"\bschedule\.every\b"),
    BehaviorPattern("fastapi_background", "background", r"\bBackgroundTasks\b"),
    BehaviorPattern("deferred_call", "background", r"\.(?:delay|apply_async)\("),
]

UPLOAD_PATTERNS = [
    BehaviorPattern("upload_middleware", "upload", r"\b(?:multer|formidable|busboy)\b"),
    BehaviorPattern("express_fileupload", "upload", r"express-fileupload"),
    BehaviorPattern("multipart_form", "upload", r"multipart/form-data", re.IGNORECASE),
    BehaviorPattern("fastapi_upload", "upload", r"\bUploadFile\b"),
    BehaviorPattern("flask_upload", "upload", r"\brequest\.files\b|\bFileStorage\b"),
]

POOLING_PATTERNS = [
    BehaviorPattern("pool_constructor", "pooling", r"\bnew\s+Pool\s*\(|\bcreatePool\s*\("),
    BehaviorPattern("pool_settings", "pooling", r"\b(?:pool_size|connectionLimit|maxPoolSize|poolSize)\b"),
    BehaviorPattern("pool_classes", "pooling", r"\b(?:QueuePool|ConnectionPool)\b"),
    BehaviorPattern("pgbouncer", "pooling", r"pgbouncer", re.IGNORECASE),
]


# =============================================================================
# HELPER FUNCTIONS
# =============================================================================

def is_sqlite_family(database: str | None) -> bool:
    """True for SQLite-like single-file databases. Anything else counts as managed."""
    if not database:
        return False
    name = database.lower()
    return any(marker in name for marker in SQLITE_FAMILY_MARKERS)


def count_dependencies(manifest: dict | None, requirements: str | None = None) -> int:
    """Declared dependencies: package.json regular + dev, plus requirements.txt entries."""
    count = 0
    if isinstance(manifest, dict):
        for key in ("dependencies", "devDependencies"):
            section = manifest.get(key)
            if isinstance(section, dict):
                count += len(section)
    count += len(parse_requirements(requirements))
    return count


def derive_concurrency_risk(
    database: str | None,
    is_stateful: bool,
    write_heavy: bool,
    has_background_jobs: bool,
    has_pooling: bool,
    dependency_count: int,
) -> ConcurrencyRisk:
    """HIGH conditions are checked first and short-circuit."""
    if is_sqlite_family(database) and write_heavy:
        return ConcurrencyRisk.HIGH
    if is_stateful and not has_pooling:
        return ConcurrencyRisk.HIGH
    if has_background_jobs or dependency_count > MANY_DEPENDENCIES:
        return ConcurrencyRisk.MEDIUM
    return ConcurrencyRisk.LOW


# =============================================================================
# ANALYZER CLASS
# =============================================================================

class BehaviorAnalyzer:
    """Scans one snapshot's text for runtime-behavior signals."""

    def __init__(self):
        self.stateful = [p.compiled() for p in STATEFUL_PATTERNS]
        self.writes = [p.compiled() for p in WRITE_PATTERNS]
        self.reads = [p.compiled() for p in READ_PATTERNS]
        self.background = [p.compiled() for p in BACKGROUND_PATTERNS]
        self.uploads = [p.compiled() for p in UPLOAD_PATTERNS]
        self.pooling = [p.compiled() for p in POOLING_PATTERNS]

    @staticmethod
    def _any(patterns: list[re.Pattern], text: str) -> bool:
        return any(p.search(text) for p in patterns)

    @staticmethod
    def _count(patterns: list[re.Pattern], text: str) -> int:
        return sum(len(p.findall(text)) for p in patterns)

    def analyze(
        self,
        files: dict[str, str] | None,
        manifest: dict | None = None,
        stack: StackProfile | None = None,
        requirements: str | None = None,
    ) -> BehaviorProfile:
        if not files:
            return BehaviorProfile()

        if stack is None:
            stack = detect_stack(files, manifest, requirements)

        text = "\n".join(content for content in files.values() if isinstance(content, str))

        is_stateful = self._any(self.stateful, text)
        write_heavy = self._count(self.writes, text) > self._count(self.reads, text)
        has_background_jobs = self._any(self.background, text)
        has_file_uploads = self._any(self.uploads, text)
        dependency_count = count_dependencies(manifest, requirements)

        risk = derive_concurrency_risk(
            database=stack.database,
            is_stateful=is_stateful,
            write_heavy=write_heavy,
            has_background_jobs=has_background_jobs,
            has_pooling=self._any(self.pooling, text),
            dependency_count=dependency_count,
        )

        return BehaviorProfile(
            is_stateful=is_stateful,
            write_heavy=write_heavy,
            has_background_jobs=has_background_jobs,
            has_file_uploads=has_file_uploads,
            estimated_concurrency_risk=risk,
            external_dependency_count=dependency_count,
        )


# =============================================================================
# CONVENIENCE FUNCTIONS
# =============================================================================

_analyzer: BehaviorAnalyzer | None = None


def get_analyzer() -> BehaviorAnalyzer:
    """Get or create singleton analyzer instance."""
    global _analyzer
    if _analyzer is None:
        _analyzer = BehaviorAnalyzer()
    return _analyzer


def analyze_patterns(
    files: dict[str, str] | None,
    manifest: dict | None = None,
    stack: StackProfile | None = None,
    requirements: str | None = None,
) -> BehaviorProfile:
    """
    Infer the behavior profile of one snapshot.

    Args:
        files: Relative path -> text content
        manifest: Parsed package.json, if any
        stack: Stack profile already detected for these files (detected here if omitted)
        requirements: Raw requirements.txt, if any

    Returns:
        BehaviorProfile (all false / low / 0 for an empty file map)
    """
    return get_analyzer().analyze(files, manifest, stack, requirements)
