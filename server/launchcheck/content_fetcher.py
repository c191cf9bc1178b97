"""
Content Fetcher for LaunchCheck

Turns a source locator (GitHub URL or ZIP upload) into an in-memory file map
plus the parsed manifest (package.json) and raw requirements.txt, if present.
This module fetches and filters only. Detection and scoring live elsewhere.
"""

import asyncio
import io
import json
import logging
import re
import zipfile
from dataclasses import dataclass, field
from typing import Awaitable, NamedTuple, Protocol, TypeVar

from .errors import FetchTimeoutError, InvalidSourceError, TransientFetchError, UploadTooLargeError

logger = logging.getLogger(__name__)

T = TypeVar("T")


# =============================================================================
# CONFIGURATION
# =============================================================================

# Any single file above this is skipped
MAX_FILE_SIZE = 100 * 1024  # 100KB per file

# Default cap on how many files one fetch may read
MAX_FILES = 300

# Uploaded archives above this are rejected before extraction
MAX_UPLOAD_SIZE = 20 * 1024 * 1024  # 20MB

# Remote downloads run in batches of this size
FETCH_BATCH_SIZE = 10

# Code file extensions we care about
CODE_EXTENSIONS = (
    ".py", ".js", ".ts", ".jsx", ".tsx", ".mjs", ".cjs",  # Python, JavaScript, TypeScript
    ".java", ".go", ".rb", ".rs", ".php",                  # Java, Go, Ruby, Rust, PHP
    ".vue", ".svelte",                                     # Frontend frameworks
    ".sql", ".sh",                                         # SQL, Shell
)

# Manifest, config and deployment marker files we also read
INCLUDE_FILES = (
    "package.json", "requirements.txt", "pyproject.toml", "Pipfile",
    "Dockerfile", "docker-compose.yml", "docker-compose.yaml", "Procfile",
    "vercel.json", "netlify.toml", "wrangler.toml", "fly.toml",
    "railway.json", "railway.toml", "render.yaml",
    "serverless.yml", "serverless.yaml",
    ".replit", "replit.nix",
    ".env.example",
)

# Binary/generated extensions to skip entirely
SKIP_EXTENSIONS = (
    ".png", ".jpg", ".jpeg", ".gif", ".ico", ".svg", ".webp",
    ".woff", ".woff2", ".ttf", ".eot", ".otf",
    ".mp3", ".mp4", ".wav", ".avi", ".mov",
    ".zip", ".tar", ".gz", ".rar", ".7z",
    ".pdf", ".doc", ".docx", ".xls", ".xlsx",
    ".exe", ".dll", ".so", ".dylib",
    ".pyc", ".pyo", ".class", ".o", ".obj",
    ".lock", ".min.js", ".min.css", ".map",
    ".db", ".sqlite", ".sqlite3",
)

# Build output, dependency caches and VCS metadata
SKIP_DIRS = (
    "node_modules", "venv", ".venv", "env",
    "__pycache__", ".git", "dist", "build", "out", ".next", ".nuxt",
    ".svelte-kit", ".vercel", ".turbo", ".cache",
    "coverage", ".nyc_output", ".pytest_cache", ".mypy_cache",
    "vendor", "target", "bin", "obj",
    ".idea", ".vscode", ".vs",
    "migrations", "__mocks__", "fixtures", "__fixtures__",
)

# Lock files and other huge generated files we never read
BLACKLIST_FILES = (
    "package-lock.json", "yarn.lock", "pnpm-lock.yaml",
    "pipfile.lock", "poetry.lock", "gemfile.lock", "cargo.lock",
    "composer.lock", "go.sum",
)

GITHUB_URL_RE = re.compile(
    r"^https://(?:www\.)?github\.com/([A-Za-z0-9_.-]+)/([A-Za-z0-9_.-]+?)(?:\.git)?(?:/tree/([^\s?#]+))?/?$"
)


# =============================================================================
# DATA CLASSES
# =============================================================================

@dataclass
class AppContent:
    """
    Bounded in-memory snapshot of an app's source.
    This is the output of the fetcher, fed into the analyzers.
    """
    files: dict[str, str] = field(default_factory=dict)  # path -> content
    manifest: dict | None = None  # parsed package.json
    requirements: str | None = None  # raw requirements.txt
    source: str = ""
    skipped: list[str] = field(default_factory=list)  # paths seen but not read


class RepoLocator(NamedTuple):
    owner: str
    repo: str
    ref: str | None = None


class SourceClient(Protocol):
    """What the fetcher needs from a GitHub transport."""

    async def get_default_branch(self, owner: str, repo: str) -> str: ...

    async def list_tree(self, owner: str, repo: str, ref: str) -> list[dict]: ...

    async def get_file(self, owner: str, repo: str, ref: str, path: str) -> bytes: ...


# =============================================================================
# PATH FILTERING
# =============================================================================

def is_code_file(file_path: str) -> bool:
    """Check if file is a code file based on extension."""
    return file_path.lower().endswith(CODE_EXTENSIONS)


def should_skip_path(file_path: str) -> bool:
    """True for build artifacts, dependency caches, VCS metadata, binaries and lock files."""
    parts = file_path.replace("\\", "/").split("/")
    if any(part in SKIP_DIRS for part in parts[:-1]):
        return True
    filename = parts[-1].lower()
    if filename in BLACKLIST_FILES:
        return True
    return filename.endswith(SKIP_EXTENSIONS)


def is_candidate_path(file_path: str) -> bool:
    """True if the file is worth reading: not skipped, and code or a known config file."""
    if should_skip_path(file_path):
        return False
    filename = file_path.rsplit("/", 1)[-1]
    return is_code_file(file_path) or filename in INCLUDE_FILES


def _fetch_priority(file_path: str) -> tuple[int, int, str]:
    """Manifests and config first, then shallow files, then alphabetical."""
    filename = file_path.rsplit("/", 1)[-1]
    return (0 if filename in INCLUDE_FILES else 1, file_path.count("/"), file_path)


# =============================================================================
# HELPER FUNCTIONS
# =============================================================================

def parse_repo_url(repo_url: str) -> RepoLocator:
    """Parse and validate a GitHub repo URL. Raises InvalidSourceError before any network call."""
    if not isinstance(repo_url, str) or not repo_url.strip():
        raise InvalidSourceError("A GitHub repository URL is required.")

    match = GITHUB_URL_RE.match(repo_url.strip())
    if not match:
        raise InvalidSourceError(
            "Invalid GitHub URL. Must be https://github.com/username/repo-name"
        )

    owner, repo, ref = match.group(1), match.group(2), match.group(3)
    if owner in (".", "..") or repo in (".", ".."):
        raise InvalidSourceError("Invalid GitHub URL. Owner and repository name are required.")
    return RepoLocator(owner=owner, repo=repo, ref=ref.rstrip("/") if ref else None)


def decode_text(data: bytes) -> str | None:
    """Decode file bytes as UTF-8 text. Returns None for binary content."""
    if b"\x00" in data[:8192]:
        return None
    try:
        return data.decode("utf-8")
    except UnicodeDecodeError:
        return None


def _shallowest(files: dict[str, str], filename: str) -> str | None:
    """Path of the least nested file with this name (root wins)."""
    matches = [path for path in files if path.rsplit("/", 1)[-1] == filename]
    if not matches:
        return None
    return min(matches, key=lambda p: (p.count("/"), p))


def attach_manifests(content: AppContent) -> AppContent:
    """Fill `manifest` and `requirements` from the file map."""
    package_path = _shallowest(content.files, "package.json")
    if package_path is not None:
        try:
            parsed = json.loads(content.files[package_path])
        except json.JSONDecodeError as e:
            logger.warning(f"Ignoring unparseable {package_path} in {content.source}: {e}")
            parsed = None
        content.manifest = parsed if isinstance(parsed, dict) else None

    requirements_path = _shallowest(content.files, "requirements.txt")
    if requirements_path is not None:
        content.requirements = content.files[requirements_path]

    return content


# =============================================================================
# ZIP UPLOADS
# =============================================================================

def _strip_common_root(names: list[str]) -> str:
    """Return the single top-level folder shared by every entry, or ''."""
    roots = {name.split("/", 1)[0] for name in names}
    if len(roots) == 1 and all("/" in name for name in names):
        return roots.pop() + "/"
    return ""


def parse_zip_upload(
    data: bytes,
    filename: str | None = None,
    max_files: int = MAX_FILES,
    max_upload_size: int = MAX_UPLOAD_SIZE,
) -> AppContent:
    """
    Extract an uploaded ZIP archive into an AppContent.

    Args:
        data: Raw bytes of the archive
        filename: Original upload name (for logging/source only)
        max_files: Most files to read; manifests and shallow files first
        max_upload_size: Archives larger than this are rejected unopened

    Returns:
        AppContent with filtered files and manifests attached
    """
    if len(data) > max_upload_size:
        raise UploadTooLargeError(
            f"Uploaded file is larger than {max_upload_size // (1024 * 1024)}MB."
        )

    try:
        archive = zipfile.ZipFile(io.BytesIO(data))
    except (zipfile.BadZipFile, ValueError) as e:
        raise InvalidSourceError("Uploaded file is not a valid ZIP archive.") from e

    content = AppContent(source=filename or "upload.zip")

    with archive:
        entries = [info for info in archive.infolist() if not info.is_dir()]
        prefix = _strip_common_root([info.filename for info in entries])

        candidates: dict[str, zipfile.ZipInfo] = {}
        for info in entries:
            rel_path = info.filename[len(prefix):].replace("\\", "/").lstrip("/")
            if not rel_path or not is_candidate_path(rel_path):
                continue
            if info.file_size > MAX_FILE_SIZE:
                content.skipped.append(rel_path)
                continue
            candidates[rel_path] = info

        ordered = sorted(candidates, key=_fetch_priority)
        if len(ordered) > max_files:
            content.skipped.extend(ordered[max_files:])
            ordered = ordered[:max_files]

        for rel_path in ordered:
            try:
                text = decode_text(archive.read(candidates[rel_path]))
            except (zipfile.BadZipFile, OSError, RuntimeError) as e:
                logger.warning(f"Skipping unreadable entry {rel_path} in {content.source}: {e}")
                content.skipped.append(rel_path)
                continue
            if text is None:
                logger.warning(f"Skipping binary entry {rel_path} in {content.source}")
                content.skipped.append(rel_path)
                continue

            content.files[rel_path] = text

    logger.info(f"Extracted {len(content.files)} files from {content.source} ({len(content.skipped)} skipped)")
    return attach_manifests(content)


# =============================================================================
# GITHUB FETCH
# =============================================================================

async def fetch_github_repo(
    repo_url: str,
    client: SourceClient,
    max_files: int = MAX_FILES,
) -> AppContent:
    """
    Fetch a bounded set of files from a GitHub repository.

    Downloads run in fixed batches of FETCH_BATCH_SIZE. A single unreadable
    file is skipped with a warning. Rate-limit and timeout errors abort the
    whole fetch.
    """
    owner, repo, ref = parse_repo_url(repo_url)
    content = AppContent(source=f"https://github.com/{owner}/{repo}")

    if ref is None:
        ref = await client.get_default_branch(owner, repo)
    entries = await client.list_tree(owner, repo, ref)

    candidates: list[str] = []
    for entry in entries:
        if entry.get("type") != "blob":
            continue
        path = entry.get("path", "")
        if not is_candidate_path(path):
            continue
        if entry.get("size", 0) > MAX_FILE_SIZE:
            content.skipped.append(path)
            continue
        candidates.append(path)

    candidates.sort(key=_fetch_priority)
    if len(candidates) > max_files:
        content.skipped.extend(candidates[max_files:])
        candidates = candidates[:max_files]

    for start in range(0, len(candidates), FETCH_BATCH_SIZE):
        batch = candidates[start:start + FETCH_BATCH_SIZE]
        results = await asyncio.gather(
            *(client.get_file(owner, repo, ref, path) for path in batch),
            return_exceptions=True,
        )

        for path, result in zip(batch, results):
            if isinstance(result, TransientFetchError):
                raise result
            if isinstance(result, BaseException) and not isinstance(result, Exception):
                raise result
            if isinstance(result, Exception):
                logger.warning(f"Skipping {path} from {content.source}: {result}")
                content.skipped.append(path)
                continue

            text = decode_text(result)
            if text is None:
                logger.warning(f"Skipping binary file {path} from {content.source}")
                content.skipped.append(path)
                continue
            content.files[path] = text

    logger.info(f"Fetched {len(content.files)} files from {content.source} ({len(content.skipped)} skipped)")
    return attach_manifests(content)


async def fetch_with_timeout(fetch: Awaitable[T], timeout: float) -> T:
    """Run a whole fetch under a deadline. Expiry is a retryable FetchTimeoutError."""
    try:
        return await asyncio.wait_for(fetch, timeout=timeout)
    except asyncio.TimeoutError as e:
        raise FetchTimeoutError(f"Fetching the repository took longer than {timeout:g} seconds.") from e
