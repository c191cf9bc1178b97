"""Tests for the content fetcher and the GitHub transport."""

import asyncio
import io
import json
import zipfile

import httpx
import pytest

from launchcheck.content_fetcher import (
    FETCH_BATCH_SIZE,
    MAX_FILE_SIZE,
    MAX_FILES,
    AppContent,
    attach_manifests,
    fetch_github_repo,
    fetch_with_timeout,
    is_candidate_path,
    parse_repo_url,
    parse_zip_upload,
)
from launchcheck.errors import (
    ContentFetchError,
    FetchTimeoutError,
    InvalidSourceError,
    RateLimitedError,
    RepositoryNotFoundError,
    UploadTooLargeError,
)
from services.github import GitHubContentClient


API = "https://api.test"
RAW = "https://raw.test"


class FakeSourceClient:
    """In-memory SourceClient that records how many downloads overlap."""

    def __init__(self, files: dict[str, bytes], failures: dict[str, Exception] | None = None, sizes=None):
        self.files = files
        self.failures = failures or {}
        self.sizes = sizes or {}
        self.in_flight = 0
        self.max_in_flight = 0
        self.requested: list[str] = []

    async def get_default_branch(self, owner, repo):
        return "main"

    async def list_tree(self, owner, repo, ref):
        return [
            {"path": path, "type": "blob", "size": self.sizes.get(path, len(data))}
            for path, data in self.files.items()
        ]

    async def get_file(self, owner, repo, ref, path):
        self.requested.append(path)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(0)
            if path in self.failures:
                raise self.failures[path]
            return self.files[path]
        finally:
            self.in_flight -= 1


def make_zip(entries: dict[str, bytes]) -> bytes:
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as archive:
        for name, data in entries.items():
            archive.writestr(name, data)
    return buffer.getvalue()


class TestParseRepoUrl:
    def test_valid_url(self):
        assert parse_repo_url("https://github.com/acme/shop") == ("acme", "shop", None)

    def test_git_suffix_and_trailing_slash(self):
        assert parse_repo_url("https://github.com/acme/shop.git").repo == "shop"
        assert parse_repo_url("https://github.com/acme/shop/").repo == "shop"

    def test_tree_ref(self):
        assert parse_repo_url("https://github.com/acme/shop/tree/dev").ref == "dev"

    @pytest.mark.parametrize("url", [
        "",
        "not a url",
        "http://github.com/acme/shop",
        "https://gitlab.com/acme/shop",
        "https://github.com/acme",
    ])
    def test_invalid_urls(self, url):
        with pytest.raises(InvalidSourceError):
            parse_repo_url(url)


class TestPathFiltering:
    def test_code_and_manifests_are_candidates(self):
        assert is_candidate_path("src/index.ts")
        assert is_candidate_path("package.json")
        assert is_candidate_path("vercel.json")
        assert is_candidate_path(".replit")

    def test_skipped_paths(self):
        assert not is_candidate_path("node_modules/express/index.js")
        assert not is_candidate_path(".git/config")
        assert not is_candidate_path("dist/bundle.js")
        assert not is_candidate_path("package-lock.json")
        assert not is_candidate_path("public/logo.png")
        assert not is_candidate_path("data/app.sqlite")

    def test_unknown_files_are_ignored(self):
        assert not is_candidate_path("README.md")


class TestAttachManifests:
    def test_root_manifest_wins(self):
        content = AppContent(files={
            "apps/web/package.json": json.dumps({"name": "web"}),
            "package.json": json.dumps({"name": "root"}),
            "requirements.txt": "flask\n",
        })
        attach_manifests(content)
        assert content.manifest == {"name": "root"}
        assert content.requirements == "flask\n"

    def test_invalid_json_is_ignored(self):
        content = attach_manifests(AppContent(files={"package.json": "{not json"}))
        assert content.manifest is None


class TestZipUpload:
    def test_strips_root_folder_and_filters(self):
        data = make_zip({
            "shop-main/package.json": b'{"dependencies": {"express": "4"}}',
            "shop-main/src/index.js": b"const express = require('express');",
            "shop-main/node_modules/express/index.js": b"module.exports = {}",
            "shop-main/logo.png": b"\x89PNG",
        })
        content = parse_zip_upload(data, "shop.zip")
        assert set(content.files) == {"package.json", "src/index.js"}
        assert content.manifest == {"dependencies": {"express": "4"}}
        assert content.source == "shop.zip"

    def test_oversized_and_binary_files_skipped(self):
        data = make_zip({
            "big.js": b"a" * (MAX_FILE_SIZE + 1),
            "weird.js": b"abc\x00def",
            "ok.py": b"print('hi')",
        })
        content = parse_zip_upload(data)
        assert set(content.files) == {"ok.py"}
        assert set(content.skipped) == {"big.js", "weird.js"}

    def test_not_a_zip(self):
        with pytest.raises(InvalidSourceError):
            parse_zip_upload(b"definitely not a zip")

    def test_file_count_is_capped(self):
        entries = {f"shop-main/src/file{i}.js": b"x" for i in range(500)}
        entries["shop-main/package.json"] = b"{}"
        content = parse_zip_upload(make_zip(entries))
        assert len(content.files) == MAX_FILES
        assert "package.json" in content.files
        assert len(content.skipped) == 501 - MAX_FILES

    def test_max_files_prefers_manifests_and_shallow_files(self):
        entries = {f"deep/nested/file{i}.js": b"x" for i in range(5)}
        entries["requirements.txt"] = b"flask"
        entries["app.py"] = b"print(1)"
        content = parse_zip_upload(make_zip(entries), max_files=2)
        assert set(content.files) == {"requirements.txt", "app.py"}
        assert len(content.skipped) == 5

    def test_oversized_upload_rejected_before_opening(self):
        data = make_zip({"app.py": b"print(1)"})
        with pytest.raises(UploadTooLargeError):
            parse_zip_upload(data, max_upload_size=len(data) - 1)
        with pytest.raises(InvalidSourceError):
            parse_zip_upload(b"x" * 20, max_upload_size=10)


class TestFetchGithubRepo:
    def test_fetches_and_attaches_manifest(self):
        client = FakeSourceClient({
            "package.json": b'{"dependencies": {"pg": "8"}}',
            "src/app.js": b"console.log('hi')",
            "README.md": b"# shop",
        })
        content = asyncio.run(fetch_github_repo("https://github.com/acme/shop", client))
        assert set(content.files) == {"package.json", "src/app.js"}
        assert content.manifest == {"dependencies": {"pg": "8"}}
        assert content.source == "https://github.com/acme/shop"

    def test_downloads_are_batched(self):
        files = {f"src/file{i}.js": b"x" for i in range(35)}
        client = FakeSourceClient(files)
        content = asyncio.run(fetch_github_repo("https://github.com/acme/shop", client))
        assert len(content.files) == 35
        assert 1 < client.max_in_flight <= FETCH_BATCH_SIZE

    def test_max_files_keeps_manifests_first(self):
        files = {f"src/file{i}.js": b"x" for i in range(5)}
        files["package.json"] = b"{}"
        client = FakeSourceClient(files)
        content = asyncio.run(fetch_github_repo("https://github.com/acme/shop", client, max_files=2))
        assert "package.json" in content.files
        assert len(content.files) == 2
        assert len(content.skipped) == 4

    def test_oversized_files_never_downloaded(self):
        client = FakeSourceClient({"big.js": b"x", "ok.js": b"y"}, sizes={"big.js": MAX_FILE_SIZE + 1})
        content = asyncio.run(fetch_github_repo("https://github.com/acme/shop", client))
        assert "big.js" not in client.requested
        assert content.skipped == ["big.js"]

    def test_single_file_failure_is_skipped(self):
        client = FakeSourceClient(
            {"a.js": b"a", "b.js": b"b", "c.js": b"\x00\x01"},
            failures={"a.js": ContentFetchError("boom")},
        )
        content = asyncio.run(fetch_github_repo("https://github.com/acme/shop", client))
        assert set(content.files) == {"b.js"}
        assert set(content.skipped) == {"a.js", "c.js"}

    def test_rate_limit_aborts(self):
        client = FakeSourceClient({"a.js": b"a"}, failures={"a.js": RateLimitedError()})
        with pytest.raises(RateLimitedError):
            asyncio.run(fetch_github_repo("https://github.com/acme/shop", client))

    def test_invalid_url_before_any_call(self):
        client = FakeSourceClient({"a.js": b"a"})
        with pytest.raises(InvalidSourceError):
            asyncio.run(fetch_github_repo("ftp://example.com/repo", client))
        assert client.requested == []


class TestFetchWithTimeout:
    def test_timeout_is_retryable_error(self):
        async def slow():
            await asyncio.sleep(1)

        with pytest.raises(FetchTimeoutError):
            asyncio.run(fetch_with_timeout(slow(), 0.01))

    def test_passes_result_through(self):
        async def fast():
            return "done"

        assert asyncio.run(fetch_with_timeout(fast(), 1)) == "done"


def run_with_transport(handler, coro_factory):
    """Run coro_factory(client) against a GitHubContentClient backed by a mock transport."""
    async def _run():
        async with GitHubContentClient(token="", api_url=API, raw_url=RAW, transport=httpx.MockTransport(handler)) as client:
            return await coro_factory(client)
    return asyncio.run(_run())


class TestGitHubContentClient:
    def test_full_fetch(self):
        def handler(request: httpx.Request) -> httpx.Response:
            url = str(request.url)
            if url == f"{API}/repos/acme/shop":
                return httpx.Response(200, json={"default_branch": "trunk"})
            if url.startswith(f"{API}/repos/acme/shop/git/trees/trunk"):
                return httpx.Response(200, json={"tree": [
                    {"path": "package.json", "type": "blob", "size": 40},
                    {"path": "src", "type": "tree"},
                    {"path": "src/server.js", "type": "blob", "size": 20},
                ]})
            if url == f"{RAW}/acme/shop/trunk/package.json":
                return httpx.Response(200, content=b'{"dependencies": {"express": "4"}}')
            if url == f"{RAW}/acme/shop/trunk/src/server.js":
                return httpx.Response(200, content=b"require('express')")
            return httpx.Response(404)

        content = run_with_transport(
            handler, lambda client: fetch_github_repo("https://github.com/acme/shop", client)
        )
        assert set(content.files) == {"package.json", "src/server.js"}
        assert content.manifest["dependencies"] == {"express": "4"}

    def test_not_found(self):
        with pytest.raises(RepositoryNotFoundError):
            run_with_transport(
                lambda request: httpx.Response(404),
                lambda client: client.get_default_branch("acme", "missing"),
            )

    def test_rate_limited_429(self):
        with pytest.raises(RateLimitedError) as exc_info:
            run_with_transport(
                lambda request: httpx.Response(429, headers={"Retry-After": "30"}),
                lambda client: client.get_default_branch("acme", "shop"),
            )
        assert exc_info.value.retry_after == 30

    def test_rate_limited_403(self):
        with pytest.raises(RateLimitedError):
            run_with_transport(
                lambda request: httpx.Response(403, headers={"X-RateLimit-Remaining": "0"}),
                lambda client: client.get_default_branch("acme", "shop"),
            )

    def test_other_errors_are_generic(self):
        with pytest.raises(ContentFetchError) as exc_info:
            run_with_transport(
                lambda request: httpx.Response(500),
                lambda client: client.get_default_branch("acme", "shop"),
            )
        assert not isinstance(exc_info.value, (RepositoryNotFoundError, RateLimitedError))

    def test_transport_timeout(self):
        def handler(request):
            raise httpx.ReadTimeout("slow", request=request)

        with pytest.raises(FetchTimeoutError):
            run_with_transport(handler, lambda client: client.get_default_branch("acme", "shop"))

    def test_bearer_token_sent(self):
        seen = {}

        def handler(request):
            seen["auth"] = request.headers.get("Authorization")
            return httpx.Response(200, json={"default_branch": "main"})

        async def _run():
            transport = httpx.MockTransport(handler)
            async with GitHubContentClient(token="abc", api_url=API, raw_url=RAW, transport=transport) as client:
                return await client.get_default_branch("acme", "shop")

        assert asyncio.run(_run()) == "main"
        assert seen["auth"] == "Bearer abc"
