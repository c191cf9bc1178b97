import logging
from urllib.parse import quote

import httpx

import config
from launchcheck.errors import (
    ContentFetchError,
    FetchTimeoutError,
    RateLimitedError,
    RepositoryNotFoundError,
)

logger = logging.getLogger(__name__)


class GitHubContentClient:
    """
    Thin async GitHub transport: repo metadata and trees from the REST API,
    file bodies from raw.githubusercontent.com. Use as an async context manager.
    """

    def __init__(
        self,
        token: str | None = None,
        api_url: str | None = None,
        raw_url: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        timeout: float = 30.0,
    ):
        self.token = token if token is not None else config.GITHUB_TOKEN
        self.api_url = (api_url or config.GITHUB_API_URL).rstrip("/")
        self.raw_url = (raw_url or config.GITHUB_RAW_URL).rstrip("/")
        self.headers = {
            "Accept": "application/vnd.github+json",
            "User-Agent": "launchcheck",
        }
        if self.token:
            self.headers["Authorization"] = f"Bearer {self.token}"
        self._transport = transport
        self._timeout = timeout
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> "GitHubContentClient":
        self._client = httpx.AsyncClient(
            headers=self.headers,
            timeout=self._timeout,
            transport=self._transport,
            follow_redirects=True,
        )
        return self

    async def __aexit__(self, *exc_info) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def _get(self, url: str) -> httpx.Response:
        if self._client is None:
            raise RuntimeError("GitHubContentClient must be used as an async context manager")
        try:
            response = await self._client.get(url)
        except httpx.TimeoutException as e:
            raise FetchTimeoutError(f"GitHub request timed out: {url}") from e
        except httpx.HTTPError as e:
            raise ContentFetchError(f"GitHub request failed: {e}") from e

        self._raise_for_status(response)
        return response

    @staticmethod
    def _raise_for_status(response: httpx.Response) -> None:
        status = response.status_code
        if status < 400:
            return
        if status == 404:
            raise RepositoryNotFoundError("Repository not found or not accessible.")
        remaining = response.headers.get("X-RateLimit-Remaining")
        if status == 429 or (status == 403 and remaining == "0"):
            retry_after = response.headers.get("Retry-After")
            raise RateLimitedError(
                "GitHub API rate limit exceeded. Please try again later.",
                retry_after=int(retry_after) if retry_after and retry_after.isdigit() else None,
            )
        raise ContentFetchError(f"GitHub returned HTTP {status} for {response.request.url}")

    async def get_default_branch(self, owner: str, repo: str) -> str:
        response = await self._get(f"{self.api_url}/repos/{owner}/{repo}")
        return response.json().get("default_branch") or "main"

    async def list_tree(self, owner: str, repo: str, ref: str) -> list[dict]:
        response = await self._get(
            f"{self.api_url}/repos/{owner}/{repo}/git/trees/{quote(ref, safe='')}?recursive=1"
        )
        data = response.json()
        if data.get("truncated"):
            logger.warning(f"Tree listing for {owner}/{repo}@{ref} was truncated by GitHub")
        return data.get("tree", [])

    async def get_file(self, owner: str, repo: str, ref: str, path: str) -> bytes:
        response = await self._get(f"{self.raw_url}/{owner}/{repo}/{quote(ref)}/{quote(path)}")
        return response.content
