"""
Error taxonomy for LaunchCheck.

Callers branch on the class, not the message:
- InvalidSourceError: bad input, surface immediately, never retry
  (UploadTooLargeError: the upload is over the size ceiling)
- RepositoryNotFoundError: show a "not found" message
- TransientFetchError (RateLimitedError, FetchTimeoutError): offer a retry
- ContentFetchError: any other fetch failure
"""


class LaunchCheckError(Exception):
    """Base class for all LaunchCheck errors."""


class InvalidSourceError(LaunchCheckError):
    """The source locator (URL or upload) is malformed."""


class UploadTooLargeError(InvalidSourceError):
    """The uploaded archive is over the size ceiling."""


class ContentFetchError(LaunchCheckError):
    """Fetching source content failed."""


class RepositoryNotFoundError(ContentFetchError):
    """The repository does not exist or is not accessible."""


class TransientFetchError(ContentFetchError):
    """A fetch failure that is worth retrying later."""


class RateLimitedError(TransientFetchError):
    """The source host rate-limited us."""

    def __init__(self, message: str = "Rate limit exceeded", retry_after: int | None = None):
        super().__init__(message)
        self.retry_after = retry_after


class FetchTimeoutError(TransientFetchError):
    """The fetch did not finish within the allowed time."""
