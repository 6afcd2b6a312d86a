class GitHubError(Exception):
    """Base class for failures talking to GitHub or the proxy server."""


class AuthenticationError(GitHubError):
    """Raised when GitHub or the proxy rejects the credential."""


class UpstreamError(GitHubError):
    """Raised for non-2xx responses and GraphQL error payloads."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class NetworkFailure(GitHubError):
    """Raised when GitHub or the proxy server cannot be reached."""


class RateLimitExceeded(GitHubError):
    """Raised when the remaining API quota is exhausted."""

    def __init__(self, reset_epoch_seconds: int) -> None:
        super().__init__(
            f"GitHub API rate limit exhausted, resets at {reset_epoch_seconds}"
        )
        self.reset_epoch_seconds = reset_epoch_seconds


class CacheFault(Exception):
    """Raised by cache stores on read or write failure. Never leaves the cache."""
