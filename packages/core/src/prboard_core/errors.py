"""Exception taxonomy for fetch failures.

Malformed data (unknown verdict strings, missing optional fields) is not
represented here: it is mapped to a safe default and logged, never
raised.
"""

from __future__ import annotations

from github import BadCredentialsException, GithubException, RateLimitExceededException, UnknownObjectException
from requests import RequestException


class PRBoardError(Exception):
    """Base class for all recoverable prboard errors."""


class TransportError(PRBoardError):
    """The host was unreachable or the request timed out."""


class AuthorizationError(PRBoardError):
    """The credential was missing, invalid or lacked access to the resource."""


class RateLimitError(PRBoardError):
    """GitHub throttled the request."""


class NotFoundError(PRBoardError):
    """The subject no longer exists (or is invisible to this token)."""


class PullRequestUnavailable(PRBoardError):
    """The mandatory PR descriptor could not be fetched.

    Fatal for that one PR only; sibling enrichments carry on.
    """

    def __init__(self, repo: str, number: int, cause: PRBoardError):
        super().__init__(f"{repo}#{number}: {cause}")
        self.repo = repo
        self.number = number
        self.cause = cause


def _is_rate_limited(exc: GithubException) -> bool:
    headers = exc.headers or {}
    if headers.get("x-ratelimit-remaining") == "0" or "retry-after" in headers:
        return True
    message = str(exc.data.get("message", "")) if isinstance(exc.data, dict) else ""
    return "rate limit" in message.lower()


def classify_github_error(exc: Exception) -> PRBoardError:
    """Map a PyGithub or requests exception onto the prboard taxonomy."""
    if isinstance(exc, PRBoardError):
        return exc
    if isinstance(exc, RateLimitExceededException):
        return RateLimitError(str(exc))
    if isinstance(exc, BadCredentialsException):
        return AuthorizationError(str(exc))
    if isinstance(exc, UnknownObjectException):
        return NotFoundError(str(exc))
    if isinstance(exc, GithubException):
        if exc.status == 429 or (exc.status == 403 and _is_rate_limited(exc)):
            return RateLimitError(str(exc))
        if exc.status in (401, 403):
            return AuthorizationError(str(exc))
        if exc.status == 404:
            return NotFoundError(str(exc))
        return TransportError(str(exc))
    if isinstance(exc, (RequestException, TimeoutError, ConnectionError)):
        return TransportError(str(exc))
    return PRBoardError(f"{type(exc).__name__}: {exc}")
