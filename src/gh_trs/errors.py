"""Error taxonomy for gh-trs.

Every error can carry the publish target (owner/repo/branch) and the
transaction step it was raised in. Library code raises; only the CLI turns
errors into exit codes.
"""

from __future__ import annotations


class GhTrsError(Exception):
    """Base class for all gh-trs errors."""

    def __init__(
        self,
        message: str,
        *,
        owner: str | None = None,
        repo: str | None = None,
        branch: str | None = None,
        step: str | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.owner = owner
        self.repo = repo
        self.branch = branch
        self.step = step

    def with_context(self, **context: str | None) -> "GhTrsError":
        """Fill context fields that are not already set and return self."""
        for key in ("owner", "repo", "branch", "step"):
            value = context.get(key)
            if value is not None and getattr(self, key) is None:
                setattr(self, key, value)
        return self

    def context_label(self) -> str:
        parts = []
        if self.owner and self.repo:
            target = f"{self.owner}/{self.repo}"
            if self.branch:
                target += f"@{self.branch}"
            parts.append(target)
        if self.step:
            parts.append(f"step={self.step}")
        return " ".join(parts)

    def __str__(self) -> str:
        label = self.context_label()
        return f"{self.message} [{label}]" if label else self.message


class AuthenticationFailed(GhTrsError):
    """GitHub rejected the token (HTTP 401). Not retryable."""


class RequestRejected(GhTrsError):
    """GitHub answered with a non-2xx status other than 401."""

    def __init__(self, message: str, *, status: int | None = None, **context: str | None) -> None:
        super().__init__(message, **context)
        self.status = status


class NotFound(RequestRejected):
    """HTTP 404."""


class Conflict(GhTrsError):
    """The branch moved while we were building a commit.

    The transaction must be restarted from EnsureBranch; resubmitting the
    same commit is never safe because its base tree may be stale.
    """


class ContentUnfetchable(GhTrsError):
    """A referenced file could not be fetched. Degrades one document."""

    def __init__(self, message: str, *, url: str | None = None, **context: str | None) -> None:
        super().__init__(message, **context)
        self.url = url


class TransportError(GhTrsError):
    """Connection failure or timeout talking to a remote service."""


class ConfigError(GhTrsError):
    """A gh-trs config (workflow descriptor) is unreadable or invalid."""


class TestFailed(GhTrsError):
    """One or more WES test cases did not complete successfully."""

    __test__ = False
