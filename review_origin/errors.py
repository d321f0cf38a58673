"""Exceptions raised while resolving changes and walking revision history."""

from __future__ import annotations


class ValidationError(ValueError):
    """Malformed input: empty reference, rejected endpoint, bad option."""


class EmptyChangeError(Exception):
    """Nothing to migrate for this input.

    Raised when a change targets a branch other than the tracked one. Callers
    should report it as an intentional skip, not as a failure.
    """


class RepoError(Exception):
    """Repository or transport failure."""


class CannotResolveRevisionError(RepoError):
    """A ref, patch set or ancestor could not be resolved."""


class GerritApiError(RepoError):
    """A Gerrit REST call failed."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code
