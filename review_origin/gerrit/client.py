"""Gerrit REST API client for fetching change metadata and posting reviews."""

from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any, Protocol
from urllib.parse import quote, urlsplit

import httpx

from review_origin.errors import GerritApiError, ValidationError

logger = logging.getLogger(__name__)

# =============================================================================
# Gerrit REST API Configuration
# =============================================================================
# Documentation: https://gerrit-review.googlesource.com/Documentation/rest-api.html
#
# Authenticated requests go through the "/a/" prefix with HTTP basic auth
# using the account's HTTP password (Settings > HTTP Credentials).
#
# Every JSON response body starts with a ")]}'" line to defeat XSSI; it must
# be stripped before decoding.
# =============================================================================

XSSI_PREFIX = ")]}'"


class IncludeResult(StrEnum):
    """Optional sections of a ChangeInfo ("o" query parameters)."""

    DETAILED_ACCOUNTS = "DETAILED_ACCOUNTS"
    DETAILED_LABELS = "DETAILED_LABELS"
    CURRENT_REVISION = "CURRENT_REVISION"
    MESSAGES = "MESSAGES"


@dataclass(frozen=True)
class GetChangeInput:
    """Options for a get-change request."""

    include: frozenset[IncludeResult] = frozenset()

    def to_params(self) -> list[tuple[str, str]]:
        # Sorted so that identical inputs produce identical URLs
        return [("o", str(option)) for option in sorted(self.include)]


@dataclass
class AccountInfo:
    """A Gerrit account as returned with DETAILED_ACCOUNTS."""

    account_id: int | None
    name: str | None = None
    email: str | None = None
    username: str | None = None

    @classmethod
    def from_api_response(cls, data: dict[str, Any]) -> AccountInfo:
        """Create from a Gerrit AccountInfo entity."""
        return cls(
            account_id=data.get("_account_id"),
            name=data.get("name"),
            email=data.get("email"),
            username=data.get("username"),
        )


@dataclass
class ChangeInfo:
    """Change metadata from GET /changes/{change-id}."""

    id: str  # "project~branch~Change-Id", the complete change id
    project: str
    branch: str
    change_id: str  # "I" + sha1, as in the Change-Id footer
    number: int
    owner: AccountInfo
    topic: str | None = None
    subject: str | None = None
    status: str | None = None
    # Role ("REVIEWER", "CC", "REMOVED") -> accounts, in response order
    reviewers: dict[str, list[AccountInfo]] = field(default_factory=dict)
    labels: dict[str, Any] = field(default_factory=dict)
    current_revision: str | None = None

    @classmethod
    def from_api_response(cls, data: dict[str, Any]) -> ChangeInfo:
        """Create from a Gerrit ChangeInfo entity."""
        reviewers_data = data.get("reviewers") or {}
        reviewers = {
            role: [AccountInfo.from_api_response(a) for a in accounts]
            for role, accounts in reviewers_data.items()
        }

        return cls(
            id=data.get("id", ""),
            project=data.get("project", ""),
            branch=data.get("branch", ""),
            change_id=data.get("change_id", ""),
            number=data.get("_number", 0),
            owner=AccountInfo.from_api_response(data.get("owner") or {}),
            topic=data.get("topic"),
            subject=data.get("subject"),
            status=data.get("status"),
            reviewers=reviewers,
            labels=data.get("labels") or {},
            current_revision=data.get("current_revision"),
        )


class ChangeApi(Protocol):
    """The subset of the Gerrit API used by origins and feedback endpoints."""

    def get_change(self, change_id: str, include: GetChangeInput) -> ChangeInfo: ...

    def set_review(
        self, change_id: str, revision_id: str, review: dict[str, Any]
    ) -> dict[str, Any]: ...


def gerrit_host_url(repo_url: str) -> str:
    """Return the Gerrit server root for a repository URL.

    E.g. "https://review.example.com/platform/build" -> "https://review.example.com".
    """
    parts = urlsplit(repo_url)
    if not parts.scheme or not parts.netloc:
        raise ValidationError(f"Not a Gerrit repository URL: {repo_url!r}")
    return f"{parts.scheme}://{parts.netloc}"


def parse_gerrit_json(text: str) -> Any:
    """Decode a Gerrit JSON body, dropping the XSSI guard line."""
    if text.startswith(XSSI_PREFIX):
        text = text[len(XSSI_PREFIX) :]
    return json.loads(text)


class GerritClient:
    """Client for the Gerrit REST API.

    API Documentation: https://gerrit-review.googlesource.com/Documentation/rest-api.html
    """

    def __init__(
        self,
        repo_url: str,
        username: str | None = None,
        http_password: str | None = None,
        timeout: float = 30.0,
        transport: httpx.BaseTransport | None = None,
    ):
        """Initialize the Gerrit client.

        Args:
            repo_url: Any repository URL on the Gerrit host.
            username: Account name for HTTP basic auth (optional).
            http_password: Gerrit HTTP password for the account (optional).
            timeout: HTTP request timeout in seconds.
            transport: Custom httpx transport (tests use httpx.MockTransport).
        """
        self.base_url = gerrit_host_url(repo_url)
        self.timeout = timeout
        self.auth = (username, http_password) if username and http_password else None
        self._transport = transport
        self.max_retries = 3
        self.retry_delay = 2.0  # seconds

    def _client(self) -> httpx.Client:
        return httpx.Client(
            base_url=self.base_url,
            timeout=self.timeout,
            auth=self.auth,
            transport=self._transport,
        )

    def _path(self, path: str) -> str:
        return f"/a{path}" if self.auth else path

    def _request_with_retry(
        self,
        client: httpx.Client,
        method: str,
        url: str,
        **kwargs: Any,
    ) -> httpx.Response:
        """Make HTTP request with retry logic for 5xx errors.

        Args:
            client: httpx Client instance.
            method: HTTP method (GET, POST, etc.).
            url: Request URL.
            **kwargs: Additional arguments passed to client.request().

        Returns:
            httpx.Response on success.

        Raises:
            httpx.HTTPStatusError: After all retries exhausted.
        """
        last_error: Exception | None = None

        for attempt in range(self.max_retries):
            try:
                response = client.request(method, url, **kwargs)
                response.raise_for_status()
                return response
            except httpx.HTTPStatusError as e:
                if e.response.status_code >= 500:
                    last_error = e
                    if attempt < self.max_retries - 1:
                        delay = self.retry_delay * (2**attempt)  # Exponential backoff
                        logger.warning(
                            f"Server error {e.response.status_code}, "
                            f"retrying in {delay}s (attempt {attempt + 1}/{self.max_retries})"
                        )
                        time.sleep(delay)
                        continue
                raise
            except httpx.RequestError as e:
                last_error = e
                if attempt < self.max_retries - 1:
                    delay = self.retry_delay * (2**attempt)
                    logger.warning(
                        f"Request error: {e}, "
                        f"retrying in {delay}s (attempt {attempt + 1}/{self.max_retries})"
                    )
                    time.sleep(delay)
                    continue
                raise

        if last_error:
            raise last_error
        raise RuntimeError("Unexpected error in retry logic")

    def _call(self, method: str, path: str, **kwargs: Any) -> Any:
        url = self._path(path)
        try:
            with self._client() as client:
                response = self._request_with_retry(client, method, url, **kwargs)
        except httpx.HTTPStatusError as e:
            raise GerritApiError(
                f"Gerrit {method} {url} failed: {e.response.status_code} "
                f"{e.response.text.strip()[:200]}",
                status_code=e.response.status_code,
            ) from e
        except httpx.RequestError as e:
            raise GerritApiError(f"Gerrit {method} {url} failed: {e}") from e

        try:
            return parse_gerrit_json(response.text)
        except ValueError as e:
            raise GerritApiError(f"Malformed Gerrit response for {url}: {e}") from e

    def get_change(self, change_id: str, include: GetChangeInput) -> ChangeInfo:
        """Fetch a single change.

        Args:
            change_id: Change number or complete change id.
            include: Optional sections to request.

        Returns:
            ChangeInfo for the change.

        Raises:
            GerritApiError: If the request fails or the body can't be decoded.
        """
        logger.info(f"Fetching change {change_id} from {self.base_url}")
        data = self._call(
            "GET",
            f"/changes/{quote(change_id, safe='~%')}",
            params=include.to_params(),
        )
        return ChangeInfo.from_api_response(data)

    def set_review(
        self, change_id: str, revision_id: str, review: dict[str, Any]
    ) -> dict[str, Any]:
        """Post a review (message and/or label votes) on a revision.

        Args:
            change_id: Change number or complete change id.
            revision_id: Revision sha, patch set number or "current".
            review: ReviewInput body, e.g. {"message": ..., "labels": {...}}.

        Returns:
            The decoded ReviewResult.
        """
        logger.info(f"Posting review on change {change_id} revision {revision_id}")
        return self._call(
            "POST",
            f"/changes/{quote(change_id, safe='~%')}/revisions/{revision_id}/review",
            json=review,
        )


def fetch_change_metadata(api: ChangeApi, change_number: int) -> ChangeInfo:
    """Fetch the metadata needed to label a change.

    Account details are required for reviewer and owner emails. Failures
    propagate unchanged.
    """
    return api.get_change(
        str(change_number),
        GetChangeInput(
            frozenset({IncludeResult.DETAILED_ACCOUNTS, IncludeResult.DETAILED_LABELS})
        ),
    )
