"""Gerrit origin: resolves change references into labelled revisions.

Resolution has two paths:

1. Change references (change number, change URL, refs/changes/..) go through
   the Gerrit REST API for metadata, are filtered by branch, labelled, and
   the patch set is fetched.
2. Anything else is resolved as a plain git ref.

Either way the result can be decorated with a describe version.
"""

from __future__ import annotations

import logging
from typing import Any, Protocol

from review_origin.baselines import find_baselines_without_label
from review_origin.checks import Checker
from review_origin.config import Settings
from review_origin.errors import EmptyChangeError, ValidationError
from review_origin.gerrit.change import NotAChange, resolve_change
from review_origin.gerrit.client import GerritClient, fetch_change_metadata
from review_origin.gerrit.endpoint import (
    ChangeApiFactory,
    GerritEndpoint,
    GerritEndpointFactory,
)
from review_origin.git.repository import GitRepository, Repository
from review_origin.labels import assemble_labels
from review_origin.revision import Revision

logger = logging.getLogger(__name__)


def check_branch(change: int, change_branch: str, target_branch: str | None) -> None:
    """Raise EmptyChangeError unless the change targets the tracked branch.

    No filtering happens when target_branch is None.
    """
    if target_branch is None or target_branch == change_branch:
        return
    raise EmptyChangeError(
        f"Skipping import of change {change} for branch {change_branch}. "
        f"Only tracking changes for branch {target_branch}"
    )


# =============================================================================
# Reader strategies
# =============================================================================


class BaselineFinder(Protocol):
    def find(self, start: Revision, limit: int) -> list[Revision]: ...


class FeedbackEndpointFactory(Protocol):
    def create(self, console: logging.Logger) -> GerritEndpoint: ...


class ReviewBaselineFinder:
    """Baselines for a review: the review commit itself is always skipped."""

    def __init__(self, repository: Repository, label: str, first_parent: bool) -> None:
        self.repository = repository
        self.label = label
        self.first_parent = first_parent

    def find(self, start: Revision, limit: int) -> list[Revision]:
        return find_baselines_without_label(
            self.repository,
            start,
            self.label,
            limit,
            skip_first=True,
            first_parent=self.first_parent,
        )


class OriginReader:
    """Reads from an origin through pluggable strategies."""

    def __init__(
        self,
        baseline_finder: BaselineFinder,
        endpoint_factory: FeedbackEndpointFactory,
        include_branch_commit_logs: bool = False,
        patch_transformation: Any | None = None,
    ) -> None:
        self.baseline_finder = baseline_finder
        self.endpoint_factory = endpoint_factory
        self.include_branch_commit_logs = include_branch_commit_logs
        # Opaque to the reader, applied by the migration to checked out files
        self.patch_transformation = patch_transformation

    def find_baselines_without_label(self, start: Revision, limit: int) -> list[Revision]:
        return self.baseline_finder.find(start, limit)

    def get_feedback_endpoint(self, console: logging.Logger) -> GerritEndpoint:
        return self.endpoint_factory.create(console)


# =============================================================================
# Origin
# =============================================================================


class GerritOrigin:
    """An origin that reads Gerrit reviews.

    Holds no mutable state between calls; concurrent resolve() calls are as
    safe as the repository and API collaborators.
    """

    def __init__(
        self,
        url: str,
        repository: Repository,
        api_factory: ChangeApiFactory,
        branch: str | None = None,
        describe_version: bool = False,
        first_parent: bool = True,
        checker: Checker | None = None,
        patch_transformation: Any | None = None,
        baseline_label: str = "GitOrigin-RevId",
        include_branch_commit_logs: bool = False,
    ) -> None:
        self.url = url
        self.repository = repository
        self.api_factory = api_factory
        self.branch = branch
        self.describe_version = describe_version
        self.first_parent = first_parent
        self.checker = checker
        self.patch_transformation = patch_transformation
        self.baseline_label = baseline_label
        self.include_branch_commit_logs = include_branch_commit_logs

    def resolve(self, reference: str | None) -> Revision:
        """Resolve a change number, change URL/ref or plain git ref.

        Raises:
            ValidationError: If reference is empty.
            EmptyChangeError: If the change targets a branch other than `branch`.
            RepoError: If the repository or the Gerrit API fails.
        """
        logger.info("Git Origin: Initializing local repo")

        if not reference:
            raise ValidationError("Expecting a change number as reference")

        change = resolve_change(self.repository, self.url, reference)
        if isinstance(change, NotAChange):
            revision = self.repository.resolve_ref(self.url, reference, self.describe_version)
            return self._decorate(revision)

        api = self.api_factory(self.url)
        info = fetch_change_metadata(api, change.change)
        check_branch(change.change, info.branch, self.branch)

        revision = change.fetch(assemble_labels(info), tags=self.describe_version)
        logger.info(
            f"Resolved change {change.change} patch set {change.patch_set} to {revision.sha}"
        )
        return self._decorate(revision)

    def _decorate(self, revision: Revision) -> Revision:
        if self.describe_version:
            return self.repository.add_describe_version(revision)
        return revision

    def new_reader(self) -> OriginReader:
        return OriginReader(
            baseline_finder=ReviewBaselineFinder(
                self.repository, self.baseline_label, self.first_parent
            ),
            endpoint_factory=GerritEndpointFactory(self.url, self.api_factory, self.checker),
            include_branch_commit_logs=self.include_branch_commit_logs,
            patch_transformation=self.patch_transformation,
        )

    def __repr__(self) -> str:
        return f"GerritOrigin(url={self.url!r}, branch={self.branch!r})"


def new_gerrit_origin(
    url: str,
    settings: Settings | None = None,
    repository: Repository | None = None,
    api_factory: ChangeApiFactory | None = None,
    branch: str | None = None,
    describe_version: bool | None = None,
    checker: Checker | None = None,
    patch_transformation: Any | None = None,
) -> GerritOrigin:
    """Build a GerritOrigin, filling unset arguments from settings.

    Gerrit origins never include branch commit logs.
    """
    if settings is None:
        from review_origin.config import settings as default_settings

        settings = default_settings

    if api_factory is None:

        def api_factory(repo_url: str) -> GerritClient:
            return GerritClient(
                repo_url,
                username=settings.gerrit_username,
                http_password=settings.gerrit_http_password,
                timeout=settings.gerrit_timeout,
            )

    return GerritOrigin(
        url=url,
        repository=repository or GitRepository(settings.repo_cache_dir),
        api_factory=api_factory,
        branch=branch if branch is not None else settings.origin_branch,
        describe_version=(
            describe_version if describe_version is not None else settings.describe_version
        ),
        first_parent=settings.first_parent,
        checker=checker,
        patch_transformation=patch_transformation,
        baseline_label=settings.baseline_label,
        include_branch_commit_logs=False,
    )
