"""Recognize Gerrit change references and fetch their patch sets.

A reference names a Gerrit change when it is one of:

    https://review.example.com/c/project/+/12345/3   (change URL, optional patch set)
    refs/changes/45/12345/3                           (change ref)
    12345                                             (change number, latest patch set)

Everything else is a plain git ref and is handled by the repository directly.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from urllib.parse import urlsplit

from review_origin.errors import CannotResolveRevisionError
from review_origin.gerrit.client import gerrit_host_url
from review_origin.git.repository import Repository
from review_origin.labels import GERRIT_CHANGE_NUMBER, GERRIT_CHANGE_URL, GERRIT_PATCH_SET
from review_origin.revision import Labels, Revision

logger = logging.getLogger(__name__)

WHOLE_GERRIT_REF = re.compile(r"^refs/changes/[0-9]{2}/([0-9]+)/([0-9]+)$")
URL_PATTERN = re.compile(r"^https?://.*?/([0-9]+)(?:/([0-9]+))?/?$")
CHANGE_NUMBER_PATTERN = re.compile(r"^([0-9]+)$")


@dataclass(frozen=True)
class ChangeReference:
    """A reference that names a Gerrit change."""

    change: int
    patch_set: int | None  # None: use the latest patch set


@dataclass(frozen=True)
class NotAChange:
    """A reference that is not a Gerrit change (branch, tag, sha...)."""

    reference: str


def classify_reference(reference: str) -> ChangeReference | NotAChange:
    """Classify a user supplied reference. First matching form wins."""
    if reference.startswith(("https://", "http://")):
        match = URL_PATTERN.match(reference)
        if match:
            return ChangeReference(
                change=int(match.group(1)),
                patch_set=int(match.group(2)) if match.group(2) else None,
            )

    if reference.startswith("refs/changes"):
        match = WHOLE_GERRIT_REF.match(reference)
        if match:
            return ChangeReference(change=int(match.group(1)), patch_set=int(match.group(2)))

    if CHANGE_NUMBER_PATTERN.match(reference):
        return ChangeReference(change=int(reference), patch_set=None)

    return NotAChange(reference=reference)


def change_ref(change: int, patch_set: int | str) -> str:
    """Gerrit ref for a patch set, sharded by the last two digits of the change."""
    return f"refs/changes/{change % 100:02d}/{change}/{patch_set}"


@dataclass(frozen=True)
class GerritChange:
    """A specific patch set of a change on a Gerrit host."""

    repository: Repository
    repo_url: str
    change: int
    patch_set: int

    @property
    def ref(self) -> str:
        return change_ref(self.change, self.patch_set)

    @property
    def url(self) -> str:
        """Web URL of the change."""
        host = gerrit_host_url(self.repo_url)
        project = urlsplit(self.repo_url).path.strip("/").removesuffix(".git")
        if project:
            return f"{host}/c/{project}/+/{self.change}"
        return f"{host}/{self.change}"

    def fetch(self, labels: Labels, tags: bool = False) -> Revision:
        """Fetch the patch set and return it as a Revision.

        The given labels come first, followed by the change number, patch
        set and change URL. Tags are fetched too when tags is set, for
        describe versions.
        """
        sha = self.repository.fetch(self.repo_url, self.ref, tags=tags)
        return Revision(
            sha=sha,
            reference=self.ref,
            url=self.repo_url,
            review_reference=self.ref,
            labels=labels.extend(
                [
                    (GERRIT_CHANGE_NUMBER, str(self.change)),
                    (GERRIT_PATCH_SET, str(self.patch_set)),
                    (GERRIT_CHANGE_URL, self.url),
                ]
            ),
        )


def latest_patch_set(repository: Repository, repo_url: str, change: int) -> int:
    """Find the highest patch set of a change on the remote.

    Raises:
        CannotResolveRevisionError: If the remote has no patch sets for the change.
    """
    refs = repository.ls_remote(repo_url, change_ref(change, "*"))
    patch_sets = []
    for ref in refs:
        match = WHOLE_GERRIT_REF.match(ref)
        if match and int(match.group(1)) == change:
            patch_sets.append(int(match.group(2)))

    if not patch_sets:
        raise CannotResolveRevisionError(f"Cannot find change {change} in {repo_url}")
    return max(patch_sets)


def resolve_change(
    repository: Repository, repo_url: str, reference: str
) -> GerritChange | NotAChange:
    """Classify reference and, for changes, pin down the patch set."""
    classified = classify_reference(reference)
    if isinstance(classified, NotAChange):
        return classified

    patch_set = classified.patch_set
    if patch_set is None:
        patch_set = latest_patch_set(repository, repo_url, classified.change)
        logger.info(f"Using latest patch set {patch_set} of change {classified.change}")

    return GerritChange(
        repository=repository,
        repo_url=repo_url,
        change=classified.change,
        patch_set=patch_set,
    )
