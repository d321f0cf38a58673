"""Shared fakes for origin tests."""

from __future__ import annotations

from collections.abc import Iterator
from fnmatch import fnmatchcase
from typing import Any

import pytest

from review_origin.errors import CannotResolveRevisionError
from review_origin.gerrit.client import ChangeInfo, GetChangeInput
from review_origin.revision import Labels, Revision

REPO_URL = "https://review.example.com/platform/build"


class FakeRepository:
    """In-memory Repository.

    remote_refs maps remote ref names to shas; history maps a sha to its
    ancestry (the commit itself first).
    """

    def __init__(
        self,
        remote_refs: dict[str, str] | None = None,
        history: dict[str, list[Revision]] | None = None,
    ) -> None:
        self.remote_refs = remote_refs or {}
        self.history = history or {}
        self.calls: list[tuple[str, ...]] = []
        self.fetch_tags: list[bool] = []

    def ls_remote(self, url: str, pattern: str) -> dict[str, str]:
        self.calls.append(("ls_remote", url, pattern))
        return {r: s for r, s in self.remote_refs.items() if fnmatchcase(r, pattern)}

    def fetch(self, url: str, refspec: str, tags: bool = False) -> str:
        self.calls.append(("fetch", url, refspec))
        self.fetch_tags.append(tags)
        if refspec not in self.remote_refs:
            raise CannotResolveRevisionError(f"Cannot find reference {refspec!r} in {url}")
        return self.remote_refs[refspec]

    def resolve_ref(self, url: str, reference: str, describe_version: bool) -> Revision:
        self.calls.append(("resolve_ref", url, reference))
        sha = self.fetch(url, reference, tags=describe_version)
        return Revision(sha=sha, reference=reference, url=url)

    def add_describe_version(self, revision: Revision) -> Revision:
        self.calls.append(("add_describe_version", revision.sha))
        return revision.with_describe_version(f"v1.0-3-g{revision.short_sha()}")

    def iter_ancestors(self, revision: Revision, first_parent: bool) -> Iterator[Revision]:
        self.calls.append(("iter_ancestors", revision.sha))
        if revision.sha not in self.history:
            raise CannotResolveRevisionError(f"Cannot walk history from {revision.sha}")
        yield from self.history[revision.sha]


class FakeChangeApi:
    """ChangeApi returning canned ChangeInfo payloads."""

    def __init__(self, changes: dict[str, dict[str, Any]] | None = None) -> None:
        self.changes = changes or {}
        self.get_calls: list[tuple[str, GetChangeInput]] = []
        self.reviews: list[tuple[str, str, dict[str, Any]]] = []

    def get_change(self, change_id: str, include: GetChangeInput) -> ChangeInfo:
        self.get_calls.append((change_id, include))
        return ChangeInfo.from_api_response(self.changes[change_id])

    def set_review(
        self, change_id: str, revision_id: str, review: dict[str, Any]
    ) -> dict[str, Any]:
        self.reviews.append((change_id, revision_id, review))
        return {"labels": review.get("labels", {})}


def make_change_data(
    number: int = 12345,
    branch: str = "main",
    topic: str | None = None,
    owner_email: str | None = "owner@example.com",
    reviewers: dict[str, list[dict[str, Any]]] | None = None,
) -> dict[str, Any]:
    """Minimal Gerrit ChangeInfo JSON."""
    data: dict[str, Any] = {
        "id": f"platform%2Fbuild~{branch}~I8473b95934b5732ac55d26311a706c9c2bde9940",
        "project": "platform/build",
        "branch": branch,
        "change_id": "I8473b95934b5732ac55d26311a706c9c2bde9940",
        "_number": number,
        "subject": "Fix the frobnicator",
        "status": "NEW",
        "owner": {"_account_id": 1000096, "name": "Owner"},
        "reviewers": reviewers or {},
    }
    if owner_email is not None:
        data["owner"]["email"] = owner_email
    if topic is not None:
        data["topic"] = topic
    return data


def make_history(prefix: str, count: int, labelled: set[int] | None = None) -> list[Revision]:
    """Linear ancestry of count revisions, newest first.

    Revisions whose index is in labelled carry a GitOrigin-RevId label.
    """
    labelled = labelled or set()
    history = []
    for i in range(count):
        labels = Labels([("GitOrigin-RevId", f"origin{i}")]) if i in labelled else Labels()
        history.append(Revision(sha=f"{prefix}{i:038d}", labels=labels))
    return history


@pytest.fixture
def repository() -> FakeRepository:
    return FakeRepository(
        remote_refs={
            "refs/changes/45/12345/1": "a" * 40,
            "refs/changes/45/12345/2": "b" * 40,
            "refs/changes/45/12345/meta": "f" * 40,
            "refs/heads/main": "c" * 40,
            "main": "c" * 40,
        }
    )


@pytest.fixture
def change_api() -> FakeChangeApi:
    return FakeChangeApi({"12345": make_change_data()})
