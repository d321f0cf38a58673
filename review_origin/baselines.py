"""Find baseline revisions in the ancestry of a change.

A baseline is an ancestor that was not itself produced by a migration, i.e.
its commit message lacks the migration marker label (GitOrigin-RevId by
default). Migrations diff against baselines to detect already-migrated
content.
"""

from __future__ import annotations

import logging
from enum import StrEnum

from review_origin.errors import ValidationError
from review_origin.git.repository import Repository
from review_origin.revision import Revision

logger = logging.getLogger(__name__)


class VisitResult(StrEnum):
    """Whether a history walk should go on after visiting a revision."""

    CONTINUE = "continue"
    TERMINATE = "terminate"


class BaselinesWithoutLabelVisitor:
    """Collects up to `limit` ancestors that don't carry `label`.

    With skip_first set, the first visited revision is discarded without
    looking at its labels; for Gerrit origins that is the review commit.
    """

    def __init__(self, label: str, limit: int, skip_first: bool) -> None:
        if limit < 0:
            raise ValidationError(f"Baseline limit must be >= 0, got {limit}")
        self.label = label
        self.limit = limit
        self.skip_first = skip_first
        self._result: list[Revision] = []
        self._visited_first = False

    @property
    def result(self) -> list[Revision]:
        return list(self._result)

    @property
    def done(self) -> bool:
        return len(self._result) >= self.limit

    def visit(self, revision: Revision) -> VisitResult:
        if self.done:
            return VisitResult.TERMINATE

        if self.skip_first and not self._visited_first:
            self._visited_first = True
            return VisitResult.CONTINUE
        self._visited_first = True

        if self.label not in revision.labels:
            self._result.append(revision)

        return VisitResult.TERMINATE if self.done else VisitResult.CONTINUE


def visit_changes(
    repository: Repository,
    start: Revision,
    visitor: BaselinesWithoutLabelVisitor,
    first_parent: bool = True,
) -> None:
    """Walk history from start (inclusive) until the visitor terminates.

    Running out of history is a normal stop. CannotResolveRevisionError from
    the repository propagates.
    """
    if visitor.done:
        return

    visited = 0
    for revision in repository.iter_ancestors(start, first_parent):
        visited += 1
        if visitor.visit(revision) is VisitResult.TERMINATE:
            break

    logger.debug(f"Visited {visited} revisions from {start.short_sha()}")


def find_baselines_without_label(
    repository: Repository,
    start: Revision,
    label: str,
    limit: int,
    skip_first: bool = True,
    first_parent: bool = True,
) -> list[Revision]:
    """Return up to limit ancestors of start lacking label, in traversal order."""
    visitor = BaselinesWithoutLabelVisitor(label, limit, skip_first)
    visit_changes(repository, start, visitor, first_parent=first_parent)
    baselines = visitor.result
    logger.info(
        f"Found {len(baselines)} baseline(s) without {label} from {start.short_sha()}"
    )
    return baselines
