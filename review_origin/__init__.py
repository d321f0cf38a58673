"""Resolve Gerrit changes and git refs into labelled revisions for migration."""

from review_origin.baselines import BaselinesWithoutLabelVisitor, find_baselines_without_label
from review_origin.errors import (
    CannotResolveRevisionError,
    EmptyChangeError,
    GerritApiError,
    RepoError,
    ValidationError,
)
from review_origin.origin import GerritOrigin, OriginReader, new_gerrit_origin
from review_origin.revision import Labels, Revision

__all__ = [
    "BaselinesWithoutLabelVisitor",
    "CannotResolveRevisionError",
    "EmptyChangeError",
    "GerritApiError",
    "GerritOrigin",
    "Labels",
    "OriginReader",
    "RepoError",
    "Revision",
    "ValidationError",
    "find_baselines_without_label",
    "new_gerrit_origin",
]
