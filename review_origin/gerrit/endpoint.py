"""Feedback endpoint for posting comments and votes back to Gerrit."""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

from review_origin.checks import Checker, validate_endpoint_checker
from review_origin.gerrit.client import ChangeApi, ChangeInfo, GetChangeInput, IncludeResult

logger = logging.getLogger(__name__)

ChangeApiFactory = Callable[[str], ChangeApi]


def review_fields(review: dict[str, Any]) -> dict[str, str]:
    """Flatten a ReviewInput into named string fields for a checker.

    Nested values are named by path, e.g. "labels.Verified" or
    "comments.src/main.py[0].message". Every dict also contributes its keys
    (label names, file paths) joined under its own name.
    """
    fields: dict[str, str] = {}

    def add(name: str, value: Any) -> None:
        if value is None:
            return
        if isinstance(value, dict):
            if value:
                fields[name] = " ".join(str(key) for key in value)
            for key, item in value.items():
                add(f"{name}.{key}", item)
        elif isinstance(value, (list, tuple)):
            for i, item in enumerate(value):
                add(f"{name}[{i}]", item)
        else:
            fields[name] = str(value)

    for key, value in review.items():
        add(key, value)
    return fields


class CheckedChangeApi:
    """ChangeApi wrapper that runs a checker over outgoing reviews."""

    def __init__(self, delegate: ChangeApi, checker: Checker) -> None:
        self.delegate = delegate
        self.checker = checker

    def get_change(self, change_id: str, include: GetChangeInput) -> ChangeInfo:
        return self.delegate.get_change(change_id, include)

    def set_review(
        self, change_id: str, revision_id: str, review: dict[str, Any]
    ) -> dict[str, Any]:
        self.checker.check(
            {"change_id": change_id, "revision_id": revision_id, **review_fields(review)}
        )
        return self.delegate.set_review(change_id, revision_id, review)


class GerritEndpoint:
    """Posts feedback (comments, label votes) on Gerrit changes.

    The API is created lazily through api_supplier so that building an
    endpoint never touches the network.
    """

    def __init__(
        self,
        api_supplier: Callable[[], ChangeApi],
        url: str,
        console: logging.Logger,
    ) -> None:
        self.api_supplier = api_supplier
        self.url = url
        self.console = console
        self._api: ChangeApi | None = None

    @property
    def api(self) -> ChangeApi:
        if self._api is None:
            self._api = self.api_supplier()
        return self._api

    def get_change(self, change_id: str) -> ChangeInfo:
        return self.api.get_change(
            change_id,
            GetChangeInput(
                frozenset({IncludeResult.DETAILED_LABELS, IncludeResult.CURRENT_REVISION})
            ),
        )

    def post_comment(self, change_id: str, revision_id: str, message: str) -> dict[str, Any]:
        self.console.info(f"Posting comment on change {change_id} ({self.url})")
        return self.api.set_review(change_id, revision_id, {"message": message})

    def set_labels(
        self, change_id: str, revision_id: str, labels: dict[str, int]
    ) -> dict[str, Any]:
        votes = ", ".join(f"{k}{v:+d}" for k, v in labels.items())
        self.console.info(f"Voting {votes} on change {change_id} ({self.url})")
        return self.api.set_review(change_id, revision_id, {"labels": labels})

    def __repr__(self) -> str:
        return f"GerritEndpoint(url={self.url!r})"


class GerritEndpointFactory:
    """Builds GerritEndpoints for one repository URL."""

    def __init__(
        self,
        url: str,
        api_factory: ChangeApiFactory,
        checker: Checker | None = None,
    ) -> None:
        self.url = url
        self.api_factory = api_factory
        self.checker = checker

    def _api_supplier(self) -> ChangeApi:
        api = self.api_factory(self.url)
        if self.checker is not None:
            return CheckedChangeApi(api, self.checker)
        return api

    def create(self, console: logging.Logger) -> GerritEndpoint:
        """Build the endpoint.

        Raises:
            ValidationError: If the checker rejects the repository URL.
        """
        validate_endpoint_checker(self.checker, self.url)
        return GerritEndpoint(self._api_supplier, self.url, console)
