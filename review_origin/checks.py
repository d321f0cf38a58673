"""Checkers that vet data sent to external endpoints."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from typing import Protocol

from review_origin.errors import ValidationError

logger = logging.getLogger(__name__)


class CheckerError(ValidationError):
    """A checker rejected an outgoing value."""


class Checker(Protocol):
    """Validates outgoing fields; raises CheckerError to reject them."""

    def check(self, fields: Mapping[str, str]) -> None: ...


class KeywordChecker:
    """Rejects any field containing one of a set of keywords (case-insensitive)."""

    def __init__(self, keywords: Iterable[str]) -> None:
        self.keywords = [k.lower() for k in keywords if k]

    def check(self, fields: Mapping[str, str]) -> None:
        for name, value in fields.items():
            lowered = value.lower()
            for keyword in self.keywords:
                if keyword in lowered:
                    raise CheckerError(f"Bad word {keyword!r} found in field {name!r}")


def validate_endpoint_checker(checker: Checker | None, url: str) -> None:
    """Make sure the checker accepts the endpoint URL itself."""
    if checker is None:
        return
    logger.debug(f"Validating endpoint {url} with {type(checker).__name__}")
    checker.check({"url": url})
