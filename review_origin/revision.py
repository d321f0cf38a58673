"""Resolved revisions and their provenance labels.

A Revision is an immutable pointer into git history. It carries an ordered,
multi-valued label collection (e.g. GERRIT_REVIEWER_EMAIL may appear once per
reviewer) and an optional describe version such as ``v1.2-3-gabc1234``.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field, replace

# "Key: value" or "Key=value" lines in the trailing paragraph of a commit message
LABEL_LINE_PATTERN = re.compile(r"^([\w-]+)(?:: |=)(.*)$")


class Labels:
    """Ordered multimap of label key -> value.

    Entries keep insertion order and duplicate keys are preserved as
    separate entries. Instances are immutable; use LabelsBuilder or
    extend() to derive new collections.
    """

    __slots__ = ("_entries",)

    def __init__(self, entries: Iterable[tuple[str, str]] = ()):
        self._entries: tuple[tuple[str, str], ...] = tuple(entries)

    def get(self, key: str) -> str | None:
        """Return the first value stored under key, or None."""
        for k, v in self._entries:
            if k == key:
                return v
        return None

    def get_all(self, key: str) -> list[str]:
        return [v for k, v in self._entries if k == key]

    def keys(self) -> list[str]:
        """Distinct keys in first-seen order."""
        return list(dict.fromkeys(k for k, _ in self._entries))

    def extend(self, entries: Iterable[tuple[str, str]]) -> Labels:
        return Labels((*self._entries, *entries))

    def to_dict(self) -> dict[str, list[str]]:
        result: dict[str, list[str]] = {}
        for k, v in self._entries:
            result.setdefault(k, []).append(v)
        return result

    def __contains__(self, key: object) -> bool:
        return any(k == key for k, _ in self._entries)

    def __iter__(self) -> Iterator[tuple[str, str]]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Labels):
            return NotImplemented
        return self._entries == other._entries

    def __hash__(self) -> int:
        return hash(self._entries)

    def __repr__(self) -> str:
        return f"Labels({list(self._entries)!r})"


class LabelsBuilder:
    """Accumulates label entries in order."""

    def __init__(self) -> None:
        self._entries: list[tuple[str, str]] = []

    def put(self, key: str, value: str) -> LabelsBuilder:
        self._entries.append((key, value))
        return self

    def build(self) -> Labels:
        return Labels(self._entries)


@dataclass(frozen=True)
class Revision:
    """A resolved point in git history."""

    sha: str
    reference: str | None = None  # What the caller asked for
    url: str | None = None
    review_reference: str | None = None  # e.g. "refs/changes/45/12345/3"
    labels: Labels = field(default_factory=Labels)
    describe_version: str | None = None

    def with_describe_version(self, describe_version: str) -> Revision:
        return replace(self, describe_version=describe_version)

    def with_labels(self, entries: Iterable[tuple[str, str]]) -> Revision:
        return replace(self, labels=self.labels.extend(entries))

    def short_sha(self) -> str:
        return self.sha[:7]

    def __str__(self) -> str:
        if self.describe_version:
            return f"{self.sha} ({self.describe_version})"
        return self.sha


def parse_message_labels(message: str) -> Labels:
    """Extract trailer labels from the last paragraph of a commit message.

    E.g. a message ending in::

        Fix the frobnicator.

        GitOrigin-RevId: 1a2b3c
        Change-Id: I0123

    yields [("GitOrigin-RevId", "1a2b3c"), ("Change-Id", "I0123")].
    """
    paragraphs = [p for p in re.split(r"\n\s*\n", message.strip()) if p.strip()]
    if len(paragraphs) < 2:
        # A single paragraph is the subject, never a trailer block
        return Labels()

    builder = LabelsBuilder()
    for line in paragraphs[-1].splitlines():
        match = LABEL_LINE_PATTERN.match(line.strip())
        if match:
            builder.put(match.group(1), match.group(2).strip())
    return builder.build()
