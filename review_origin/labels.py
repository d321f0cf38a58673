"""Provenance labels attached to revisions resolved from Gerrit changes.

Downstream tooling reads these labels by key and sometimes takes the first
match, so the build order below is part of the contract.
"""

from __future__ import annotations

from review_origin.gerrit.client import ChangeInfo
from review_origin.revision import Labels, LabelsBuilder

GERRIT_CHANGE_BRANCH = "GERRIT_CHANGE_BRANCH"
GERRIT_CHANGE_TOPIC = "GERRIT_CHANGE_TOPIC"
GERRIT_COMPLETE_CHANGE_ID = "GERRIT_COMPLETE_CHANGE_ID"
GERRIT_OWNER_EMAIL = "GERRIT_OWNER_EMAIL"

# Added when the change ref is fetched
GERRIT_CHANGE_NUMBER = "GERRIT_CHANGE_NUMBER"
GERRIT_PATCH_SET = "GERRIT_PATCH_SET"
GERRIT_CHANGE_URL = "GERRIT_CHANGE_URL"


def reviewer_email_label(role: str) -> str:
    """Label key for reviewer emails, e.g. "REVIEWER" -> "GERRIT_REVIEWER_EMAIL"."""
    return f"GERRIT_{role}_EMAIL"


def assemble_labels(change: ChangeInfo) -> Labels:
    """Build the label collection for a change.

    Order: branch, topic (if set), complete change id, reviewer emails (role
    map order, then list order; accounts without email are skipped), owner
    email (if set).
    """
    builder = LabelsBuilder()

    builder.put(GERRIT_CHANGE_BRANCH, change.branch)
    if change.topic is not None:
        builder.put(GERRIT_CHANGE_TOPIC, change.topic)
    builder.put(GERRIT_COMPLETE_CHANGE_ID, change.id)

    for role, accounts in change.reviewers.items():
        for account in accounts:
            if account.email is not None:
                builder.put(reviewer_email_label(role), account.email)

    if change.owner.email is not None:
        builder.put(GERRIT_OWNER_EMAIL, change.owner.email)

    return builder.build()
