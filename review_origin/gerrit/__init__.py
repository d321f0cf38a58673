"""Gerrit change-tracking integration: REST client and feedback endpoint."""

from review_origin.gerrit.client import (
    AccountInfo,
    ChangeApi,
    ChangeInfo,
    GerritClient,
    GetChangeInput,
    IncludeResult,
)
from review_origin.gerrit.endpoint import GerritEndpoint, GerritEndpointFactory

__all__ = [
    "AccountInfo",
    "ChangeApi",
    "ChangeInfo",
    "GerritClient",
    "GerritEndpoint",
    "GerritEndpointFactory",
    "GetChangeInput",
    "IncludeResult",
]
