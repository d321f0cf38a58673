"""Tests for review_origin.origin — change resolution and the origin reader."""

import logging

import pytest
from conftest import REPO_URL, FakeChangeApi, FakeRepository, make_change_data, make_history

from review_origin.checks import KeywordChecker
from review_origin.config import Settings
from review_origin.errors import (
    CannotResolveRevisionError,
    EmptyChangeError,
    GerritApiError,
    ValidationError,
)
from review_origin.gerrit.client import GerritClient
from review_origin.gerrit.endpoint import GerritEndpoint
from review_origin.labels import GERRIT_CHANGE_BRANCH, GERRIT_COMPLETE_CHANGE_ID
from review_origin.origin import GerritOrigin, check_branch, new_gerrit_origin


def _origin(
    repository: FakeRepository,
    change_api: FakeChangeApi,
    **kwargs,
) -> GerritOrigin:
    return GerritOrigin(
        url=REPO_URL,
        repository=repository,
        api_factory=lambda url: change_api,
        **kwargs,
    )


class TestCheckBranch:
    """Tests for check_branch."""

    def test_no_target_branch(self) -> None:
        """Test that nothing is filtered without a target branch."""
        check_branch(12345, "anything", None)

    def test_matching_branch(self) -> None:
        """Test that the tracked branch passes."""
        check_branch(12345, "main", "main")

    def test_mismatch(self) -> None:
        """Test that other branches produce an empty change."""
        with pytest.raises(EmptyChangeError) as exc_info:
            check_branch(12345, "release", "main")

        assert str(exc_info.value) == (
            "Skipping import of change 12345 for branch release. "
            "Only tracking changes for branch main"
        )

    def test_exact_match_only(self) -> None:
        """Test that comparison is exact."""
        with pytest.raises(EmptyChangeError):
            check_branch(12345, "refs/heads/main", "main")


class TestResolve:
    """Tests for GerritOrigin.resolve."""

    @pytest.mark.parametrize("reference", ["", None])
    def test_empty_reference(
        self, reference: str | None, repository: FakeRepository, change_api: FakeChangeApi
    ) -> None:
        """Test that empty references are a validation error."""
        origin = _origin(repository, change_api, branch="main", describe_version=True)

        with pytest.raises(ValidationError, match="Expecting a change number"):
            origin.resolve(reference)

        assert repository.calls == []

    def test_change_number(
        self, repository: FakeRepository, change_api: FakeChangeApi
    ) -> None:
        """Test resolving a change number to its latest patch set."""
        origin = _origin(repository, change_api)

        revision = origin.resolve("12345")

        assert revision.sha == "b" * 40
        assert revision.review_reference == "refs/changes/45/12345/2"
        assert revision.labels.get_all(GERRIT_CHANGE_BRANCH) == ["main"]
        assert len(revision.labels.get_all(GERRIT_COMPLETE_CHANGE_ID)) == 1
        assert revision.labels.keys() == [
            "GERRIT_CHANGE_BRANCH",
            "GERRIT_COMPLETE_CHANGE_ID",
            "GERRIT_OWNER_EMAIL",
            "GERRIT_CHANGE_NUMBER",
            "GERRIT_PATCH_SET",
            "GERRIT_CHANGE_URL",
        ]
        assert revision.describe_version is None
        assert [c for c, _ in change_api.get_calls] == ["12345"]

    def test_change_ref_with_patch_set(
        self, repository: FakeRepository, change_api: FakeChangeApi
    ) -> None:
        """Test resolving an explicit patch set."""
        origin = _origin(repository, change_api)

        revision = origin.resolve("refs/changes/45/12345/1")

        assert revision.sha == "a" * 40
        assert revision.labels.get("GERRIT_PATCH_SET") == "1"

    def test_branch_mismatch(self, repository: FakeRepository) -> None:
        """Test that a change for another branch is skipped."""
        change_api = FakeChangeApi({"12345": make_change_data(branch="release")})
        origin = _origin(repository, change_api, branch="main")

        with pytest.raises(EmptyChangeError, match="change 12345 for branch release"):
            origin.resolve("12345")

        assert not any(call[0] == "fetch" for call in repository.calls)

    def test_matching_branch(
        self, repository: FakeRepository, change_api: FakeChangeApi
    ) -> None:
        """Test that a change for the tracked branch resolves."""
        origin = _origin(repository, change_api, branch="main")

        assert origin.resolve("12345").sha == "b" * 40

    def test_describe_version_change_path(
        self, repository: FakeRepository, change_api: FakeChangeApi
    ) -> None:
        """Test describe version decoration of changes."""
        origin = _origin(repository, change_api, describe_version=True)

        revision = origin.resolve("12345")

        assert revision.describe_version == "v1.0-3-gbbbbbbb"
        assert GERRIT_CHANGE_BRANCH in revision.labels

    def test_describe_version_fetches_tags_for_changes(
        self, repository: FakeRepository, change_api: FakeChangeApi
    ) -> None:
        """Test that changes are fetched with tags when describing."""
        _origin(repository, change_api, describe_version=True).resolve("12345")
        _origin(repository, change_api).resolve("12345")

        assert repository.fetch_tags == [True, False]

    def test_plain_ref(self, repository: FakeRepository, change_api: FakeChangeApi) -> None:
        """Test that plain refs skip the Gerrit API."""
        origin = _origin(repository, change_api)

        revision = origin.resolve("main")

        assert revision.sha == "c" * 40
        assert revision.reference == "main"
        assert len(revision.labels) == 0
        assert change_api.get_calls == []

    def test_plain_ref_matches_direct_resolution(
        self, repository: FakeRepository, change_api: FakeChangeApi
    ) -> None:
        """Test that the plain-ref path equals resolving the ref directly."""
        origin = _origin(repository, change_api)

        assert origin.resolve("refs/heads/main") == repository.resolve_ref(
            REPO_URL, "refs/heads/main", False
        )

    def test_describe_version_plain_ref(
        self, repository: FakeRepository, change_api: FakeChangeApi
    ) -> None:
        """Test describe version decoration of plain refs."""
        origin = _origin(repository, change_api, describe_version=True)

        revision = origin.resolve("main")

        assert revision.describe_version == "v1.0-3-gccccccc"

    def test_unknown_ref(self, repository: FakeRepository, change_api: FakeChangeApi) -> None:
        """Test that unresolvable refs propagate the repository error."""
        origin = _origin(repository, change_api)

        with pytest.raises(CannotResolveRevisionError):
            origin.resolve("no-such-branch")

    def test_api_failure_propagates(self, repository: FakeRepository) -> None:
        """Test that Gerrit API failures are surfaced unchanged."""

        class FailingApi(FakeChangeApi):
            def get_change(self, change_id, include):
                raise GerritApiError("Gerrit is down", status_code=503)

        origin = _origin(repository, FailingApi())

        with pytest.raises(GerritApiError, match="Gerrit is down"):
            origin.resolve("12345")


class TestOriginReader:
    """Tests for the reader returned by GerritOrigin.new_reader."""

    def test_find_baselines_skips_review_commit(self, change_api: FakeChangeApi) -> None:
        """Test that the review commit is never a baseline."""
        history = make_history("bb", 5)
        repository = FakeRepository(history={history[0].sha: history})
        reader = _origin(repository, change_api).new_reader()

        baselines = reader.find_baselines_without_label(history[0], 2)

        assert baselines == [history[1], history[2]]

    def test_find_baselines_uses_configured_label(self, change_api: FakeChangeApi) -> None:
        """Test that the baseline label comes from the origin."""
        history = make_history("bb", 4, labelled={1})
        repository = FakeRepository(history={history[0].sha: history})
        reader = _origin(repository, change_api, baseline_label="Other-Label").new_reader()

        assert reader.find_baselines_without_label(history[0], 1) == [history[1]]

    def test_feedback_endpoint(
        self, repository: FakeRepository, change_api: FakeChangeApi
    ) -> None:
        """Test building the feedback endpoint."""
        reader = _origin(repository, change_api).new_reader()

        endpoint = reader.get_feedback_endpoint(logging.getLogger("test"))

        assert isinstance(endpoint, GerritEndpoint)
        assert endpoint.url == REPO_URL

    def test_feedback_endpoint_rejected_by_checker(
        self, repository: FakeRepository, change_api: FakeChangeApi
    ) -> None:
        """Test that the checker validates the repository URL."""
        origin = _origin(repository, change_api, checker=KeywordChecker(["example.com"]))

        with pytest.raises(ValidationError):
            origin.new_reader().get_feedback_endpoint(logging.getLogger("test"))

    def test_reader_carries_options(
        self, repository: FakeRepository, change_api: FakeChangeApi
    ) -> None:
        """Test that opaque options reach the reader."""
        transformation = object()
        reader = _origin(
            repository, change_api, patch_transformation=transformation
        ).new_reader()

        assert reader.patch_transformation is transformation
        assert reader.include_branch_commit_logs is False


class TestNewGerritOrigin:
    """Tests for new_gerrit_origin."""

    def test_defaults_from_settings(self, repository: FakeRepository) -> None:
        """Test that unset arguments come from settings."""
        settings = Settings(
            origin_branch="main",
            describe_version=True,
            first_parent=False,
            baseline_label="Migrated-From",
            gerrit_username="bot",
            gerrit_http_password="secret",
        )

        origin = new_gerrit_origin(REPO_URL, settings=settings, repository=repository)

        assert origin.branch == "main"
        assert origin.describe_version is True
        assert origin.first_parent is False
        assert origin.baseline_label == "Migrated-From"
        assert origin.include_branch_commit_logs is False

        api = origin.api_factory(REPO_URL)
        assert isinstance(api, GerritClient)
        assert api.auth == ("bot", "secret")

    def test_arguments_override_settings(self, repository: FakeRepository) -> None:
        """Test that explicit arguments win over settings."""
        settings = Settings(origin_branch="main", describe_version=True)

        origin = new_gerrit_origin(
            REPO_URL,
            settings=settings,
            repository=repository,
            branch="release",
            describe_version=False,
        )

        assert origin.branch == "release"
        assert origin.describe_version is False
