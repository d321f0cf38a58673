"""CLI for resolving Gerrit changes and finding their baselines."""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from review_origin.config import Settings
from review_origin.errors import EmptyChangeError, RepoError, ValidationError
from review_origin.git.repository import GitRepository
from review_origin.origin import GerritOrigin, new_gerrit_origin
from review_origin.revision import Revision

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(levelname)-5.5s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)

EXIT_SUCCESS = 0
EXIT_VALIDATION_ERROR = 2
EXIT_REPOSITORY_ERROR = 3
EXIT_NO_OP = 4


def print_revision(revision: Revision) -> None:
    """Print a resolved revision and its labels."""
    print(f"\nRevision: {revision.sha}")
    if revision.review_reference:
        print(f"  Review ref: {revision.review_reference}")
    if revision.describe_version:
        print(f"  Describe version: {revision.describe_version}")
    if len(revision.labels):
        print("  Labels:")
        for key, value in revision.labels:
            print(f"    {key}: {value}")


def build_origin(args: argparse.Namespace, settings: Settings) -> GerritOrigin:
    repo_dir = args.repo_dir or settings.repo_cache_dir
    return new_gerrit_origin(
        args.url,
        settings=settings,
        repository=GitRepository(repo_dir),
        branch=args.branch,
        describe_version=True if args.describe_version else None,
    )


def resolve_command(origin: GerritOrigin, reference: str) -> int:
    revision = origin.resolve(reference)
    print_revision(revision)
    return EXIT_SUCCESS


def baselines_command(origin: GerritOrigin, reference: str, limit: int) -> int:
    revision = origin.resolve(reference)
    print_revision(revision)

    baselines = origin.new_reader().find_baselines_without_label(revision, limit)
    print(f"\nBaselines without {origin.baseline_label} ({len(baselines)}):")
    for baseline in baselines:
        print(f"  {baseline.sha}")
    return EXIT_SUCCESS


def main(argv: list[str] | None = None) -> int:
    """Main entry point for CLI."""
    parser = argparse.ArgumentParser(description="Resolve Gerrit changes for migration")
    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("url", help="Gerrit repository URL")
    common.add_argument(
        "reference",
        help="Change number, change URL, refs/changes/.. ref or plain git ref",
    )
    common.add_argument(
        "--branch",
        help="Only accept changes targeting this branch",
    )
    common.add_argument(
        "--describe-version",
        action="store_true",
        help="Decorate the revision with `git describe` output",
    )
    common.add_argument(
        "--repo-dir",
        type=Path,
        help="Local bare repository (default: REPO_CACHE_DIR setting)",
    )

    # Resolve command
    subparsers.add_parser(
        "resolve", parents=[common], help="Resolve a reference to a revision"
    )

    # Baselines command
    baselines_parser = subparsers.add_parser(
        "baselines",
        parents=[common],
        help="Resolve a reference and list baselines in its ancestry",
    )
    baselines_parser.add_argument(
        "--limit",
        type=int,
        default=1,
        help="Maximum number of baselines (default: 1)",
    )
    baselines_parser.add_argument(
        "--label",
        help="Migration marker label (default: BASELINE_LABEL setting)",
    )
    baselines_parser.add_argument(
        "--no-first-parent",
        action="store_true",
        help="Walk all parents instead of first parents only",
    )

    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 1

    settings = Settings()
    if args.command == "baselines":
        overrides: dict[str, object] = {}
        if args.label:
            overrides["baseline_label"] = args.label
        if args.no_first_parent:
            overrides["first_parent"] = False
        settings = settings.model_copy(update=overrides)

    origin = build_origin(args, settings)

    try:
        if args.command == "resolve":
            return resolve_command(origin, args.reference)
        return baselines_command(origin, args.reference, args.limit)
    except EmptyChangeError as e:
        logger.info(str(e))
        print(f"No changes to migrate: {e}", file=sys.stderr)
        return EXIT_NO_OP
    except ValidationError as e:
        logger.error(f"Invalid input: {e}")
        return EXIT_VALIDATION_ERROR
    except RepoError as e:
        logger.error(f"Repository error: {e}")
        return EXIT_REPOSITORY_ERROR


if __name__ == "__main__":
    sys.exit(main())
