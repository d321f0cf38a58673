"""Local git repository used to fetch and inspect origin revisions.

The Repository protocol is everything the origin needs from version control.
GitRepository implements it on top of the git CLI, against a bare cache
repository that is initialised on first use.
"""

from __future__ import annotations

import logging
import os
import re
import subprocess
import threading
from collections.abc import Iterator
from pathlib import Path
from typing import Protocol

from review_origin.errors import CannotResolveRevisionError, RepoError
from review_origin.revision import Revision, parse_message_labels

logger = logging.getLogger(__name__)

SHA1_PATTERN = re.compile(r"^[0-9a-f]{40}$")

# Fetched refs are stored under this namespace, one local ref per fetched refspec
FETCH_NAMESPACE = "refs/review-origin"

# Commits read per `git log` call while walking ancestry
LOG_BATCH_SIZE = 50

# Separators for `git log --format`: unit separator between sha and body,
# record separator between commits
_FIELD_SEP = "\x1f"
_RECORD_SEP = "\x1e"


def local_fetch_ref(refspec: str) -> str:
    """Local ref a fetched refspec is stored under.

    E.g. "refs/changes/45/12345/1" -> "refs/review-origin/changes/45/12345/1"
    and "main" -> "refs/review-origin/main".
    """
    return f"{FETCH_NAMESPACE}/{refspec.removeprefix('refs/')}"


class Repository(Protocol):
    """Version-control operations used by origins."""

    def resolve_ref(self, url: str, reference: str, describe_version: bool) -> Revision: ...

    def fetch(self, url: str, refspec: str, tags: bool = False) -> str: ...

    def ls_remote(self, url: str, pattern: str) -> dict[str, str]: ...

    def add_describe_version(self, revision: Revision) -> Revision: ...

    def iter_ancestors(self, revision: Revision, first_parent: bool) -> Iterator[Revision]: ...


class GitRepository:
    """Repository backed by the git CLI."""

    def __init__(self, path: Path | str, git_binary: str = "git") -> None:
        self.path = Path(path)
        self.git_binary = git_binary
        self._initialized = False
        self._fetch_lock = threading.Lock()

    # =========================================================================
    # Plumbing
    # =========================================================================

    def _run_git(self, args: list[str]) -> subprocess.CompletedProcess[str]:
        return subprocess.run(
            [self.git_binary, "--no-pager", *args],
            cwd=str(self.path),
            capture_output=True,
            text=True,
            encoding="utf-8",
            errors="replace",
            env={**os.environ, "GIT_PAGER": "cat", "GIT_TERMINAL_PROMPT": "0"},
        )

    def _git(self, args: list[str]) -> str:
        """Run git and return stripped stdout, raising RepoError on failure."""
        self.init()
        p = self._run_git(args)
        if p.returncode != 0:
            raise RepoError(f"git {args[0]} failed: {(p.stderr or p.stdout).strip()}")
        return p.stdout.strip()

    def init(self) -> None:
        """Create the bare cache repository if it doesn't exist yet."""
        if self._initialized:
            return
        self.path.mkdir(parents=True, exist_ok=True)
        if not (self.path / "HEAD").exists():
            logger.info(f"Initializing bare repository at {self.path}")
            p = self._run_git(["init", "--bare", "--quiet"])
            if p.returncode != 0:
                raise RepoError(f"git init failed: {p.stderr.strip()}")
        self._initialized = True

    # =========================================================================
    # Remote operations
    # =========================================================================

    def ls_remote(self, url: str, pattern: str) -> dict[str, str]:
        """List remote refs matching pattern as {ref: sha}."""
        out = self._git(["ls-remote", url, pattern])
        refs: dict[str, str] = {}
        for line in out.splitlines():
            sha, _, ref = line.partition("\t")
            if ref:
                refs[ref] = sha
        return refs

    def fetch(self, url: str, refspec: str, tags: bool = False) -> str:
        """Fetch refspec from url and return the fetched commit sha.

        The ref is stored as a local ref of its own (see local_fetch_ref) and
        read back from there. Fetch and read happen under a lock, so
        concurrent fetches never see each other's results.

        Raises:
            CannotResolveRevisionError: If the remote doesn't have the ref.
            RepoError: For any other fetch failure.
        """
        self.init()
        local_ref = local_fetch_ref(refspec)
        args = [
            "fetch",
            "--tags" if tags else "--no-tags",
            "--force",
            url,
            f"+{refspec}:{local_ref}",
        ]
        logger.info(f"Fetching {refspec} from {url}")
        with self._fetch_lock:
            p = self._run_git(args)
            if p.returncode != 0:
                stderr = p.stderr.strip()
                if "couldn't find remote ref" in stderr or "not our ref" in stderr:
                    raise CannotResolveRevisionError(
                        f"Cannot find reference {refspec!r} in {url}: {stderr}"
                    )
                raise RepoError(f"git fetch {url} {refspec} failed: {stderr}")
            return self._git(["rev-parse", f"{local_ref}^{{commit}}"])

    def resolve_ref(self, url: str, reference: str, describe_version: bool) -> Revision:
        """Resolve a plain ref (branch, tag, sha) against url.

        Tags are fetched along with the ref when a describe version is
        requested, so that `git describe` has something to work with.
        """
        self.init()
        if SHA1_PATTERN.match(reference):
            p = self._run_git(["rev-parse", "--verify", "--quiet", f"{reference}^{{commit}}"])
            if p.returncode == 0:
                return Revision(sha=p.stdout.strip(), reference=reference, url=url)

        sha = self.fetch(url, reference, tags=describe_version)
        return Revision(sha=sha, reference=reference, url=url)

    # =========================================================================
    # Local inspection
    # =========================================================================

    def add_describe_version(self, revision: Revision) -> Revision:
        """Decorate a revision with `git describe --tags --always` output."""
        describe = self._git(["describe", "--tags", "--always", revision.sha])
        return revision.with_describe_version(describe)

    def iter_ancestors(self, revision: Revision, first_parent: bool) -> Iterator[Revision]:
        """Yield revision and its ancestors, newest first.

        Each yielded Revision carries the trailer labels of its commit message.
        Stops normally when history (or a shallow clone) ends.

        Raises:
            CannotResolveRevisionError: If the start commit or an object on the
                way is missing.
        """
        self.init()
        skip = 0
        while True:
            args = [
                "log",
                f"--format=%H{_FIELD_SEP}%B{_RECORD_SEP}",
                f"--skip={skip}",
                f"--max-count={LOG_BATCH_SIZE}",
            ]
            if first_parent:
                args.append("--first-parent")
            args.append(revision.sha)

            p = self._run_git(args)
            if p.returncode != 0:
                raise CannotResolveRevisionError(
                    f"Cannot walk history from {revision.sha}: {p.stderr.strip()}"
                )

            records = [r for r in p.stdout.split(_RECORD_SEP) if r.strip()]
            for record in records:
                sha, _, body = record.strip("\n").partition(_FIELD_SEP)
                yield Revision(
                    sha=sha.strip(),
                    url=revision.url,
                    labels=parse_message_labels(body),
                )

            if len(records) < LOG_BATCH_SIZE:
                return
            skip += LOG_BATCH_SIZE
