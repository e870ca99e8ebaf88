"""Thin wrapper over the git executable used by every kinteg pipeline."""

from __future__ import annotations

import subprocess
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional, Sequence

from ..errors import KintegError
from ..models import CommitInfo, MarkerKind, TopicEntry, TrackedRemote

_FIELD_SEP = "\x1f"
_MARKER_PREFIXES = tuple(f"{kind.value}-" for kind in MarkerKind)


class GitCommandError(KintegError):
    """Raised when a git invocation exits with a non-zero status."""

    def __init__(self, args: Sequence[str], returncode: int, output: str = "") -> None:
        command = " ".join(args)
        detail = output.strip()
        message = f"'{command}' failed with exit code {returncode}"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)
        self.args_list = list(args)
        self.returncode = returncode
        self.output = output


class GitRepo:
    """Version-control primitives for one working tree."""

    def __init__(self, path: Path | str, runner: Callable[..., str] | None = None) -> None:
        self.path = Path(path)
        self._runner = runner or self._default_runner

    # ------------------------------------------------------------------
    # Remotes

    def remotes(self) -> List[TrackedRemote]:
        """Return every configured remote with its URL and single tracked branch."""
        try:
            output = self._run(
                ["git", "config", "--get-regexp", r"^remote\..*\.(url|fetch)$"],
                capture_output=True,
            )
        except GitCommandError as exc:
            # git config exits 1 when nothing matches.
            if exc.returncode == 1:
                return []
            raise

        urls: Dict[str, str] = {}
        fetches: Dict[str, List[str]] = {}
        order: List[str] = []
        for line in output.splitlines():
            key, _, value = line.strip().partition(" ")
            if not key.startswith("remote."):
                continue
            name, _, attr = key[len("remote.") :].rpartition(".")
            if not name:
                continue
            if name not in order:
                order.append(name)
            if attr == "url":
                urls[name] = value.strip()
            elif attr == "fetch":
                fetches.setdefault(name, []).append(value.strip())

        return [
            TrackedRemote(
                name=name,
                url=urls.get(name, ""),
                branch=_tracked_branch(fetches.get(name, [])),
            )
            for name in order
        ]

    def add_remote(self, topic: TopicEntry) -> str:
        """Add a remote tracking only the topic branch and fetch it immediately."""
        return self._run(
            ["git", "remote", "add", "-f", "-t", topic.branch, topic.name, topic.url],
            capture_output=True,
        )

    def remove_remote(self, name: str) -> None:
        self._run(["git", "remote", "remove", name])

    def update_remote(self, name: str) -> str:
        """Fetch a remote and return the combined fetch output."""
        return self._run(["git", "remote", "update", name], capture_output=True)

    def remote_branches_containing(self, commit: str) -> List[str]:
        output = self._run(["git", "branch", "-r", "--contains", commit], capture_output=True)
        branches: List[str] = []
        for line in output.splitlines():
            name = line.strip()
            if not name or "->" in name:
                continue
            branches.append(name)
        return branches

    # ------------------------------------------------------------------
    # Branches, merges and pushes

    def branch_exists(self, name: str) -> bool:
        try:
            self._run(["git", "show-ref", "--verify", "--quiet", f"refs/heads/{name}"])
        except GitCommandError:
            return False
        return True

    def rename_branch(self, old: str, new: str) -> None:
        self._run(["git", "branch", "-m", old, new])

    def create_branch(self, name: str, start_point: str) -> None:
        """Create ``name`` at ``start_point`` and check it out."""
        self._run(["git", "checkout", "-b", name, start_point])

    def short_sha(self, rev: str) -> str:
        return self._run(["git", "rev-parse", "--short=12", rev], capture_output=True).strip()

    def merge(self, ref: str) -> bool:
        """Merge ``ref`` into the current branch.

        Returns ``True`` on a clean merge and ``False`` when the merge stopped on
        conflicts. Failures that leave no merge in progress are re-raised.
        Paths rerere resolves from a recorded resolution are staged by git.
        """
        try:
            self._run(
                ["git", "merge", "--no-edit", "--rerere-autoupdate", ref], capture_output=True
            )
        except GitCommandError:
            if self.merge_in_progress():
                return False
            raise
        return True

    def merge_in_progress(self) -> bool:
        try:
            self._run(["git", "rev-parse", "-q", "--verify", "MERGE_HEAD"], capture_output=True)
        except GitCommandError:
            return False
        return True

    def unmerged_paths(self) -> List[str]:
        output = self._run(
            ["git", "diff", "--name-only", "--diff-filter=U"], capture_output=True
        )
        return [line.strip() for line in output.splitlines() if line.strip()]

    def mergetool(self) -> None:
        """Run the interactive merge tool attached to the operator's terminal."""
        self._run(["git", "mergetool"])

    def commit_merge(self) -> None:
        self._run(["git", "commit", "--no-edit"])

    def push(self, remote: str, branch: str, remote_branch: str, *, force: bool = False) -> None:
        args = ["git", "push"]
        if force:
            args.append("--force")
        args.extend([remote, f"{branch}:{remote_branch}"])
        self._run(args)

    # ------------------------------------------------------------------
    # Tags and descriptions

    def latest_tag(self) -> Optional[str]:
        """Return the most recently created release tag, ignoring run markers."""
        output = self._run(
            [
                "git",
                "for-each-ref",
                "--sort=-creatordate",
                "--format=%(refname:short)",
                "refs/tags",
            ],
            capture_output=True,
        )
        for line in output.splitlines():
            name = line.strip()
            if name and not name.startswith(_MARKER_PREFIXES):
                return name
        return None

    def tag_exists(self, name: str) -> bool:
        output = self._run(["git", "tag", "--list", name], capture_output=True)
        return any(line.strip() == name for line in output.splitlines())

    def create_tag(self, name: str, target: str) -> None:
        self._run(["git", "tag", name, target])

    def describe(self, rev: str = "HEAD") -> str:
        """Describe ``rev`` relative to the nearest annotated release tag."""
        return self._run(["git", "describe", rev], capture_output=True).strip()

    # ------------------------------------------------------------------
    # History

    def blame_line(self, rev: str, path: str, line: int) -> str:
        """Return the commit that last touched ``path:line`` as of ``rev``."""
        output = self._run(
            ["git", "blame", "--porcelain", "-L", f"{line},{line}", rev, "--", path],
            capture_output=True,
        )
        first = output.split(maxsplit=1)
        if not first:
            raise GitCommandError(["git", "blame", path], 0, "empty blame output")
        return first[0]

    def commit_info(self, commit: str) -> CommitInfo:
        fmt = _FIELD_SEP.join(["%H", "%an <%ae>", "%ad", "%s"])
        output = self._run(
            ["git", "log", "-1", "--date=short", f"--format={fmt}", commit],
            capture_output=True,
        )
        parts = output.strip().split(_FIELD_SEP)
        parts.extend([""] * (4 - len(parts)))
        sha, author, date, subject = parts[:4]
        return CommitInfo(sha=sha or commit, author=author, date=date, subject=subject)

    # ------------------------------------------------------------------
    # Helpers

    def _run(self, args: Iterable[str], *, capture_output: bool = False) -> str:
        argv = list(args)
        try:
            return self._runner(argv, cwd=self.path, capture_output=capture_output)
        except subprocess.CalledProcessError as exc:
            output = exc.output if isinstance(exc.output, str) else ""
            raise GitCommandError(argv, exc.returncode, output) from exc

    @staticmethod
    def _default_runner(
        args: Iterable[str],
        *,
        cwd: Path,
        env: dict[str, str] | None = None,
        capture_output: bool = False,
    ) -> str:
        # git reports fetch and merge progress on stderr; keep it with stdout.
        completed = subprocess.run(
            list(args),
            cwd=str(cwd),
            env=env,
            check=True,
            text=True,
            stdout=subprocess.PIPE if capture_output else None,
            stderr=subprocess.STDOUT if capture_output else None,
        )
        return completed.stdout if capture_output else ""


def _tracked_branch(refspecs: Sequence[str]) -> Optional[str]:
    if len(refspecs) != 1:
        return None
    source = refspecs[0].lstrip("+").split(":", 1)[0]
    prefix = "refs/heads/"
    if not source.startswith(prefix) or "*" in source:
        return None
    return source[len(prefix) :]


__all__ = ["GitCommandError", "GitRepo"]
