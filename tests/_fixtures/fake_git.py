"""In-memory stand-in for the git executable used by the kinteg tests."""

from __future__ import annotations

import subprocess
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Set, Tuple

CONFLICT_PATH = "drivers/foo.c"


@dataclass
class FakeCommit:
    sha: str
    author: str = "Dev Eloper <dev@example.com>"
    date: str = "2024-01-01"
    subject: str = "change"


@dataclass
class FakeGit:
    """Runner that records argv lists and simulates the git commands kinteg uses.

    State is plain attributes so tests can arrange a repository directly:
    remotes, branches, tags (newest first), merge conflicts, blame results.

    A conflicting ref leaves ``CONFLICT_PATH`` unmerged. Refs in
    ``recorded_resolutions`` have that conflict replayed by rerere: the file is
    rewritten and, only when the merge asks for ``--rerere-autoupdate``, staged.
    Without staging the path stays unmerged although ``rerere remaining`` is
    empty, which is what git does with ``rerere.autoupdate`` unset.
    """

    remotes: Dict[str, Tuple[str, Optional[str]]] = field(default_factory=dict)
    fetch_output: Dict[str, str] = field(default_factory=dict)
    failing_fetches: Set[str] = field(default_factory=set)
    branches: Dict[str, str] = field(default_factory=dict)
    tags: List[str] = field(default_factory=list)
    conflicts: Set[str] = field(default_factory=set)
    recorded_resolutions: Set[str] = field(default_factory=set)
    unmerged: List[str] = field(default_factory=list)
    rerere_remaining: List[str] = field(default_factory=list)
    broken_refs: Set[str] = field(default_factory=set)
    mergetool_fails: bool = False
    leaves_unmerged: bool = False
    describe_output: str = "v6.1-3-gabcdef012345"
    blame: Dict[Tuple[str, int], str] = field(default_factory=dict)
    containing: Dict[str, List[str]] = field(default_factory=dict)
    commits: Dict[str, FakeCommit] = field(default_factory=dict)
    calls: List[List[str]] = field(default_factory=list)
    merged: List[str] = field(default_factory=list)
    pushes: List[List[str]] = field(default_factory=list)
    current: Optional[str] = None
    merge_in_progress: bool = False
    _sha_counter: int = 0

    def __call__(
        self,
        args: Sequence[str],
        *,
        cwd: Path,
        env: dict[str, str] | None = None,
        capture_output: bool = False,
    ) -> str:
        argv = list(args)
        self.calls.append(argv)
        assert argv[0] == "git", argv
        handler = getattr(self, f"_cmd_{argv[1].replace('-', '_')}", None)
        if handler is None:
            raise AssertionError(f"unexpected git command: {argv}")
        return handler(argv) or ""

    def commands(self, *prefix: str) -> List[List[str]]:
        """Return recorded calls starting with ``git <prefix...>``."""
        wanted = ["git", *prefix]
        return [call for call in self.calls if call[: len(wanted)] == wanted]

    # ------------------------------------------------------------------

    def _fail(self, argv: List[str], returncode: int = 1, output: str = "") -> None:
        raise subprocess.CalledProcessError(returncode, argv, output=output)

    def _next_sha(self) -> str:
        self._sha_counter += 1
        return f"{self._sha_counter:012x}".ljust(40, "0")

    def _cmd_config(self, argv: List[str]) -> str:
        assert argv[2] == "--get-regexp"
        if not self.remotes:
            self._fail(argv)
        lines = []
        for name, (url, branch) in self.remotes.items():
            lines.append(f"remote.{name}.url {url}")
            if branch is None:
                lines.append(f"remote.{name}.fetch +refs/heads/*:refs/remotes/{name}/*")
            else:
                lines.append(f"remote.{name}.fetch +refs/heads/{branch}:refs/remotes/{name}/{branch}")
        return "\n".join(lines) + "\n"

    def _cmd_remote(self, argv: List[str]) -> str:
        action = argv[2]
        if action == "add":
            branch, name, url = argv[5], argv[6], argv[7]
            if name in self.failing_fetches:
                self._fail(argv, output=f"fatal: unable to access '{url}'")
            self.remotes[name] = (url, branch)
            return f"Updating {name}\n * [new branch] {branch} -> {name}/{branch}\n"
        if action == "remove":
            del self.remotes[argv[3]]
            return ""
        if action == "update":
            name = argv[3]
            if name in self.failing_fetches:
                self._fail(argv, output=f"error: could not fetch {name}")
            return self.fetch_output.get(name, f"Fetching {name}\n")
        raise AssertionError(argv)

    def _cmd_show_ref(self, argv: List[str]) -> str:
        name = argv[-1][len("refs/heads/") :]
        if name not in self.branches:
            self._fail(argv)
        return ""

    def _cmd_rev_parse(self, argv: List[str]) -> str:
        if argv[-1] == "MERGE_HEAD":
            if not self.merge_in_progress:
                self._fail(argv)
            return "f" * 40 + "\n"
        return self.branches[argv[-1]][:12] + "\n"

    def _cmd_branch(self, argv: List[str]) -> str:
        if argv[2] == "-m":
            old, new = argv[3], argv[4]
            self.branches[new] = self.branches.pop(old)
            if self.current == old:
                self.current = new
            return ""
        if argv[2:4] == ["-r", "--contains"]:
            return "".join(f"  {name}\n" for name in self.containing.get(argv[4], []))
        raise AssertionError(argv)

    def _cmd_checkout(self, argv: List[str]) -> str:
        assert argv[2] == "-b"
        name, start = argv[3], argv[4]
        if name in self.branches:
            self._fail(argv, 128, f"fatal: a branch named '{name}' already exists")
        self.branches[name] = self._next_sha()
        self.current = name
        return ""

    def _cmd_merge(self, argv: List[str]) -> str:
        ref = argv[-1]
        if ref in self.broken_refs:
            self._fail(argv, output=f"merge: {ref} - not something we can merge")
        self.merged.append(ref)
        if ref in self.conflicts:
            self.merge_in_progress = True
            replayed = ref in self.recorded_resolutions
            staged = replayed and "--rerere-autoupdate" in argv
            self.unmerged = [] if staged else [CONFLICT_PATH]
            self.rerere_remaining = [] if replayed else [CONFLICT_PATH]
            self._fail(argv, output=f"CONFLICT (content): Merge conflict in {CONFLICT_PATH}")
        self.branches[self.current] = self._next_sha()
        return ""

    def _cmd_diff(self, argv: List[str]) -> str:
        assert "--diff-filter=U" in argv
        return "".join(f"{path}\n" for path in self.unmerged)

    def _cmd_mergetool(self, argv: List[str]) -> str:
        if self.mergetool_fails:
            self._fail(argv)
        # mergetool only visits paths rerere has not already resolved.
        if not self.leaves_unmerged:
            self.unmerged = [path for path in self.unmerged if path not in self.rerere_remaining]
            self.rerere_remaining = []
        return ""

    def _cmd_commit(self, argv: List[str]) -> str:
        if not self.merge_in_progress:
            self._fail(argv, output="nothing to commit")
        if self.unmerged:
            self._fail(argv, 128, "error: Committing is not possible because you have unmerged files.")
        self.merge_in_progress = False
        self.branches[self.current] = self._next_sha()
        return ""

    def _cmd_push(self, argv: List[str]) -> str:
        self.pushes.append(argv)
        return ""

    def _cmd_for_each_ref(self, argv: List[str]) -> str:
        return "".join(f"{tag}\n" for tag in self.tags)

    def _cmd_tag(self, argv: List[str]) -> str:
        if argv[2] == "--list":
            return f"{argv[3]}\n" if argv[3] in self.tags else ""
        name = argv[2]
        if name in self.tags:
            self._fail(argv, 128, f"fatal: tag '{name}' already exists")
        self.tags.insert(0, name)
        return ""

    def _cmd_describe(self, argv: List[str]) -> str:
        return f"{self.describe_output}\n"

    def _cmd_blame(self, argv: List[str]) -> str:
        line = int(argv[4].split(",", 1)[0])
        path = argv[-1]
        sha = self.blame.get((path, line))
        if sha is None:
            self._fail(argv, 128, f"fatal: no such path {path}")
        return f"{sha} {line} {line} 1\nauthor Dev Eloper\n\t{path}\n"

    def _cmd_log(self, argv: List[str]) -> str:
        sha = argv[-1]
        commit = self.commits.get(sha, FakeCommit(sha=sha))
        return "\x1f".join([commit.sha, commit.author, commit.date, commit.subject]) + "\n"


__all__ = ["CONFLICT_PATH", "FakeCommit", "FakeGit"]
