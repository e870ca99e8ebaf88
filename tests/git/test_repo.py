"""Tests for the git command wrapper."""

from __future__ import annotations

import subprocess
from pathlib import Path

import pytest

from kinteg.git.repo import GitCommandError, GitRepo
from kinteg.models import TopicEntry, TrackedRemote
from tests._fixtures.fake_git import FakeCommit, FakeGit


def test_remotes_reports_url_and_single_tracked_branch(repo: GitRepo, fake_git: FakeGit) -> None:
    fake_git.remotes = {
        "origin": ("https://git.kernel.org/linux.git", None),
        "bob": ("https://example.org/bob.git", "branch-b"),
    }

    remotes = repo.remotes()

    assert remotes == [
        TrackedRemote("origin", "https://git.kernel.org/linux.git", None),
        TrackedRemote("bob", "https://example.org/bob.git", "branch-b"),
    ]
    assert remotes[1].matches(TopicEntry("bob", "https://example.org/bob.git", "branch-b"))
    assert not remotes[1].matches(TopicEntry("bob", "https://example.org/bob.git", "other"))


def test_remotes_empty_when_git_config_finds_nothing(repo: GitRepo) -> None:
    assert repo.remotes() == []


def test_remotes_handles_multiple_refspecs(tmp_path: Path) -> None:
    def runner(args, cwd, env=None, capture_output=False):  # type: ignore[no-untyped-def]
        return (
            "remote.alice.url https://example.org/alice.git\n"
            "remote.alice.fetch +refs/heads/a:refs/remotes/alice/a\n"
            "remote.alice.fetch +refs/heads/b:refs/remotes/alice/b\n"
        )

    remotes = GitRepo(tmp_path, runner=runner).remotes()

    assert remotes == [TrackedRemote("alice", "https://example.org/alice.git", None)]


def test_add_remote_tracks_only_the_topic_branch(repo: GitRepo, fake_git: FakeGit) -> None:
    repo.add_remote(TopicEntry("alice", "https://example.org/alice.git", "branch-a"))

    assert fake_git.calls[-1] == [
        "git",
        "remote",
        "add",
        "-f",
        "-t",
        "branch-a",
        "alice",
        "https://example.org/alice.git",
    ]
    assert fake_git.remotes["alice"] == ("https://example.org/alice.git", "branch-a")


def test_failed_command_raises_git_command_error(tmp_path: Path) -> None:
    def runner(args, cwd, env=None, capture_output=False):  # type: ignore[no-untyped-def]
        raise subprocess.CalledProcessError(128, list(args), output="fatal: not a git repository")

    repo = GitRepo(tmp_path, runner=runner)

    with pytest.raises(GitCommandError) as excinfo:
        repo.describe("integ")

    assert excinfo.value.returncode == 128
    assert "not a git repository" in str(excinfo.value)
    assert excinfo.value.args_list == ["git", "describe", "integ"]


def test_latest_tag_skips_run_markers(repo: GitRepo, fake_git: FakeGit) -> None:
    fake_git.tags = ["report-v6.2-4-g1234", "test-v6.2-4-g1234", "v6.2", "v6.1"]

    assert repo.latest_tag() == "v6.2"
    assert fake_git.calls[-1][:3] == ["git", "for-each-ref", "--sort=-creatordate"]


def test_latest_tag_none_without_release_tags(repo: GitRepo, fake_git: FakeGit) -> None:
    fake_git.tags = ["blame-v6.2-1-gabc"]

    assert repo.latest_tag() is None


def test_merge_distinguishes_conflict_from_failure(repo: GitRepo, fake_git: FakeGit) -> None:
    fake_git.branches = {"integ": "a" * 40}
    fake_git.current = "integ"
    fake_git.conflicts = {"bob/branch-b"}
    fake_git.broken_refs = {"ghost/branch"}

    assert repo.merge("alice/branch-a") is True
    assert repo.merge("bob/branch-b") is False
    assert repo.merge_in_progress() is True

    fake_git.merge_in_progress = False
    with pytest.raises(GitCommandError):
        repo.merge("ghost/branch")


def test_push_force_flag(repo: GitRepo, fake_git: FakeGit) -> None:
    repo.push("origin", "integ", "integ", force=True)

    assert fake_git.pushes == [["git", "push", "--force", "origin", "integ:integ"]]


def test_tag_exists_matches_exact_name(repo: GitRepo, fake_git: FakeGit) -> None:
    fake_git.tags = ["report-v6.1"]

    assert repo.tag_exists("report-v6.1") is True
    assert repo.tag_exists("blame-v6.1") is False


def test_blame_line_returns_commit(repo: GitRepo, fake_git: FakeGit) -> None:
    fake_git.blame = {("drivers/foo.c", 42): "c" * 40}

    assert repo.blame_line("v6.1-3-gabc", "drivers/foo.c", 42) == "c" * 40
    assert fake_git.calls[-1] == [
        "git",
        "blame",
        "--porcelain",
        "-L",
        "42,42",
        "v6.1-3-gabc",
        "--",
        "drivers/foo.c",
    ]


def test_commit_info_and_containing_branches(repo: GitRepo, fake_git: FakeGit) -> None:
    sha = "d" * 40
    fake_git.commits = {sha: FakeCommit(sha=sha, subject="foo: break the build")}
    fake_git.containing = {sha: ["alice/branch-a", "origin/HEAD -> origin/master"]}

    info = repo.commit_info(sha)

    assert info.sha == sha
    assert info.subject == "foo: break the build"
    assert info.author == "Dev Eloper <dev@example.com>"
    assert repo.remote_branches_containing(sha) == ["alice/branch-a"]
