"""Converge the repository's remotes with the declared topic list."""

from __future__ import annotations

from typing import List, Sequence, Set

from .git.repo import GitCommandError, GitRepo
from .logging import get_logger
from .models import ReconciliationResult, TopicEntry
from .prompt import Prompt


def fetch_reported_changes(output: str) -> bool:
    """Return True when fetch output has more than its one-line summary.

    ``git remote update`` always prints ``Fetching <name>``; any further line is
    a ref update or object transfer, meaning new commits arrived.
    """
    lines = [line for line in output.splitlines() if line.strip()]
    return len(lines) > 1


class RemoteSetReconciler:
    """Adds, removes and refreshes topic remotes; fetches the baseline remote.

    The baseline remote is never removed or re-pointed, only fetched.
    """

    def __init__(
        self,
        repo: GitRepo,
        topics: Sequence[TopicEntry],
        *,
        baseline_remote: str,
        prompt: Prompt,
    ) -> None:
        self._repo = repo
        self._topics = list(topics)
        self._baseline = baseline_remote
        self._prompt = prompt
        self._added: Set[str] = set()
        self.failures: List[str] = []
        self.logger = get_logger("reconcile")

    def reconcile(self) -> ReconciliationResult:
        self.failures = []
        self._added = set()
        removed = self.remove_untracked()
        added = self.add_missing()
        updated = self.update_existing()
        baseline_changed = self.update_baseline()
        result = ReconciliationResult(
            added=added,
            removed=removed,
            updated=updated,
            baseline_changed=baseline_changed,
            failures=tuple(self.failures),
        )
        self.logger.info(
            "Reconciled remotes: %d added, %d removed, %d updated, baseline %s",
            result.added,
            result.removed,
            result.updated,
            "changed" if result.baseline_changed else "unchanged",
        )
        return result

    def remove_untracked(self) -> int:
        """Remove remotes whose (name, url, branch) matches no topic entry."""
        removed = 0
        for remote in self._repo.remotes():
            if remote.name == self._baseline:
                continue
            if any(remote.matches(topic) for topic in self._topics):
                continue
            question = (
                f"Remote '{remote.name}' ({remote.url} {remote.branch or '*'}) "
                "is no longer tracked. Remove it?"
            )
            if not self._prompt.confirm(question, default=True):
                self.logger.info("Keeping untracked remote %s", remote.name)
                continue
            self._repo.remove_remote(remote.name)
            self.logger.info("Removed remote %s", remote.name)
            removed += 1
        return removed

    def add_missing(self) -> int:
        """Add and fetch every topic that has no remote of the same name."""
        present = {remote.name for remote in self._repo.remotes()}
        added = 0
        for topic in self._topics:
            if topic.name in present:
                continue
            if topic.name == self._baseline:
                self.logger.warning(
                    "Topic %s shares the baseline remote name; skipping", topic.name
                )
                continue
            self.logger.info("Adding remote %s (%s %s)", topic.name, topic.url, topic.branch)
            try:
                self._repo.add_remote(topic)
            except GitCommandError as exc:
                self._record_failure(topic.name, exc)
                continue
            self._added.add(topic.name)
            added += 1
        return added

    def update_existing(self) -> int:
        """Fetch every previously present topic remote; count those with new commits."""
        present = {remote.name for remote in self._repo.remotes()}
        updated = 0
        for topic in self._topics:
            if topic.name not in present or topic.name in self._added:
                continue
            if topic.name == self._baseline:
                continue
            if self._fetch(topic.name):
                updated += 1
        return updated

    def update_baseline(self) -> bool:
        return self._fetch(self._baseline)

    def _fetch(self, name: str) -> bool:
        self.logger.debug("Fetching %s", name)
        try:
            output = self._repo.update_remote(name)
        except GitCommandError as exc:
            self._record_failure(name, exc)
            return False
        changed = fetch_reported_changes(output)
        if changed:
            self.logger.info("Remote %s has new commits", name)
        return changed

    def _record_failure(self, name: str, exc: GitCommandError) -> None:
        self.logger.error("Updating remote %s failed: %s", name, exc)
        self.failures.append(name)


__all__ = ["RemoteSetReconciler", "fetch_reported_changes"]
