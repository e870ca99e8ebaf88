"""Rebuild the integration branch from the latest tag and the topic branches."""

from __future__ import annotations

from typing import List, Optional, Protocol, Sequence, Tuple

from .errors import KintegError
from .git.repo import GitCommandError, GitRepo
from .logging import get_logger
from .models import IntegrationResult, ReconciliationResult, TopicEntry
from .prompt import Prompt


class IntegrationError(KintegError):
    """Raised when the integration branch cannot be built."""


class ConflictResolver(Protocol):
    """Brings a conflicted merge to a committable state."""

    def resolve(self, repo: GitRepo, topic: TopicEntry) -> None:
        """Resolve conflicts left by merging ``topic``; raise on failure."""


class MergeToolResolver:
    """Hands the conflict to ``git mergetool``; rerere replays known resolutions."""

    def resolve(self, repo: GitRepo, topic: TopicEntry) -> None:
        repo.mergetool()


class IntegrationBuilder:
    """Creates a fresh integration branch and merges topics in declared order."""

    def __init__(
        self,
        repo: GitRepo,
        *,
        branch: str,
        prompt: Prompt,
        resolver: ConflictResolver | None = None,
    ) -> None:
        self._repo = repo
        self.branch = branch
        self._prompt = prompt
        self._resolver = resolver or MergeToolResolver()
        self.logger = get_logger("integrate")

    def build(
        self,
        topics: Sequence[TopicEntry],
        reconciliation: ReconciliationResult,
    ) -> Optional[IntegrationResult]:
        """Run the full rebuild; returns ``None`` when the operator skips it."""
        if not reconciliation.changed:
            proceed = self._prompt.confirm(
                "No remote changed since the last run. Rebuild the integration branch anyway?",
                default=False,
            )
            if not proceed:
                self.logger.info("Nothing changed; skipping integration rebuild")
                return None

        base_tag = self.latest_tag()
        backup = self.prepare_branch(base_tag)
        merged, conflicted = self.merge_topics(topics)
        return IntegrationResult(
            base_tag=base_tag,
            branch=self.branch,
            backup_branch=backup,
            merged=tuple(merged),
            conflicted=tuple(conflicted),
        )

    def latest_tag(self) -> str:
        tag = self._repo.latest_tag()
        if not tag:
            raise IntegrationError("Repository has no release tags to build on")
        self.logger.debug("Latest tag is %s", tag)
        return tag

    def prepare_branch(self, base_tag: str) -> Optional[str]:
        """Back up any previous integration branch, then recreate it at ``base_tag``."""
        backup: Optional[str] = None
        if self._repo.branch_exists(self.branch):
            backup = f"{self.branch}-{self._repo.short_sha(self.branch)}"
            if self._repo.branch_exists(backup):
                raise IntegrationError(
                    f"Backup branch {backup} already exists; remove or rename it first"
                )
            self._repo.rename_branch(self.branch, backup)
            self.logger.info("Kept previous integration branch as %s", backup)
        self._repo.create_branch(self.branch, base_tag)
        self.logger.info("Created %s at %s", self.branch, base_tag)
        return backup

    def merge_topics(self, topics: Sequence[TopicEntry]) -> Tuple[List[str], List[str]]:
        """Merge every topic in order; returns (merged, conflicted) topic names."""
        merged: List[str] = []
        conflicted: List[str] = []
        for topic in topics:
            self.logger.info("Merging %s", topic.ref)
            try:
                clean = self._repo.merge(topic.ref)
            except GitCommandError as exc:
                raise IntegrationError(f"Merging {topic.ref} failed: {exc}") from exc
            if not clean:
                self.logger.warning("Merge of %s stopped on conflicts", topic.ref)
                self._resolve(topic)
                conflicted.append(topic.name)
            merged.append(topic.name)
        return merged, conflicted

    def _resolve(self, topic: TopicEntry) -> None:
        if self._repo.unmerged_paths():
            try:
                self._resolver.resolve(self._repo, topic)
            except GitCommandError as exc:
                raise IntegrationError(
                    f"Conflict resolution for {topic.ref} failed: {exc}"
                ) from exc
        else:
            self.logger.info("Recorded resolutions replayed every conflict in %s", topic.ref)

        remaining = self._repo.unmerged_paths()
        if remaining:
            raise IntegrationError(
                f"Unresolved paths remain after merging {topic.ref}: {', '.join(remaining)}"
            )
        try:
            self._repo.commit_merge()
        except GitCommandError as exc:
            raise IntegrationError(f"Committing the merge of {topic.ref} failed: {exc}") from exc
        self.logger.info("Committed resolved merge of %s", topic.ref)


__all__ = ["ConflictResolver", "IntegrationBuilder", "IntegrationError", "MergeToolResolver"]
