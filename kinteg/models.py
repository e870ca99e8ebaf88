"""Core data models shared across kinteg components."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Tuple


@dataclass(frozen=True)
class TopicEntry:
    """A declared topic branch: the remote to track and the branch to merge."""

    name: str
    url: str
    branch: str

    @property
    def ref(self) -> str:
        return f"{self.name}/{self.branch}"


@dataclass(frozen=True)
class TrackedRemote:
    """Observed state of a remote in the working repository."""

    name: str
    url: str
    branch: Optional[str]

    def matches(self, topic: TopicEntry) -> bool:
        return (self.name, self.url, self.branch) == (topic.name, topic.url, topic.branch)


@dataclass(frozen=True)
class ReconciliationResult:
    """Outcome of converging the live remotes with the declared topics."""

    added: int = 0
    removed: int = 0
    updated: int = 0
    baseline_changed: bool = False
    failures: Tuple[str, ...] = ()

    @property
    def changed(self) -> bool:
        return self.added + self.removed + self.updated + int(self.baseline_changed) > 0


@dataclass(frozen=True)
class IntegrationResult:
    """Summary of one integration branch rebuild."""

    base_tag: str
    branch: str
    backup_branch: Optional[str]
    merged: Tuple[str, ...]
    conflicted: Tuple[str, ...] = ()


@dataclass(frozen=True)
class ErrorRecord:
    """A single error line from a build report."""

    path: str
    line: int
    message: str


@dataclass(frozen=True)
class CommitInfo:
    """Commit metadata shown alongside an attributed error."""

    sha: str
    author: str
    date: str
    subject: str


@dataclass(frozen=True)
class Attribution:
    """An error traced back to the topic branch that introduced it."""

    topic: TopicEntry
    commit: CommitInfo
    record: ErrorRecord


@dataclass
class ReportOutcome:
    """Result of processing the report for one tree description."""

    description: str
    available: bool
    records: List[ErrorRecord] = field(default_factory=list)
    ignored: int = 0
    unattributed: int = 0
    attributions: List[Attribution] = field(default_factory=list)

    @property
    def blamed(self) -> bool:
        return bool(self.attributions)


class MarkerKind(Enum):
    """Run marker kinds; the value is the tag prefix."""

    TESTED = "test"
    BLAMED = "blame"
    REPORTED = "report"

    def tag_for(self, description: str) -> str:
        return f"{self.value}-{description}"


__all__ = [
    "Attribution",
    "CommitInfo",
    "ErrorRecord",
    "IntegrationResult",
    "MarkerKind",
    "ReconciliationResult",
    "ReportOutcome",
    "TopicEntry",
    "TrackedRemote",
]
