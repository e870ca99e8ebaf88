"""Append-only run markers stored as git tags, and the gate built on them."""

from __future__ import annotations

import shutil
import subprocess
from typing import Callable, Dict, List, Optional, Sequence

from .config import ConfigError, TestConfig
from .errors import AlreadyHandled, GateClosed, KintegError
from .git.repo import GitRepo
from .logging import get_logger
from .models import MarkerKind


class MarkerExistsError(KintegError):
    """Raised when writing a marker that is already present."""


class MarkerStore:
    """Key/value marker store keyed by ``(kind, description)``.

    Markers are lightweight tags (``test-<d>``, ``blame-<d>``, ``report-<d>``).
    A marker is never moved or deleted once written.
    """

    def __init__(self, repo: GitRepo) -> None:
        self._repo = repo
        self.logger = get_logger("markers")

    def has(self, kind: MarkerKind, description: str) -> bool:
        return self._repo.tag_exists(kind.tag_for(description))

    def mark(self, kind: MarkerKind, description: str, target: Optional[str] = None) -> str:
        name = kind.tag_for(description)
        if self._repo.tag_exists(name):
            raise MarkerExistsError(f"Marker {name} already exists")
        self._repo.create_tag(name, target or description)
        self.logger.info("Recorded marker %s", name)
        return name

    def markers(self, description: str) -> Dict[MarkerKind, bool]:
        return {kind: self.has(kind, description) for kind in MarkerKind}


class TestGate:
    """Starts a test run only for reported, unblamed, untested descriptions."""

    __test__ = False

    def __init__(
        self,
        store: MarkerStore,
        config: TestConfig,
        *,
        launcher: Callable[[Sequence[str]], int] | None = None,
    ) -> None:
        self._store = store
        self._config = config
        self._launcher = launcher
        self.logger = get_logger("test")

    def check(self, description: str) -> None:
        """Raise when the description must not be tested."""
        if self._store.has(MarkerKind.TESTED, description):
            raise AlreadyHandled(description, "already tested")
        if not self._store.has(MarkerKind.REPORTED, description):
            raise GateClosed(description, "no build report has been processed yet")
        if self._store.has(MarkerKind.BLAMED, description):
            raise GateClosed(description, "build errors were attributed to a topic branch")

    def run(self, description: str) -> int:
        """Mark the description as tested and launch the test framework."""
        self.check(description)
        command = self._command()
        if self._launcher is None and shutil.which(command[0]) is None:
            raise KintegError(f"Unable to launch test framework '{command[0]}'.")
        self._store.mark(MarkerKind.TESTED, description)
        self.logger.info("Launching tests for %s: %s", description, " ".join(command))
        returncode = (self._launcher or self._default_launcher)(command)
        self.logger.info("Test framework exited with status %d", returncode)
        return returncode

    def _command(self) -> List[str]:
        if not self._config.command:
            raise ConfigError("test.command is not configured")
        if self._config.config is None:
            raise ConfigError("test.config is not configured")
        return [*self._config.command, str(self._config.config)]

    @staticmethod
    def _default_launcher(args: Sequence[str]) -> int:
        try:
            completed = subprocess.run(list(args), check=False)
        except FileNotFoundError as exc:
            raise KintegError(f"Unable to launch test framework '{args[0]}'.") from exc
        return completed.returncode


__all__ = ["MarkerExistsError", "MarkerStore", "TestGate"]
