"""Git publishing utilities."""

from __future__ import annotations

from ..errors import KintegError
from ..logging import get_logger
from ..prompt import Prompt
from .repo import GitCommandError, GitRepo


class PublishError(KintegError):
    """Raised when pushing the integration branch fails."""


class ResultPublisher:
    """Force-pushes the finished integration branch to its fixed remote ref.

    The push overwrites the remote history at that ref. The previous state
    survives only in the local backup branch kept by the integration builder.
    """

    def __init__(
        self,
        repo: GitRepo,
        *,
        remote: str,
        remote_branch: str,
        prompt: Prompt,
    ) -> None:
        self._repo = repo
        self.remote = remote
        self.remote_branch = remote_branch
        self._prompt = prompt
        self.logger = get_logger("publish")

    def publish(self, branch: str) -> bool:
        """Push ``branch`` after confirmation; returns False when declined."""
        target = f"{self.remote}/{self.remote_branch}"
        if not self._prompt.confirm(f"Push {branch} to {target}?", default=True):
            self.logger.info("Push of %s declined", branch)
            return False
        try:
            self._repo.push(self.remote, branch, self.remote_branch, force=True)
        except GitCommandError as exc:
            raise PublishError(f"Pushing {branch} to {target} failed: {exc}") from exc
        self.logger.info("Pushed %s to %s", branch, target)
        return True


__all__ = ["PublishError", "ResultPublisher"]
