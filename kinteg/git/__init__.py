"""Git adapters for kinteg."""

from .publisher import PublishError, ResultPublisher
from .repo import GitCommandError, GitRepo

__all__ = ["GitCommandError", "GitRepo", "PublishError", "ResultPublisher"]
