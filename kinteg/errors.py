"""Exception hierarchy shared by the kinteg pipelines."""

from __future__ import annotations


class KintegError(RuntimeError):
    """Base class for every error raised by kinteg."""


class AlreadyHandled(KintegError):
    """Raised when a run marker shows the requested work was already done."""

    def __init__(self, description: str, reason: str) -> None:
        super().__init__(f"{description}: {reason}")
        self.description = description
        self.reason = reason


class GateClosed(KintegError):
    """Raised when the test gate refuses to start a run."""

    def __init__(self, description: str, reason: str) -> None:
        super().__init__(f"{description}: {reason}")
        self.description = description
        self.reason = reason


__all__ = ["AlreadyHandled", "GateClosed", "KintegError"]
