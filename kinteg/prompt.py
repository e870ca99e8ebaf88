"""Operator confirmation providers."""

from __future__ import annotations

import sys
from typing import Callable, List, Optional, Protocol, Sequence, TextIO, Tuple


class Prompt(Protocol):
    """Asks the operator a yes/no question."""

    def confirm(self, question: str, *, default: bool) -> bool:
        """Return the operator's answer, or ``default`` when none is given."""


class ConsolePrompt:
    """Reads answers from the terminal; empty input or EOF selects the default.

    Questions go to ``output`` (stderr by default) so stdout carries only results.
    """

    def __init__(
        self,
        input_func: Callable[[str], str] = input,
        output: TextIO | None = None,
    ) -> None:
        self._input = input_func
        self._output = output or sys.stderr

    def confirm(self, question: str, *, default: bool) -> bool:
        suffix = " [Y/n] " if default else " [y/N] "
        while True:
            print(f"{question}{suffix}", end="", file=self._output, flush=True)
            try:
                answer = self._input("")
            except EOFError:
                return default
            answer = answer.strip().lower()
            if not answer:
                return default
            if answer in {"y", "yes"}:
                return True
            if answer in {"n", "no"}:
                return False
            print("Please answer 'y' or 'n'.", file=self._output)


class ScriptedPrompt:
    """Answers questions from a fixed script for unattended runs and tests.

    Queued ``answers`` are consumed first. After that every question gets
    ``fallback`` when set, otherwise the question's own default.
    """

    def __init__(self, answers: Sequence[bool] = (), *, fallback: Optional[bool] = None) -> None:
        self._answers: List[bool] = list(answers)
        self._fallback = fallback
        self.asked: List[Tuple[str, bool]] = []

    def confirm(self, question: str, *, default: bool) -> bool:
        self.asked.append((question, default))
        if self._answers:
            return self._answers.pop(0)
        if self._fallback is not None:
            return self._fallback
        return default


__all__ = ["ConsolePrompt", "Prompt", "ScriptedPrompt"]
