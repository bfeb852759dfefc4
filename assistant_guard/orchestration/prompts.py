"""Orchestration layer — Operator prompts as injectable capabilities.

Destructive recreation and rollback selection need a human decision.  The
orchestrator only sees :class:`Confirmer` and :class:`BackupSelector`; the
CLI injects console implementations, tests and ``--yes`` inject automatic
ones.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Sequence

from rich.console import Console
from rich.prompt import Confirm, Prompt

from assistant_guard.policy.backup import BackupRecord


class Confirmer(ABC):
    @abstractmethod
    def ask(self, question: str) -> bool: ...


class BackupSelector(ABC):
    @abstractmethod
    def select(self, records: Sequence[BackupRecord]) -> BackupRecord | None:
        """Pick one of *records* (newest first); None cancels."""


class AutoConfirmer(Confirmer):
    """Answers every question the same way (``--yes``, non-interactive runs)."""

    def __init__(self, answer: bool) -> None:
        self.answer = answer
        self.questions: list[str] = []

    def ask(self, question: str) -> bool:
        self.questions.append(question)
        return self.answer


class ConsoleConfirmer(Confirmer):
    def __init__(self, console: Console | None = None) -> None:
        self._console = console or Console()

    def ask(self, question: str) -> bool:
        try:
            return Confirm.ask(question, console=self._console, default=False)
        except EOFError:
            return False


class ConsoleBackupSelector(BackupSelector):
    def __init__(self, console: Console | None = None) -> None:
        self._console = console or Console()

    def select(self, records: Sequence[BackupRecord]) -> BackupRecord | None:
        if not records:
            return None
        for index, record in enumerate(records, start=1):
            stamp = record.timestamp.strftime("%Y-%m-%d %H:%M:%S")
            self._console.print(f"  [cyan]{index}[/cyan]  {stamp}  {record.name}")
        choices = [str(i) for i in range(1, len(records) + 1)] + ["cancel"]
        try:
            answer = Prompt.ask(
                "Backup to restore",
                choices=choices,
                default="1",
                console=self._console,
            )
        except EOFError:
            return None
        if answer == "cancel":
            return None
        return records[int(answer) - 1]
