"""
Saga minima para escritas que cruzam o banco relacional e o media store.

Cada passo que produz um efeito fora da transacao registra uma compensacao.
Em caso de falha as compensacoes rodam em ordem reversa; depois do commit
rodam apenas as limpezas best-effort registradas com after_commit.
Nenhuma falha de compensacao ou limpeza e propagada: elas sao logadas.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable

module_logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class _Action:
    description: str
    run: Callable[[], None]


class Saga:
    def __init__(self, name: str, logger: logging.Logger | logging.LoggerAdapter | None = None) -> None:
        self.name = name
        self.logger = logger or module_logger
        self._compensations: list[_Action] = []
        self._after_commit: list[_Action] = []
        self.failed_actions: list[str] = []

    def add_compensation(self, description: str, action: Callable[[], None]) -> None:
        self._compensations.append(_Action(description, action))

    def after_commit(self, description: str, action: Callable[[], None]) -> None:
        self._after_commit.append(_Action(description, action))

    def compensate(self) -> None:
        actions = list(reversed(self._compensations))
        self._compensations.clear()
        self._after_commit.clear()
        for action in actions:
            self._run_best_effort(action, "compensation")

    def complete(self) -> None:
        """Ponto sem retorno: descarta compensacoes e executa as limpezas."""
        actions = list(self._after_commit)
        self._compensations.clear()
        self._after_commit.clear()
        for action in actions:
            self._run_best_effort(action, "cleanup")

    def _run_best_effort(self, action: _Action, kind: str) -> None:
        try:
            action.run()
        except Exception:
            self.failed_actions.append(action.description)
            self.logger.warning(
                "%s %s failed: %s (left for operator cleanup)",
                self.name,
                kind,
                action.description,
                exc_info=True,
            )

    def __enter__(self) -> "Saga":
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        if exc_type is not None:
            self.compensate()
        return False
