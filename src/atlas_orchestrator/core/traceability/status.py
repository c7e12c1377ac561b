"""
Run Status Tracker: consulta de estado de runs em andamento ou encerradas.

O tracker mantém referências às RunInstances criadas pelo Engine e produz
snapshots imutáveis sob demanda.

Decisões arquiteturais:
    - Leituras não tomam lock: cada TaskRun publica seu estado como um
      objeto imutável trocado por atribuição única, e o snapshot lê cada
      referência exatamente uma vez
    - O registro de runs (track) é serializado por lock, pois runs podem
      ser criadas a partir de threads diferentes
    - Runs ficam indexadas até `forget(run_id)`; só runs em estado terminal
      podem ser esquecidas, e nada é removido automaticamente

Invariantes:
    - Um snapshot nunca muda após criado
    - Nenhum nó aparece em estado intermediário entre dois estados válidos
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

from ..engine.run import RunInstance
from ..exceptions import DuplicateNameError, InvalidStateTransitionError, NotFoundError
from ..pipeline.types import RunStatus, TaskRunStatus


@dataclass(frozen=True)
class TaskSnapshot:
    name: str
    task_ref: str
    status: TaskRunStatus
    steps_total: int
    steps_completed: int = 0
    current_step: Optional[str] = None
    started_at: Optional[str] = None
    finished_at: Optional[str] = None
    summary: Optional[str] = None
    error: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "task_ref": self.task_ref,
            "status": self.status.value,
            "steps_total": self.steps_total,
            "steps_completed": self.steps_completed,
            "current_step": self.current_step,
            "started_at": self.started_at,
            "finished_at": self.finished_at,
            "summary": self.summary,
            "error": dict(self.error) if self.error is not None else None,
        }


@dataclass(frozen=True)
class RunSnapshot:
    """Cópia pontual do estado de uma run e de todos os seus TaskRuns."""

    run_id: str
    pipeline: str
    status: RunStatus
    tasks: Tuple[TaskSnapshot, ...]
    created_at: Optional[str] = None
    started_at: Optional[str] = None
    finished_at: Optional[str] = None
    cancel_reason: Optional[str] = None

    def task(self, name: str) -> TaskSnapshot:
        for t in self.tasks:
            if t.name == name:
                return t
        raise NotFoundError(f"Unknown task: {name}", details={"run_id": self.run_id, "name": name})

    def counts(self) -> Dict[str, int]:
        out = {s.value: 0 for s in TaskRunStatus}
        for t in self.tasks:
            out[t.status.value] += 1
        return out

    def to_dict(self) -> Dict[str, Any]:
        return {
            "run_id": self.run_id,
            "pipeline": self.pipeline,
            "status": self.status.value,
            "created_at": self.created_at,
            "started_at": self.started_at,
            "finished_at": self.finished_at,
            "cancel_reason": self.cancel_reason,
            "counts": self.counts(),
            "tasks": [t.to_dict() for t in self.tasks],
        }


def snapshot_run(run: RunInstance) -> RunSnapshot:
    tasks = []
    for name, tr in run.tasks.items():
        state = tr.state
        tasks.append(
            TaskSnapshot(
                name=name,
                task_ref=tr.task_ref,
                status=state.status,
                steps_total=len(tr.steps),
                steps_completed=state.steps_completed,
                current_step=state.current_step,
                started_at=state.started_at,
                finished_at=state.finished_at,
                summary=state.summary,
                error=state.error.to_dict() if state.error is not None else None,
            )
        )
    return RunSnapshot(
        run_id=run.run_id,
        pipeline=run.pipeline,
        status=run.status,
        tasks=tuple(tasks),
        created_at=run.created_at,
        started_at=run.started_at,
        finished_at=run.finished_at,
        cancel_reason=run.cancel_reason,
    )


class RunStatusTracker:
    """Índice de runs por `run_id`, preservando a ordem de criação."""

    def __init__(self) -> None:
        self._runs: Dict[str, RunInstance] = {}
        self._lock = threading.Lock()

    def track(self, run: RunInstance) -> None:
        with self._lock:
            if run.run_id in self._runs:
                raise DuplicateNameError(f"Duplicate run id: {run.run_id}", details={"run_id": run.run_id})
            self._runs[run.run_id] = run

    def get(self, run_id: str) -> RunInstance:
        try:
            return self._runs[run_id]
        except KeyError:
            raise NotFoundError(f"Unknown run: {run_id}", details={"run_id": run_id}) from None

    def snapshot(self, run_id: str) -> RunSnapshot:
        return snapshot_run(self.get(run_id))

    def forget(self, run_id: str) -> RunSnapshot:
        """
        Remove uma run terminada do índice e devolve seu snapshot final.

        Raises:
            NotFoundError: run desconhecida.
            InvalidStateTransitionError: run ainda não encerrada.
        """
        with self._lock:
            run = self.get(run_id)
            if not run.status.is_terminal or run.finished_at is None:
                raise InvalidStateTransitionError(
                    f"Run '{run_id}' has not finished and cannot be forgotten",
                    details={"run_id": run_id, "status": run.status.value},
                    hint="Cancele a run ou aguarde seu término.",
                )
            del self._runs[run_id]
        return snapshot_run(run)

    def list_runs(self) -> List[RunSnapshot]:
        with self._lock:
            runs = list(self._runs.values())
        return [snapshot_run(r) for r in runs]

    def __contains__(self, run_id: object) -> bool:
        return run_id in self._runs

    def __len__(self) -> int:
        return len(self._runs)
