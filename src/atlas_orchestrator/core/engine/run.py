"""
Estado de execução de uma run (RunInstance) e de seus TaskRuns.

Este módulo define as estruturas mutáveis pertencentes ao Engine durante
a execução de uma run, e as regras de transição das máquinas de estado.

Decisões arquiteturais:
    - O estado de cada TaskRun é um objeto imutável (`TaskRunState`)
      substituído por atribuição única de referência; um leitor nunca
      observa um nó entre dois estados válidos, sem precisar de lock
    - Transições inválidas são erro de programação (`InvalidStateTransitionError`)
    - O pedido de cancelamento é seguro entre threads: o evento da run é
      sinalizado no loop de eventos do Engine via `call_soon_threadsafe`

Invariantes:
    - Estados terminais nunca são abandonados
    - Uma RunInstance nunca é reutilizada; o `run_id` nunca muda
"""

from __future__ import annotations

import asyncio
import threading
from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional, Tuple

from ..errors import AtlasErrorPayload
from ..exceptions import InvalidStateTransitionError
from ..pipeline.builder import ResolvedGraph
from ..pipeline.context import RunContext, utc_now
from ..pipeline.types import RunRequest, RunStatus, TaskRunStatus


_TASK_TRANSITIONS = {
    TaskRunStatus.QUEUED: frozenset({TaskRunStatus.RUNNING, TaskRunStatus.SKIPPED}),
    TaskRunStatus.RUNNING: frozenset({TaskRunStatus.RUNNING, TaskRunStatus.SUCCEEDED, TaskRunStatus.FAILED}),
}

_RUN_TRANSITIONS = {
    RunStatus.PENDING: frozenset({RunStatus.RUNNING, RunStatus.CANCELLED}),
    RunStatus.RUNNING: frozenset({RunStatus.SUCCEEDED, RunStatus.FAILED, RunStatus.CANCELLED}),
}


@dataclass(frozen=True)
class ResolvedStep:
    """Step com comando e argumentos já literais (sem marcadores)."""

    name: str
    image: str
    command: Tuple[str, ...] = ()
    args: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "image": self.image,
            "command": list(self.command),
            "args": list(self.args),
        }


@dataclass(frozen=True)
class TaskRunState:
    """
    Estado publicado de um TaskRun (imutável).

    Campos:
        - status: estado atual
        - current_step: step em execução (ou o que falhou)
        - steps_completed: quantidade de steps concluídos com sucesso
        - started_at / finished_at: timestamps UTC
        - summary: resumo legível (motivo do skip, texto do erro)
        - error: payload canônico para TaskRuns FAILED
    """

    status: TaskRunStatus = TaskRunStatus.QUEUED
    current_step: Optional[str] = None
    steps_completed: int = 0
    started_at: Optional[str] = None
    finished_at: Optional[str] = None
    summary: Optional[str] = None
    error: Optional[AtlasErrorPayload] = None

    def transition(self, status: TaskRunStatus, **changes: Any) -> "TaskRunState":
        """
        Retorna um novo estado; o atual nunca é alterado.

        Raises:
            InvalidStateTransitionError: transição fora de QUEUED → RUNNING → terminal.
        """
        allowed = _TASK_TRANSITIONS.get(self.status, frozenset())
        if status not in allowed:
            raise InvalidStateTransitionError(
                f"Invalid task transition: {self.status.value} -> {status.value}",
                details={"from": self.status.value, "to": status.value},
            )
        return replace(self, status=status, **changes)


@dataclass
class TaskRunInstance:
    """Um nó do grafo instanciado para uma run: steps resolvidos e estado publicado."""

    name: str
    task_ref: str
    steps: Tuple[ResolvedStep, ...]
    params: Mapping[str, str] = field(default_factory=dict)
    state: TaskRunState = field(default_factory=TaskRunState)

    @property
    def status(self) -> TaskRunStatus:
        return self.state.status

    def publish(self, status: TaskRunStatus, **changes: Any) -> TaskRunState:
        """Troca o estado publicado por atribuição única (leitores sem lock)."""
        new_state = self.state.transition(status, **changes)
        self.state = new_state
        return new_state


@dataclass
class RunInstance:
    """
    Execução concreta de um pipeline.

    Campos:
        - run_id: identificador único, gerado uma única vez
        - graph: ResolvedGraph compartilhado (somente leitura)
        - request: RunRequest de origem
        - resources: slot do pipeline → nome do resource ligado
        - params: parâmetros efetivos do pipeline (defaults aplicados)
        - tasks: nome do nó → TaskRunInstance, na ordem topológica
        - context: RunContext (eventos, warnings, config)
    """

    run_id: str
    graph: ResolvedGraph
    request: RunRequest
    resources: Mapping[str, str]
    params: Mapping[str, str]
    tasks: Dict[str, TaskRunInstance]
    context: RunContext
    status: RunStatus = RunStatus.PENDING
    created_at: str = field(default_factory=utc_now)
    started_at: Optional[str] = None
    finished_at: Optional[str] = None
    cancel_reason: Optional[str] = None

    _lock: threading.Lock = field(default_factory=threading.Lock, init=False, repr=False)
    _loop: Optional[asyncio.AbstractEventLoop] = field(default=None, init=False, repr=False)
    _cancel_event: Optional[asyncio.Event] = field(default=None, init=False, repr=False)

    def __post_init__(self) -> None:
        self.resources = MappingProxyType(dict(self.resources))
        self.params = MappingProxyType(dict(self.params))

    @property
    def pipeline(self) -> str:
        return self.graph.name

    @property
    def cancel_requested(self) -> bool:
        return self.cancel_reason is not None

    def set_status(self, status: RunStatus) -> None:
        if status not in _RUN_TRANSITIONS.get(self.status, frozenset()):
            raise InvalidStateTransitionError(
                f"Invalid run transition: {self.status.value} -> {status.value}",
                details={"run_id": self.run_id, "from": self.status.value, "to": status.value},
            )
        self.status = status

    # -----------------------------
    # Cancelamento
    # -----------------------------
    def attach(self, loop: asyncio.AbstractEventLoop, event: asyncio.Event) -> None:
        """
        Liga a run ao loop que a executa; um cancelamento anterior é repassado.

        Raises:
            InvalidStateTransitionError: se a run não estiver PENDING ou já
                estiver ligada a outro loop.
        """
        with self._lock:
            if self.status is not RunStatus.PENDING or self._loop is not None:
                raise InvalidStateTransitionError(
                    f"Run '{self.run_id}' was already executed",
                    details={"run_id": self.run_id, "status": self.status.value},
                    hint="Crie uma nova run para reexecutar o pipeline.",
                )
            self._loop = loop
            self._cancel_event = event
            if self.cancel_reason is not None:
                event.set()

    def cancel_unstarted(self, reason: str = "cancel requested") -> bool:
        """
        Cancela de imediato uma run PENDING que nenhum loop assumiu.

        A transição é atômica com `attach`: depois dela a run não pode mais
        ser executada. Os nós continuam QUEUED; encerrá-los é do Engine.

        Returns:
            bool: False se a run já foi assumida por um loop, já terminou
                ou já tinha um pedido de cancelamento.
        """
        with self._lock:
            if self.status is not RunStatus.PENDING or self._loop is not None or self.cancel_reason is not None:
                return False
            self.cancel_reason = reason
            self.set_status(RunStatus.CANCELLED)
            return True

    def detach(self) -> None:
        with self._lock:
            self._loop = None
            self._cancel_event = None

    def request_cancel(self, reason: str = "cancel requested") -> bool:
        """
        Pede o cancelamento da run; pode ser chamado de qualquer thread.

        Returns:
            bool: False se a run já terminou ou se já havia pedido anterior.
        """
        with self._lock:
            if self.status.is_terminal or self.cancel_reason is not None:
                return False
            self.cancel_reason = reason
            loop, event = self._loop, self._cancel_event

        if loop is not None and event is not None and not loop.is_closed():
            try:
                running = asyncio.get_running_loop()
            except RuntimeError:
                running = None
            if running is loop:
                event.set()
            else:
                loop.call_soon_threadsafe(event.set)
        return True
