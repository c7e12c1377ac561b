"""
RunContext: contexto de observabilidade de uma run do Atlas Orchestrator.

O RunContext acompanha uma `RunInstance` durante toda a execução e é o
meio canônico de:
    - registrar logs estruturados (eventos) por TaskRun
    - coletar warnings não fatais por TaskRun
    - expor a configuração efetiva usada pela run

Princípios fundamentais:
    - Isolamento por execução (cada run possui seu próprio contexto)
    - Eventos são dicionários simples, serializáveis em JSON
    - Logs do runtime externo são repassados sem reinterpretação

Limites explícitos:
    - Não decide políticas de execução
    - Não persiste eventos (ver `core.traceability.manifest`)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class RunContext:
    """
    Contexto de execução de uma run.

    Campos canônicos:
    - run_id: identificador único da execução
    - created_at: timestamp UTC de criação do contexto
    - config: configuração efetiva (defaults + local deep-merge)
    - service_account: token de identidade da run (opaco)
    - warnings: warnings por task_id
    - events: log estruturado de eventos
    """

    run_id: str
    created_at: str
    config: Dict[str, Any] = field(default_factory=dict)
    service_account: str = "default"

    warnings: Dict[str, List[str]] = field(default_factory=dict)
    events: List[Dict[str, Any]] = field(default_factory=list)

    # -----------------------------
    # Logging & warnings
    # -----------------------------
    def log(self, *, task_id: str, level: str, message: str, **extra: Any) -> None:
        event = {
            "run_id": self.run_id,
            "task_id": task_id,
            "level": level,
            "message": message,
            "timestamp": utc_now(),
        }
        event.update(extra)
        self.events.append(event)

    def add_warning(self, *, task_id: str, message: str) -> None:
        if task_id not in self.warnings:
            self.warnings[task_id] = []
        self.warnings[task_id].append(message)

    def events_for(self, task_id: str) -> List[Dict[str, Any]]:
        return [e for e in self.events if e.get("task_id") == task_id]
