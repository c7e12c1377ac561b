"""
Pacote de rastreabilidade (traceability) do Atlas Orchestrator.

API pública exposta:
    - AtlasManifest     → estrutura canônica do Manifest v1
    - create_manifest   → criação explícita do Manifest de uma run
    - add_event         → registro explícito de eventos no Event Log
    - task_started      → marca início de um TaskRun
    - task_finished     → registra conclusão bem-sucedida de um TaskRun
    - task_failed       → registra falha de um TaskRun
    - task_skipped      → registra TaskRun nunca despachado
    - run_finished      → fecha a run com seu estado final
    - save_manifest     → persistência do Manifest em JSON
    - load_manifest     → restauração determinística do Manifest
    - RunStatusTracker  → consulta de estado de runs (snapshots)

Limites explícitos:
    - Não executa pipeline
    - Não decide políticas de execução
"""

from .manifest import (
    AtlasManifest,
    create_manifest,
    add_event,
    task_started,
    task_finished,
    task_failed,
    task_skipped,
    run_finished,
    save_manifest,
    load_manifest,
)
from .status import RunSnapshot, RunStatusTracker, TaskSnapshot, snapshot_run

__all__ = [
    "AtlasManifest",
    "create_manifest",
    "add_event",
    "task_started",
    "task_finished",
    "task_failed",
    "task_skipped",
    "run_finished",
    "save_manifest",
    "load_manifest",
    "RunSnapshot",
    "RunStatusTracker",
    "TaskSnapshot",
    "snapshot_run",
]
