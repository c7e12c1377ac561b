"""
Atlas Orchestrator: orquestrador de pipelines de build/deploy baseados em containers.

Este pacote raiz define o namespace público do Atlas Orchestrator. Um
pipeline é um DAG de Tasks reutilizáveis; cada Task é uma sequência de
steps executados em imagens de container, consumindo e produzindo
resources externos tipados (repositórios git, imagens, clusters).

Arquitetura em alto nível:
    - core.templating   → resolução de marcadores `${scope.path}`
    - core.pipeline     → tipos de definição, registries e builder de grafo
    - core.engine       → binding de runs, planner e execução concorrente
    - core.traceability → Manifest, Event Log e snapshots de status
    - core.config       → carregamento, merge, hashing e settings do engine
    - core.documents    → leitura de definições em YAML/JSON

Limites explícitos:
    - Não executa containers (responsabilidade do `StepRuntime`)
    - Não persiste runs entre processos
"""

from .core.engine.engine import Engine
from .core.engine.runtime import StepInvocation, StepOutcome, StepRuntime
from .core.pipeline.builder import GraphBuilder, PipelineRegistry
from .core.pipeline.registry import ResourceRegistry, TaskRegistry
from .core.pipeline.types import (
    ParamDecl,
    PipelineSpec,
    PipelineTaskNode,
    ResourceDefinition,
    ResourceKind,
    ResourceWiring,
    RunRequest,
    RunStatus,
    SlotDecl,
    StepTemplate,
    TaskRunStatus,
    TaskSpec,
)
from .core.traceability.status import RunSnapshot, RunStatusTracker
from .notebook_ui import render_run_snapshot, RenderResult

__all__ = [
    "Engine",
    "StepInvocation",
    "StepOutcome",
    "StepRuntime",
    "GraphBuilder",
    "PipelineRegistry",
    "ResourceRegistry",
    "TaskRegistry",
    "ParamDecl",
    "PipelineSpec",
    "PipelineTaskNode",
    "ResourceDefinition",
    "ResourceKind",
    "ResourceWiring",
    "RunRequest",
    "RunStatus",
    "SlotDecl",
    "StepTemplate",
    "TaskRunStatus",
    "TaskSpec",
    "RunSnapshot",
    "RunStatusTracker",
    "render_run_snapshot",
    "RenderResult",
]
