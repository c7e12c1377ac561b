"""
Tipos canônicos de definição do Atlas Orchestrator.

Este módulo define as estruturas e enums fundamentais que padronizam a
comunicação entre registries, builder de grafo, binding de runs e engine.

Os tipos aqui definidos representam:
    - resources externos nomeados e tipados (ResourceDefinition)
    - Tasks reutilizáveis com slots, parâmetros e steps (TaskSpec)
    - Pipelines como conjuntos de usos de Tasks com wiring (PipelineSpec)
    - pedidos de execução concretos (RunRequest)
    - estados de run e de task run (RunStatus, TaskRunStatus)

Princípios fundamentais:
    - Todas as definições são imutáveis (frozen) após construção
    - Resources são referenciados por nome, nunca embutidos por valor
    - Nenhuma lógica de execução vive neste módulo

Invariantes:
    - Enums possuem valores textuais canônicos
    - Mapeamentos expostos são somente leitura (MappingProxyType)
    - Coleções ordenadas são tuplas

Limites explícitos:
    - Não valida referências entre definições (responsabilidade de registry/builder)
    - Não resolve templates
    - Não executa steps
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional, Tuple


def _frozen_mapping(value: Optional[Mapping[str, Any]]) -> Mapping[str, Any]:
    return MappingProxyType(dict(value or {}))


class ResourceKind(str, Enum):
    """
    Kinds built-in de resources externos.

    O campo `kind` das definições é uma string livre; este enum apenas
    nomeia os valores canônicos conhecidos. Por herdar de `str`,
    `ResourceKind.GIT == "git"`.

    Kinds definidos:
        - GIT: repositório de código-fonte (url, revision)
        - IMAGE: imagem de container (url, digest)
        - STORAGE: blob/bucket de artefatos (location)
        - CLUSTER: cluster de destino de deploy (url, namespace)
    """
    GIT = "git"
    IMAGE = "image"
    STORAGE = "storage"
    CLUSTER = "cluster"


class RunStatus(str, Enum):
    """
    Estados da máquina de estados de uma run.

    Transições válidas:
        PENDING → RUNNING → {SUCCEEDED | FAILED | CANCELLED}
        PENDING → CANCELLED (cancelamento antes do início)

    Invariantes:
        - Estados terminais nunca são abandonados
        - SUCCEEDED implica todos os TaskRuns em SUCCEEDED
    """
    PENDING = "pending"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in _TERMINAL_RUN


class TaskRunStatus(str, Enum):
    """
    Estados da máquina de estados de um TaskRun.

    Transições válidas:
        QUEUED → RUNNING → {SUCCEEDED | FAILED}
        QUEUED → SKIPPED (dependência falhou, fail-fast ou cancelamento)
    """
    QUEUED = "queued"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    SKIPPED = "skipped"

    @property
    def is_terminal(self) -> bool:
        return self in _TERMINAL_TASK


_TERMINAL_RUN = frozenset({RunStatus.SUCCEEDED, RunStatus.FAILED, RunStatus.CANCELLED})
_TERMINAL_TASK = frozenset({TaskRunStatus.SUCCEEDED, TaskRunStatus.FAILED, TaskRunStatus.SKIPPED})


# ---------------------------------------------------------------------------
# Resources
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ResourceDefinition:
    """
    Definição imutável de um resource externo nomeado.

    Campos:
        - name: nome único no ResourceRegistry
        - kind: tipo do resource (ex.: "git", "image")
        - params: parâmetros específicos do kind (ex.: url, revision)

    Invariantes:
        - `params` é somente leitura após a construção
        - O conteúdo nunca muda; uma nova versão exige um novo nome
    """
    name: str
    kind: str
    params: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "kind", str(getattr(self.kind, "value", self.kind)))
        object.__setattr__(
            self, "params", _frozen_mapping({str(k): str(v) for k, v in dict(self.params).items()})
        )

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "kind": self.kind, "params": dict(self.params)}


# ---------------------------------------------------------------------------
# Tasks
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class SlotDecl:
    """Slot de resource tipado e nomeado (placeholder a ser ligado)."""
    name: str
    kind: str

    def __post_init__(self) -> None:
        object.__setattr__(self, "kind", str(getattr(self.kind, "value", self.kind)))

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "kind": self.kind}


@dataclass(frozen=True)
class ParamDecl:
    """Parâmetro declarado; sem `default` o parâmetro é obrigatório."""
    name: str
    default: Optional[str] = None
    description: str = ""

    @property
    def required(self) -> bool:
        return self.default is None

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "default": self.default, "description": self.description}


@dataclass(frozen=True)
class StepTemplate:
    """
    Step declarado por uma Task: imagem, comando e argumentos.

    `image`, `command` e `args` podem conter marcadores `${...}`, validados
    no registro da Task e resolvidos no momento da criação da run.
    """
    image: str
    command: Tuple[str, ...] = ()
    args: Tuple[str, ...] = ()
    name: str = ""

    def __post_init__(self) -> None:
        object.__setattr__(self, "command", tuple(str(c) for c in self.command))
        object.__setattr__(self, "args", tuple(str(a) for a in self.args))

    def templates(self) -> Tuple[str, ...]:
        return (self.image,) + self.command + self.args

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "image": self.image,
            "command": list(self.command),
            "args": list(self.args),
        }


@dataclass(frozen=True)
class TaskSpec:
    """
    Task reutilizável: slots de entrada/saída, parâmetros e steps ordenados.

    Uma TaskSpec não possui os resources que referencia; apenas declara
    slots tipados. Steps sem nome recebem `step-<índice>`.
    """
    name: str
    inputs: Tuple[SlotDecl, ...] = ()
    outputs: Tuple[SlotDecl, ...] = ()
    params: Tuple[ParamDecl, ...] = ()
    steps: Tuple[StepTemplate, ...] = ()
    description: str = ""

    def __post_init__(self) -> None:
        object.__setattr__(self, "inputs", tuple(self.inputs))
        object.__setattr__(self, "outputs", tuple(self.outputs))
        object.__setattr__(self, "params", tuple(self.params))
        named = []
        for idx, step in enumerate(self.steps):
            if not step.name:
                step = StepTemplate(image=step.image, command=step.command, args=step.args, name=f"step-{idx}")
            named.append(step)
        object.__setattr__(self, "steps", tuple(named))

    def input_slot(self, name: str) -> Optional[SlotDecl]:
        return next((s for s in self.inputs if s.name == name), None)

    def output_slot(self, name: str) -> Optional[SlotDecl]:
        return next((s for s in self.outputs if s.name == name), None)

    def param(self, name: str) -> Optional[ParamDecl]:
        return next((p for p in self.params if p.name == name), None)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "inputs": [s.to_dict() for s in self.inputs],
            "outputs": [s.to_dict() for s in self.outputs],
            "params": [p.to_dict() for p in self.params],
            "steps": [s.to_dict() for s in self.steps],
        }


# ---------------------------------------------------------------------------
# Pipelines
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ResourceWiring:
    """
    Liga um slot da Task a um slot de resource do Pipeline.

    Em wirings de entrada, `from_tasks` não vazio marca a ligação como
    proveniência (`from`): o nó só roda depois dos nós listados.
    """
    slot: str
    resource: str
    from_tasks: Tuple[str, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "from_tasks", tuple(self.from_tasks))

    def to_dict(self) -> Dict[str, Any]:
        return {"slot": self.slot, "resource": self.resource, "from": list(self.from_tasks)}


@dataclass(frozen=True)
class PipelineTaskNode:
    """
    Um uso de uma TaskSpec dentro de um Pipeline.

    Campos:
        - name: nome da instância, único no pipeline
        - task_ref: nome da TaskSpec registrada
        - inputs / outputs: wiring de slots da Task para slots do Pipeline
        - params: valores literais ou templates `${params.<nome>}`
        - run_after: dependências explícitas (nomes de instância)
    """
    name: str
    task_ref: str
    inputs: Tuple[ResourceWiring, ...] = ()
    outputs: Tuple[ResourceWiring, ...] = ()
    params: Mapping[str, str] = field(default_factory=dict)
    run_after: Tuple[str, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "inputs", tuple(self.inputs))
        object.__setattr__(self, "outputs", tuple(self.outputs))
        object.__setattr__(self, "params", _frozen_mapping({str(k): str(v) for k, v in dict(self.params).items()}))
        object.__setattr__(self, "run_after", tuple(self.run_after))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "task_ref": self.task_ref,
            "inputs": [w.to_dict() for w in self.inputs],
            "outputs": [w.to_dict() for w in self.outputs],
            "params": dict(self.params),
            "run_after": list(self.run_after),
        }


@dataclass(frozen=True)
class PipelineSpec:
    """Pipeline: slots de resource expostos, parâmetros expostos e nós de Task."""
    name: str
    resources: Tuple[SlotDecl, ...] = ()
    params: Tuple[ParamDecl, ...] = ()
    tasks: Tuple[PipelineTaskNode, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "resources", tuple(self.resources))
        object.__setattr__(self, "params", tuple(self.params))
        object.__setattr__(self, "tasks", tuple(self.tasks))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "resources": [s.to_dict() for s in self.resources],
            "params": [p.to_dict() for p in self.params],
            "tasks": [t.to_dict() for t in self.tasks],
        }


# ---------------------------------------------------------------------------
# Runs
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class RunRequest:
    """
    Pedido de execução de um Pipeline.

    Campos:
        - pipeline: nome do Pipeline registrado
        - resources: slot do pipeline → nome do resource no registry
        - params: parâmetro do pipeline → valor literal
        - service_account: token de identidade opaco ao core
        - generate_name: prefixo do identificador gerado (default `<pipeline>-run-`)
    """
    pipeline: str
    resources: Mapping[str, str] = field(default_factory=dict)
    params: Mapping[str, str] = field(default_factory=dict)
    service_account: str = "default"
    generate_name: str = ""

    def __post_init__(self) -> None:
        object.__setattr__(self, "resources", _frozen_mapping(self.resources))
        object.__setattr__(self, "params", _frozen_mapping({str(k): str(v) for k, v in dict(self.params).items()}))
        if not self.generate_name:
            object.__setattr__(self, "generate_name", f"{self.pipeline}-run-")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "pipeline": self.pipeline,
            "resources": dict(self.resources),
            "params": dict(self.params),
            "service_account": self.service_account,
            "generate_name": self.generate_name,
        }
