"""
Registries de definições do Atlas Orchestrator.

Este módulo define os registries que armazenam definições nomeadas e
validam sua integridade estrutural antes de qualquer build de grafo
ou execução:

    - ResourceRegistry → resources externos nomeados e tipados
    - TaskRegistry     → TaskSpecs reutilizáveis (Task Definition Store)

Responsabilidades do módulo:
    - Validar unicidade de nomes
    - Preservar a ordem de registro
    - Validar, no registro, que todo marcador `${...}` dos steps de uma
      Task aponta para um parâmetro ou slot declarado (fail fast)
    - Verificar compatibilidade de kind entre resource e slot

Decisões arquiteturais:
    - A validação ocorre no registro, nunca na execução
    - Definições registradas são imutáveis e nunca substituídas
    - A ordem de registro é mantida separadamente do armazenamento

Invariantes:
    - Cada nome é único dentro do seu registry
    - `list()` reflete exatamente a ordem de registro
    - Nenhuma definição inválida é aceita

Limites explícitos:
    - Não constrói grafos de pipeline
    - Não executa steps
    - Não resolve templates (apenas valida referências)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Generic, Iterable, List, TypeVar

from ..exceptions import (
    DuplicateNameError,
    InvalidDefinitionError,
    KindMismatchError,
    NotFoundError,
    UndeclaredReferenceError,
)
from ..templating import (
    SCOPE_INPUT_PARAMS,
    SCOPE_INPUT_RESOURCES,
    SCOPE_OUTPUT_RESOURCES,
    SCOPE_PARAMS,
    find_references,
    split_reference,
)
from .types import ResourceDefinition, TaskSpec


T = TypeVar("T")


def _require_name(name: object, what: str) -> str:
    if not isinstance(name, str) or not name.strip():
        raise InvalidDefinitionError(f"{what} name must be a non-empty string", details={"name": name})
    return name


def _ensure_unique(names: Iterable[str], *, what: str, owner: str) -> None:
    seen = set()
    for n in names:
        _require_name(n, what)
        if n in seen:
            raise DuplicateNameError(
                f"Duplicate {what} '{n}' in '{owner}'",
                details={"owner": owner, what.replace(" ", "_"): n},
            )
        seen.add(n)


@dataclass
class _NamedRegistry(Generic[T]):
    """Armazenamento por nome com preservação da ordem de registro."""

    what: str = field(default="definition", init=False, repr=False)
    _items: Dict[str, T] = field(default_factory=dict, init=False, repr=False)
    _order: List[str] = field(default_factory=list, init=False, repr=False)

    def _add(self, name: str, item: T) -> None:
        _require_name(name, self.what)
        if name in self._items:
            raise DuplicateNameError(f"Duplicate {self.what} name: {name}", details={"name": name})
        self._items[name] = item
        self._order.append(name)

    def get(self, name: str) -> T:
        try:
            return self._items[name]
        except KeyError:
            raise NotFoundError(f"Unknown {self.what}: {name}", details={"name": name}) from None

    def list(self) -> List[T]:
        return [self._items[n] for n in self._order]

    def names(self) -> List[str]:
        return list(self._order)

    def __contains__(self, name: object) -> bool:
        return name in self._items

    def __len__(self) -> int:
        return len(self._order)


@dataclass
class ResourceRegistry(_NamedRegistry[ResourceDefinition]):
    """
    Registro de resources externos (ex.: repositório git, imagem).

    Resources são imutáveis em conteúdo: uma vez registrados, nunca são
    substituídos. Runs referenciam resources apenas por nome.
    """

    what: str = field(default="resource", init=False, repr=False)

    def register(self, resource: ResourceDefinition) -> ResourceDefinition:
        _require_name(resource.kind, "resource kind")
        self._add(resource.name, resource)
        return resource

    def resolve(self, name: str) -> ResourceDefinition:
        return self.get(name)

    @staticmethod
    def check_kind(resource: ResourceDefinition, expected_kind: str, *, slot: str) -> None:
        expected = str(getattr(expected_kind, "value", expected_kind))
        if resource.kind != expected:
            raise KindMismatchError(
                f"Resource '{resource.name}' of kind '{resource.kind}' cannot bind slot "
                f"'{slot}' of kind '{expected}'",
                details={
                    "resource": resource.name,
                    "resource_kind": resource.kind,
                    "slot": slot,
                    "slot_kind": expected,
                },
            )


@dataclass
class TaskRegistry(_NamedRegistry[TaskSpec]):
    """
    Task Definition Store: TaskSpecs reutilizáveis validadas no registro.

    Validações no `register`:
        - nome da Task não vazio e único
        - nomes únicos de slots de entrada, de saída, de parâmetros e de steps
        - ao menos um step, cada um com imagem
        - todo marcador dos steps resolve para parâmetro ou slot declarado
    """

    what: str = field(default="task", init=False, repr=False)

    def register(self, task: TaskSpec) -> TaskSpec:
        _require_name(task.name, "task")
        if task.name in self._items:
            raise DuplicateNameError(f"Duplicate task name: {task.name}", details={"name": task.name})

        _ensure_unique((s.name for s in task.inputs), what="input slot", owner=task.name)
        _ensure_unique((s.name for s in task.outputs), what="output slot", owner=task.name)
        _ensure_unique((p.name for p in task.params), what="param", owner=task.name)
        _ensure_unique((s.name for s in task.steps), what="step", owner=task.name)

        if not task.steps:
            raise InvalidDefinitionError(f"Task '{task.name}' declares no steps", details={"task": task.name})
        for step in task.steps:
            if not isinstance(step.image, str) or not step.image.strip():
                raise InvalidDefinitionError(
                    f"Step '{step.name}' of task '{task.name}' has no image",
                    details={"task": task.name, "step": step.name},
                )
            for template in step.templates():
                for ref in find_references(template):
                    validate_task_reference(task, ref, step=step.name)

        self._add(task.name, task)
        return task


def validate_task_reference(task: TaskSpec, reference: str, *, step: str = "") -> None:
    """
    Garante que uma referência de step aponta para algo declarado pela Task.

    Raises:
        UndeclaredReferenceError: escopo desconhecido, parâmetro ou slot não declarado.
    """
    scope, path = split_reference(reference)
    head = path.split(".", 1)[0]

    if scope in (SCOPE_INPUT_PARAMS, SCOPE_PARAMS):
        declared = task.param(path) is not None
    elif scope == SCOPE_INPUT_RESOURCES:
        declared = "." in path and task.input_slot(head) is not None
    elif scope == SCOPE_OUTPUT_RESOURCES:
        declared = "." in path and task.output_slot(head) is not None
    else:  # pragma: no cover
        declared = False

    if not declared:
        raise UndeclaredReferenceError(
            f"Task '{task.name}' references undeclared '${{{reference}}}'",
            details={"task": task.name, "step": step, "reference": reference},
            hint="Declare o parâmetro/slot na Task ou corrija o marcador.",
        )
