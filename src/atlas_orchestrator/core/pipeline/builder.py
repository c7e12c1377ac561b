"""
Builder de grafo de pipeline do Atlas Orchestrator.

Este módulo transforma uma `PipelineSpec` declarativa em um `ResolvedGraph`
imutável, validado e pronto para ser instanciado repetidamente por runs
diferentes, sem revalidação.

Etapas do `build`, nesta ordem:
    0. Estrutura: nomes únicos de nós, slots e parâmetros; `task_ref` existente
    1. Cobertura de slots: todo slot da Task ligado a um slot do pipeline de
       mesmo kind; todo parâmetro obrigatório recebe valor; valores só
       referenciam parâmetros declarados do pipeline
    2. Derivação de dependências: `runAfter` explícito e proveniência (`from`)
    3. Verificação de ciclos via ordenação topológica determinística
    4. Saída: `ResolvedGraph` com nós, predecessores, sucessores, in-degree e ordem

Decisões arquiteturais:
    - Proveniência é a única forma de um resource virar restrição de ordem;
      um slot compartilhado sem `from` não ordena os nós
    - Um nó com vários predecessores exige que todos tenham sucesso (AND estrito)
    - Erros de definição interrompem o build no primeiro problema encontrado

Invariantes:
    - Todo `ResolvedGraph` denota um DAG
    - Um `ResolvedGraph` nunca é mutado após construído

Limites explícitos:
    - Não liga resources concretos (ver `core.engine.binding`)
    - Não executa Tasks
"""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Dict, FrozenSet, Mapping, Set, Tuple

from ..engine.planner import in_degrees, plan_execution, successors
from ..exceptions import (
    DuplicateNameError,
    InvalidProvenanceError,
    KindMismatchError,
    MissingParameterError,
    UnboundSlotError,
    UndeclaredReferenceError,
    UnknownDependencyError,
    UnresolvedReferenceError,
)
from ..templating import SCOPE_PARAMS, find_references
from .registry import TaskRegistry, _NamedRegistry, _ensure_unique, _require_name
from .types import PipelineSpec, PipelineTaskNode, ResourceWiring, SlotDecl, TaskSpec


@dataclass(frozen=True)
class ResolvedNode:
    """Nó validado: uso de Task no pipeline junto com a TaskSpec referenciada."""

    node: PipelineTaskNode
    task: TaskSpec

    @property
    def name(self) -> str:
        return self.node.name


@dataclass(frozen=True)
class ResolvedGraph:
    """
    Grafo de pipeline validado e imutável.

    Campos:
        - spec: PipelineSpec de origem
        - nodes: nome do nó → ResolvedNode
        - predecessors / successors: arestas do DAG
        - in_degree: número de predecessores por nó
        - order: ordem topológica determinística

    Pode ser compartilhado por qualquer número de runs concorrentes.
    """

    spec: PipelineSpec
    nodes: Mapping[str, ResolvedNode]
    predecessors: Mapping[str, FrozenSet[str]]
    successors: Mapping[str, FrozenSet[str]]
    in_degree: Mapping[str, int]
    order: Tuple[str, ...]

    @property
    def name(self) -> str:
        return self.spec.name

    def descendants(self, name: str) -> Set[str]:
        """Todos os nós alcançáveis a partir de `name` (exclusive)."""
        seen: Set[str] = set()
        stack = list(self.successors[name])
        while stack:
            n = stack.pop()
            if n not in seen:
                seen.add(n)
                stack.extend(self.successors[n])
        return seen

    def resource_slot(self, name: str) -> SlotDecl:
        return next(s for s in self.spec.resources if s.name == name)


@dataclass
class GraphBuilder:
    """Constrói `ResolvedGraph`s a partir de PipelineSpecs e do TaskRegistry."""

    tasks: TaskRegistry

    def build(self, spec: PipelineSpec) -> ResolvedGraph:
        """
        Valida uma PipelineSpec e compila seu DAG.

        Args:
            spec: definição declarativa do pipeline.

        Returns:
            ResolvedGraph: grafo imutável com ordem topológica determinística.

        Raises:
            NotFoundError: `task_ref` não registrado.
            DuplicateNameError: nomes repetidos de nós, slots ou parâmetros.
            UnboundSlotError, KindMismatchError: wiring de resources incompleto
                ou incompatível.
            UndeclaredReferenceError, MissingParameterError: parâmetros do nó.
            InvalidProvenanceError, UnknownDependencyError: arestas inválidas.
            CyclicDependencyError: o grafo de dependências tem ciclo.
        """
        _require_name(spec.name, "pipeline")
        _ensure_unique((s.name for s in spec.resources), what="resource slot", owner=spec.name)
        _ensure_unique((p.name for p in spec.params), what="param", owner=spec.name)
        _ensure_unique((n.name for n in spec.tasks), what="task", owner=spec.name)

        pipeline_slots = {s.name: s for s in spec.resources}
        pipeline_params = {p.name for p in spec.params}

        nodes: Dict[str, ResolvedNode] = {}
        for node in spec.tasks:
            task = self.tasks.get(node.task_ref)
            self._check_slots(spec, node, task, pipeline_slots)
            self._check_params(spec, node, task, pipeline_params)
            nodes[node.name] = ResolvedNode(node=node, task=task)

        deps = self._derive_dependencies(spec, nodes)
        order = plan_execution(deps)

        frozen_deps = {n: frozenset(d) for n, d in deps.items()}
        frozen_succ = {n: frozenset(s) for n, s in successors(deps).items()}

        return ResolvedGraph(
            spec=spec,
            nodes=MappingProxyType(nodes),
            predecessors=MappingProxyType(frozen_deps),
            successors=MappingProxyType(frozen_succ),
            in_degree=MappingProxyType(in_degrees(deps)),
            order=tuple(order),
        )

    # ------------------------------------------------------------------
    # 1. Cobertura de slots e parâmetros
    # ------------------------------------------------------------------

    def _check_slots(
        self,
        spec: PipelineSpec,
        node: PipelineTaskNode,
        task: TaskSpec,
        pipeline_slots: Mapping[str, SlotDecl],
    ) -> None:
        """Todo slot da Task ligado exatamente uma vez a um slot do pipeline de mesmo kind."""
        for direction, declared, wirings in (
            ("input", task.inputs, node.inputs),
            ("output", task.outputs, node.outputs),
        ):
            declared_by_name = {s.name: s for s in declared}
            wired: Dict[str, ResourceWiring] = {}
            for w in wirings:
                if w.slot not in declared_by_name:
                    raise UndeclaredReferenceError(
                        f"Task '{node.name}' wires undeclared {direction} slot '{w.slot}' "
                        f"of task '{task.name}'",
                        details={"pipeline": spec.name, "task": node.name, "slot": w.slot},
                    )
                if w.slot in wired:
                    raise DuplicateNameError(
                        f"Task '{node.name}' wires {direction} slot '{w.slot}' twice",
                        details={"pipeline": spec.name, "task": node.name, "slot": w.slot},
                    )
                if direction == "output" and w.from_tasks:
                    raise InvalidProvenanceError(
                        f"Output slot '{w.slot}' of task '{node.name}' cannot declare 'from'",
                        details={"pipeline": spec.name, "task": node.name, "slot": w.slot},
                    )
                wired[w.slot] = w

            for slot in declared:
                w = wired.get(slot.name)
                if w is None:
                    raise UnboundSlotError(
                        f"{direction.capitalize()} slot '{slot.name}' of task '{node.name}' is not bound",
                        details={"pipeline": spec.name, "task": node.name, "slot": slot.name},
                    )
                target = pipeline_slots.get(w.resource)
                if target is None:
                    raise UnboundSlotError(
                        f"Task '{node.name}' binds slot '{slot.name}' to undeclared pipeline "
                        f"resource '{w.resource}'",
                        details={
                            "pipeline": spec.name,
                            "task": node.name,
                            "slot": slot.name,
                            "resource": w.resource,
                        },
                    )
                if target.kind != slot.kind:
                    raise KindMismatchError(
                        f"Pipeline resource '{target.name}' ({target.kind}) cannot bind slot "
                        f"'{slot.name}' ({slot.kind}) of task '{node.name}'",
                        details={
                            "pipeline": spec.name,
                            "task": node.name,
                            "slot": slot.name,
                            "slot_kind": slot.kind,
                            "resource": target.name,
                            "resource_kind": target.kind,
                        },
                    )

    def _check_params(
        self,
        spec: PipelineSpec,
        node: PipelineTaskNode,
        task: TaskSpec,
        pipeline_params: Set[str],
    ) -> None:
        """Parâmetros do nó: declarados pela Task, obrigatórios presentes e só `${params.*}` do pipeline."""
        for pname, value in node.params.items():
            if task.param(pname) is None:
                raise UndeclaredReferenceError(
                    f"Task '{node.name}' sets param '{pname}' not declared by task '{task.name}'",
                    details={"pipeline": spec.name, "task": node.name, "param": pname},
                )
            for ref in find_references(value):
                scope, _, path = ref.partition(".")
                if scope != SCOPE_PARAMS or path not in pipeline_params:
                    raise UnresolvedReferenceError(
                        f"Param '{pname}' of task '{node.name}' references '${{{ref}}}', "
                        f"which is not a param of pipeline '{spec.name}'",
                        details={"pipeline": spec.name, "task": node.name, "param": pname, "reference": ref},
                    )

        for p in task.params:
            if p.required and p.name not in node.params:
                raise MissingParameterError(
                    f"Required param '{p.name}' of task '{node.name}' has no value",
                    details={"pipeline": spec.name, "task": node.name, "param": p.name},
                )

    # ------------------------------------------------------------------
    # 2. Derivação de dependências
    # ------------------------------------------------------------------

    def _derive_dependencies(
        self,
        spec: PipelineSpec,
        nodes: Mapping[str, ResolvedNode],
    ) -> Dict[str, Set[str]]:
        """
        Arestas do DAG: `runAfter` explícito mais proveniência.

        `from: [a]` num slot de entrada cria a aresta a → nó, desde que `a`
        produza o mesmo resource do pipeline num slot de saída.
        """
        produces: Dict[str, Set[str]] = {
            name: {w.resource for w in rn.node.outputs} for name, rn in nodes.items()
        }

        deps: Dict[str, Set[str]] = {}
        for name, rn in nodes.items():
            d: Set[str] = set()
            for after in rn.node.run_after:
                if after not in nodes:
                    raise UnknownDependencyError(
                        f"Task '{name}' runs after unknown task '{after}'",
                        details={"pipeline": spec.name, "task": name, "dependency": after},
                    )
                d.add(after)

            for w in rn.node.inputs:
                for source in w.from_tasks:
                    if source not in nodes:
                        raise UnknownDependencyError(
                            f"Input '{w.slot}' of task '{name}' comes from unknown task '{source}'",
                            details={"pipeline": spec.name, "task": name, "dependency": source},
                        )
                    if w.resource not in produces[source]:
                        raise InvalidProvenanceError(
                            f"Task '{source}' does not output pipeline resource '{w.resource}' "
                            f"consumed by task '{name}'",
                            details={
                                "pipeline": spec.name,
                                "task": name,
                                "from": source,
                                "resource": w.resource,
                            },
                        )
                    d.add(source)
            deps[name] = d
        return deps


@dataclass
class PipelineRegistry(_NamedRegistry[ResolvedGraph]):
    """Pipelines registrados, armazenados já como `ResolvedGraph` validado."""

    builder: GraphBuilder
    what: str = field(default="pipeline", init=False, repr=False)

    def register(self, spec: PipelineSpec) -> ResolvedGraph:
        """
        Constrói e armazena o grafo do pipeline.

        Raises:
            DuplicateNameError: pipeline já registrado.
            DefinitionError: qualquer erro de `GraphBuilder.build`; nada é registrado.
        """
        if spec.name in self:
            raise DuplicateNameError(f"Duplicate pipeline name: {spec.name}", details={"name": spec.name})
        graph = self.builder.build(spec)
        self._add(spec.name, graph)
        return graph
