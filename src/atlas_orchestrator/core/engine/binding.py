"""
Binding de runs: RunRequest + ResolvedGraph → RunInstance.

Este módulo liga resources concretos e valores de parâmetros a um
`ResolvedGraph` já validado e resolve, de forma antecipada, todos os
steps de todos os nós. Qualquer problema rejeita a run antes que ela
seja aceita: nenhum TaskRun chega a ser criado.

Ordem das verificações:
    1. Resources: slot não declarado, slot sem ligação, resource
       inexistente, kind incompatível
    2. Parâmetros do pipeline: não declarado, obrigatório sem valor
    3. Parâmetros de cada nó: expansão de `${params.<nome>}` e defaults da Task
    4. Steps: expansão de todos os marcadores de `command`/`args`

Limites explícitos:
    - Não executa steps
    - Não gera o identificador da run (responsabilidade do Engine)
"""

from __future__ import annotations

from typing import Any, Dict, Mapping, Optional

from ..exceptions import (
    MissingParameterError,
    UnboundSlotError,
    UndeclaredReferenceError,
    UnresolvedReferenceError,
)
from ..pipeline.builder import ResolvedGraph, ResolvedNode
from ..pipeline.context import RunContext, utc_now
from ..pipeline.registry import ResourceRegistry
from ..pipeline.types import ResourceDefinition, RunRequest
from ..templating import (
    SCOPE_INPUT_RESOURCES,
    SCOPE_OUTPUT_RESOURCES,
    SCOPE_PARAMS,
    param_entries,
    resolve_all,
    resolve_template,
    resource_entries,
)
from .run import ResolvedStep, RunInstance, TaskRunInstance


def _bind_resources(
    graph: ResolvedGraph,
    request: RunRequest,
    registry: ResourceRegistry,
) -> Dict[str, ResourceDefinition]:
    declared = {s.name: s for s in graph.spec.resources}

    for slot in request.resources:
        if slot not in declared:
            raise UndeclaredReferenceError(
                f"Run binds undeclared resource slot '{slot}' of pipeline '{graph.name}'",
                details={"pipeline": graph.name, "slot": slot},
            )

    bound: Dict[str, ResourceDefinition] = {}
    for slot in graph.spec.resources:
        resource_name = request.resources.get(slot.name)
        if resource_name is None:
            raise UnboundSlotError(
                f"Resource slot '{slot.name}' of pipeline '{graph.name}' is not bound",
                details={"pipeline": graph.name, "slot": slot.name},
                hint="Informe o resource em RunRequest.resources.",
            )
        resource = registry.resolve(resource_name)
        registry.check_kind(resource, slot.kind, slot=slot.name)
        bound[slot.name] = resource
    return bound


def _bind_params(graph: ResolvedGraph, request: RunRequest) -> Dict[str, str]:
    declared = {p.name: p for p in graph.spec.params}

    for pname in request.params:
        if pname not in declared:
            raise UndeclaredReferenceError(
                f"Run sets undeclared param '{pname}' of pipeline '{graph.name}'",
                details={"pipeline": graph.name, "param": pname},
            )

    effective: Dict[str, str] = {}
    for p in graph.spec.params:
        if p.name in request.params:
            effective[p.name] = request.params[p.name]
        elif p.default is not None:
            effective[p.name] = p.default
        else:
            raise MissingParameterError(
                f"Required param '{p.name}' of pipeline '{graph.name}' has no value",
                details={"pipeline": graph.name, "param": p.name},
            )
    return effective


def _node_params(rn: ResolvedNode, pipeline_params: Mapping[str, str]) -> Dict[str, str]:
    """Valores efetivos dos parâmetros da Task no nó: wiring do pipeline, senão default."""
    scope = param_entries(pipeline_params, scopes=(SCOPE_PARAMS,))
    values: Dict[str, str] = {}
    for p in rn.task.params:
        if p.name in rn.node.params:
            values[p.name] = resolve_template(rn.node.params[p.name], scope)
        elif p.default is not None:
            values[p.name] = p.default
        else:
            raise MissingParameterError(
                f"Required param '{p.name}' of task '{rn.name}' has no value",
                details={"task": rn.name, "param": p.name},
            )
    return values


def _node_context(
    rn: ResolvedNode,
    params: Mapping[str, str],
    bound: Mapping[str, ResourceDefinition],
) -> Dict[str, str]:
    """
    Contexto de resolução dos steps de um nó.

    Publica os parâmetros da Task nos escopos `inputs.params` e `params`, e
    cada resource ligado a um slot de entrada ou saída com seus params,
    `name`, `type` e `path`.
    """
    context = param_entries(params)
    for scope, wirings in (
        (SCOPE_INPUT_RESOURCES, rn.node.inputs),
        (SCOPE_OUTPUT_RESOURCES, rn.node.outputs),
    ):
        for w in wirings:
            resource = bound[w.resource]
            context.update(
                resource_entries(
                    scope,
                    w.slot,
                    name=resource.name,
                    kind=resource.kind,
                    params=resource.params,
                )
            )
    return context


def _resolve_steps(rn: ResolvedNode, context: Mapping[str, str]):
    """
    Resolve imagem, comando e argumentos de todos os steps do nó.

    Raises:
        UnresolvedReferenceError: marcador sem valor; `details` ganha o nó
            e o step de origem.
    """
    resolved = []
    for step in rn.task.steps:
        try:
            resolved.append(
                ResolvedStep(
                    name=step.name,
                    image=resolve_template(step.image, context),
                    command=resolve_all(step.command, context),
                    args=resolve_all(step.args, context),
                )
            )
        except UnresolvedReferenceError as exc:
            raise UnresolvedReferenceError(
                exc.message,
                details={**exc.details, "task": rn.name, "step": step.name},
                hint=exc.hint,
            ) from None
    return tuple(resolved)


def bind_run(
    graph: ResolvedGraph,
    request: RunRequest,
    resources: ResourceRegistry,
    run_id: str,
    *,
    config: Optional[Dict[str, Any]] = None,
) -> RunInstance:
    """
    Cria uma RunInstance com todos os steps resolvidos.

    Raises:
        UndeclaredReferenceError: slot ou parâmetro não declarado pelo pipeline.
        UnboundSlotError: slot do pipeline sem resource.
        NotFoundError: resource inexistente no registry.
        KindMismatchError: resource de kind diferente do slot.
        MissingParameterError: parâmetro obrigatório sem valor.
        UnresolvedReferenceError: marcador sem valor em algum step.
    """
    bound = _bind_resources(graph, request, resources)
    pipeline_params = _bind_params(graph, request)

    tasks: Dict[str, TaskRunInstance] = {}
    for name in graph.order:
        rn = graph.nodes[name]
        params = _node_params(rn, pipeline_params)
        steps = _resolve_steps(rn, _node_context(rn, params, bound))
        tasks[name] = TaskRunInstance(
            name=name,
            task_ref=rn.task.name,
            steps=steps,
            params=params,
        )

    return RunInstance(
        run_id=run_id,
        graph=graph,
        request=request,
        resources={slot: r.name for slot, r in bound.items()},
        params=pipeline_params,
        tasks=tasks,
        context=RunContext(
            run_id=run_id,
            created_at=utc_now(),
            config=dict(config or {}),
            service_account=request.service_account,
        ),
    )
