"""
Parsers de documentos estruturados → tipos canônicos de definição.

Kinds suportados (v1):
    - Task              → TaskSpec
    - Pipeline          → PipelineSpec
    - PipelineResource  → ResourceDefinition (alias: Resource)
    - PipelineRun       → RunRequest

Formato geral de um documento:

    kind: Task
    metadata:
      name: build-image
    spec: {...}

Listas de parâmetros aceitam tanto a forma de lista
(`[{name: x, value: y}]`) quanto a forma de mapping (`{x: y}`).

Os parsers validam apenas a estrutura do documento; a validação
semântica é feita pelos registries, pelo builder de grafo e pelo binding.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Tuple

from ..exceptions import DocumentValidationError
from ..pipeline.types import (
    ParamDecl,
    PipelineSpec,
    PipelineTaskNode,
    ResourceDefinition,
    ResourceWiring,
    RunRequest,
    SlotDecl,
    StepTemplate,
    TaskSpec,
)


KIND_TASK = "Task"
KIND_PIPELINE = "Pipeline"
KIND_RESOURCE = "PipelineResource"
KIND_RUN = "PipelineRun"

RESOURCE_KIND_ALIASES = frozenset({KIND_RESOURCE, "Resource"})


def _is_non_empty_str(x: Any) -> bool:
    return isinstance(x, str) and bool(x.strip())


def _expect(cond: bool, msg: str, **details: Any) -> None:
    if not cond:
        raise DocumentValidationError(msg, details=details)


def _mapping(value: Any, where: str) -> Dict[str, Any]:
    if value is None:
        return {}
    _expect(isinstance(value, dict), f"{where} must be a mapping", where=where)
    return value


def _list(value: Any, where: str) -> List[Any]:
    if value is None:
        return []
    _expect(isinstance(value, list), f"{where} must be a list", where=where)
    return value


def _str_list(value: Any, where: str) -> Tuple[str, ...]:
    if isinstance(value, str):
        return (value,)
    items = _list(value, where)
    for i, item in enumerate(items):
        _expect(_is_non_empty_str(item), f"{where}[{i}] must be a non-empty string", where=where)
    return tuple(items)


def _scalar(value: Any, where: str) -> str:
    _expect(
        isinstance(value, (str, int, float, bool)),
        f"{where} must be a scalar value",
        where=where,
    )
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def document_name(doc: Dict[str, Any]) -> str:
    metadata = _mapping(doc.get("metadata"), "metadata")
    name = metadata.get("name", doc.get("name"))
    _expect(_is_non_empty_str(name), f"{doc.get('kind', 'document')} requires metadata.name", kind=doc.get("kind"))
    return name


def _spec(doc: Dict[str, Any]) -> Dict[str, Any]:
    return _mapping(doc.get("spec"), f"{doc.get('kind')}.spec")


def _values(value: Any, where: str) -> Dict[str, str]:
    """Valores nomeados: `[{name, value}]` ou `{name: value}`."""
    if isinstance(value, dict):
        return {str(k): _scalar(v, f"{where}.{k}") for k, v in value.items()}
    out: Dict[str, str] = {}
    for i, item in enumerate(_list(value, where)):
        item = _mapping(item, f"{where}[{i}]")
        name = item.get("name")
        _expect(_is_non_empty_str(name), f"{where}[{i}].name is required", where=where)
        _expect(name not in out, f"duplicate name in {where}: {name}", where=where, name=name)
        _expect("value" in item, f"{where}[{i}].value is required", where=where, name=name)
        out[name] = _scalar(item["value"], f"{where}.{name}")
    return out


def _slots(value: Any, where: str) -> Tuple[SlotDecl, ...]:
    slots = []
    for i, item in enumerate(_list(value, where)):
        item = _mapping(item, f"{where}[{i}]")
        name = item.get("name")
        kind = item.get("type", item.get("kind"))
        _expect(_is_non_empty_str(name), f"{where}[{i}].name is required", where=where)
        _expect(_is_non_empty_str(kind), f"{where}[{i}].type is required", where=where, name=name)
        slots.append(SlotDecl(name=name, kind=kind))
    return tuple(slots)


def _param_decls(value: Any, where: str) -> Tuple[ParamDecl, ...]:
    if isinstance(value, dict):
        return tuple(
            ParamDecl(name=str(k), default=None if v is None else _scalar(v, f"{where}.{k}"))
            for k, v in value.items()
        )
    params = []
    for i, item in enumerate(_list(value, where)):
        item = _mapping(item, f"{where}[{i}]")
        name = item.get("name")
        _expect(_is_non_empty_str(name), f"{where}[{i}].name is required", where=where)
        default = item.get("default")
        params.append(
            ParamDecl(
                name=name,
                default=None if default is None else _scalar(default, f"{where}.{name}.default"),
                description=str(item.get("description", "") or ""),
            )
        )
    return tuple(params)


# ---------------------------------------------------------------------------
# Kinds
# ---------------------------------------------------------------------------

def parse_resource(doc: Dict[str, Any]) -> ResourceDefinition:
    name = document_name(doc)
    spec = _spec(doc)
    kind = spec.get("type", spec.get("kind"))
    _expect(_is_non_empty_str(kind), f"resource '{name}' requires spec.type", resource=name)
    return ResourceDefinition(name=name, kind=kind, params=_values(spec.get("params"), f"{name}.spec.params"))


def _step(item: Any, where: str) -> StepTemplate:
    item = _mapping(item, where)
    image = item.get("image")
    _expect(_is_non_empty_str(image), f"{where}.image is required", where=where)
    name = item.get("name", "")
    _expect(name == "" or _is_non_empty_str(name), f"{where}.name must be a string", where=where)
    return StepTemplate(
        name=name,
        image=image,
        command=_str_list(item.get("command"), f"{where}.command"),
        args=tuple(_scalar(a, f"{where}.args") for a in _list(item.get("args"), f"{where}.args")),
    )


def parse_task(doc: Dict[str, Any]) -> TaskSpec:
    name = document_name(doc)
    spec = _spec(doc)
    inputs = _mapping(spec.get("inputs"), f"{name}.spec.inputs")
    outputs = _mapping(spec.get("outputs"), f"{name}.spec.outputs")

    params = _param_decls(inputs.get("params"), f"{name}.spec.inputs.params")
    params += _param_decls(spec.get("params"), f"{name}.spec.params")

    steps = tuple(
        _step(item, f"{name}.spec.steps[{i}]")
        for i, item in enumerate(_list(spec.get("steps"), f"{name}.spec.steps"))
    )

    return TaskSpec(
        name=name,
        inputs=_slots(inputs.get("resources"), f"{name}.spec.inputs.resources"),
        outputs=_slots(outputs.get("resources"), f"{name}.spec.outputs.resources"),
        params=params,
        steps=steps,
        description=str(spec.get("description", "") or ""),
    )


def _wirings(value: Any, where: str, *, allow_from: bool) -> Tuple[ResourceWiring, ...]:
    wirings = []
    for i, item in enumerate(_list(value, where)):
        item = _mapping(item, f"{where}[{i}]")
        slot = item.get("name")
        resource = item.get("resource")
        _expect(_is_non_empty_str(slot), f"{where}[{i}].name is required", where=where)
        _expect(_is_non_empty_str(resource), f"{where}[{i}].resource is required", where=where, slot=slot)
        from_tasks = _str_list(item.get("from"), f"{where}[{i}].from")
        _expect(allow_from or not from_tasks, f"{where}[{i}] cannot declare 'from'", where=where, slot=slot)
        wirings.append(ResourceWiring(slot=slot, resource=resource, from_tasks=from_tasks))
    return tuple(wirings)


def _task_ref(item: Dict[str, Any], where: str) -> str:
    ref = item.get("taskRef")
    if isinstance(ref, dict):
        ref = ref.get("name")
    _expect(_is_non_empty_str(ref), f"{where}.taskRef.name is required", where=where)
    return ref


def parse_pipeline(doc: Dict[str, Any]) -> PipelineSpec:
    name = document_name(doc)
    spec = _spec(doc)

    nodes = []
    for i, item in enumerate(_list(spec.get("tasks"), f"{name}.spec.tasks")):
        where = f"{name}.spec.tasks[{i}]"
        item = _mapping(item, where)
        node_name = item.get("name")
        _expect(_is_non_empty_str(node_name), f"{where}.name is required", where=where)
        resources = _mapping(item.get("resources"), f"{where}.resources")
        nodes.append(
            PipelineTaskNode(
                name=node_name,
                task_ref=_task_ref(item, where),
                inputs=_wirings(resources.get("inputs"), f"{where}.resources.inputs", allow_from=True),
                outputs=_wirings(resources.get("outputs"), f"{where}.resources.outputs", allow_from=False),
                params=_values(item.get("params"), f"{where}.params"),
                run_after=_str_list(item.get("runAfter"), f"{where}.runAfter"),
            )
        )

    return PipelineSpec(
        name=name,
        resources=_slots(spec.get("resources"), f"{name}.spec.resources"),
        params=_param_decls(spec.get("params"), f"{name}.spec.params"),
        tasks=tuple(nodes),
    )


def _run_resources(value: Any, where: str) -> Dict[str, str]:
    if isinstance(value, dict):
        out = {}
        for slot, ref in value.items():
            if isinstance(ref, dict):
                ref = ref.get("name")
            _expect(_is_non_empty_str(ref), f"{where}.{slot} must name a resource", where=where, slot=slot)
            out[str(slot)] = ref
        return out

    out = {}
    for i, item in enumerate(_list(value, where)):
        item = _mapping(item, f"{where}[{i}]")
        slot = item.get("name")
        _expect(_is_non_empty_str(slot), f"{where}[{i}].name is required", where=where)
        ref = _mapping(item.get("resourceRef"), f"{where}[{i}].resourceRef").get("name")
        _expect(_is_non_empty_str(ref), f"{where}[{i}].resourceRef.name is required", where=where, slot=slot)
        _expect(slot not in out, f"duplicate resource binding in {where}: {slot}", where=where, slot=slot)
        out[slot] = ref
    return out


def parse_run_request(doc: Dict[str, Any]) -> RunRequest:
    metadata = _mapping(doc.get("metadata"), "metadata")
    spec = _spec(doc)

    ref = spec.get("pipelineRef")
    if isinstance(ref, dict):
        ref = ref.get("name")
    _expect(_is_non_empty_str(ref), "PipelineRun requires spec.pipelineRef.name")

    service_account: Optional[str] = spec.get("serviceAccountName", spec.get("serviceAccount"))
    _expect(
        service_account is None or _is_non_empty_str(service_account),
        "PipelineRun spec.serviceAccount must be a non-empty string",
        pipeline=ref,
    )
    generate_name = metadata.get("generateName") or (
        f"{metadata['name']}-" if _is_non_empty_str(metadata.get("name")) else ""
    )

    return RunRequest(
        pipeline=ref,
        resources=_run_resources(spec.get("resources"), "PipelineRun.spec.resources"),
        params=_values(spec.get("params"), "PipelineRun.spec.params"),
        service_account=service_account or "default",
        generate_name=generate_name,
    )
