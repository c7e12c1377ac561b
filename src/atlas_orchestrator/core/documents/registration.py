"""
Registro em lote de documentos carregados.

A ordem de registro independe da ordem dos documentos no arquivo:
resources e Tasks primeiro, depois Pipelines (que dependem das Tasks).
PipelineRuns não são executados: são devolvidos como RunRequests.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional

from ..exceptions import DocumentValidationError
from ..pipeline.builder import PipelineRegistry, ResolvedGraph
from ..pipeline.registry import ResourceRegistry, TaskRegistry
from ..pipeline.types import ResourceDefinition, RunRequest, TaskSpec
from .parsers import (
    KIND_PIPELINE,
    KIND_RUN,
    KIND_TASK,
    RESOURCE_KIND_ALIASES,
    parse_pipeline,
    parse_resource,
    parse_run_request,
    parse_task,
)


@dataclass
class RegisteredDocuments:
    resources: List[ResourceDefinition] = field(default_factory=list)
    tasks: List[TaskSpec] = field(default_factory=list)
    pipelines: List[ResolvedGraph] = field(default_factory=list)
    runs: List[RunRequest] = field(default_factory=list)


def _registry_for(kind: str, registry: Optional[Any]) -> Any:
    if registry is None:
        raise DocumentValidationError(
            f"No registry provided for documents of kind '{kind}'",
            details={"kind": kind},
        )
    return registry


def register_documents(
    documents: Iterable[Dict[str, Any]],
    *,
    resources: Optional[ResourceRegistry] = None,
    tasks: Optional[TaskRegistry] = None,
    pipelines: Optional[PipelineRegistry] = None,
) -> RegisteredDocuments:
    """
    Registra cada documento no registry do seu `kind`.

    Raises:
        DocumentValidationError: kind ausente/desconhecido, documento
            malformado ou registry não fornecido para um kind presente.
        DefinitionError: qualquer rejeição dos registries/builder.
    """
    by_kind: Dict[str, List[Dict[str, Any]]] = {"resource": [], "task": [], "pipeline": [], "run": []}
    for idx, doc in enumerate(documents):
        kind = doc.get("kind")
        if kind in RESOURCE_KIND_ALIASES:
            by_kind["resource"].append(doc)
        elif kind == KIND_TASK:
            by_kind["task"].append(doc)
        elif kind == KIND_PIPELINE:
            by_kind["pipeline"].append(doc)
        elif kind == KIND_RUN:
            by_kind["run"].append(doc)
        else:
            raise DocumentValidationError(
                f"Unknown document kind: {kind!r}",
                details={"index": idx, "kind": kind},
                hint="Kinds suportados: PipelineResource, Task, Pipeline, PipelineRun.",
            )

    out = RegisteredDocuments()
    for doc in by_kind["resource"]:
        out.resources.append(_registry_for("PipelineResource", resources).register(parse_resource(doc)))
    for doc in by_kind["task"]:
        out.tasks.append(_registry_for(KIND_TASK, tasks).register(parse_task(doc)))
    for doc in by_kind["pipeline"]:
        out.pipelines.append(_registry_for(KIND_PIPELINE, pipelines).register(parse_pipeline(doc)))
    for doc in by_kind["run"]:
        out.runs.append(parse_run_request(doc))
    return out
