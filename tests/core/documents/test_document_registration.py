# tests/core/documents/test_document_registration.py
"""
Testes do registro em lote de documentos (register_documents).
"""

from pathlib import Path

import pytest

from atlas_orchestrator.core.documents import load_documents, register_documents
from atlas_orchestrator.core.exceptions import DocumentValidationError, NotFoundError
from atlas_orchestrator.core.pipeline.builder import GraphBuilder, PipelineRegistry
from atlas_orchestrator.core.pipeline.registry import ResourceRegistry, TaskRegistry


FIXTURE = Path(__file__).resolve().parents[2] / "fixtures" / "build_and_deploy.yaml"


@pytest.fixture
def registries():
    tasks = TaskRegistry()
    return ResourceRegistry(), tasks, PipelineRegistry(builder=GraphBuilder(tasks))


def test_registration_is_independent_of_document_order(registries):
    resources, tasks, pipelines = registries

    out = register_documents(load_documents(FIXTURE), resources=resources, tasks=tasks, pipelines=pipelines)

    assert resources.names() == ["skaffold-git", "skaffold-image"]
    assert tasks.names() == ["source-to-image", "deploy-to-cluster"]
    assert pipelines.get("build-and-deploy").order == ("source-to-image", "deploy-to-cluster")
    assert [r.pipeline for r in out.runs] == ["build-and-deploy"]
    assert len(out.pipelines) == 1 and len(out.tasks) == 2 and len(out.resources) == 2


def test_unknown_kind_is_rejected(registries):
    resources, tasks, pipelines = registries
    with pytest.raises(DocumentValidationError) as exc:
        register_documents([{"kind": "Deployment"}], resources=resources, tasks=tasks, pipelines=pipelines)
    assert exc.value.details == {"index": 0, "kind": "Deployment"}


def test_missing_registry_for_present_kind():
    with pytest.raises(DocumentValidationError):
        register_documents([{"kind": "Task", "metadata": {"name": "t"}, "spec": {"steps": [{"image": "a"}]}}])


def test_pipeline_referencing_unregistered_task_is_rejected(registries):
    resources, tasks, pipelines = registries
    doc = {"kind": "Pipeline", "metadata": {"name": "p"}, "spec": {"tasks": [{"name": "n", "taskRef": "ghost"}]}}

    with pytest.raises(NotFoundError):
        register_documents([doc], resources=resources, tasks=tasks, pipelines=pipelines)
    assert "p" not in pipelines


def test_runs_only_need_no_registry():
    out = register_documents([{"kind": "PipelineRun", "spec": {"pipelineRef": {"name": "p"}}}])
    assert out.runs[0].pipeline == "p"
