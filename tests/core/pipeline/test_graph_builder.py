# tests/core/pipeline/test_graph_builder.py
"""
Testes do GraphBuilder (PipelineSpec → ResolvedGraph).

Os testes asseguram que:
- grafos acíclicos com cobertura completa são construídos
- a ordem topológica respeita runAfter e proveniência
- cada classe de erro de definição é detectada no build
- o grafo resolvido é imutável e reutilizável
"""

import pytest

from atlas_orchestrator.core.exceptions import (
    CyclicDependencyError,
    DuplicateNameError,
    InvalidProvenanceError,
    KindMismatchError,
    MissingParameterError,
    NotFoundError,
    UnboundSlotError,
    UndeclaredReferenceError,
    UnknownDependencyError,
    UnresolvedReferenceError,
)
from atlas_orchestrator.core.pipeline.builder import GraphBuilder, PipelineRegistry
from atlas_orchestrator.core.pipeline.registry import TaskRegistry
from atlas_orchestrator.core.pipeline.types import (
    ParamDecl,
    PipelineSpec,
    PipelineTaskNode,
    ResourceWiring,
    SlotDecl,
    StepTemplate,
    TaskSpec,
)


def _echo_task(name, *, inputs=(), outputs=(), params=()):
    return TaskSpec(
        name=name,
        inputs=inputs,
        outputs=outputs,
        params=params,
        steps=(StepTemplate(image="alpine", command=("echo", name)),),
    )


@pytest.fixture
def tasks():
    reg = TaskRegistry()
    reg.register(_echo_task("noop"))
    reg.register(_echo_task("producer", outputs=(SlotDecl("out", "storage"),)))
    reg.register(_echo_task("consumer", inputs=(SlotDecl("in", "storage"),)))
    reg.register(
        _echo_task(
            "relay",
            inputs=(SlotDecl("in", "storage"),),
            outputs=(SlotDecl("out", "storage"),),
        )
    )
    reg.register(_echo_task("tagged", params=(ParamDecl("tag"), ParamDecl("level", default="1"))))
    return reg


@pytest.fixture
def builder(tasks):
    return GraphBuilder(tasks)


def test_build_scenario_graph(task_registry, build_deploy_pipeline):
    graph = GraphBuilder(task_registry).build(build_deploy_pipeline)

    assert graph.order == ("source-to-image", "deploy-to-cluster")
    assert graph.predecessors["deploy-to-cluster"] == frozenset({"source-to-image"})
    assert graph.successors["source-to-image"] == frozenset({"deploy-to-cluster"})
    assert graph.in_degree == {"source-to-image": 0, "deploy-to-cluster": 1}
    assert graph.nodes["source-to-image"].task.name == "source-to-image"


def test_independent_nodes_are_ordered_lexicographically(builder):
    spec = PipelineSpec(
        name="p",
        tasks=(PipelineTaskNode("zeta", "noop"), PipelineTaskNode("alpha", "noop"), PipelineTaskNode("mid", "noop")),
    )
    assert builder.build(spec).order == ("alpha", "mid", "zeta")


def test_run_after_and_provenance_both_order_nodes(builder):
    spec = PipelineSpec(
        name="p",
        resources=(SlotDecl("data", "storage"),),
        tasks=(
            PipelineTaskNode("a-read", "consumer", inputs=(ResourceWiring("in", "data", ("z-write",)),)),
            PipelineTaskNode("z-write", "producer", outputs=(ResourceWiring("out", "data"),)),
            PipelineTaskNode("b-last", "noop", run_after=("a-read",)),
        ),
    )
    graph = builder.build(spec)

    assert graph.order == ("z-write", "a-read", "b-last")
    assert graph.descendants("z-write") == {"a-read", "b-last"}


def test_shared_slot_without_provenance_does_not_order(builder):
    spec = PipelineSpec(
        name="p",
        resources=(SlotDecl("data", "storage"),),
        tasks=(
            PipelineTaskNode("write", "producer", outputs=(ResourceWiring("out", "data"),)),
            PipelineTaskNode("read", "consumer", inputs=(ResourceWiring("in", "data"),)),
        ),
    )
    graph = builder.build(spec)

    assert graph.in_degree == {"write": 0, "read": 0}
    assert graph.order == ("read", "write")


def test_cycle_through_provenance_names_both_nodes(builder):
    spec = PipelineSpec(
        name="p",
        resources=(SlotDecl("x", "storage"), SlotDecl("y", "storage")),
        tasks=(
            PipelineTaskNode(
                "a", "relay", inputs=(ResourceWiring("in", "y", ("b",)),), outputs=(ResourceWiring("out", "x"),)
            ),
            PipelineTaskNode(
                "b", "relay", inputs=(ResourceWiring("in", "x", ("a",)),), outputs=(ResourceWiring("out", "y"),)
            ),
        ),
    )
    with pytest.raises(CyclicDependencyError) as exc:
        builder.build(spec)

    assert set(exc.value.members) == {"a", "b"}
    assert "a" in str(exc.value) and "b" in str(exc.value)


def test_duplicate_node_names_are_rejected(builder):
    spec = PipelineSpec(name="p", tasks=(PipelineTaskNode("n", "noop"), PipelineTaskNode("n", "noop")))
    with pytest.raises(DuplicateNameError):
        builder.build(spec)


def test_unknown_task_ref_is_rejected(builder):
    with pytest.raises(NotFoundError) as exc:
        builder.build(PipelineSpec(name="p", tasks=(PipelineTaskNode("n", "ghost"),)))
    assert exc.value.details["name"] == "ghost"


def test_unwired_task_slot_is_rejected(builder):
    spec = PipelineSpec(name="p", resources=(SlotDecl("data", "storage"),), tasks=(PipelineTaskNode("c", "consumer"),))
    with pytest.raises(UnboundSlotError) as exc:
        builder.build(spec)
    assert exc.value.details["slot"] == "in"


def test_wiring_to_undeclared_pipeline_slot_is_rejected(builder):
    spec = PipelineSpec(
        name="p",
        tasks=(PipelineTaskNode("c", "consumer", inputs=(ResourceWiring("in", "nowhere"),)),),
    )
    with pytest.raises(UnboundSlotError) as exc:
        builder.build(spec)
    assert exc.value.details["resource"] == "nowhere"


def test_wiring_of_undeclared_task_slot_is_rejected(builder):
    spec = PipelineSpec(
        name="p",
        resources=(SlotDecl("data", "storage"),),
        tasks=(PipelineTaskNode("n", "noop", inputs=(ResourceWiring("extra", "data"),)),),
    )
    with pytest.raises(UndeclaredReferenceError):
        builder.build(spec)


def test_kind_mismatch_between_pipeline_and_task_slot(builder):
    spec = PipelineSpec(
        name="p",
        resources=(SlotDecl("data", "git"),),
        tasks=(PipelineTaskNode("c", "consumer", inputs=(ResourceWiring("in", "data"),)),),
    )
    with pytest.raises(KindMismatchError):
        builder.build(spec)


def test_missing_required_param_is_rejected(builder):
    with pytest.raises(MissingParameterError) as exc:
        builder.build(PipelineSpec(name="p", tasks=(PipelineTaskNode("t", "tagged"),)))
    assert exc.value.details["param"] == "tag"


def test_undeclared_node_param_is_rejected(builder):
    spec = PipelineSpec(name="p", tasks=(PipelineTaskNode("t", "tagged", params={"tag": "1", "bogus": "x"}),))
    with pytest.raises(UndeclaredReferenceError):
        builder.build(spec)


def test_param_value_must_reference_declared_pipeline_param(builder):
    spec = PipelineSpec(
        name="p",
        params=(ParamDecl("version"),),
        tasks=(PipelineTaskNode("t", "tagged", params={"tag": "${params.release}"}),),
    )
    with pytest.raises(UnresolvedReferenceError):
        builder.build(spec)


def test_unknown_run_after_is_rejected(builder):
    spec = PipelineSpec(name="p", tasks=(PipelineTaskNode("t", "noop", run_after=("ghost",)),))
    with pytest.raises(UnknownDependencyError):
        builder.build(spec)


def test_provenance_from_node_that_does_not_produce_slot(builder):
    spec = PipelineSpec(
        name="p",
        resources=(SlotDecl("data", "storage"),),
        tasks=(
            PipelineTaskNode("n", "noop"),
            PipelineTaskNode("c", "consumer", inputs=(ResourceWiring("in", "data", ("n",)),)),
        ),
    )
    with pytest.raises(InvalidProvenanceError):
        builder.build(spec)


def test_provenance_from_unknown_node(builder):
    spec = PipelineSpec(
        name="p",
        resources=(SlotDecl("data", "storage"),),
        tasks=(PipelineTaskNode("c", "consumer", inputs=(ResourceWiring("in", "data", ("ghost",)),)),),
    )
    with pytest.raises(UnknownDependencyError):
        builder.build(spec)


def test_resolved_graph_is_immutable(task_registry, build_deploy_pipeline):
    graph = GraphBuilder(task_registry).build(build_deploy_pipeline)

    with pytest.raises(TypeError):
        graph.nodes["other"] = graph.nodes["source-to-image"]  # type: ignore[index]
    with pytest.raises(AttributeError):
        graph.order = ()  # type: ignore[misc]


def test_pipeline_registry_stores_graphs(task_registry, build_deploy_pipeline):
    reg = PipelineRegistry(builder=GraphBuilder(task_registry))
    graph = reg.register(build_deploy_pipeline)

    assert reg.get("build-and-deploy") is graph
    with pytest.raises(DuplicateNameError):
        reg.register(build_deploy_pipeline)
    with pytest.raises(NotFoundError):
        reg.get("missing")
