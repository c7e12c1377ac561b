# tests/conftest.py
"""
Fixtures compartilhados para testes do Atlas Orchestrator.

Este módulo define fixtures reutilizáveis que fornecem:
- configurações mínimas e determinísticas (YAML em string)
- resources, Tasks e Pipelines do cenário build → deploy
- registries já populados
- um `StepRuntime` fake, assíncrono e observável

O objetivo destas fixtures é permitir testes do core sem depender de:
- containers, clusters ou rede
- variáveis de ambiente
- notebooks ou adapters de UI

Invariantes:
    - Nenhuma fixture executa containers reais
    - Dados retornados são determinísticos e isolados por teste
"""

import asyncio

import pytest

from atlas_orchestrator.core.engine.engine import Engine
from atlas_orchestrator.core.engine.runtime import StepInvocation, StepOutcome
from atlas_orchestrator.core.pipeline.builder import GraphBuilder, PipelineRegistry
from atlas_orchestrator.core.pipeline.registry import ResourceRegistry, TaskRegistry
from atlas_orchestrator.core.pipeline.types import (
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


# =====================================================
# Config
# =====================================================

@pytest.fixture
def config_defaults_yaml() -> str:
    """Conteúdo típico de um `config.defaults.yaml` do engine."""
    return """\
engine:
  max_parallel: 4
  fail_fast: false
  deadline_seconds: null
labels:
  team: platform
  env: dev
"""


@pytest.fixture
def config_local_yaml() -> str:
    """Overrides locais: apenas o que muda em relação aos defaults."""
    return """\
engine:
  fail_fast: true
labels:
  env: local
"""


# =====================================================
# Definições do cenário source-to-image → deploy-to-cluster
# =====================================================

@pytest.fixture
def source_to_image_task() -> TaskSpec:
    return TaskSpec(
        name="source-to-image",
        inputs=(SlotDecl("git-source", "git"),),
        outputs=(SlotDecl("built-image", "image"),),
        params=(
            ParamDecl("pathToContext", default="."),
            ParamDecl("imageTag", default="latest"),
        ),
        steps=(
            StepTemplate(
                name="build-and-push",
                image="gcr.io/kaniko-project/executor",
                command=("/kaniko/executor",),
                args=(
                    "--context=${inputs.resources.git-source.path}/${inputs.params.pathToContext}",
                    "--destination=${outputs.resources.built-image.url}:${inputs.params.imageTag}",
                    "--revision=${inputs.resources.git-source.revision}",
                ),
            ),
        ),
    )


@pytest.fixture
def deploy_to_cluster_task() -> TaskSpec:
    return TaskSpec(
        name="deploy-to-cluster",
        inputs=(SlotDecl("built-image", "image"),),
        params=(ParamDecl("namespace", default="default"), ParamDecl("imageTag")),
        steps=(
            StepTemplate(
                name="render",
                image="alpine",
                command=("sh", "-c"),
                args=("echo ${inputs.resources.built-image.url}:${params.imageTag}",),
            ),
            StepTemplate(
                name="apply",
                image="lachlanevenson/k8s-kubectl",
                command=("kubectl",),
                args=("apply", "-n", "${inputs.params.namespace}", "-f", "${inputs.resources.built-image.path}"),
            ),
        ),
    )


@pytest.fixture
def build_deploy_pipeline() -> PipelineSpec:
    return PipelineSpec(
        name="build-and-deploy",
        resources=(SlotDecl("git-source", "git"), SlotDecl("built-image", "image")),
        params=(ParamDecl("imageTag", default="latest"),),
        tasks=(
            # declarado fora de ordem de propósito
            PipelineTaskNode(
                name="deploy-to-cluster",
                task_ref="deploy-to-cluster",
                inputs=(ResourceWiring("built-image", "built-image", from_tasks=("source-to-image",)),),
                params={"imageTag": "${params.imageTag}"},
            ),
            PipelineTaskNode(
                name="source-to-image",
                task_ref="source-to-image",
                inputs=(ResourceWiring("git-source", "git-source"),),
                outputs=(ResourceWiring("built-image", "built-image"),),
                params={"imageTag": "${params.imageTag}"},
            ),
        ),
    )


@pytest.fixture
def git_resource() -> ResourceDefinition:
    return ResourceDefinition(
        name="skaffold-git",
        kind="git",
        params={"url": "https://github.com/example/skaffold", "revision": "main"},
    )


@pytest.fixture
def image_resource() -> ResourceDefinition:
    return ResourceDefinition(
        name="skaffold-image",
        kind="image",
        params={"url": "registry.example.com/leeroy-web"},
    )


@pytest.fixture
def resource_registry(git_resource, image_resource) -> ResourceRegistry:
    reg = ResourceRegistry()
    reg.register(git_resource)
    reg.register(image_resource)
    return reg


@pytest.fixture
def task_registry(source_to_image_task, deploy_to_cluster_task) -> TaskRegistry:
    reg = TaskRegistry()
    reg.register(source_to_image_task)
    reg.register(deploy_to_cluster_task)
    return reg


@pytest.fixture
def pipeline_registry(task_registry, build_deploy_pipeline) -> PipelineRegistry:
    reg = PipelineRegistry(builder=GraphBuilder(task_registry))
    reg.register(build_deploy_pipeline)
    return reg


@pytest.fixture
def build_deploy_request() -> RunRequest:
    return RunRequest(
        pipeline="build-and-deploy",
        resources={"git-source": "skaffold-git", "built-image": "skaffold-image"},
        params={"imageTag": "1.0"},
        service_account="builder-bot",
    )


# =====================================================
# Runtime fake
# =====================================================

class FakeRuntime:
    """
    `StepRuntime` assíncrono e observável para testes.

    Comportamento por nome de Task (ou por par (task, step)):
        - fail: texto de erro → StepOutcome(succeeded=False)
        - errors: exceção levantada pelo runtime
        - delays: segundos de `asyncio.sleep` antes de responder
        - hold: Tasks que aguardam `release` (asyncio.Event) antes de responder
    """

    def __init__(self, *, fail=None, errors=None, delays=None, hold=()):
        self.fail = dict(fail or {})
        self.errors = dict(errors or {})
        self.delays = dict(delays or {})
        self.hold = set(hold)
        self.release = None
        self.invocations = []
        self.completed = []
        self.cancelled = []
        self.active = 0
        self.max_active = 0

    def _lookup(self, table, invocation):
        if (invocation.task, invocation.step) in table:
            return table[(invocation.task, invocation.step)]
        return table.get(invocation.task)

    async def execute(self, invocation: StepInvocation) -> StepOutcome:
        self.invocations.append(invocation)
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            delay = self._lookup(self.delays, invocation)
            if delay:
                await asyncio.sleep(delay)
            if invocation.task in self.hold:
                if self.release is None:
                    self.release = asyncio.Event()
                await self.release.wait()
        except asyncio.CancelledError:
            self.cancelled.append((invocation.task, invocation.step))
            raise
        finally:
            self.active -= 1

        error = self._lookup(self.errors, invocation)
        if error is not None:
            raise error

        message = self._lookup(self.fail, invocation)
        if message is not None:
            return StepOutcome(
                succeeded=False,
                logs=(f"{invocation.task}/{invocation.step}: starting",),
                error=message,
                exit_code=1,
            )

        self.completed.append((invocation.task, invocation.step))
        return StepOutcome(succeeded=True, logs=(f"{invocation.task}/{invocation.step}: ok",), exit_code=0)

    def tasks_invoked(self):
        seen = []
        for inv in self.invocations:
            if inv.task not in seen:
                seen.append(inv.task)
        return seen


@pytest.fixture
def FakeRuntimeCls():
    return FakeRuntime


@pytest.fixture
def make_engine(pipeline_registry, resource_registry):
    """Factory de Engine sobre os registries do cenário build → deploy."""

    def _make(runtime, *, config=None, pipelines=None, resources=None, **kwargs):
        return Engine(
            pipelines=pipeline_registry if pipelines is None else pipelines,
            resources=resource_registry if resources is None else resources,
            runtime=runtime,
            config=config,
            **kwargs,
        )

    return _make


async def wait_until(predicate, *, timeout: float = 2.0) -> None:
    """Aguarda (cooperativamente) até `predicate()` ser verdadeiro."""

    async def _poll():
        while not predicate():
            await asyncio.sleep(0.001)

    await asyncio.wait_for(_poll(), timeout)


@pytest.fixture
def wait_for():
    return wait_until


# =====================================================
# Pipelines sem resources (concorrência, fail-fast, cancelamento)
# =====================================================

@pytest.fixture
def echo_pipelines() -> PipelineRegistry:
    """
    Pipelines sobre uma Task `echo` sem slots:
        - fan-in: left e right independentes; join depende de ambos
        - trio: a, b e c independentes
    """
    tasks = TaskRegistry()
    tasks.register(
        TaskSpec(
            name="echo",
            params=(ParamDecl("text", default="hello"),),
            steps=(StepTemplate(name="say", image="alpine", command=("echo",), args=("${inputs.params.text}",)),),
        )
    )
    reg = PipelineRegistry(builder=GraphBuilder(tasks))
    reg.register(
        PipelineSpec(
            name="fan-in",
            tasks=(
                PipelineTaskNode("left", "echo"),
                PipelineTaskNode("right", "echo"),
                PipelineTaskNode("join", "echo", run_after=("left", "right")),
            ),
        )
    )
    reg.register(
        PipelineSpec(
            name="trio",
            tasks=(PipelineTaskNode("c", "echo"), PipelineTaskNode("b", "echo"), PipelineTaskNode("a", "echo")),
        )
    )
    return reg
