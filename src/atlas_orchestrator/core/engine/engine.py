"""
Engine de execução de runs do Atlas Orchestrator.

O Engine recebe RunRequests, cria RunInstances (binding antecipado de
resources, parâmetros e steps) e dirige sua execução sobre um
`StepRuntime` externo.

Política de execução (v1):
    - Um nó é despachado quando todos os seus predecessores terminam em
      SUCCEEDED (AND estrito), por contagem regressiva de in-degree
    - Nós prontos rodam concorrentemente (tasks asyncio), limitados por
      `engine.max_parallel` quando configurado
    - Steps de um nó rodam estritamente na ordem declarada; o primeiro step
      que falha (ou exceção do runtime) marca o nó FAILED e aborta os demais
    - Todo descendente transitivo ainda não iniciado de um nó FAILED vira SKIPPED
    - Branches independentes em execução nunca são canceladas por uma falha
    - `engine.fail_fast: true` (opt-in) interrompe novos despachos após a
      primeira falha
    - Sem retries: reexecutar exige uma nova run

Cancelamento:
    - `Engine.cancel(run_id)` (seguro entre threads) ou prazo
      (`engine.deadline_seconds` / `execute(deadline=...)`)
    - Interrompe despachos, cancela chamadas em voo ao runtime; nós em voo
      terminam FAILED com resumo de cancelamento e nós não despachados
      terminam SKIPPED; a run termina CANCELLED
    - Uma run ainda PENDING (nenhum `execute` em curso) é encerrada na hora:
      CANCELLED, todos os nós SKIPPED e o Manifest gravado; não pode mais
      ser executada

Estado final da run:
    - SUCCEEDED sse todos os nós terminaram SUCCEEDED
    - CANCELLED se houve pedido de cancelamento
    - FAILED caso contrário

Invariantes:
    - Nenhum nó é executado antes de seus predecessores
    - Cada nó é executado no máximo uma vez por run
    - Nenhum nó termina a run em QUEUED ou RUNNING
    - Falhas de steps nunca escapam do Engine como exceção
"""

from __future__ import annotations

import asyncio
import threading
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from ..config import DEFAULT_CONFIG, EngineSettings, compute_config_hash, compute_hash, deep_merge
from ..errors import AtlasErrorPayload, exception_to_error, run_cancelled, step_failed
from ..pipeline.builder import PipelineRegistry
from ..pipeline.registry import ResourceRegistry
from ..pipeline.types import RunRequest, RunStatus, TaskRunStatus
from ..traceability.manifest import (
    AtlasManifest,
    create_manifest,
    run_finished,
    save_manifest,
    task_failed,
    task_finished,
    task_skipped,
    task_started,
)
from ..traceability.status import RunSnapshot, RunStatusTracker, snapshot_run
from .binding import bind_run
from .run import RunInstance, TaskRunInstance
from .runtime import StepInvocation, StepRuntime


ATLAS_VERSION = "0.1.0"

RUN_LOG_ID = "run"


def _default_id_suffix() -> str:
    return uuid.uuid4().hex[:10]


def _now() -> datetime:
    return datetime.now(timezone.utc)


class Engine:
    """Engine canônico do Atlas Orchestrator (binding + scheduler + executor)."""

    def __init__(
        self,
        *,
        pipelines: PipelineRegistry,
        resources: ResourceRegistry,
        runtime: StepRuntime,
        tracker: Optional[RunStatusTracker] = None,
        config: Optional[Dict[str, Any]] = None,
        id_factory: Optional[Callable[[], str]] = None,
    ):
        """
        Args:
            pipelines: pipelines registrados (grafos já validados).
            resources: registry de resources nomeados.
            runtime: executor de steps (`StepRuntime`).
            tracker: índice de runs; um novo é criado se omitido.
            config: configuração efetiva, mesclada sobre `DEFAULT_CONFIG`.
            id_factory: gerador do sufixo dos identificadores de run.

        Raises:
            TypeError: runtime sem `execute(invocation)`.
            InvalidEngineSettingError: seção `engine` inválida.
        """
        if not isinstance(runtime, StepRuntime):
            raise TypeError("runtime must implement StepRuntime.execute(invocation)")

        self.pipelines = pipelines
        self.resources = resources
        self.runtime = runtime
        self.tracker = tracker if tracker is not None else RunStatusTracker()
        self.config: Dict[str, Any] = deep_merge(DEFAULT_CONFIG, dict(config or {}))
        self.settings = EngineSettings.from_config(self.config)

        self._id_factory = id_factory or _default_id_suffix
        self._ids_lock = threading.Lock()
        self._manifests: Dict[str, AtlasManifest] = {}

    # ------------------------------------------------------------------
    # Criação de runs
    # ------------------------------------------------------------------

    def _new_run_id(self, prefix: str) -> str:
        while True:
            candidate = f"{prefix}{self._id_factory()}"
            if candidate not in self.tracker:
                return candidate

    def create_run(self, request: RunRequest) -> RunInstance:
        """
        Valida o pedido e cria uma RunInstance em PENDING.

        Todos os steps são resolvidos aqui; qualquer erro de definição
        rejeita a run e nenhum identificador fica registrado.

        Raises:
            NotFoundError, UnboundSlotError, UndeclaredReferenceError,
            KindMismatchError, MissingParameterError, UnresolvedReferenceError
        """
        graph = self.pipelines.get(request.pipeline)
        with self._ids_lock:
            run_id = self._new_run_id(request.generate_name)
            run = bind_run(graph, request, self.resources, run_id, config=self.config)
            self.tracker.track(run)

        run.context.log(
            task_id=RUN_LOG_ID,
            level="INFO",
            message="run created",
            pipeline=graph.name,
            resources=dict(run.resources),
            params=dict(run.params),
        )
        return run

    # ------------------------------------------------------------------
    # Consulta / cancelamento
    # ------------------------------------------------------------------

    def snapshot(self, run_id: str) -> RunSnapshot:
        """Snapshot pontual da run (ver `RunStatusTracker.snapshot`)."""
        return self.tracker.snapshot(run_id)

    def manifest(self, run_id: str) -> Optional[AtlasManifest]:
        """Manifest em memória da run; None antes da execução ou após `forget`."""
        return self._manifests.get(run_id)

    def forget(self, run_id: str) -> RunSnapshot:
        """
        Descarta uma run encerrada e seu Manifest em memória.

        Runs e Manifests ficam retidos até esta chamada. O arquivo gravado
        em `engine.manifest_dir` permanece em disco.

        Returns:
            RunSnapshot: estado final da run descartada.

        Raises:
            NotFoundError: run desconhecida.
            InvalidStateTransitionError: run ainda não encerrada.
        """
        snap = self.tracker.forget(run_id)
        self._manifests.pop(run_id, None)
        return snap

    def cancel(self, run_id: str, reason: str = "cancel requested") -> bool:
        """
        Pede o cancelamento de uma run; seguro a partir de qualquer thread.

        Uma run em execução é cancelada pelo seu próprio loop. Uma run
        PENDING que nenhum `execute` assumiu termina aqui mesmo.

        Raises:
            NotFoundError: run desconhecida.

        Returns:
            bool: False se a run já terminou ou já estava sendo cancelada.
        """
        run = self.tracker.get(run_id)
        if run.cancel_unstarted(reason):
            run.context.log(task_id=RUN_LOG_ID, level="WARNING", message="cancel requested", reason=reason)
            manifest = self._create_manifest(run)
            self._manifests[run.run_id] = manifest
            self._finish(run, manifest)
            return True

        accepted = run.request_cancel(reason)
        if accepted:
            run.context.log(task_id=RUN_LOG_ID, level="WARNING", message="cancel requested", reason=reason)
        return accepted

    # ------------------------------------------------------------------
    # Execução
    # ------------------------------------------------------------------

    def run(self, request: RunRequest, *, deadline: Optional[float] = None) -> RunSnapshot:
        """Cria e executa uma run de forma síncrona (via `asyncio.run`)."""
        run = self.create_run(request)
        return asyncio.run(self.execute(run, deadline=deadline))

    async def execute(self, run: RunInstance, *, deadline: Optional[float] = None) -> RunSnapshot:
        """
        Executa uma run PENDING até um estado terminal.

        Args:
            run: RunInstance criada por `create_run`.
            deadline: prazo em segundos; sobrepõe `engine.deadline_seconds`.

        Returns:
            RunSnapshot: estado final da run.

        Raises:
            InvalidStateTransitionError: se a run já foi executada, está em
                execução ou foi cancelada antes de iniciar.
        """
        loop = asyncio.get_running_loop()
        cancel_event = asyncio.Event()
        run.attach(loop, cancel_event)
        try:
            manifest = self._create_manifest(run)
        except Exception:
            run.detach()
            raise
        self._manifests[run.run_id] = manifest

        timeout = deadline if deadline is not None else self.settings.deadline_seconds
        timer = None
        if timeout is not None:
            timer = loop.call_later(timeout, run.request_cancel, f"deadline of {timeout}s exceeded")

        running: Dict["asyncio.Task[None]", str] = {}
        try:
            if run.cancel_requested:
                run.set_status(RunStatus.CANCELLED)
            else:
                run.set_status(RunStatus.RUNNING)
                run.started_at = _now().isoformat()
                run.context.log(task_id=RUN_LOG_ID, level="INFO", message="run started")
                await self._dispatch(run, manifest, cancel_event, running)
        except asyncio.CancelledError:
            run.request_cancel("execution interrupted")
            await self._drain(running)
            self._finish(run, manifest)
            raise
        finally:
            if timer is not None:
                timer.cancel()
            run.detach()

        self._finish(run, manifest)
        return snapshot_run(run)

    async def _dispatch(
        self,
        run: RunInstance,
        manifest: AtlasManifest,
        cancel_event: asyncio.Event,
        running: Dict["asyncio.Task[None]", str],
    ) -> None:
        """
        Laço de despacho por contagem regressiva de in-degree.

        Despacha nós prontos até `max_parallel`, espera o primeiro término
        (ou o evento de cancelamento), libera sucessores de nós SUCCEEDED e
        marca como SKIPPED os descendentes de nós que falharam. Ao sair,
        nenhum nó fica QUEUED.
        """
        graph = run.graph
        position = {name: idx for idx, name in enumerate(graph.order)}
        remaining = dict(graph.in_degree)
        ready: List[str] = [n for n in graph.order if remaining[n] == 0]
        limit = self.settings.max_parallel
        failed_any = False
        inflight_cancelled = False

        cancel_waiter = asyncio.ensure_future(cancel_event.wait())
        try:
            while True:
                stop = run.cancel_requested or (self.settings.fail_fast and failed_any)
                if not stop:
                    while ready and (limit is None or len(running) < limit):
                        name = ready.pop(0)
                        task = asyncio.create_task(self._run_task(run, run.tasks[name], manifest))
                        running[task] = name

                if not running:
                    break

                waiters = set(running)
                if not cancel_waiter.done():
                    waiters.add(cancel_waiter)
                done, _ = await asyncio.wait(waiters, return_when=asyncio.FIRST_COMPLETED)

                if run.cancel_requested and not inflight_cancelled:
                    inflight_cancelled = True
                    run.context.log(
                        task_id=RUN_LOG_ID,
                        level="WARNING",
                        message="cancelling in-flight tasks",
                        reason=run.cancel_reason,
                        tasks=sorted(running.values()),
                    )
                    for t in running:
                        t.cancel()

                for t in done:
                    if t is cancel_waiter:
                        continue
                    name = running.pop(t)
                    if t.cancelled():
                        # cancelado antes do primeiro step; segue QUEUED e vira SKIPPED
                        continue
                    t.result()
                    if run.tasks[name].status is TaskRunStatus.SUCCEEDED:
                        for child in graph.successors[name]:
                            remaining[child] -= 1
                            if remaining[child] == 0 and run.tasks[child].status is TaskRunStatus.QUEUED:
                                ready.append(child)
                        ready.sort(key=position.__getitem__)
                    else:
                        failed_any = True
                        self._skip_descendants(run, name, manifest, position)
        finally:
            cancel_waiter.cancel()

        if run.cancel_requested:
            reason = f"run cancelled: {run.cancel_reason}"
        elif failed_any and self.settings.fail_fast:
            reason = "fail-fast: dispatch stopped after a task failed"
        else:
            reason = "not dispatched"
        for name in graph.order:
            if run.tasks[name].status is TaskRunStatus.QUEUED:
                self._skip(run, run.tasks[name], manifest, reason)

    async def _drain(self, running: Dict["asyncio.Task[None]", str]) -> None:
        for t in running:
            t.cancel()
        if running:
            await asyncio.gather(*running, return_exceptions=True)
        running.clear()

    # ------------------------------------------------------------------
    # Execução de um nó
    # ------------------------------------------------------------------

    async def _run_task(self, run: RunInstance, tr: TaskRunInstance, manifest: AtlasManifest) -> None:
        """
        Executa os steps de um nó em ordem, parando no primeiro que falha.

        Falhas e exceções do runtime viram payloads no estado do nó e no
        Manifest, nunca exceções. Com cancelamento pedido, `asyncio.CancelledError`
        marca o nó FAILED com RUN_CANCELLED; sem pedido, é repropagado.
        """
        ctx = run.context
        started = _now()
        tr.publish(TaskRunStatus.RUNNING, started_at=started.isoformat(), current_step=tr.steps[0].name)
        task_started(manifest, task_id=tr.name, task_ref=tr.task_ref, ts=started)
        ctx.log(task_id=tr.name, level="INFO", message="task dispatched", task_ref=tr.task_ref)

        collected: List[str] = []
        step = tr.steps[0]
        try:
            for idx, step in enumerate(tr.steps):
                if run.cancel_requested:
                    self._fail(run, tr, manifest, run_cancelled(task=tr.name, reason=run.cancel_reason, step=step.name))
                    return
                tr.publish(TaskRunStatus.RUNNING, current_step=step.name, steps_completed=idx)
                invocation = StepInvocation(
                    run_id=run.run_id,
                    task=tr.name,
                    step=step.name,
                    image=step.image,
                    command=step.command,
                    args=step.args,
                    service_account=run.request.service_account,
                )
                ctx.log(task_id=tr.name, level="INFO", message="step started", step=step.name, image=step.image)

                try:
                    outcome = await self.runtime.execute(invocation)
                except asyncio.CancelledError:
                    raise
                except Exception as exc:
                    error = exception_to_error(exc)
                    self._fail(
                        run,
                        tr,
                        manifest,
                        AtlasErrorPayload(
                            type=error.type,
                            message=error.message,
                            details={**error.details, "task": tr.name, "step": step.name},
                            hint=error.hint,
                        ),
                    )
                    return

                for line in outcome.logs:
                    collected.append(line)
                    ctx.log(task_id=tr.name, level="INFO", message=line, step=step.name, source="runtime")

                if not outcome.succeeded:
                    self._fail(
                        run,
                        tr,
                        manifest,
                        step_failed(task=tr.name, step=step.name, error=outcome.error, exit_code=outcome.exit_code),
                    )
                    return

        except asyncio.CancelledError:
            if not run.cancel_requested:
                raise
            self._fail(run, tr, manifest, run_cancelled(task=tr.name, reason=run.cancel_reason, step=step.name))
            return

        finished = _now()
        summary = f"{len(tr.steps)} step(s) succeeded"
        tr.publish(
            TaskRunStatus.SUCCEEDED,
            current_step=None,
            steps_completed=len(tr.steps),
            finished_at=finished.isoformat(),
            summary=summary,
        )
        task_finished(
            manifest,
            task_id=tr.name,
            ts=finished,
            result={
                "status": TaskRunStatus.SUCCEEDED.value,
                "summary": summary,
                "steps": [s.name for s in tr.steps],
                "logs": collected,
            },
        )
        ctx.log(task_id=tr.name, level="INFO", message="task succeeded")

    def _fail(self, run: RunInstance, tr: TaskRunInstance, manifest: AtlasManifest, error: AtlasErrorPayload) -> None:
        ts = _now()
        tr.publish(TaskRunStatus.FAILED, finished_at=ts.isoformat(), summary=error.message, error=error)
        task_failed(manifest, task_id=tr.name, ts=ts, error=error.to_dict())
        run.context.log(
            task_id=tr.name,
            level="ERROR",
            message=error.message,
            error_type=error.type,
            step=error.details.get("step"),
        )

    def _skip(self, run: RunInstance, tr: TaskRunInstance, manifest: AtlasManifest, reason: str) -> None:
        ts = _now()
        tr.publish(TaskRunStatus.SKIPPED, finished_at=ts.isoformat(), summary=reason)
        task_skipped(manifest, task_id=tr.name, ts=ts, reason=reason)
        run.context.add_warning(task_id=tr.name, message=reason)
        run.context.log(task_id=tr.name, level="WARNING", message="task skipped", reason=reason)

    def _skip_descendants(
        self,
        run: RunInstance,
        failed: str,
        manifest: AtlasManifest,
        position: Dict[str, int],
    ) -> None:
        """Marca SKIPPED, em ordem topológica, os descendentes ainda QUEUED de `failed`."""
        reason = f"upstream task '{failed}' did not succeed"
        for name in sorted(run.graph.descendants(failed), key=position.__getitem__):
            tr = run.tasks[name]
            if tr.status is TaskRunStatus.QUEUED:
                self._skip(run, tr, manifest, reason)

    # ------------------------------------------------------------------
    # Rastreabilidade
    # ------------------------------------------------------------------

    def _create_manifest(self, run: RunInstance) -> AtlasManifest:
        bindings = {
            "resources": {slot: self.resources.resolve(name).to_dict() for slot, name in run.resources.items()},
            "params": dict(run.params),
        }
        return create_manifest(
            run_id=run.run_id,
            pipeline=run.pipeline,
            started_at=_now(),
            atlas_version=ATLAS_VERSION,
            config_hash=compute_config_hash(self.config),
            pipeline_hash=compute_hash(run.graph.spec.to_dict()),
            bindings_hash=compute_hash(bindings),
            service_account=run.request.service_account,
        )

    def _finish(self, run: RunInstance, manifest: AtlasManifest) -> None:
        """Encerra a run: nós restantes SKIPPED, estado final, evento `run_finished` e Manifest em disco."""
        for tr in run.tasks.values():
            if tr.status is TaskRunStatus.QUEUED:
                self._skip(run, tr, manifest, f"run cancelled: {run.cancel_reason}")

        statuses = [tr.status for tr in run.tasks.values()]
        if all(s is TaskRunStatus.SUCCEEDED for s in statuses):
            final = RunStatus.SUCCEEDED
        elif run.cancel_requested:
            final = RunStatus.CANCELLED
        else:
            final = RunStatus.FAILED

        if run.status is RunStatus.RUNNING:
            run.set_status(final)
        ts = _now()
        run.finished_at = ts.isoformat()
        run_finished(manifest, status=run.status.value, ts=ts)
        run.context.log(task_id=RUN_LOG_ID, level="INFO", message="run finished", status=run.status.value)

        if self.settings.manifest_dir:
            save_manifest(manifest, Path(self.settings.manifest_dir) / f"{run.run_id}.json")
