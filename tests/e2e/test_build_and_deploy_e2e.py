# tests/e2e/test_build_and_deploy_e2e.py
"""
E2E: documentos YAML → registries → Engine → snapshot, Manifest em disco.

Cenário:
    source-to-image (kaniko) → deploy-to-cluster (render + kubectl apply)

Os testes asseguram que:
- o PipelineRun declarado executa até SUCCEEDED com argumentos resolvidos
- a falha do build pula o deploy e fica registrada no Manifest persistido
- a mesma definição produz os mesmos hashes de entrada em runs diferentes
"""

from atlas_orchestrator import RunStatus, TaskRunStatus, render_run_snapshot
from atlas_orchestrator.core.traceability import load_manifest

from ._helpers import ScriptedRuntime, build_engine


def test_declared_run_succeeds(tmp_path):
    runtime = ScriptedRuntime()
    engine, registered = build_engine(tmp_path, runtime)
    (request,) = registered.runs

    snap = engine.run(request)

    assert snap.status is RunStatus.SUCCEEDED
    assert snap.run_id.startswith("build-and-deploy-nightly-")
    assert [(c.task, c.step) for c in runtime.calls] == [
        ("source-to-image", "build-and-push"),
        ("deploy-to-cluster", "render"),
        ("deploy-to-cluster", "apply"),
    ]
    build = runtime.calls[0]
    assert build.args == (
        "--context=/workspace/git-source/.",
        "--destination=registry.example.com/leeroy-web:1.0",
        "--revision=main",
    )
    assert build.service_account == "builder-bot"
    assert runtime.calls[2].args == ("apply", "-n", "default", "-f", "/workspace/built-image")

    manifest = load_manifest(tmp_path / "manifests" / f"{snap.run_id}.json")
    assert manifest.run["status"] == "succeeded"
    assert manifest.tasks["deploy-to-cluster"]["logs"] == [
        "$ sh -c echo registry.example.com/leeroy-web:1.0",
        "$ kubectl apply -n default -f /workspace/built-image",
    ]

    rendered = render_run_snapshot(snap)
    assert rendered.text.startswith(f"run {snap.run_id} (build-and-deploy): succeeded")


def test_failed_build_skips_deploy_and_is_persisted(tmp_path):
    runtime = ScriptedRuntime(
        {("source-to-image", "build-and-push"): (1, ["building...", "error pushing image: UNAUTHORIZED"])}
    )
    engine, registered = build_engine(tmp_path, runtime)

    snap = engine.run(registered.runs[0])

    assert snap.status is RunStatus.FAILED
    assert snap.task("source-to-image").summary == "error pushing image: UNAUTHORIZED"
    assert snap.task("deploy-to-cluster").status is TaskRunStatus.SKIPPED
    assert {c.task for c in runtime.calls} == {"source-to-image"}

    manifest = load_manifest(tmp_path / "manifests" / f"{snap.run_id}.json")
    assert manifest.tasks["source-to-image"]["error"]["details"]["exit_code"] == 1
    assert manifest.tasks["deploy-to-cluster"]["status"] == "skipped"
    assert manifest.run["status"] == "failed"


def test_repeated_runs_share_input_hashes(tmp_path):
    engine, registered = build_engine(tmp_path, ScriptedRuntime(), engine_config={"max_parallel": 2})
    request = registered.runs[0]

    first = engine.run(request)
    second = engine.run(request)

    a = load_manifest(tmp_path / "manifests" / f"{first.run_id}.json")
    b = load_manifest(tmp_path / "manifests" / f"{second.run_id}.json")
    assert first.run_id != second.run_id
    assert a.inputs == b.inputs
    assert [s.run_id for s in engine.tracker.list_runs()] == [first.run_id, second.run_id]
