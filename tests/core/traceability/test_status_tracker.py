# tests/core/traceability/test_status_tracker.py
"""
Testes do RunStatusTracker e dos snapshots de run.
"""

import pytest

from atlas_orchestrator.core.exceptions import DuplicateNameError, InvalidStateTransitionError, NotFoundError
from atlas_orchestrator.core.pipeline.types import RunStatus
from atlas_orchestrator.core.traceability.status import RunStatusTracker


def test_tracker_indexes_created_runs(make_engine, FakeRuntimeCls, build_deploy_request):
    tracker = RunStatusTracker()
    engine = make_engine(FakeRuntimeCls(), tracker=tracker, id_factory=iter(["1", "2"]).__next__)

    engine.create_run(build_deploy_request)
    engine.run(build_deploy_request)

    assert len(tracker) == 2
    assert "build-and-deploy-run-1" in tracker
    assert [s.run_id for s in tracker.list_runs()] == ["build-and-deploy-run-1", "build-and-deploy-run-2"]
    assert [s.status for s in tracker.list_runs()] == [RunStatus.PENDING, RunStatus.SUCCEEDED]


def test_unknown_run_raises_not_found():
    with pytest.raises(NotFoundError) as exc:
        RunStatusTracker().snapshot("missing")
    assert exc.value.details == {"run_id": "missing"}


def test_duplicate_run_id_is_rejected(make_engine, FakeRuntimeCls, build_deploy_request):
    engine = make_engine(FakeRuntimeCls())
    run = engine.create_run(build_deploy_request)

    with pytest.raises(DuplicateNameError):
        engine.tracker.track(run)


def test_snapshot_to_dict_is_serializable(make_engine, FakeRuntimeCls, build_deploy_request):
    engine = make_engine(FakeRuntimeCls(fail={"source-to-image": "denied"}))
    data = engine.run(build_deploy_request).to_dict()

    assert data["status"] == "failed"
    assert data["counts"] == {"queued": 0, "running": 0, "succeeded": 0, "failed": 1, "skipped": 1}
    assert [t["name"] for t in data["tasks"]] == ["source-to-image", "deploy-to-cluster"]
    assert data["tasks"][0]["error"]["type"] == "STEP_FAILED"
    assert data["tasks"][1]["status"] == "skipped"


def test_snapshot_task_lookup(make_engine, FakeRuntimeCls, build_deploy_request):
    engine = make_engine(FakeRuntimeCls())
    snap = engine.snapshot(engine.create_run(build_deploy_request).run_id)

    assert snap.task("deploy-to-cluster").steps_total == 2
    with pytest.raises(NotFoundError):
        snap.task("missing")


def test_forget_releases_finished_run_and_manifest(make_engine, FakeRuntimeCls, build_deploy_request, tmp_path):
    engine = make_engine(FakeRuntimeCls(), config={"engine": {"manifest_dir": str(tmp_path)}})
    snap = engine.run(build_deploy_request)

    final = engine.forget(snap.run_id)

    assert final.status is RunStatus.SUCCEEDED
    assert snap.run_id not in engine.tracker
    assert engine.manifest(snap.run_id) is None
    assert (tmp_path / f"{snap.run_id}.json").exists()
    with pytest.raises(NotFoundError):
        engine.snapshot(snap.run_id)
    with pytest.raises(NotFoundError):
        engine.forget(snap.run_id)


def test_pending_run_cannot_be_forgotten(make_engine, FakeRuntimeCls, build_deploy_request):
    engine = make_engine(FakeRuntimeCls())
    run = engine.create_run(build_deploy_request)

    with pytest.raises(InvalidStateTransitionError) as exc:
        engine.forget(run.run_id)
    assert exc.value.details == {"run_id": run.run_id, "status": "pending"}
    assert run.run_id in engine.tracker

    engine.cancel(run.run_id)
    assert engine.forget(run.run_id).status is RunStatus.CANCELLED
    assert len(engine.tracker) == 0
