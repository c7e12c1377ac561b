# tests/core/traceability/test_manifest_lifecycle.py
"""
Testes do Manifest v1 (criação, Event Log, estados de TaskRun, persistência).

Os testes asseguram que:
- o Manifest inicial não contém eventos implícitos
- cada chamada explícita adiciona exatamente um evento, na ordem real
- estados de TaskRun são atualizados incrementalmente
- a API aceita o Manifest como objeto ou como dict equivalente
- save/load preservam o conteúdo (JSON determinístico)
"""

from datetime import datetime, timedelta, timezone

import pytest

from atlas_orchestrator.core.traceability.manifest import (
    AtlasManifest,
    add_event,
    create_manifest,
    load_manifest,
    run_finished,
    save_manifest,
    task_failed,
    task_finished,
    task_skipped,
    task_started,
)


T0 = datetime(2026, 1, 2, 3, 4, 5, tzinfo=timezone.utc)


@pytest.fixture
def manifest():
    return create_manifest(
        run_id="build-and-deploy-run-abc",
        pipeline="build-and-deploy",
        started_at=T0,
        atlas_version="0.1.0",
        config_hash="c" * 64,
        pipeline_hash="p" * 64,
        bindings_hash="b" * 64,
        service_account="builder-bot",
    )


def test_create_manifest_has_no_implicit_events(manifest):
    assert manifest.events == []
    assert manifest.tasks == {}
    assert manifest.run["status"] == "running"
    assert manifest.run["started_at"] == "2026-01-02T03:04:05+00:00"
    assert manifest.inputs == {"config_hash": "c" * 64, "pipeline_hash": "p" * 64, "bindings_hash": "b" * 64}


def test_naive_timestamps_are_treated_as_utc():
    m = create_manifest(
        run_id="r",
        pipeline="p",
        started_at=datetime(2026, 1, 1, 12, 0, 0),
        atlas_version="0.1.0",
        config_hash="",
        pipeline_hash="",
        bindings_hash="",
    )
    assert m.run["started_at"].endswith("+00:00")
    assert m.run["service_account"] == "default"


def test_task_lifecycle_updates_state_and_event_log(manifest):
    task_started(manifest, task_id="source-to-image", task_ref="source-to-image", ts=T0)
    task_finished(
        manifest,
        task_id="source-to-image",
        ts=T0 + timedelta(seconds=2),
        result={"summary": "1 step(s) succeeded", "steps": ["build-and-push"], "logs": ["pushed"]},
    )
    task_started(manifest, task_id="deploy-to-cluster", task_ref="deploy-to-cluster", ts=T0 + timedelta(seconds=3))
    task_failed(
        manifest,
        task_id="deploy-to-cluster",
        ts=T0 + timedelta(seconds=3, milliseconds=500),
        error={"type": "STEP_FAILED", "message": "forbidden"},
    )
    run_finished(manifest, status="failed", ts=T0 + timedelta(seconds=4))

    build = manifest.tasks["source-to-image"]
    assert build["status"] == "succeeded"
    assert build["duration_ms"] == 2000
    assert build["steps"] == ["build-and-push"]
    assert build["logs"] == ["pushed"]

    deploy = manifest.tasks["deploy-to-cluster"]
    assert deploy["status"] == "failed"
    assert deploy["duration_ms"] == 500
    assert deploy["error"]["message"] == "forbidden"

    assert [(e["event_type"], e.get("task_id")) for e in manifest.events] == [
        ("task_started", "source-to-image"),
        ("task_finished", "source-to-image"),
        ("task_started", "deploy-to-cluster"),
        ("task_failed", "deploy-to-cluster"),
        ("run_finished", None),
    ]
    assert manifest.run["status"] == "failed"
    assert manifest.run["finished_at"] == "2026-01-02T03:04:09+00:00"


def test_skipped_task_records_reason(manifest):
    task_skipped(manifest, task_id="deploy-to-cluster", ts=T0, reason="upstream task 'source-to-image' did not succeed")

    assert manifest.tasks["deploy-to-cluster"]["status"] == "skipped"
    assert manifest.tasks["deploy-to-cluster"]["summary"].startswith("upstream task")
    assert manifest.events[-1]["payload"] == {"reason": "upstream task 'source-to-image' did not succeed"}


def test_add_event_accepts_dict_manifest(manifest):
    data = manifest.to_dict()
    add_event(data, event_type="note", ts=T0, payload={"k": "v"})
    task_started(data, task_id="t", task_ref="echo", ts=T0)

    assert [e["event_type"] for e in data["events"]] == ["note", "task_started"]
    assert data["tasks"]["t"]["status"] == "running"
    assert manifest.events == []


def test_to_dict_is_a_detached_copy(manifest):
    data = manifest.to_dict()
    data["run"]["status"] = "tampered"
    assert manifest.run["status"] == "running"


def test_save_and_load_round_trip(manifest, tmp_path):
    task_started(manifest, task_id="t", task_ref="echo", ts=T0)
    path = tmp_path / "nested" / "run.json"

    save_manifest(manifest, path)
    loaded = load_manifest(path)

    assert isinstance(loaded, AtlasManifest)
    assert loaded.to_dict() == manifest.to_dict()
    text = path.read_text(encoding="utf-8")
    assert text.index('"events"') < text.index('"inputs"') < text.index('"run"')
