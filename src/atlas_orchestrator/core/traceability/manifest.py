"""
Manifest v1: rastreabilidade forense de runs do Atlas Orchestrator.

O Manifest consolida, de forma determinística e auditável:
    - metadados da run (run_id, pipeline, service_account, estado final)
    - hashes canônicos das entradas (config, definição do pipeline, bindings)
    - estado incremental de cada TaskRun
    - Event Log ordenado de eventos explícitos

Princípios fundamentais:
    - Nenhum evento é emitido implicitamente
    - Toda mutação ocorre por chamadas explícitas da API
    - A ordem do Event Log reflete a ordem real de execução
    - O Manifest é serializável e reconstruível (round-trip)

Decisões arquiteturais:
    - UTC é o timezone canônico para todos os timestamps
    - O formato de persistência é JSON determinístico
    - A API aceita o Manifest como objeto ou como dicionário equivalente

Limites explícitos:
    - Não executa pipeline
    - Não decide políticas de execução (fail-fast, skip, cancelamento)
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union


ManifestLike = Union["AtlasManifest", Dict[str, Any]]


def _ensure_tzaware_utc(dt: datetime) -> datetime:
    """Timestamps timezone-naive são assumidos como UTC; os demais são convertidos."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def _iso(dt: datetime) -> str:
    return _ensure_tzaware_utc(dt).isoformat()


def _ms_between(start: datetime, end: datetime) -> int:
    """Duração em milissegundos, truncada em zero."""
    s = _ensure_tzaware_utc(start)
    e = _ensure_tzaware_utc(end)
    return max(0, int((e - s).total_seconds() * 1000))


@dataclass
class AtlasManifest:
    """
    Manifest v1: registro forense de uma run.

    Campos principais:
        - run: metadados da execução (run_id, pipeline, started_at, status, ...)
        - inputs: hashes canônicos (config_hash, pipeline_hash, bindings_hash)
        - tasks: estado incremental de cada TaskRun, indexado por task_id
        - events: Event Log ordenado de eventos explícitos

    Invariantes:
        - `tasks` é sempre um dicionário indexado por task_id
        - `events` é sempre uma lista ordenada
        - A estrutura completa é serializável
    """

    run: Dict[str, Any]
    inputs: Dict[str, Any]
    tasks: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    events: List[Dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        """Cópia serializável, independente do estado interno."""
        return {
            "run": dict(self.run),
            "inputs": dict(self.inputs),
            "tasks": {k: dict(v) for k, v in self.tasks.items()},
            "events": [dict(e) for e in self.events],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AtlasManifest":
        """Reconstrução permissiva; campos ausentes iniciam vazios."""
        return cls(
            run=dict(data.get("run", {})),
            inputs=dict(data.get("inputs", {})),
            tasks={k: dict(v) for k, v in (data.get("tasks", {}) or {}).items()},
            events=[dict(e) for e in (data.get("events", []) or [])],
        )


def _get_manifest(manifest: ManifestLike) -> Tuple[AtlasManifest, bool]:
    """Normaliza a entrada; o booleano indica se a origem era um dict."""
    if isinstance(manifest, AtlasManifest):
        return manifest, False
    return AtlasManifest.from_dict(manifest), True


def _sync(manifest: ManifestLike, m: AtlasManifest, is_dict: bool) -> None:
    if is_dict:
        manifest.clear()
        manifest.update(m.to_dict())


def create_manifest(
    *,
    run_id: str,
    pipeline: str,
    started_at: datetime,
    atlas_version: str,
    config_hash: str,
    pipeline_hash: str,
    bindings_hash: str,
    service_account: str = "default",
) -> AtlasManifest:
    """
    Cria o Manifest inicial de uma run (Manifest v1).

    ⚠️ Importante: esta função **não emite eventos implicitamente**.
    O Event Log inicia vazio e só é preenchido por chamadas explícitas
    a `add_event`, `task_started`, `task_finished`, `task_failed`,
    `task_skipped` ou `run_finished`.

    Invariantes:
        - `events` inicia como lista vazia
        - `tasks` inicia como dicionário vazio
        - `run.status` inicia como "running"
    """
    started_at = _ensure_tzaware_utc(started_at)

    return AtlasManifest(
        run={
            "run_id": run_id,
            "pipeline": pipeline,
            "service_account": service_account,
            "started_at": _iso(started_at),
            "status": "running",
            "atlas_version": atlas_version,
        },
        inputs={
            "config_hash": config_hash,
            "pipeline_hash": pipeline_hash,
            "bindings_hash": bindings_hash,
        },
        tasks={},
        events=[],
    )


def add_event(
    manifest: ManifestLike,
    *,
    event_type: str,
    ts: datetime,
    task_id: Optional[str] = None,
    payload: Optional[Dict[str, Any]] = None,
) -> None:
    """
    Adiciona um evento explícito ao Event Log do Manifest.

    Cada chamada adiciona exatamente um evento; eventos não são
    reordenados nem deduplicados.
    """
    ts = _ensure_tzaware_utc(ts)
    m, is_dict = _get_manifest(manifest)

    ev: Dict[str, Any] = {"event_type": event_type, "timestamp": _iso(ts)}
    if task_id is not None:
        ev["task_id"] = task_id
    if payload is not None:
        ev["payload"] = payload

    m.events.append(ev)
    _sync(manifest, m, is_dict)


def task_started(
    manifest: ManifestLike,
    *,
    task_id: str,
    task_ref: str,
    ts: datetime,
) -> None:
    """Marca o TaskRun como `running` e registra `task_started`."""
    ts = _ensure_tzaware_utc(ts)
    m, is_dict = _get_manifest(manifest)

    m.tasks.setdefault(task_id, {})
    m.tasks[task_id].update(
        {
            "task_id": task_id,
            "task_ref": task_ref,
            "status": "running",
            "started_at": _iso(ts),
        }
    )

    add_event(m, event_type="task_started", ts=ts, task_id=task_id, payload={"task_ref": task_ref})
    _sync(manifest, m, is_dict)


def task_finished(
    manifest: ManifestLike,
    *,
    task_id: str,
    ts: datetime,
    result: Dict[str, Any],
) -> None:
    """
    Registra a conclusão de um TaskRun.

    `result` pode conter: status (default "succeeded"), summary, steps
    (lista de steps concluídos) e logs.
    """
    ts = _ensure_tzaware_utc(ts)
    m, is_dict = _get_manifest(manifest)

    t = m.tasks.setdefault(task_id, {"task_id": task_id})
    started_iso = t.get("started_at")
    started_dt = datetime.fromisoformat(started_iso) if started_iso else ts

    status = result.get("status", "succeeded")
    t.update(
        {
            "status": status,
            "finished_at": _iso(ts),
            "duration_ms": _ms_between(started_dt, ts),
            "summary": result.get("summary"),
            "steps": list(result.get("steps", []) or []),
            "logs": list(result.get("logs", []) or []),
        }
    )

    add_event(
        m,
        event_type="task_finished",
        ts=ts,
        task_id=task_id,
        payload={"status": status, "duration_ms": t["duration_ms"]},
    )
    _sync(manifest, m, is_dict)


def task_failed(
    manifest: ManifestLike,
    *,
    task_id: str,
    ts: datetime,
    error: Union[str, Dict[str, Any]],
) -> None:
    """
    Registra a falha de um TaskRun.

    `error` é o texto do runtime ou um `AtlasErrorPayload.to_dict()`.
    """
    ts = _ensure_tzaware_utc(ts)
    m, is_dict = _get_manifest(manifest)

    t = m.tasks.setdefault(task_id, {"task_id": task_id})
    started_iso = t.get("started_at")
    t.update(
        {
            "status": "failed",
            "finished_at": _iso(ts),
            "error": error,
        }
    )
    if started_iso:
        t["duration_ms"] = _ms_between(datetime.fromisoformat(started_iso), ts)

    add_event(m, event_type="task_failed", ts=ts, task_id=task_id, payload={"error": error})
    _sync(manifest, m, is_dict)


def task_skipped(
    manifest: ManifestLike,
    *,
    task_id: str,
    ts: datetime,
    reason: str,
) -> None:
    """Registra um TaskRun que nunca foi despachado."""
    ts = _ensure_tzaware_utc(ts)
    m, is_dict = _get_manifest(manifest)

    t = m.tasks.setdefault(task_id, {"task_id": task_id})
    t.update({"status": "skipped", "finished_at": _iso(ts), "summary": reason})

    add_event(m, event_type="task_skipped", ts=ts, task_id=task_id, payload={"reason": reason})
    _sync(manifest, m, is_dict)


def run_finished(
    manifest: ManifestLike,
    *,
    status: str,
    ts: datetime,
) -> None:
    """Fecha a run com seu estado final e registra `run_finished`."""
    ts = _ensure_tzaware_utc(ts)
    m, is_dict = _get_manifest(manifest)

    m.run["status"] = status
    m.run["finished_at"] = _iso(ts)

    add_event(m, event_type="run_finished", ts=ts, payload={"status": status})
    _sync(manifest, m, is_dict)


def save_manifest(manifest: ManifestLike, path: Path) -> None:
    """
    Persiste um Manifest em disco no formato JSON.

    Decisões arquiteturais:
        - A ordenação de chaves é estável (`sort_keys=True`)
        - Diretórios intermediários são criados automaticamente

    Raises:
        OSError: Em caso de falha ao criar diretórios ou escrever o arquivo.
        TypeError: Se o conteúdo do Manifest não for serializável em JSON.
    """
    data = manifest.to_dict() if isinstance(manifest, AtlasManifest) else manifest
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data, ensure_ascii=False, indent=2, sort_keys=True), encoding="utf-8")


def load_manifest(path: Path) -> AtlasManifest:
    """
    Carrega um Manifest persistido a partir de um arquivo JSON.

    Raises:
        OSError: Em caso de falha de leitura do arquivo.
        json.JSONDecodeError: Em caso de JSON inválido.
    """
    data = json.loads(Path(path).read_text(encoding="utf-8"))
    return AtlasManifest.from_dict(data)
