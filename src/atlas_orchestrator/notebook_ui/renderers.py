"""
Notebook UI Adapter (v1)

Objetivo:
- Renderizar snapshots de runs para saída legível em notebooks.
- NÃO altera o snapshot recebido.
- NÃO acessa Manifest nem o Engine.

Saídas:
- HTML (string): card da run + tabela de TaskRuns
- texto (sempre preenchido): tabela alinhada em texto puro
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Sequence
import copy
import html


@dataclass(frozen=True)
class RenderResult:
    """Resultado de renderização (apenas apresentação)."""
    html: Optional[str]  # HTML string (quando aplicável)
    text: str            # fallback textual (sempre preenchido)


_TASK_COLUMNS = ("name", "task_ref", "status", "progress", "summary")


def _escape(s: Any) -> str:
    return html.escape("" if s is None else str(s))


def render_kv_table_html(payload: Mapping[str, Any], title: Optional[str] = None) -> str:
    """Renderiza dict como tabela key/value (HTML puro)."""
    rows = []
    for k in payload.keys():
        rows.append(
            f"<tr><td><code>{_escape(k)}</code></td><td>{_escape(payload[k])}</td></tr>"
        )

    heading = f"<h4>{_escape(title)}</h4>" if title else ""
    return (
        f"{heading}"
        "<table>"
        "<thead><tr><th>key</th><th>value</th></tr></thead>"
        "<tbody>"
        + "".join(rows) +
        "</tbody></table>"
    )


def render_table_html(
    rows: Sequence[Mapping[str, Any]],
    columns: Sequence[str],
    title: Optional[str] = None,
    max_rows: int = 200,
) -> str:
    """Renderiza list[dict] como tabela com colunas fixas."""
    items = list(rows)[:max_rows]
    heading = f"<h4>{_escape(title)}</h4>" if title else ""

    if not items:
        return f"{heading}<div><em>(empty)</em></div>"

    th = "".join(f"<th>{_escape(c)}</th>" for c in columns)
    trs = []
    for row in items:
        status = row.get("status")
        css = f" class='status-{_escape(status)}'" if status else ""
        tds = "".join(f"<td>{_escape(row.get(c))}</td>" for c in columns)
        trs.append(f"<tr{css}>{tds}</tr>")

    return (
        f"{heading}"
        "<table>"
        f"<thead><tr>{th}</tr></thead>"
        "<tbody>" + "".join(trs) + "</tbody>"
        "</table>"
    )


def render_card_html(payload: Mapping[str, Any], title: str, subtitle: Optional[str] = None) -> str:
    """Renderiza um card simples em HTML (apresentação pura)."""
    st = f"<div style='opacity:0.75'>{_escape(subtitle)}</div>" if subtitle else ""
    body = render_kv_table_html(payload)
    return (
        "<div style='border:1px solid #ddd; border-radius:12px; padding:12px; margin:8px 0;'>"
        f"<h3 style='margin:0 0 6px 0;'>{_escape(title)}</h3>"
        f"{st}"
        f"{body}"
        "</div>"
    )


def _task_rows(tasks: Sequence[Mapping[str, Any]]) -> List[Dict[str, Any]]:
    rows = []
    for t in tasks:
        summary = t.get("summary")
        error = t.get("error")
        if error and not summary:
            summary = error.get("message")
        rows.append(
            {
                "name": t.get("name"),
                "task_ref": t.get("task_ref"),
                "status": t.get("status"),
                "progress": f"{t.get('steps_completed', 0)}/{t.get('steps_total', 0)}",
                "summary": summary or "",
            }
        )
    return rows


def _text_table(rows: Sequence[Mapping[str, Any]], columns: Sequence[str]) -> str:
    widths = {c: len(c) for c in columns}
    for row in rows:
        for c in columns:
            widths[c] = max(widths[c], len(str(row.get(c, ""))))

    def line(values: Any) -> str:
        return "  ".join(str(v).ljust(widths[c]) for c, v in zip(columns, values)).rstrip()

    out = [line(columns), line("-" * widths[c] for c in columns)]
    out.extend(line(row.get(c, "") for c in columns) for row in rows)
    return "\n".join(out)


def render_run_snapshot(snapshot: Any) -> RenderResult:
    """
    Renderiza um `RunSnapshot` (ou seu `to_dict()`) como card + tabela.

    Garantia de pureza: a entrada nunca é mutada.
    """
    data = snapshot.to_dict() if hasattr(snapshot, "to_dict") else snapshot
    before = copy.deepcopy(data) if isinstance(data, dict) else None

    header = {
        "run_id": data.get("run_id"),
        "pipeline": data.get("pipeline"),
        "status": data.get("status"),
        "started_at": data.get("started_at"),
        "finished_at": data.get("finished_at"),
    }
    if data.get("cancel_reason"):
        header["cancel_reason"] = data["cancel_reason"]

    rows = _task_rows(data.get("tasks", []) or [])
    html_out = (
        render_card_html(header, title=f"Run {data.get('run_id')}", subtitle=data.get("pipeline"))
        + render_table_html(rows, _TASK_COLUMNS, title="Tasks")
    )
    text_out = (
        f"run {header['run_id']} ({header['pipeline']}): {header['status']}\n"
        + _text_table(rows, _TASK_COLUMNS)
    )

    if before is not None and before != data:
        raise AssertionError("Notebook UI renderer mutated the input snapshot")

    return RenderResult(html=html_out, text=text_out)
