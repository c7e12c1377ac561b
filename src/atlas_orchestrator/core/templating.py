"""
Resolvedor de templates `${scope.path}` do Atlas Orchestrator.

Este módulo expande marcadores de parâmetros e resources em strings
literais, a partir de um contexto de ligação explícito (mapa de
referência → valor literal).

Escopos reconhecidos:
    - inputs.params      → parâmetros da Task
    - params             → parâmetros (da Task em steps; do Pipeline em wiring de nós)
    - inputs.resources   → campos de resources ligados a slots de entrada
    - outputs.resources  → campos de resources ligados a slots de saída

Princípios fundamentais:
    - Marcador sem valor no contexto é erro, nunca string vazia
    - Não existe sintaxe de escape: `${` sem fechamento é erro
    - A substituição não é recursiva (valores resolvidos não são reprocessados)
    - A mesma entrada sempre produz a mesma saída

Invariantes:
    - `resolve_template` nunca retorna texto contendo `${`
      vindo do template original
    - Referências são comparadas literalmente (sem normalização)

Limites explícitos:
    - Não valida se a referência foi declarada (ver `validate_reference`)
    - Não conhece resources, registries ou runs
"""

from __future__ import annotations

import re
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

from .exceptions import UndeclaredReferenceError, UnresolvedReferenceError


MARKER_OPEN = "${"

SCOPE_INPUT_PARAMS = "inputs.params"
SCOPE_PARAMS = "params"
SCOPE_INPUT_RESOURCES = "inputs.resources"
SCOPE_OUTPUT_RESOURCES = "outputs.resources"

# Ordem importa: escopos mais longos primeiro
SCOPES: Tuple[str, ...] = (
    SCOPE_INPUT_PARAMS,
    SCOPE_INPUT_RESOURCES,
    SCOPE_OUTPUT_RESOURCES,
    SCOPE_PARAMS,
)

_MARKER_RE = re.compile(r"\$\{([^${}]*)\}")


def _scan(template: str) -> List[Tuple[int, int, str]]:
    """Retorna (início, fim, referência) de cada marcador; rejeita `${` solto."""
    spans: List[Tuple[int, int, str]] = []
    for m in _MARKER_RE.finditer(template):
        ref = m.group(1).strip()
        if not ref:
            raise UnresolvedReferenceError(
                f"Empty template marker in '{template}'",
                details={"template": template, "position": m.start()},
            )
        spans.append((m.start(), m.end(), ref))

    # `${` fora de um marcador completo
    covered = 0
    for start, end, _ in spans:
        if MARKER_OPEN in template[covered:start]:
            break
        covered = end
    else:
        if MARKER_OPEN not in template[covered:]:
            return spans

    raise UnresolvedReferenceError(
        f"Unterminated template marker in '{template}'",
        details={"template": template},
        hint="Feche o marcador com '}'; não há sintaxe de escape para '${'.",
    )


def find_references(template: str) -> List[str]:
    """Lista as referências `${...}` do template, na ordem em que aparecem."""
    return [ref for _, _, ref in _scan(template)]


def split_reference(reference: str) -> Tuple[str, str]:
    """
    Separa uma referência em (escopo, caminho).

    Raises:
        UndeclaredReferenceError: se o escopo não for reconhecido ou o caminho estiver vazio.
    """
    for scope in SCOPES:
        prefix = scope + "."
        if reference.startswith(prefix) and len(reference) > len(prefix):
            return scope, reference[len(prefix):]
    raise UndeclaredReferenceError(
        f"Unknown template reference '{reference}'",
        details={"reference": reference, "scopes": list(SCOPES)},
        hint="Use um dos escopos: " + ", ".join(SCOPES),
    )


def resolve_template(template: str, context: Mapping[str, str]) -> str:
    """
    Substitui todos os marcadores `${...}` do template por valores do contexto.

    Args:
        template: string possivelmente contendo marcadores.
        context: referência completa (ex.: "inputs.params.imageTag") → valor literal.

    Returns:
        str: template com todos os marcadores substituídos.

    Raises:
        UnresolvedReferenceError: marcador sem entrada no contexto, vazio
            ou `${` sem fechamento.
    """
    spans = _scan(template)
    if not spans:
        return template

    out: List[str] = []
    cursor = 0
    for start, end, ref in spans:
        if ref not in context:
            raise UnresolvedReferenceError(
                f"Unresolved reference '${{{ref}}}' in '{template}'",
                details={"reference": ref, "template": template},
            )
        out.append(template[cursor:start])
        out.append(str(context[ref]))
        cursor = end
    out.append(template[cursor:])
    return "".join(out)


def resolve_all(templates: Iterable[str], context: Mapping[str, str]) -> Tuple[str, ...]:
    return tuple(resolve_template(t, context) for t in templates)


# ---------------------------------------------------------------------------
# Construção de contexto
# ---------------------------------------------------------------------------

def workspace_path(scope: str, slot: str) -> str:
    if scope == SCOPE_OUTPUT_RESOURCES:
        return f"/workspace/output/{slot}"
    return f"/workspace/{slot}"


def resource_entries(
    scope: str,
    slot: str,
    *,
    name: str,
    kind: str,
    params: Mapping[str, str],
) -> Dict[str, str]:
    """Campos publicados por um resource ligado a um slot (params + name/type/path)."""
    entries = {f"{scope}.{slot}.{k}": str(v) for k, v in params.items()}
    entries[f"{scope}.{slot}.name"] = name
    entries[f"{scope}.{slot}.type"] = kind
    entries.setdefault(f"{scope}.{slot}.path", workspace_path(scope, slot))
    return entries


def param_entries(values: Mapping[str, str], *, scopes: Optional[Iterable[str]] = None) -> Dict[str, str]:
    entries: Dict[str, str] = {}
    for scope in scopes or (SCOPE_INPUT_PARAMS, SCOPE_PARAMS):
        for k, v in values.items():
            entries[f"{scope}.{k}"] = str(v)
    return entries
