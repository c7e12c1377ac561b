"""
Atlas Orchestrator: Canonical Error Structures (v1)

Este módulo define o padrão canônico de payloads de erro do Atlas Orchestrator.
Erros são artefatos de domínio e fazem parte do contrato operacional do
sistema: aparecem no estado de cada TaskRun, no Manifest da run e nos
snapshots de status, devendo ser:

- explícitos
- serializáveis
- rastreáveis

O texto de erro reportado pelo runtime externo é repassado sem reinterpretação.
"""

from __future__ import annotations

from dataclasses import dataclass, asdict
from typing import Any, Dict, Optional

from .exceptions import AtlasException


# ---------------------------------------------------------------------------
# Payload canônico
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class AtlasErrorPayload:
    """
    Payload canônico de erro do Atlas Orchestrator.

    Campos:
    - type: código estável do erro (não é texto livre)
    - message: mensagem curta, humana e objetiva
    - details: dados estruturados relevantes para diagnóstico
    - hint: ação sugerida ao operador (onde corrigir)
    """

    type: str
    message: str
    details: Dict[str, Any]
    hint: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Retorna representação serializável do erro."""
        return asdict(self)


# ---------------------------------------------------------------------------
# Catálogo canônico de tipos de erro (v1)
# ---------------------------------------------------------------------------

# Definição (registro / build / binding)
DUPLICATE_NAME = "DUPLICATE_NAME"
NOT_FOUND = "NOT_FOUND"
KIND_MISMATCH = "KIND_MISMATCH"
UNDECLARED_REFERENCE = "UNDECLARED_REFERENCE"
UNBOUND_SLOT = "UNBOUND_SLOT"
MISSING_PARAMETER = "MISSING_PARAMETER"
UNKNOWN_DEPENDENCY = "UNKNOWN_DEPENDENCY"
INVALID_PROVENANCE = "INVALID_PROVENANCE"
CYCLIC_DEPENDENCY = "CYCLIC_DEPENDENCY"
UNRESOLVED_REFERENCE = "UNRESOLVED_REFERENCE"
INVALID_DEFINITION = "INVALID_DEFINITION"
DOCUMENT_INVALID = "DOCUMENT_INVALID"

# Execução
STEP_FAILED = "STEP_FAILED"
RUN_CANCELLED = "RUN_CANCELLED"
ENGINE_EXECUTION_ERROR = "ENGINE_EXECUTION_ERROR"


_CODES_BY_EXCEPTION = {
    "DuplicateNameError": DUPLICATE_NAME,
    "NotFoundError": NOT_FOUND,
    "KindMismatchError": KIND_MISMATCH,
    "UndeclaredReferenceError": UNDECLARED_REFERENCE,
    "UnboundSlotError": UNBOUND_SLOT,
    "MissingParameterError": MISSING_PARAMETER,
    "UnknownDependencyError": UNKNOWN_DEPENDENCY,
    "InvalidProvenanceError": INVALID_PROVENANCE,
    "CyclicDependencyError": CYCLIC_DEPENDENCY,
    "UnresolvedReferenceError": UNRESOLVED_REFERENCE,
    "InvalidDefinitionError": INVALID_DEFINITION,
    "DocumentValidationError": DOCUMENT_INVALID,
}


def exception_to_error(exc: BaseException) -> AtlasErrorPayload:
    """Converte exceções em AtlasErrorPayload (serializável, acionável).

    Regras:
    - AtlasException: já vem com message/details/hint; o código é derivado
      do nome da classe pelo catálogo.
    - Outras exceções: encapsular como ENGINE_EXECUTION_ERROR sem expor stack trace.
    """
    if isinstance(exc, AtlasException):
        return AtlasErrorPayload(
            type=_CODES_BY_EXCEPTION.get(exc.__class__.__name__, exc.__class__.__name__),
            message=str(exc) or "Erro de definição",
            details=dict(exc.details or {}),
            hint=exc.hint,
        )

    return AtlasErrorPayload(
        type=ENGINE_EXECUTION_ERROR,
        message=str(exc) or exc.__class__.__name__,
        details={"exception_class": exc.__class__.__name__},
        hint="Verifique os logs do runtime de execução do step",
    )


# ---------------------------------------------------------------------------
# Helpers de fábrica
# ---------------------------------------------------------------------------

def step_failed(
    *,
    task: str,
    step: str,
    error: Optional[str],
    exit_code: Optional[int] = None,
    hint: str = "Inspecione os logs do step; a run não é reexecutada automaticamente.",
) -> AtlasErrorPayload:
    return AtlasErrorPayload(
        type=STEP_FAILED,
        message=error or f"step '{step}' failed",
        details={
            "task": task,
            "step": step,
            "exit_code": exit_code,
        },
        hint=hint,
    )


def run_cancelled(
    *,
    task: str,
    reason: str,
    step: Optional[str] = None,
) -> AtlasErrorPayload:
    return AtlasErrorPayload(
        type=RUN_CANCELLED,
        message=f"cancelled while running: {reason}",
        details={
            "task": task,
            "step": step,
            "reason": reason,
        },
        hint="Crie uma nova run para reexecutar o pipeline.",
    )
