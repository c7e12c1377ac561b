"""
Atlas Orchestrator: Canonical Exceptions (v1)

Este módulo define as exceções tipadas internas do Atlas Orchestrator.

Objetivo:
- Permitir que registries, builder e binding levantem exceções semânticas tipadas
- Facilitar o mapeamento determinístico para AtlasErrorPayload
- Garantir que toda rejeição carregue o(s) nome(s) ofensivo(s) em `details`

Regras:
- Erros de definição (registro, build do grafo, binding de run) herdam de
  `DefinitionError` e nunca aparecem durante a execução de uma run.
- Falhas de execução de steps NÃO são exceções: são registradas como estado
  `failed` do TaskRun (ver `core.errors.step_failed`).
- Exceções carregam apenas dados estruturados (serializáveis).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple


@dataclass(frozen=True)
class AtlasException(Exception):
    """Base class para exceções internas do Atlas.

    Importante:
    - Sempre carregar dados estruturados em `details`
    - Não embedar stack trace em payloads de erro
    - Mensagem deve ser curta e humana
    """

    message: str
    details: Dict[str, Any] = field(default_factory=dict)
    hint: Optional[str] = None

    def __str__(self) -> str:  # pragma: no cover
        return self.message


# ---------------------------------------------------------------------------
# Erros de definição (fail fast, antes de qualquer execução)
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class DefinitionError(AtlasException):
    """Base dos erros detectados em registro, build de grafo ou binding de run."""


@dataclass(frozen=True)
class InvalidDefinitionError(DefinitionError):
    """Definição estruturalmente inválida (nome vazio, task sem steps, ...)."""


@dataclass(frozen=True)
class DuplicateNameError(DefinitionError):
    """Nome já registrado (resource, task, pipeline, slot, param ou nó)."""


@dataclass(frozen=True)
class NotFoundError(DefinitionError):
    """Nome referenciado não existe no registry consultado."""


@dataclass(frozen=True)
class KindMismatchError(DefinitionError):
    """Resource ou slot de pipeline com kind diferente do slot declarado."""


@dataclass(frozen=True)
class UndeclaredReferenceError(DefinitionError):
    """Referência a parâmetro, slot ou escopo não declarado pela definição."""


@dataclass(frozen=True)
class UnboundSlotError(DefinitionError):
    """Slot de resource sem ligação a um slot de pipeline ou a um resource concreto."""


@dataclass(frozen=True)
class MissingParameterError(DefinitionError):
    """Parâmetro obrigatório (sem default) não recebeu valor."""


@dataclass(frozen=True)
class UnknownDependencyError(DefinitionError):
    """`runAfter`/`from` aponta para um nó inexistente no pipeline."""


@dataclass(frozen=True)
class InvalidProvenanceError(DefinitionError):
    """`from` aponta para um nó que não produz o slot de pipeline consumido."""


@dataclass(frozen=True)
class CyclicDependencyError(DefinitionError):
    """O grafo de dependências contém um ciclo; `members` nomeia os nós do ciclo."""

    members: Tuple[str, ...] = ()


@dataclass(frozen=True)
class UnresolvedReferenceError(DefinitionError):
    """Marcador `${...}` sem valor no contexto de resolução."""


@dataclass(frozen=True)
class DocumentValidationError(DefinitionError):
    """Documento estruturado (Task/Pipeline/Resource/PipelineRun) malformado."""


# ---------------------------------------------------------------------------
# Erros de estado (programação)
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class InvalidStateTransitionError(AtlasException):
    """Transição fora da máquina de estados de run ou de TaskRun."""
