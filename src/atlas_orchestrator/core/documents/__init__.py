"""
Documentos estruturados (YAML/JSON) do Atlas Orchestrator.

Este pacote lê definições declarativas de Tasks, Pipelines, resources e
PipelineRuns e as converte nos tipos canônicos de `core.pipeline.types`.

Limites explícitos:
    - Não executa runs
    - Não valida semântica (responsabilidade dos registries e do builder)
"""

from .errors import (
    DocumentError,
    DocumentNotFoundError,
    DocumentParseError,
    UnsupportedDocumentFormatError,
)
from .loader import load_documents, loads_documents
from .parsers import parse_pipeline, parse_resource, parse_run_request, parse_task
from .registration import RegisteredDocuments, register_documents

__all__ = [
    "DocumentError",
    "DocumentNotFoundError",
    "DocumentParseError",
    "UnsupportedDocumentFormatError",
    "load_documents",
    "loads_documents",
    "parse_pipeline",
    "parse_resource",
    "parse_run_request",
    "parse_task",
    "RegisteredDocuments",
    "register_documents",
]
