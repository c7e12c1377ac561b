"""Erros canônicos de leitura de documentos (Task, Pipeline, Resource, PipelineRun).

Falhas de arquivo e de parsing são erros de I/O deste pacote; documentos
lidos mas estruturalmente inválidos levantam `DocumentValidationError`
(ver `core.exceptions`), que é um erro de definição.
"""


class DocumentError(Exception):
    """Erro base de carregamento de documentos."""


class DocumentNotFoundError(DocumentError):
    """Arquivo de documentos não existe no caminho informado."""


class UnsupportedDocumentFormatError(DocumentError):
    """Formato não suportado (v1: YAML/JSON)."""


class DocumentParseError(DocumentError):
    """Falha ao parsear YAML/JSON."""
