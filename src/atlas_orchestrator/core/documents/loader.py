"""Loader canônico de documentos (YAML/JSON).

Notas:
- YAML é preferencial e aceita múltiplos documentos separados por `---`.
- JSON aceita um objeto único ou uma lista de objetos.
- O formato é inferido pela extensão do arquivo.
- Documentos YAML vazios (`---` sem conteúdo) são ignorados.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, List, Union

import yaml

from .errors import (
    DocumentNotFoundError,
    DocumentParseError,
    UnsupportedDocumentFormatError,
)


_FORMATS = {".yml": "yaml", ".yaml": "yaml", ".json": "json"}


def loads_documents(text: str, *, fmt: str = "yaml") -> List[Dict[str, Any]]:
    """Parseia documentos a partir de texto.

    Raises:
        UnsupportedDocumentFormatError: se `fmt` não for "yaml" nem "json".
        DocumentParseError: se o parsing falhar ou um documento não for mapping.
    """
    try:
        if fmt == "yaml":
            raw = [d for d in yaml.safe_load_all(text) if d is not None]
        elif fmt == "json":
            loaded = json.loads(text)
            raw = loaded if isinstance(loaded, list) else [loaded]
        else:
            raise UnsupportedDocumentFormatError(f"unsupported document format: {fmt}")
    except UnsupportedDocumentFormatError:
        raise
    except Exception as e:
        raise DocumentParseError(str(e) or "failed to parse documents") from e

    for idx, doc in enumerate(raw):
        if not isinstance(doc, dict):
            raise DocumentParseError(f"document #{idx} must be a mapping/dict")
    return raw


def load_documents(path: Union[str, Path]) -> List[Dict[str, Any]]:
    """Carrega todos os documentos de um arquivo YAML/JSON.

    Raises:
        DocumentNotFoundError: se arquivo não existir.
        UnsupportedDocumentFormatError: se extensão não suportada.
        DocumentParseError: se parsing falhar.
    """
    p = Path(path)
    if not p.exists():
        raise DocumentNotFoundError(f"document file not found: {p}")

    fmt = _FORMATS.get(p.suffix.lower())
    if fmt is None:
        raise UnsupportedDocumentFormatError(f"unsupported document format: {p.suffix}")

    return loads_documents(p.read_text(encoding="utf-8"), fmt=fmt)
