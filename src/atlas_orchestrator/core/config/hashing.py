"""
Hashing canônico do Atlas Orchestrator.

Gera a identidade estrutural (SHA-256 sobre JSON canônico) de:
    - configuração efetiva do engine
    - definição de pipeline usada por uma run
    - bindings concretos (resources + params) de uma run

Os hashes são gravados no Manifest da run (`inputs`) para auditoria.

Política de hashing (v1):
    - Serialização JSON canônica (chaves ordenadas, separadores compactos)
    - Codificação UTF-8
    - SHA-256, representado em hexadecimal (64 caracteres)
"""

import hashlib
import json
from typing import Any, Dict


def compute_hash(payload: Any) -> str:
    """Hash SHA-256 do JSON canônico de qualquer payload serializável."""
    canonical_json = json.dumps(
        payload,
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
    )
    return hashlib.sha256(canonical_json.encode("utf-8")).hexdigest()


def compute_config_hash(config: Dict[str, Any]) -> str:
    """
    Gera o hash determinístico da configuração efetiva.

    Raises:
        TypeError: se o objeto fornecido não for um dicionário.
    """
    if not isinstance(config, dict):
        raise TypeError(
            f"Config para hashing deve ser dict, recebido: {type(config).__name__}"
        )
    return compute_hash(config)
