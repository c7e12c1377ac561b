"""
Deep-merge canônico de configuração.

Política de merge (v1):
    - dict → merge recursivo por chave
    - list → sobrescrita total (sem merge elemento a elemento)
    - None no override → sobrescreve (permite desligar limites, ex.: `max_parallel: null`)
    - None na base → aceita qualquer tipo do override
    - escalar → sobrescrita direta
    - int e float são intercambiáveis (números; bool não conta como número)
    - conflito de tipos → `ConfigTypeConflictError`

Invariantes:
    - Nenhum input é mutado
    - A mesma entrada sempre produz a mesma saída
"""

from copy import deepcopy
from typing import Any, Dict

from .errors import ConfigTypeConflictError


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """
    Combina `base` com `override`, retornando um novo dicionário.

    Raises:
        ConfigTypeConflictError: se a mesma chave tiver tipos incompatíveis.
    """
    if not isinstance(base, dict) or not isinstance(override, dict):
        raise ConfigTypeConflictError(
            f"Deep-merge requer dicts no nível raiz, recebido: "
            f"{type(base).__name__} vs {type(override).__name__}"
        )

    result: Dict[str, Any] = deepcopy(base)

    for key, override_value in override.items():
        base_value = result.get(key)

        if key not in result or base_value is None or override_value is None:
            result[key] = deepcopy(override_value)
        elif isinstance(base_value, dict) and isinstance(override_value, dict):
            result[key] = deep_merge(base_value, override_value)
        elif isinstance(override_value, list):
            result[key] = deepcopy(override_value)
        elif _is_number(base_value) and _is_number(override_value):
            result[key] = override_value
        elif type(base_value) is not type(override_value):
            raise ConfigTypeConflictError(
                f"Conflito de tipo na chave '{key}': "
                f"{type(base_value).__name__} vs {type(override_value).__name__}"
            )
        else:
            result[key] = deepcopy(override_value)

    return result
