"""
Leitura tipada da seção `engine` da configuração efetiva.

Chaves reconhecidas (v1):
    - max_parallel: int > 0 ou null (sem limite)
    - fail_fast: bool; ao primeiro FAILED, nenhum nó novo é despachado
    - deadline_seconds: número > 0 ou null; prazo de execução da run
    - manifest_dir: diretório onde `<run_id>.json` é salvo, ou null

Chaves desconhecidas dentro de `engine` são rejeitadas.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Dict, Mapping, Optional

from .errors import InvalidEngineSettingError


_KNOWN_KEYS = frozenset({"max_parallel", "fail_fast", "deadline_seconds", "manifest_dir"})


@dataclass(frozen=True)
class EngineSettings:
    max_parallel: Optional[int] = None
    fail_fast: bool = False
    deadline_seconds: Optional[float] = None
    manifest_dir: Optional[str] = None

    @classmethod
    def from_config(cls, config: Optional[Mapping[str, Any]]) -> "EngineSettings":
        """
        Extrai e valida `config["engine"]`.

        Raises:
            InvalidEngineSettingError: valor com tipo ou faixa inválida,
                ou chave desconhecida.
        """
        section = (config or {}).get("engine") or {}
        if not isinstance(section, Mapping):
            raise InvalidEngineSettingError(
                f"Seção 'engine' deve ser dict, recebido: {type(section).__name__}"
            )

        unknown = sorted(set(section) - _KNOWN_KEYS)
        if unknown:
            raise InvalidEngineSettingError(f"Chaves desconhecidas em 'engine': {unknown}")

        max_parallel = section.get("max_parallel")
        if max_parallel is not None:
            if isinstance(max_parallel, bool) or not isinstance(max_parallel, int) or max_parallel < 1:
                raise InvalidEngineSettingError(
                    f"engine.max_parallel deve ser inteiro >= 1 ou null, recebido: {max_parallel!r}"
                )

        fail_fast = section.get("fail_fast", False)
        if not isinstance(fail_fast, bool):
            raise InvalidEngineSettingError(
                f"engine.fail_fast deve ser booleano, recebido: {fail_fast!r}"
            )

        deadline = section.get("deadline_seconds")
        if deadline is not None:
            if isinstance(deadline, bool) or not isinstance(deadline, (int, float)) or deadline <= 0:
                raise InvalidEngineSettingError(
                    f"engine.deadline_seconds deve ser número > 0 ou null, recebido: {deadline!r}"
                )
            deadline = float(deadline)

        manifest_dir = section.get("manifest_dir")
        if manifest_dir is not None and (not isinstance(manifest_dir, str) or not manifest_dir.strip()):
            raise InvalidEngineSettingError(
                f"engine.manifest_dir deve ser caminho não vazio ou null, recebido: {manifest_dir!r}"
            )

        return cls(
            max_parallel=max_parallel,
            fail_fast=fail_fast,
            deadline_seconds=deadline,
            manifest_dir=manifest_dir,
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
