"""
Camada de configuração do Atlas Orchestrator.

Este pacote contém as estruturas e utilitários responsáveis por carregar,
mesclar, validar e identificar a configuração de execução do engine.

Responsabilidades do pacote:
    - Carregamento de arquivos de configuração (defaults + overrides locais)
    - Resolução de configuração final via deep-merge determinístico
    - Leitura tipada da seção `engine` (EngineSettings)
    - Geração de hash canônico para rastreabilidade

Invariantes:
    - A configuração final é um dicionário puro (dict)
    - Conflitos estruturais são tratados como erro

Limites explícitos:
    - Não executa pipeline
    - Não conhece Tasks, Pipelines ou resources
"""

from .errors import (
    ConfigError,
    ConfigTypeConflictError,
    DefaultsNotFoundError,
    InvalidConfigRootTypeError,
    InvalidEngineSettingError,
    UnsupportedConfigFormatError,
)
from .hashing import compute_config_hash, compute_hash
from .loader import DEFAULT_CONFIG, load_config
from .merge import deep_merge
from .settings import EngineSettings

__all__ = [
    "ConfigError",
    "ConfigTypeConflictError",
    "DefaultsNotFoundError",
    "InvalidConfigRootTypeError",
    "InvalidEngineSettingError",
    "UnsupportedConfigFormatError",
    "compute_config_hash",
    "compute_hash",
    "DEFAULT_CONFIG",
    "load_config",
    "deep_merge",
    "EngineSettings",
]
