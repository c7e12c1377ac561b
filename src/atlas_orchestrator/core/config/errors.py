"""
Exceções canônicas da camada de configuração do Atlas Orchestrator.

As exceções aqui definidas representam violações estruturais da
configuração do engine, e não erros de definição de pipeline nem falhas
de execução de steps.

Invariantes:
    - Todas as exceções de configuração herdam de `ConfigError`
    - Nenhuma exceção representa erro de Task, Pipeline ou Run
"""


class ConfigError(Exception):
    """
    Exceção base para erros relacionados à configuração do Atlas Orchestrator.

    Permite captura genérica de erros de configuração, distinta dos
    erros de definição (`DefinitionError`) e das falhas de steps.
    """


class DefaultsNotFoundError(ConfigError):
    """
    Arquivo de configuração base (defaults) não encontrado no caminho informado.

    Limites explícitos:
        - Não tenta inferir ou criar defaults automaticamente
    """


class UnsupportedConfigFormatError(ConfigError):
    """
    Formato do arquivo de configuração não suportado.

    Formatos suportados (v1):
        - YAML (.yaml, .yml)
        - JSON (.json)
    """


class InvalidConfigRootTypeError(ConfigError):
    """Conteúdo raiz da configuração não é um dicionário (`dict`)."""


class ConfigTypeConflictError(ConfigError):
    """
    Conflito de tipos durante o deep-merge.

    Exemplo de conflito:
        - base:     {"engine": {"fail_fast": false}}
        - override: {"engine": "fast"}
    """


class InvalidEngineSettingError(ConfigError):
    """
    Valor inválido na seção `engine` da configuração.

    Exemplos:
        - `max_parallel: 0`
        - `deadline_seconds: "soon"`
        - `fail_fast: "yes"`
    """
