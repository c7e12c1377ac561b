"""
# Pipeline Core: Atlas Orchestrator

Este pacote define as **estruturas de definição** de um pipeline e sua
validação antes de qualquer execução.

## Componentes

- **types**: `ResourceDefinition`, `TaskSpec`, `PipelineSpec`, `RunRequest`,
  `RunStatus`, `TaskRunStatus`
- **registry**: `ResourceRegistry` e `TaskRegistry` (validação no registro)
- **builder**: `GraphBuilder` → `ResolvedGraph` imutável; `PipelineRegistry`
- **context**: `RunContext` (eventos estruturados e warnings por TaskRun)

## Invariantes

- Nomes são únicos dentro de cada registry
- Todo `ResolvedGraph` é um DAG validado e nunca é mutado
"""
