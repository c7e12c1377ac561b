"""
Core do Atlas Orchestrator.

Componentes principais:
    - templating   → resolução de templates de parâmetros e resources
    - pipeline     → definições, registries e builder de grafo (DAG)
    - engine       → binding de runs, planner e execução concorrente
    - traceability → Manifest, Event Log e tracker de status
    - config       → resolução de configuração (merge, hashing, settings)
    - documents    → documentos YAML/JSON de definição

Princípios fundamentais:
    - Toda definição é validada antes de qualquer execução
    - Estado de execução é publicado de forma atômica e rastreável
    - Nenhuma decisão silenciosa: todo comportamento é explícito e testado
"""
