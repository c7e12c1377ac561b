"""
Engine do Atlas Orchestrator.

Componentes principais:
    - planner → ordenação topológica determinística e detecção de ciclos
    - binding → RunRequest + ResolvedGraph → RunInstance (steps resolvidos)
    - run     → estado de runs e TaskRuns (máquinas de estado)
    - runtime → contrato do executor externo de steps
    - engine  → despacho concorrente, propagação de falhas e cancelamento

Invariantes:
    - Nós só são executados após todos os seus predecessores terem sucesso
    - Cada nó é executado no máximo uma vez por run
    - O estado final de cada TaskRun é explícito (SUCCEEDED, FAILED ou SKIPPED)
"""
