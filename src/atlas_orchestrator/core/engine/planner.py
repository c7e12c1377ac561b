"""
Planejador de execução do pipeline (DAG).

Este módulo valida a estrutura de dependências entre nós de um pipeline
e produz uma ordem topológica determinística.

O planner opera exclusivamente em nível estrutural, analisando:
    - nomes de nós
    - dependências derivadas (runAfter + proveniência)
    - formação de ciclos

Decisões arquiteturais:
    - Utiliza ordenação topológica determinística (Kahn modificado)
    - Empates são resolvidos por ordem lexicográfica do nome do nó
    - Em caso de ciclo, um ciclo concreto é extraído e nomeado no erro

Invariantes:
    - Nenhum nó aparece antes de suas dependências
    - Todos os nós aparecem exatamente uma vez
    - O mesmo grafo produz sempre a mesma ordem

Limites explícitos:
    - Não executa Tasks
    - Não conhece TaskSpecs, resources ou runs
    - Não decide políticas de execução
"""

from __future__ import annotations

from typing import Dict, Iterable, List, Mapping, Set

from ..exceptions import CyclicDependencyError, UnknownDependencyError


def in_degrees(dependencies: Mapping[str, Iterable[str]]) -> Dict[str, int]:
    """Quantidade de predecessores distintos de cada nó."""
    return {node: len(set(deps)) for node, deps in dependencies.items()}


def successors(dependencies: Mapping[str, Iterable[str]]) -> Dict[str, Set[str]]:
    """Inverte o mapa de dependências: nó → nós que dependem dele."""
    outgoing: Dict[str, Set[str]] = {node: set() for node in dependencies}
    for node, deps in dependencies.items():
        for dep in deps:
            outgoing[dep].add(node)
    return outgoing


def _find_cycle(remaining: Set[str], dependencies: Mapping[str, Iterable[str]]) -> List[str]:
    """
    Extrai um ciclo concreto do subgrafo não ordenado.

    Todo nó restante após Kahn possui ao menos um predecessor também
    restante; seguir predecessores a partir de qualquer nó sempre
    revisita um nó, fechando um ciclo.
    """
    node = min(remaining)
    path: List[str] = []
    index: Dict[str, int] = {}
    while node not in index:
        index[node] = len(path)
        path.append(node)
        node = min(d for d in dependencies[node] if d in remaining)
    cycle = path[index[node]:]
    cycle.reverse()  # ordem de execução: dependência → dependente
    return cycle


def plan_execution(dependencies: Mapping[str, Iterable[str]]) -> List[str]:
    """
    Valida e produz uma ordem topológica determinística dos nós.

    Args:
        dependencies: nó → nós dos quais depende (predecessores).

    Returns:
        List[str]: nomes dos nós em ordem de execução.

    Raises:
        UnknownDependencyError: se um nó depender de um nó inexistente.
        CyclicDependencyError: se houver ciclo; `members` nomeia o ciclo.
    """
    deps: Dict[str, Set[str]] = {}
    for node, dlist in dependencies.items():
        d = set(dlist)
        for dep in d:
            if dep not in dependencies:
                raise UnknownDependencyError(
                    f"Task '{node}' depends on unknown task '{dep}'",
                    details={"task": node, "dependency": dep},
                )
        deps[node] = d

    # Kahn's algorithm (deterministic)
    incoming_count = in_degrees(deps)
    outgoing = successors(deps)

    ready: List[str] = sorted(n for n, c in incoming_count.items() if c == 0)
    order: List[str] = []

    while ready:
        node = ready.pop(0)  # smallest lexicographic
        order.append(node)
        for child in sorted(outgoing[node]):
            incoming_count[child] -= 1
            if incoming_count[child] == 0:
                ready.append(child)
                ready.sort()

    if len(order) != len(deps):
        remaining = set(deps) - set(order)
        cycle = _find_cycle(remaining, deps)
        raise CyclicDependencyError(
            "Cycle detected in task dependency graph: " + " -> ".join(cycle + cycle[:1]),
            details={"cycle": cycle, "unordered": sorted(remaining)},
            members=tuple(cycle),
        )

    return order
