# tests/test_smoke.py
"""
Teste de sanidade estrutural (smoke test) do Atlas Orchestrator.

Garante apenas que o ambiente de testes funciona e que o namespace
público do pacote pode ser importado sem falhas estruturais.

Limites explícitos:
    - Não testar lógica de negócio
    - Não testar fluxo de execução
"""


def test_smoke():
    import atlas_orchestrator

    assert "Engine" in atlas_orchestrator.__all__
    assert all(hasattr(atlas_orchestrator, name) for name in atlas_orchestrator.__all__)
