"""
Contrato do runtime externo de steps.

O engine não executa containers: cada step resolvido é entregue a um
`StepRuntime`, que materializa os resources ligados, roda a imagem com
o comando/argumentos literais e devolve um `StepOutcome`.

Decisões arquiteturais:
    - O contrato é assíncrono (`async execute`), permitindo que vários
      steps de branches independentes fiquem em voo ao mesmo tempo
    - O token de identidade (`service_account`) é repassado sem interpretação
    - Falha de step é um resultado (`succeeded=False`), não uma exceção;
      exceções levantadas pelo runtime são tratadas pelo engine como falha
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Protocol, Tuple, runtime_checkable


@dataclass(frozen=True)
class StepInvocation:
    """Um step totalmente resolvido, pronto para ser executado."""

    run_id: str
    task: str
    step: str
    image: str
    command: Tuple[str, ...] = ()
    args: Tuple[str, ...] = ()
    service_account: str = "default"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "run_id": self.run_id,
            "task": self.task,
            "step": self.step,
            "image": self.image,
            "command": list(self.command),
            "args": list(self.args),
            "service_account": self.service_account,
        }


@dataclass(frozen=True)
class StepOutcome:
    """
    Resultado reportado pelo runtime.

    `error` é o texto de erro do runtime, repassado sem modificação ao
    estado do TaskRun quando `succeeded` é falso.
    """

    succeeded: bool
    logs: Tuple[str, ...] = field(default_factory=tuple)
    error: Optional[str] = None
    exit_code: Optional[int] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "logs", tuple(self.logs))


@runtime_checkable
class StepRuntime(Protocol):
    """Executor externo de steps (container runtime, cluster, fake de testes)."""

    async def execute(self, invocation: StepInvocation) -> StepOutcome:
        """
        Executa um step resolvido e reporta o resultado.

        Falhas do step são reportadas em `StepOutcome`; exceções são tratadas
        pelo Engine como erro de execução. O runtime deve tolerar
        `asyncio.CancelledError` (cancelamento de run ou prazo).
        """
        ...
