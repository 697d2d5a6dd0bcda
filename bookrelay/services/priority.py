"""
Cálculo da prioridade de um pedido.

    priority = w_base * base + w_interest * interesse + w_proximity * proximidade

Cada componente é limitado a [0, 100]. Interesse e proximidade ainda não
têm fonte de dados e usam os valores padrão da configuração.
"""

from dataclasses import dataclass

from bookrelay.core.config import Settings, get_settings

SCORE_MIN = 0.0
SCORE_MAX = 100.0


def clamp_score(value: float | None) -> float:
    """Limita uma pontuação ao intervalo [0, 100]."""
    if value is None:
        return SCORE_MIN
    return max(SCORE_MIN, min(SCORE_MAX, float(value)))


@dataclass(frozen=True)
class PriorityBreakdown:
    base: float
    interest: float
    proximity: float
    score: float


class PriorityCalculator:
    """Combina os componentes de prioridade com os pesos configurados."""

    def __init__(self, settings: Settings | None = None):
        self.settings = settings or get_settings()

    def calculate(
        self,
        base_score: float | None,
        interest_score: float | None = None,
        proximity_score: float | None = None,
    ) -> PriorityBreakdown:
        """
        Calcula a prioridade.

        Args:
            base_score: Pontuação de sucesso do solicitante
            interest_score: Afinidade com o livro (default: configuração)
            proximity_score: Proximidade do portador (default: configuração)
        """
        if interest_score is None:
            interest_score = self.settings.DEFAULT_INTEREST_SCORE
        if proximity_score is None:
            proximity_score = self.settings.DEFAULT_PROXIMITY_SCORE

        base = clamp_score(base_score)
        interest = clamp_score(interest_score)
        proximity = clamp_score(proximity_score)

        score = (
            self.settings.PRIORITY_BASE_WEIGHT * base
            + self.settings.PRIORITY_INTEREST_WEIGHT * interest
            + self.settings.PRIORITY_PROXIMITY_WEIGHT * proximity
        )
        return PriorityBreakdown(
            base=base,
            interest=interest,
            proximity=proximity,
            score=round(score, 4),
        )
