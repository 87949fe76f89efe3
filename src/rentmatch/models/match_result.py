"""
Resultado transitorio de evaluar un par inquilino-propiedad.
"""

from dataclasses import dataclass, field

MIN_SCORE = 0
MAX_SCORE = 100


def clamp_score(score: int) -> int:
    """Acota el score a [0, 100]."""
    return max(MIN_SCORE, min(MAX_SCORE, int(score)))


@dataclass
class MatchResult:
    """Score de compatibilidad + motivos en orden de evaluación."""

    score: int
    reasons: list[str] = field(default_factory=list)
    estimated: bool = False  # True si lo produjo el oráculo (no determinístico)
