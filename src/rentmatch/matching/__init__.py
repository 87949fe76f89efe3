"""
Motor de matching y targeting.

Scorer determinístico con fallback al oráculo, selector de candidatos
y orquestador de campañas.
"""

from rentmatch.matching.engine import TargetingOrchestrator, rank_matches
from rentmatch.matching.scorer import MatchScorer
from rentmatch.matching.selector import (
    CandidateSelection,
    CandidateSelector,
    passes_tenant_filter,
)
from rentmatch.models.match_result import MatchResult

__all__ = [
    "TargetingOrchestrator",
    "MatchScorer",
    "MatchResult",
    "CandidateSelection",
    "CandidateSelector",
    "passes_tenant_filter",
    "rank_matches",
]
