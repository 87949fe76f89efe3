"""
Módulo de análisis con IA.

Oráculo de estimación (fallback del scorer) e insights de campaña,
sobre proveedores LLM intercambiables (Gemini/Groq).
"""

from rentmatch.analysis.estimation_oracle import EstimationOracle, LLMEstimationOracle
from rentmatch.analysis.insights import CampaignInsightsGenerator
from rentmatch.analysis.llm_providers import (
    get_llm_provider,
    BaseLLMProvider,
    GeminiProvider,
    GroqProvider,
    LLMResponse,
)

__all__ = [
    # Oráculo
    "EstimationOracle",
    "LLMEstimationOracle",
    "CampaignInsightsGenerator",
    # Proveedores LLM
    "get_llm_provider",
    "BaseLLMProvider",
    "GeminiProvider",
    "GroqProvider",
    "LLMResponse",
]
