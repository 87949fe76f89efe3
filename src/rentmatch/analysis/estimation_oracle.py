"""
Oráculo de estimación de compatibilidad.

Se usa solo cuando el inquilino no cargó preferencias: un LLM estima
un score 0-100 a partir de resúmenes no sensibles del inquilino y la
propiedad. El camino determinístico y este devuelven el mismo tipo.
"""

import asyncio
import json
from abc import ABC, abstractmethod
from typing import Optional

import structlog
from tenacity import retry, stop_after_attempt, wait_exponential

from rentmatch.analysis.llm_providers import (
    BaseLLMProvider,
    get_llm_provider,
    strip_code_fences,
)
from rentmatch.config import get_settings
from rentmatch.exceptions import EstimationFailure
from rentmatch.models.match_result import MatchResult, clamp_score

logger = structlog.get_logger()


ESTIMATION_SYSTEM_PROMPT = (
    "You are an expert student property matching algorithm. "
    "Answer only with valid JSON."
)

ESTIMATION_USER_PROMPT_TEMPLATE = """Based on the provided tenant and property information, estimate how well they match.
The tenant has not stated any preferences, so reason from the property itself and the tenant profile.
Do not take the tenant's identity into account.

Tenant profile:
{tenant}

Property information:
- Title: {title}
- Type: {property_type}
- Price: {price}
- Location: {location}
- Bedrooms: {bedrooms}
- Bathrooms: {bathrooms}
- Features: {features}
- Nearby University: {university}
- Furnished: {furnished}
- Bills Included: {bills}

Return a JSON object with exactly this structure:
{{
  "matchScore": 0-100,
  "matchReasons": ["2-4 specific reasons for the score"]
}}"""


class EstimationOracle(ABC):
    """Capacidad de estimar compatibilidad sin preferencias explícitas."""

    @abstractmethod
    async def estimate(self, tenant_summary: dict, property_summary: dict) -> MatchResult:
        """
        Estima la compatibilidad de un par.

        Raises:
            EstimationFailure: timeout, error del proveedor o respuesta inválida
        """


class LLMEstimationOracle(EstimationOracle):
    """Oráculo respaldado por el proveedor LLM configurado."""

    def __init__(
        self,
        provider: Optional[BaseLLMProvider] = None,
        timeout_seconds: Optional[float] = None,
    ):
        self._provider = provider
        self.timeout_seconds = timeout_seconds or get_settings().estimation_timeout_seconds

    @property
    def provider(self) -> BaseLLMProvider:
        if self._provider is None:
            self._provider = get_llm_provider()
        return self._provider

    def _build_prompt(self, tenant_summary: dict, property_summary: dict) -> str:
        tenant_lines = "\n".join(
            f"- {key}: {value}" for key, value in tenant_summary.items()
        ) or "- (no profile data)"
        features = property_summary.get("features") or []
        bills = property_summary.get("bills_included") or []

        return ESTIMATION_USER_PROMPT_TEMPLATE.format(
            tenant=tenant_lines,
            title=property_summary.get("title", ""),
            property_type=property_summary.get("property_type", ""),
            price=property_summary.get("price", ""),
            location=property_summary.get("location", ""),
            bedrooms=property_summary.get("bedrooms", ""),
            bathrooms=property_summary.get("bathrooms", ""),
            features=", ".join(features) if features else "None specified",
            university=property_summary.get("university") or "None",
            furnished=property_summary.get("furnished", "unknown"),
            bills=f"Yes ({', '.join(bills)})" if bills else "No",
        )

    @retry(
        stop=stop_after_attempt(2),
        wait=wait_exponential(multiplier=1, min=1, max=4),
        reraise=True,
    )
    async def _request(self, user_prompt: str) -> str:
        response = await self.provider.generate(
            system_prompt=ESTIMATION_SYSTEM_PROMPT,
            user_prompt=user_prompt,
            temperature=0.2,
            max_tokens=300,
            json_mode=True,
        )
        return response.text

    def _parse(self, text: str) -> MatchResult:
        cleaned = strip_code_fences(text)
        if not cleaned:
            raise EstimationFailure("Empty estimation response", operation="parse")

        try:
            data = json.loads(cleaned)
        except json.JSONDecodeError as e:
            raise EstimationFailure(f"Invalid JSON from oracle: {e}", operation="parse") from e

        if not isinstance(data, dict) or "matchScore" not in data:
            raise EstimationFailure("Oracle response missing matchScore", operation="parse")

        try:
            score = clamp_score(round(float(data["matchScore"])))
        except (TypeError, ValueError, OverflowError) as e:
            raise EstimationFailure(f"Non-numeric matchScore: {e}", operation="parse") from e

        reasons = data.get("matchReasons") or []
        if not isinstance(reasons, list):
            reasons = [str(reasons)]
        reasons = [str(r).strip() for r in reasons if str(r).strip()]

        return MatchResult(
            score=score,
            reasons=reasons or ["AI-generated match prediction"],
            estimated=True,
        )

    async def estimate(self, tenant_summary: dict, property_summary: dict) -> MatchResult:
        user_prompt = self._build_prompt(tenant_summary, property_summary)
        try:
            text = await asyncio.wait_for(
                self._request(user_prompt), timeout=self.timeout_seconds
            )
        except asyncio.TimeoutError as e:
            raise EstimationFailure(
                f"Estimation timed out after {self.timeout_seconds}s", operation="request"
            ) from e
        except Exception as e:
            raise EstimationFailure(f"Estimation request failed: {e}", operation="request") from e

        result = self._parse(text)
        logger.debug("Estimación recibida", score=result.score, reasons=len(result.reasons))
        return result
