"""
Generador de insights de campaña.

Combina insights básicos calculados localmente con insights del LLM.
Es best-effort: si el LLM falla se devuelven solo los básicos.
"""

import json
from collections import Counter
from typing import Optional

import structlog
from tenacity import retry, stop_after_attempt, wait_exponential

from rentmatch.analysis.llm_providers import (
    BaseLLMProvider,
    get_llm_provider,
    strip_code_fences,
)
from rentmatch.models import MatchedTenant, PropertyListing, TargetDemographic

logger = structlog.get_logger()

INSIGHTS_SYSTEM_PROMPT = (
    "You are an expert property market analyst. Answer only with valid JSON."
)

INSIGHTS_USER_PROMPT_TEMPLATE = """Based on the following data about a property targeting campaign,
generate 5-7 useful insights that would help a property agent better market these properties to the target tenants.
Each insight must be actionable and specific to this dataset: patterns, opportunities, pricing strategy,
feature highlights and targeted marketing approaches.

Properties ({property_count} total):
{properties}

Matched tenants: {tenant_count} (best scores: {scores})

Target Demographic: {demographic}

Return a JSON object with exactly this structure:
{{"insights": ["insight 1", "insight 2"]}}"""


class CampaignInsightsGenerator:
    """Arma la lista de insights que se adjunta a la campaña."""

    def __init__(self, provider: Optional[BaseLLMProvider] = None):
        self._provider = provider

    @property
    def provider(self) -> BaseLLMProvider:
        if self._provider is None:
            self._provider = get_llm_provider()
        return self._provider

    def basic_insights(
        self,
        properties: list[PropertyListing],
        matched_tenants: list[MatchedTenant],
        demographic: TargetDemographic,
    ) -> list[str]:
        """Insights que no dependen del LLM."""
        insights = [
            f"Campaign targets {len(properties)} properties and {len(matched_tenants)} potential tenants",
            f"Primary demographic: {demographic.value}",
        ]

        recommended = Counter(
            pid for m in matched_tenants for pid in m.recommended_property_ids
        )
        if recommended:
            top_id, top_count = min(recommended.items(), key=lambda kv: (-kv[1], kv[0]))
            insights.append(
                f"Property {top_id} is recommended to the most tenants ({top_count})"
            )

        return insights

    @retry(
        stop=stop_after_attempt(2),
        wait=wait_exponential(multiplier=1, min=1, max=4),
        reraise=True,
    )
    async def _request(self, user_prompt: str) -> str:
        response = await self.provider.generate(
            system_prompt=INSIGHTS_SYSTEM_PROMPT,
            user_prompt=user_prompt,
            temperature=0.4,
            max_tokens=800,
            json_mode=True,
        )
        return response.text

    def _parse(self, text: str) -> list[str]:
        data = json.loads(strip_code_fences(text))
        if isinstance(data, dict):
            data = data.get("insights", [])
        if not isinstance(data, list):
            return []
        return [str(item).strip() for item in data if str(item).strip()]

    async def generate(
        self,
        properties: list[PropertyListing],
        matched_tenants: list[MatchedTenant],
        demographic: TargetDemographic,
    ) -> list[str]:
        """
        Genera insights para la campaña.

        Returns:
            Insights básicos seguidos de los del LLM (si hubo)
        """
        insights = self.basic_insights(properties, matched_tenants, demographic)

        user_prompt = INSIGHTS_USER_PROMPT_TEMPLATE.format(
            property_count=len(properties),
            properties=json.dumps([p.summary() for p in properties], indent=2),
            tenant_count=len(matched_tenants),
            scores=", ".join(str(m.best_score) for m in matched_tenants) or "none",
            demographic=demographic.value,
        )

        try:
            text = await self._request(user_prompt)
            insights.extend(self._parse(text))
        except Exception as e:
            logger.warning("No se pudieron generar insights con LLM", error=str(e))

        return insights
