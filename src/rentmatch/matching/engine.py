"""
Orquestador de campañas de targeting.

Implementa:
- Resolución del set de propiedades (IDs > filtro > propiedades del agente)
- Selección de candidatos con el filtro de inquilinos
- Fan-out inquilino x propiedad por el scorer, con concurrencia acotada
- Agregación del mejor match por inquilino y persistencia de los pares
- Insights best-effort al final
"""

import asyncio
from typing import Optional, Union

import structlog
from pydantic import ValidationError

from rentmatch.analysis import CampaignInsightsGenerator
from rentmatch.config import Settings, get_settings
from rentmatch.database import (
    CampaignRepository,
    PropertyRepository,
    PropertyTenantMatchRepository,
    TenantRepository,
)
from rentmatch.exceptions import (
    CampaignTimeoutError,
    CriteriaValidationError,
    NoPropertiesMatchedError,
    NotFoundError,
)
from rentmatch.matching.scorer import MatchScorer
from rentmatch.matching.selector import CandidateSelector
from rentmatch.models import (
    CampaignCriteria,
    CampaignRunStats,
    CampaignStatus,
    MatchedTenant,
    PropertyListing,
    PropertyTenantMatch,
    TargetingCampaign,
    Tenant,
    TenantFilter,
    TenantPreference,
)
from rentmatch.models.match_result import MatchResult

logger = structlog.get_logger()

PAIR_ERROR_REASON = "Error calculating match score"


def rank_matches(
    scored: list[tuple[PropertyListing, MatchResult]],
) -> list[tuple[PropertyListing, MatchResult]]:
    """Score descendente; empates por ID de propiedad ascendente."""
    return sorted(scored, key=lambda pair: (-pair[1].score, pair[0].id))


class TargetingOrchestrator:
    """
    Corre campañas de targeting de punta a punta.

    Flujo de run_campaign:
    1. Validar criterios
    2. Resolver propiedades y crear la campaña en estado active
    3. Seleccionar candidatos
    4. Evaluar cada par (inquilino, propiedad) con el scorer
    5. Quedarse con pares sobre el umbral y persistirlos
    6. Actualizar matched_tenants
    7. Adjuntar insights (si falla, la campaña queda igual)
    """

    def __init__(
        self,
        tenant_repo: Optional[TenantRepository] = None,
        property_repo: Optional[PropertyRepository] = None,
        campaign_repo: Optional[CampaignRepository] = None,
        match_repo: Optional[PropertyTenantMatchRepository] = None,
        scorer: Optional[MatchScorer] = None,
        insights_generator: Optional[CampaignInsightsGenerator] = None,
        settings: Optional[Settings] = None,
    ):
        self.settings = settings or get_settings()
        self.tenant_repo = tenant_repo or TenantRepository()
        self.property_repo = property_repo or PropertyRepository()
        self.campaign_repo = campaign_repo or CampaignRepository()
        self.match_repo = match_repo or PropertyTenantMatchRepository()
        self.scorer = scorer or MatchScorer()
        self.selector = CandidateSelector(self.tenant_repo)
        self.insights_generator = insights_generator or CampaignInsightsGenerator()

    async def run_campaign(
        self,
        criteria: Union[CampaignCriteria, dict],
        timeout: Optional[float] = None,
    ) -> TargetingCampaign:
        """
        Crea y puebla una campaña de targeting.

        Args:
            criteria: Criterios de la campaña (modelo o dict crudo)
            timeout: Segundos máximos para el scoring; lo persistido se conserva

        Returns:
            La campaña actualizada, con run_stats de la corrida

        Raises:
            CriteriaValidationError: criterios mal formados (antes de tocar el store)
            NoPropertiesMatchedError: no se resolvió ninguna propiedad
            CampaignTimeoutError: se superó el timeout
        """
        criteria = self._validate(criteria)
        properties = self._resolve_properties(criteria)

        campaign = self.campaign_repo.create(
            TargetingCampaign(
                agent_id=criteria.agent_id,
                name=criteria.name,
                description=criteria.description
                or f"Targeting campaign for {criteria.target_demographic.value}",
                target_demographic=criteria.target_demographic,
                property_filter=criteria.property_filter,
                tenant_filter=criteria.tenant_filter,
                target_properties=[p.id for p in properties],
                status=CampaignStatus.ACTIVE,
            )
        )
        logger.info(
            "Iniciando campaña",
            campaign_id=campaign.id,
            agent_id=criteria.agent_id,
            properties=len(properties),
        )

        try:
            return await self._run_with_timeout(
                campaign, properties, criteria.tenant_filter, timeout, CampaignRunStats()
            )
        except Exception as e:
            logger.error("Error en campaña", campaign_id=campaign.id, error=str(e))
            raise

    async def rerun_campaign(
        self,
        campaign_id: int,
        timeout: Optional[float] = None,
    ) -> TargetingCampaign:
        """
        Re-ejecuta una campaña existente sobre sus propiedades y filtros guardados.

        Con campaign_rerun_mode="supersede" borra antes los matches previos;
        con "append" los conserva junto a los nuevos.
        """
        campaign = self.campaign_repo.get_by_id(campaign_id)
        if campaign is None:
            raise NotFoundError("Campaign", campaign_id, operation="rerun_campaign")

        properties = self._fetch_properties(campaign.target_properties)
        if not properties:
            raise NoPropertiesMatchedError()

        stats = CampaignRunStats()
        if self.settings.campaign_rerun_mode == "supersede":
            stats.matches_superseded = self.match_repo.delete_by_campaign(campaign.id)

        logger.info(
            "Re-ejecutando campaña",
            campaign_id=campaign.id,
            mode=self.settings.campaign_rerun_mode,
            properties=len(properties),
        )
        return await self._run_with_timeout(
            campaign, properties, campaign.tenant_filter, timeout, stats
        )

    def _validate(self, criteria: Union[CampaignCriteria, dict]) -> CampaignCriteria:
        if isinstance(criteria, CampaignCriteria):
            return criteria
        try:
            return CampaignCriteria.model_validate(criteria)
        except ValidationError as e:
            raise CriteriaValidationError(
                f"Invalid campaign criteria ({e.error_count()} errors)",
                errors=e.errors(),
            ) from e

    def _fetch_properties(self, property_ids: list[int]) -> list[PropertyListing]:
        properties = []
        for property_id in dict.fromkeys(property_ids):
            listing = self.property_repo.get_by_id(property_id)
            if listing is None:
                logger.warning("Propiedad inexistente, se ignora", property_id=property_id)
                continue
            properties.append(listing)
        return properties

    def _resolve_properties(self, criteria: CampaignCriteria) -> list[PropertyListing]:
        """IDs explícitos > filtro > todas las propiedades del agente."""
        if criteria.property_ids:
            properties = self._fetch_properties(criteria.property_ids)
        elif criteria.property_filter is not None:
            properties = self.property_repo.search_by_filters(criteria.property_filter)
        else:
            properties = self.property_repo.get_by_owner(criteria.agent_id)

        if not properties:
            raise NoPropertiesMatchedError()
        return properties

    async def _run_with_timeout(
        self,
        campaign: TargetingCampaign,
        properties: list[PropertyListing],
        tenant_filter: Optional[TenantFilter],
        timeout: Optional[float],
        stats: CampaignRunStats,
    ) -> TargetingCampaign:
        if timeout is None:
            return await self._populate(campaign, properties, tenant_filter, stats)
        try:
            return await asyncio.wait_for(
                self._populate(campaign, properties, tenant_filter, stats),
                timeout=timeout,
            )
        except asyncio.TimeoutError as e:
            logger.warning(
                "Campaña cortada por timeout",
                campaign_id=campaign.id,
                timeout=timeout,
                matches_persisted=stats.matches_persisted,
            )
            raise CampaignTimeoutError(campaign.id, timeout) from e

    async def _populate(
        self,
        campaign: TargetingCampaign,
        properties: list[PropertyListing],
        tenant_filter: Optional[TenantFilter],
        stats: CampaignRunStats,
    ) -> TargetingCampaign:
        all_tenants = self.tenant_repo.list_by_type("tenant")
        selection = self.selector.select_candidates(all_tenants, tenant_filter)
        stats.tenants_considered = len(selection.candidates)
        stats.candidates_failed = len(selection.failed_tenant_ids)

        semaphore = asyncio.Semaphore(self.settings.max_concurrent_pairs)
        results = await asyncio.gather(*[
            self._match_tenant(
                semaphore, campaign.id, tenant, properties, stats, selection.preferences
            )
            for tenant in selection.candidates
        ])

        # gather conserva el orden de los candidatos
        matched_tenants = [m for m in results if m is not None]
        stats.tenants_matched = len(matched_tenants)

        campaign = self.campaign_repo.update(
            campaign.id,
            {"matched_tenants": [m.model_dump() for m in matched_tenants]},
        )
        campaign = await self._attach_insights(campaign, properties, matched_tenants)
        campaign.run_stats = stats

        logger.info("Campaña completada", campaign_id=campaign.id, **stats.model_dump())
        return campaign

    async def _match_tenant(
        self,
        semaphore: asyncio.Semaphore,
        campaign_id: int,
        tenant: Tenant,
        properties: list[PropertyListing],
        stats: CampaignRunStats,
        known_preferences: dict[int, Optional[TenantPreference]],
    ) -> Optional[MatchedTenant]:
        """
        Evalúa un inquilino contra todas las propiedades y persiste sus matches.

        Las preferencias ya leídas por el selector no se vuelven a pedir.
        """
        if tenant.id in known_preferences:
            preference = known_preferences[tenant.id]
        else:
            try:
                preference = self.tenant_repo.get_preferences(tenant.id)
            except Exception as e:
                logger.error("Error leyendo preferencias", tenant_id=tenant.id, error=str(e))
                stats.pairs_failed += len(properties)
                return None

        results = await asyncio.gather(*[
            self._score_pair(semaphore, tenant, preference, listing, stats)
            for listing in properties
        ])

        threshold = self.settings.match_threshold
        qualifying = rank_matches([
            (listing, result)
            for listing, result in zip(properties, results)
            if result.score > threshold
        ])
        if not qualifying:
            return None

        for listing, result in qualifying:
            self._persist_match(campaign_id, tenant.id, listing.id, result, stats)

        return MatchedTenant(
            tenant_id=tenant.id,
            best_score=qualifying[0][1].score,
            recommended_property_ids=[listing.id for listing, _ in qualifying],
        )

    async def _score_pair(
        self,
        semaphore: asyncio.Semaphore,
        tenant: Tenant,
        preference: Optional[TenantPreference],
        listing: PropertyListing,
        stats: CampaignRunStats,
    ) -> MatchResult:
        async with semaphore:
            try:
                result = await self.scorer.score(preference, listing, tenant)
            except Exception as e:
                logger.error(
                    "Error evaluando par",
                    tenant_id=tenant.id,
                    property_id=listing.id,
                    error=str(e),
                )
                stats.pairs_failed += 1
                return MatchResult(score=0, reasons=[PAIR_ERROR_REASON])

        stats.pairs_scored += 1
        if result.estimated:
            stats.estimated_pairs += 1
        return result

    def _persist_match(
        self,
        campaign_id: int,
        tenant_id: int,
        property_id: int,
        result: MatchResult,
        stats: CampaignRunStats,
    ):
        match = PropertyTenantMatch(
            property_id=property_id,
            tenant_id=tenant_id,
            campaign_id=campaign_id,
            score=result.score,
            reasons=list(result.reasons),
        )
        try:
            self.match_repo.create(match)
            stats.matches_persisted += 1
        except Exception as e:
            stats.matches_failed += 1
            logger.error(
                "Error persistiendo match",
                campaign_id=campaign_id,
                tenant_id=tenant_id,
                property_id=property_id,
                error=str(e),
            )

    async def _attach_insights(
        self,
        campaign: TargetingCampaign,
        properties: list[PropertyListing],
        matched_tenants: list[MatchedTenant],
    ) -> TargetingCampaign:
        if not self.settings.generate_insights:
            return campaign
        try:
            insights = await self.insights_generator.generate(
                properties, matched_tenants, campaign.target_demographic
            )
            return self.campaign_repo.update(campaign.id, {"insights": insights})
        except Exception as e:
            logger.warning("No se pudieron adjuntar insights", campaign_id=campaign.id, error=str(e))
            return campaign

    async def recommend_properties_for_tenant(
        self,
        tenant_id: int,
        count: Optional[int] = None,
    ) -> list[tuple[PropertyListing, MatchResult]]:
        """
        Mejores propiedades disponibles para un inquilino.

        Raises:
            NotFoundError: si el inquilino no existe
        """
        tenant = self.tenant_repo.get_by_id(tenant_id)
        if tenant is None:
            raise NotFoundError("Tenant", tenant_id, operation="recommend_properties")

        if count is None:
            count = self.settings.recommendation_count
        preference = self.tenant_repo.get_preferences(tenant_id)
        properties = self.property_repo.get_available()

        semaphore = asyncio.Semaphore(self.settings.max_concurrent_pairs)
        stats = CampaignRunStats()
        results = await asyncio.gather(*[
            self._score_pair(semaphore, tenant, preference, listing, stats)
            for listing in properties
        ])
        return rank_matches(list(zip(properties, results)))[:count]

    async def suggest_tenants_for_property(
        self,
        property_id: int,
        count: Optional[int] = None,
    ) -> list[tuple[Tenant, MatchResult]]:
        """
        Inquilinos más compatibles con una propiedad.

        Raises:
            NotFoundError: si la propiedad no existe
        """
        listing = self.property_repo.get_by_id(property_id)
        if listing is None:
            raise NotFoundError("Property", property_id, operation="suggest_tenants")

        if count is None:
            count = self.settings.recommendation_count
        tenants = self.tenant_repo.list_by_type("tenant")

        semaphore = asyncio.Semaphore(self.settings.max_concurrent_pairs)
        stats = CampaignRunStats()

        async def _score_tenant(tenant: Tenant) -> MatchResult:
            preference = self.tenant_repo.get_preferences(tenant.id)
            return await self._score_pair(semaphore, tenant, preference, listing, stats)

        results = await asyncio.gather(*[_score_tenant(t) for t in tenants])
        ranked = sorted(zip(tenants, results), key=lambda pair: (-pair[1].score, pair[0].id))
        return ranked[:count]
