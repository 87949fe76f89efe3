import asyncio

import pytest

from conftest import (
    FakeCampaignRepository,
    FakeInsightsGenerator,
    FakeMatchRepository,
    FakeOracle,
    FakePropertyRepository,
    FakeTenantRepository,
)
from rentmatch.config import Settings
from rentmatch.exceptions import (
    CampaignTimeoutError,
    CriteriaValidationError,
    NoPropertiesMatchedError,
    NotFoundError,
)
from rentmatch.matching import MatchScorer, TargetingOrchestrator
from rentmatch.matching.engine import PAIR_ERROR_REASON
from rentmatch.models import (
    Budget,
    CampaignCriteria,
    PropertyFilter,
    PropertyListing,
    Tenant,
    TenantPreference,
)
from rentmatch.models.match_result import MatchResult


def _build_property(property_id: int, **overrides) -> PropertyListing:
    data = {
        "id": property_id,
        "owner_id": 7,
        "property_type": "flat",
        "price": 500,
        "bedrooms": 2,
    }
    data.update(overrides)
    return PropertyListing(**data)


def _properties() -> list[PropertyListing]:
    return [
        _build_property(1, city="Leeds", area="Headingley"),
        _build_property(
            2, property_type="house", price=1200, bedrooms=4, city="Manchester", area="Fallowfield"
        ),
        _build_property(3, property_type="studio", price=700, bedrooms=1, city="Bristol", area="Clifton"),
    ]


def _tenants() -> tuple[list[Tenant], dict[int, TenantPreference]]:
    tenants = [Tenant(id=i) for i in range(1, 6)]
    preferences = {
        # 65 contra la propiedad 1
        1: TenantPreference(
            tenant_id=1,
            property_types=["flat"],
            budget=Budget(min=400, max=600),
            bedroom_counts=[2],
            locations=["Headingley"],
            lifestyle=["student"],
        ),
        # 65 contra la propiedad 2
        2: TenantPreference(
            tenant_id=2,
            property_types=["house"],
            budget=Budget(min=1000, max=1300),
            bedroom_counts=[4],
            locations=["Fallowfield"],
            lifestyle=["professional"],
        ),
        # 50 como máximo
        3: TenantPreference(
            tenant_id=3,
            property_types=["flat"],
            budget=Budget(min=400, max=600),
            bedroom_counts=[2],
        ),
        # 4 no tiene preferencias: lo resuelve el oráculo
        5: TenantPreference(
            tenant_id=5,
            property_types=["studio"],
            budget=Budget(min=650, max=750),
            bedroom_counts=[1],
        ),
    }
    return tenants, preferences


def _build_orchestrator(
    settings,
    properties=None,
    tenants=None,
    preferences=None,
    scorer=None,
    match_repo=None,
    insights_generator=None,
    failing_tenant_ids=None,
):
    if tenants is None:
        tenants, preferences = _tenants()
    orchestrator = TargetingOrchestrator(
        tenant_repo=FakeTenantRepository(tenants, preferences, failing_tenant_ids),
        property_repo=FakePropertyRepository(properties if properties is not None else _properties()),
        campaign_repo=FakeCampaignRepository(),
        match_repo=match_repo or FakeMatchRepository(),
        scorer=scorer or MatchScorer(oracle=FakeOracle(score=40)),
        insights_generator=insights_generator or FakeInsightsGenerator(),
        settings=settings,
    )
    return orchestrator


def _criteria(**overrides) -> dict:
    data = {
        "agent_id": 7,
        "name": "Freshers 2026",
        "target_demographic": "students",
        "property_ids": [1, 2, 3],
    }
    data.update(overrides)
    return data


class FailingScorer(MatchScorer):
    """Falla para una propiedad puntual."""

    def __init__(self, failing_property_id: int):
        super().__init__(oracle=FakeOracle(score=40))
        self.failing_property_id = failing_property_id

    async def score(self, preference, listing, tenant=None) -> MatchResult:
        if listing.id == self.failing_property_id:
            raise RuntimeError("scorer exploded")
        return await super().score(preference, listing, tenant)


class SlowOracle(FakeOracle):
    async def estimate(self, tenant_summary, property_summary):
        await asyncio.sleep(5)
        return await super().estimate(tenant_summary, property_summary)


class TrackingOracle(FakeOracle):
    """Registra cuántas estimaciones corren a la vez."""

    def __init__(self):
        super().__init__(score=40)
        self.active = 0
        self.peak = 0

    async def estimate(self, tenant_summary, property_summary):
        self.active += 1
        self.peak = max(self.peak, self.active)
        try:
            await asyncio.sleep(0.01)
        finally:
            self.active -= 1
        return await super().estimate(tenant_summary, property_summary)


@pytest.mark.asyncio
async def test_run_campaign_keeps_pairs_over_threshold(settings):
    orchestrator = _build_orchestrator(settings)

    campaign = await orchestrator.run_campaign(_criteria())

    assert campaign.id == 1
    assert campaign.target_properties == [1, 2, 3]
    assert [(m.tenant_id, m.best_score, m.recommended_property_ids) for m in campaign.matched_tenants] == [
        (1, 65, [1]),
        (2, 65, [2]),
    ]
    stored = orchestrator.match_repo.list_by_campaign(campaign.id)
    assert sorted((m.tenant_id, m.property_id) for m in stored) == [(1, 1), (2, 2)]
    assert all(m.score > settings.match_threshold for m in stored)

    stats = campaign.run_stats
    assert stats.tenants_considered == 5
    assert stats.tenants_matched == 2
    assert stats.pairs_scored == 15
    assert stats.estimated_pairs == 3
    assert stats.matches_persisted == 2
    assert stats.has_failures is False


@pytest.mark.asyncio
async def test_persisted_match_equals_scorer_output(settings):
    orchestrator = _build_orchestrator(settings)
    _, preferences = _tenants()

    campaign = await orchestrator.run_campaign(_criteria())

    stored = orchestrator.match_repo.list_by_campaign(campaign.id)[0]
    expected = MatchScorer().score_preference(
        preferences[stored.tenant_id], orchestrator.property_repo.get_by_id(stored.property_id)
    )
    assert stored.score == expected.score
    assert stored.reasons == expected.reasons


@pytest.mark.asyncio
async def test_matched_tenants_follow_candidate_order(settings):
    tenants, preferences = _tenants()
    orchestrator = _build_orchestrator(
        settings, tenants=list(reversed(tenants)), preferences=preferences
    )

    campaign = await orchestrator.run_campaign(_criteria())

    assert [m.tenant_id for m in campaign.matched_tenants] == [2, 1]
    assert [m.tenant_id for m in campaign.ranked_tenants()] == [1, 2]


@pytest.mark.asyncio
async def test_recommended_properties_tie_break_by_property_id(settings):
    properties = [
        _build_property(9, city="Leeds"),
        _build_property(4, city="Leeds"),
    ]
    tenants = [Tenant(id=1)]
    preferences = {
        1: TenantPreference(
            tenant_id=1,
            property_types=["flat"],
            budget=Budget(min=400, max=600),
            bedroom_counts=[2],
            locations=["Leeds"],
        )
    }
    orchestrator = _build_orchestrator(
        settings, properties=properties, tenants=tenants, preferences=preferences
    )

    campaign = await orchestrator.run_campaign(_criteria(property_ids=[9, 4]))

    assert campaign.matched_tenants[0].recommended_property_ids == [4, 9]


@pytest.mark.asyncio
async def test_tenant_filter_limits_candidates(settings):
    orchestrator = _build_orchestrator(settings)

    campaign = await orchestrator.run_campaign(
        _criteria(tenant_filter={"lifestyles": ["student"]})
    )

    assert campaign.run_stats.tenants_considered == 1
    assert [m.tenant_id for m in campaign.matched_tenants] == [1]


@pytest.mark.asyncio
async def test_failed_pair_counts_and_continues(settings):
    orchestrator = _build_orchestrator(settings, scorer=FailingScorer(failing_property_id=2))

    campaign = await orchestrator.run_campaign(_criteria())

    assert [m.tenant_id for m in campaign.matched_tenants] == [1]
    assert campaign.run_stats.pairs_failed == 5
    assert campaign.run_stats.pairs_scored == 10
    assert campaign.run_stats.has_failures is True


@pytest.mark.asyncio
async def test_recommendation_error_pair_scores_zero(settings):
    orchestrator = _build_orchestrator(settings, scorer=FailingScorer(failing_property_id=1))

    ranked = await orchestrator.recommend_properties_for_tenant(1, count=3)

    failed = [result for listing, result in ranked if listing.id == 1][0]
    assert failed.score == 0
    assert failed.reasons == [PAIR_ERROR_REASON]


@pytest.mark.asyncio
async def test_failed_persistence_is_counted(settings):
    match_repo = FakeMatchRepository(failing_pairs={(2, 2)})
    orchestrator = _build_orchestrator(settings, match_repo=match_repo)

    campaign = await orchestrator.run_campaign(_criteria())

    assert campaign.run_stats.matches_persisted == 1
    assert campaign.run_stats.matches_failed == 1
    assert len(match_repo.matches) == 1


@pytest.mark.asyncio
async def test_no_properties_matched_aborts_before_creating_campaign(settings):
    orchestrator = _build_orchestrator(settings)

    with pytest.raises(NoPropertiesMatchedError):
        await orchestrator.run_campaign(_criteria(property_ids=[999]))

    assert orchestrator.campaign_repo.campaigns == {}


@pytest.mark.asyncio
async def test_invalid_criteria_rejected_before_any_write(settings):
    orchestrator = _build_orchestrator(settings)

    with pytest.raises(CriteriaValidationError) as exc_info:
        await orchestrator.run_campaign(
            _criteria(name="", tenant_filter={"budget": {"min": 900, "max": 100}})
        )

    assert len(exc_info.value.errors) == 2
    assert orchestrator.campaign_repo.campaigns == {}


@pytest.mark.asyncio
async def test_property_ids_take_priority_over_filter(settings):
    orchestrator = _build_orchestrator(settings)

    campaign = await orchestrator.run_campaign(
        _criteria(property_ids=[3], property_filter={"property_types": ["flat"]})
    )

    assert campaign.target_properties == [3]
    assert "search_by_filters" not in orchestrator.property_repo.calls


@pytest.mark.asyncio
async def test_property_filter_then_agent_properties(settings):
    orchestrator = _build_orchestrator(settings)

    filtered = await orchestrator.run_campaign(
        CampaignCriteria(
            agent_id=7,
            name="Houses",
            target_demographic="families",
            property_filter=PropertyFilter(property_types=["house"]),
        )
    )
    owned = await orchestrator.run_campaign(_criteria(property_ids=[]))

    assert filtered.target_properties == [2]
    assert owned.target_properties == [1, 2, 3]
    assert orchestrator.property_repo.calls.count("get_by_owner") == 1


@pytest.mark.asyncio
async def test_insights_are_attached_when_enabled():
    settings = Settings(generate_insights=True)
    orchestrator = _build_orchestrator(
        settings, insights_generator=FakeInsightsGenerator(["Target Headingley students"])
    )

    campaign = await orchestrator.run_campaign(_criteria())

    assert campaign.insights == ["Target Headingley students"]
    assert campaign.run_stats is not None


@pytest.mark.asyncio
async def test_insights_failure_keeps_campaign():
    settings = Settings(generate_insights=True)
    orchestrator = _build_orchestrator(
        settings, insights_generator=FakeInsightsGenerator(error=RuntimeError("llm down"))
    )

    campaign = await orchestrator.run_campaign(_criteria())

    assert campaign.insights == []
    assert len(campaign.matched_tenants) == 2


@pytest.mark.asyncio
async def test_timeout_keeps_persisted_matches(settings):
    orchestrator = _build_orchestrator(settings, scorer=MatchScorer(oracle=SlowOracle()))

    with pytest.raises(CampaignTimeoutError) as exc_info:
        await orchestrator.run_campaign(_criteria(), timeout=0.2)

    assert exc_info.value.campaign_id == 1
    assert orchestrator.campaign_repo.get_by_id(1) is not None


@pytest.mark.asyncio
async def test_rerun_appends_by_default(settings):
    orchestrator = _build_orchestrator(settings)
    campaign = await orchestrator.run_campaign(_criteria())

    rerun = await orchestrator.rerun_campaign(campaign.id)

    assert rerun.id == campaign.id
    assert len(orchestrator.match_repo.list_by_campaign(campaign.id)) == 4
    assert rerun.run_stats.matches_superseded == 0


@pytest.mark.asyncio
async def test_rerun_supersede_replaces_previous_matches():
    settings = Settings(generate_insights=False, campaign_rerun_mode="supersede")
    orchestrator = _build_orchestrator(settings)
    campaign = await orchestrator.run_campaign(_criteria())

    rerun = await orchestrator.rerun_campaign(campaign.id)

    assert len(orchestrator.match_repo.list_by_campaign(campaign.id)) == 2
    assert rerun.run_stats.matches_superseded == 2


@pytest.mark.asyncio
async def test_rerun_unknown_campaign(settings):
    orchestrator = _build_orchestrator(settings)

    with pytest.raises(NotFoundError):
        await orchestrator.rerun_campaign(42)


@pytest.mark.asyncio
async def test_recommend_properties_for_tenant(settings):
    orchestrator = _build_orchestrator(settings)

    ranked = await orchestrator.recommend_properties_for_tenant(1, count=2)

    assert [listing.id for listing, _ in ranked] == [1, 3]
    assert ranked[0][1].score == 65


@pytest.mark.asyncio
async def test_recommend_properties_for_unknown_tenant(settings):
    orchestrator = _build_orchestrator(settings)

    with pytest.raises(NotFoundError):
        await orchestrator.recommend_properties_for_tenant(99)


@pytest.mark.asyncio
async def test_suggest_tenants_for_property(settings):
    orchestrator = _build_orchestrator(settings)

    ranked = await orchestrator.suggest_tenants_for_property(1, count=3)

    assert [(tenant.id, result.score) for tenant, result in ranked] == [(1, 65), (3, 50), (4, 40)]


@pytest.mark.asyncio
async def test_suggest_tenants_for_unknown_property(settings):
    orchestrator = _build_orchestrator(settings)

    with pytest.raises(NotFoundError):
        await orchestrator.suggest_tenants_for_property(99)



@pytest.mark.asyncio
async def test_failed_preference_read_with_tenant_filter_is_counted(settings):
    orchestrator = _build_orchestrator(settings, failing_tenant_ids={3})

    campaign = await orchestrator.run_campaign(
        _criteria(tenant_filter={"lifestyles": ["student"]})
    )

    assert [m.tenant_id for m in campaign.matched_tenants] == [1]
    assert campaign.run_stats.candidates_failed == 1
    assert campaign.run_stats.has_failures is True
    stored = orchestrator.campaign_repo.get_by_id(campaign.id)
    assert [m.tenant_id for m in stored.matched_tenants] == [1]


@pytest.mark.asyncio
async def test_preferences_are_read_once_per_tenant(settings):
    orchestrator = _build_orchestrator(settings)

    await orchestrator.run_campaign(_criteria(tenant_filter={"lifestyles": ["student"]}))

    assert sorted(orchestrator.tenant_repo.preference_lookups) == [1, 2, 3, 4, 5]


@pytest.mark.asyncio
async def test_pair_scoring_respects_max_concurrent_pairs():
    settings = Settings(generate_insights=False, max_concurrent_pairs=2)
    oracle = TrackingOracle()
    tenants = [Tenant(id=i) for i in range(1, 6)]
    orchestrator = _build_orchestrator(
        settings, tenants=tenants, preferences={}, scorer=MatchScorer(oracle=oracle)
    )

    campaign = await orchestrator.run_campaign(_criteria())

    assert len(oracle.calls) == 15
    assert oracle.peak == 2
    assert campaign.run_stats.estimated_pairs == 15


@pytest.mark.asyncio
async def test_cancelled_run_keeps_persisted_matches(settings):
    orchestrator = _build_orchestrator(settings, scorer=MatchScorer(oracle=SlowOracle()))
    match_repo = orchestrator.match_repo

    task = asyncio.create_task(orchestrator.run_campaign(_criteria()))
    for _ in range(200):
        if len(match_repo.matches) >= 2:
            break
        await asyncio.sleep(0.01)
    task.cancel()

    with pytest.raises(asyncio.CancelledError):
        await task

    assert sorted((m.tenant_id, m.property_id) for m in match_repo.matches) == [(1, 1), (2, 2)]
    assert orchestrator.campaign_repo.get_by_id(1) is not None


@pytest.mark.asyncio
async def test_zero_count_returns_no_recommendations(settings):
    orchestrator = _build_orchestrator(settings)

    assert await orchestrator.recommend_properties_for_tenant(1, count=0) == []
    assert await orchestrator.suggest_tenants_for_property(1, count=0) == []
