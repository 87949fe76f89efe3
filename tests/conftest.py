import pytest

from rentmatch.analysis import EstimationOracle
from rentmatch.config import Settings
from rentmatch.exceptions import PersistenceFailure
from rentmatch.models import PropertyListing, TargetingCampaign, Tenant, TenantPreference
from rentmatch.models.match_result import MatchResult


class FakeTenantRepository:
    def __init__(
        self,
        tenants: list[Tenant],
        preferences: dict[int, TenantPreference] | None = None,
        failing_ids: set[int] | None = None,
    ):
        self.tenants = tenants
        self.preferences = preferences or {}
        self.failing_ids = failing_ids or set()
        self.preference_lookups: list[int] = []

    def get_by_id(self, tenant_id: int) -> Tenant | None:
        return next((t for t in self.tenants if t.id == tenant_id), None)

    def list_by_type(self, user_type: str = "tenant") -> list[Tenant]:
        return [t for t in self.tenants if t.user_type == user_type]

    def get_preferences(self, tenant_id: int) -> TenantPreference | None:
        self.preference_lookups.append(tenant_id)
        if tenant_id in self.failing_ids:
            raise RuntimeError("store read timeout")
        return self.preferences.get(tenant_id)


class FakePropertyRepository:
    def __init__(self, properties: list[PropertyListing]):
        self.properties = {p.id: p for p in properties}
        self.calls: list[str] = []

    def get_by_id(self, property_id: int) -> PropertyListing | None:
        self.calls.append("get_by_id")
        return self.properties.get(property_id)

    def get_by_owner(self, owner_id: int) -> list[PropertyListing]:
        self.calls.append("get_by_owner")
        return [p for p in self.properties.values() if p.owner_id == owner_id]

    def get_available(self) -> list[PropertyListing]:
        return [p for p in self.properties.values() if p.available]

    def search_by_filters(self, filters) -> list[PropertyListing]:
        self.calls.append("search_by_filters")
        results = list(self.properties.values())
        if filters.property_types:
            results = [p for p in results if p.property_type in filters.property_types]
        if filters.max_price is not None:
            results = [p for p in results if float(p.price) <= filters.max_price]
        return results


class FakeCampaignRepository:
    def __init__(self):
        self.campaigns: dict[int, TargetingCampaign] = {}
        self.updates: list[tuple[int, dict]] = []

    def create(self, campaign: TargetingCampaign) -> TargetingCampaign:
        created = campaign.model_copy(update={"id": len(self.campaigns) + 1})
        self.campaigns[created.id] = created
        return created

    def update(self, campaign_id: int, fields: dict) -> TargetingCampaign:
        self.updates.append((campaign_id, fields))
        data = self.campaigns[campaign_id].model_dump()
        data.update(fields)
        updated = TargetingCampaign.model_validate(data)
        self.campaigns[campaign_id] = updated
        return updated

    def get_by_id(self, campaign_id: int) -> TargetingCampaign | None:
        return self.campaigns.get(campaign_id)


class FakeMatchRepository:
    def __init__(self, failing_pairs: set[tuple[int, int]] | None = None):
        self.matches = []
        self.failing_pairs = failing_pairs or set()

    def create(self, match):
        if (match.tenant_id, match.property_id) in self.failing_pairs:
            raise PersistenceFailure("store unavailable", operation="create_match")
        stored = match.model_copy(update={"id": len(self.matches) + 1})
        self.matches.append(stored)
        return stored

    def list_by_campaign(self, campaign_id: int):
        return [m for m in self.matches if m.campaign_id == campaign_id]

    def delete_by_campaign(self, campaign_id: int) -> int:
        before = len(self.matches)
        self.matches = [m for m in self.matches if m.campaign_id != campaign_id]
        return before - len(self.matches)


class FakeOracle(EstimationOracle):
    def __init__(self, score: int = 40, reasons: list[str] | None = None, error: Exception | None = None):
        self.score = score
        self.reasons = reasons or ["Estimated from listing"]
        self.error = error
        self.calls: list[tuple[dict, dict]] = []

    async def estimate(self, tenant_summary: dict, property_summary: dict) -> MatchResult:
        self.calls.append((tenant_summary, property_summary))
        if self.error:
            raise self.error
        return MatchResult(score=self.score, reasons=list(self.reasons), estimated=True)


class FakeInsightsGenerator:
    def __init__(self, insights: list[str] | None = None, error: Exception | None = None):
        self.insights = insights or ["Campaign targets properties"]
        self.error = error

    async def generate(self, properties, matched_tenants, demographic) -> list[str]:
        if self.error:
            raise self.error
        return list(self.insights)


@pytest.fixture
def settings():
    return Settings(generate_insights=False, max_concurrent_pairs=4)


@pytest.fixture
def fake_oracle():
    return FakeOracle()
