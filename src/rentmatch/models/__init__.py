"""
Modelos de datos del sistema.

- Tenant / TenantPreference: lado demanda
- PropertyListing: lado oferta
- TargetingCampaign / PropertyTenantMatch: resultados persistidos
"""

from rentmatch.models.tenant import Tenant, TenantPreference, Budget
from rentmatch.models.property_listing import PropertyListing, FurnishedStatus
from rentmatch.models.campaign import (
    CampaignCriteria,
    CampaignRunStats,
    CampaignStatus,
    DateWindow,
    MatchedTenant,
    PropertyFilter,
    PropertyTenantMatch,
    TargetDemographic,
    TargetingCampaign,
    TenantFilter,
)

__all__ = [
    # Demanda
    "Tenant",
    "TenantPreference",
    "Budget",
    # Oferta
    "PropertyListing",
    "FurnishedStatus",
    # Campañas
    "CampaignCriteria",
    "CampaignRunStats",
    "CampaignStatus",
    "DateWindow",
    "MatchedTenant",
    "PropertyFilter",
    "PropertyTenantMatch",
    "TargetDemographic",
    "TargetingCampaign",
    "TenantFilter",
]
