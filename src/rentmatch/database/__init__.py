"""
Módulo de base de datos.

Provee acceso a Supabase: directorio de inquilinos/propiedades
y Campaign Store.
"""

from rentmatch.database.supabase_client import get_supabase_client, SupabaseClient
from rentmatch.database.repositories import (
    TenantRepository,
    PropertyRepository,
    CampaignRepository,
    PropertyTenantMatchRepository,
)

__all__ = [
    "get_supabase_client",
    "SupabaseClient",
    "TenantRepository",
    "PropertyRepository",
    "CampaignRepository",
    "PropertyTenantMatchRepository",
]
