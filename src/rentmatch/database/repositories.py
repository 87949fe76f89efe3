"""
Repositorios sobre Supabase.

- Directorio (solo lectura): inquilinos, preferencias, propiedades
- Campaign Store: campañas y matches inquilino-propiedad
"""

from datetime import datetime
from typing import Optional

import structlog
from pydantic import ValidationError

from rentmatch.database.supabase_client import get_supabase_client, SupabaseClient
from rentmatch.exceptions import PersistenceFailure
from rentmatch.models import (
    PropertyFilter,
    PropertyListing,
    PropertyTenantMatch,
    TargetingCampaign,
    Tenant,
    TenantPreference,
)

logger = structlog.get_logger()


class BaseRepository:
    """Clase base para repositorios."""

    def __init__(self, client: Optional[SupabaseClient] = None):
        self._client = client

    @property
    def client(self) -> SupabaseClient:
        # Lazy: los tests inyectan fakes y nunca tocan Supabase
        if self._client is None:
            self._client = get_supabase_client()
        return self._client


def _parse_rows(model, rows: list[dict], table: str) -> list:
    """Valida filas contra el modelo; las inválidas se loguean y se saltean."""
    parsed = []
    for row in rows:
        try:
            parsed.append(model.model_validate(row))
        except ValidationError as e:
            logger.warning("Fila inválida ignorada", table=table, row_id=row.get("id"), error=str(e))
    return parsed


def _quote_filter_value(value: str) -> str:
    """Entrecomilla un valor dentro de un or=(...) de PostgREST."""
    escaped = value.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


class TenantRepository(BaseRepository):
    """Directorio de inquilinos y sus preferencias."""

    TABLE = "users"
    PREFERENCES_TABLE = "tenant_preferences"

    def get_by_id(self, tenant_id: int) -> Optional[Tenant]:
        response = (
            self.client.table(self.TABLE)
            .select("*")
            .eq("id", tenant_id)
            .limit(1)
            .execute()
        )
        rows = _parse_rows(Tenant, response.data, self.TABLE)
        return rows[0] if rows else None

    def list_by_type(self, user_type: str = "tenant") -> list[Tenant]:
        """Lista todos los usuarios de un tipo, ordenados por ID."""
        response = (
            self.client.table(self.TABLE)
            .select("*")
            .eq("user_type", user_type)
            .order("id")
            .execute()
        )
        return _parse_rows(Tenant, response.data, self.TABLE)

    def get_preferences(self, tenant_id: int) -> Optional[TenantPreference]:
        """Preferencias del inquilino, o None si nunca las cargó."""
        response = (
            self.client.table(self.PREFERENCES_TABLE)
            .select("*")
            .eq("tenant_id", tenant_id)
            .limit(1)
            .execute()
        )
        rows = _parse_rows(TenantPreference, response.data, self.PREFERENCES_TABLE)
        return rows[0] if rows else None


class PropertyRepository(BaseRepository):
    """Directorio de propiedades."""

    TABLE = "properties"

    def get_by_id(self, property_id: int) -> Optional[PropertyListing]:
        response = (
            self.client.table(self.TABLE)
            .select("*")
            .eq("id", property_id)
            .limit(1)
            .execute()
        )
        rows = _parse_rows(PropertyListing, response.data, self.TABLE)
        return rows[0] if rows else None

    def get_by_owner(self, owner_id: int) -> list[PropertyListing]:
        response = (
            self.client.table(self.TABLE)
            .select("*")
            .eq("owner_id", owner_id)
            .order("id")
            .execute()
        )
        return _parse_rows(PropertyListing, response.data, self.TABLE)

    def get_available(self) -> list[PropertyListing]:
        response = (
            self.client.table(self.TABLE)
            .select("*")
            .eq("available", True)
            .order("id")
            .execute()
        )
        return _parse_rows(PropertyListing, response.data, self.TABLE)

    def search_by_filters(self, filters: PropertyFilter) -> list[PropertyListing]:
        """
        Búsqueda por filtro de campaña.

        Returns:
            Propiedades que cumplen todos los criterios presentes
        """
        query = self.client.table(self.TABLE).select("*")

        if filters.min_price is not None:
            query = query.gte("price", filters.min_price)
        if filters.max_price is not None:
            query = query.lte("price", filters.max_price)
        if filters.property_types:
            query = query.in_("property_type", filters.property_types)
        if filters.min_bedrooms is not None:
            query = query.gte("bedrooms", filters.min_bedrooms)
        if filters.max_bedrooms is not None:
            query = query.lte("bedrooms", filters.max_bedrooms)
        if filters.locations:
            clauses = []
            for location in filters.locations:
                pattern = _quote_filter_value(f"%{location}%")
                clauses.append(f"city.ilike.{pattern}")
                clauses.append(f"area.ilike.{pattern}")
            query = query.or_(",".join(clauses))
        if filters.university:
            query = query.ilike("university", f"%{filters.university}%")
        if filters.features:
            query = query.contains("features", filters.features)
        if filters.furnished is not None:
            query = query.eq("furnished", filters.furnished)
        if filters.bills_included is not None:
            query = query.eq("bills_included", filters.bills_included)
        if filters.available_from is not None:
            query = query.lte("available_date", filters.available_from.isoformat())

        response = query.order("id").execute()
        listings = _parse_rows(PropertyListing, response.data, self.TABLE)
        logger.info("Propiedades filtradas", total=len(listings))
        return listings


class CampaignRepository(BaseRepository):
    """Campaign Store: campañas de targeting."""

    TABLE = "ai_targeting_results"

    def create(self, campaign: TargetingCampaign) -> TargetingCampaign:
        """Inserta la campaña y devuelve la versión con ID."""
        try:
            response = self.client.table(self.TABLE).insert(campaign.to_db_dict()).execute()
        except Exception as e:
            logger.error("Error creando campaña", name=campaign.name, error=str(e))
            raise PersistenceFailure(f"Could not create campaign: {e}", operation="create_campaign") from e

        if not response.data:
            raise PersistenceFailure("Campaign insert returned no data", operation="create_campaign")
        created = TargetingCampaign.model_validate(response.data[0])
        logger.info("Campaña creada", campaign_id=created.id, name=created.name)
        return created

    def update(self, campaign_id: int, fields: dict) -> TargetingCampaign:
        """Actualiza campos de una campaña por ID."""
        data = dict(fields)
        data["updated_at"] = datetime.utcnow().isoformat()
        try:
            response = (
                self.client.table(self.TABLE)
                .update(data)
                .eq("id", campaign_id)
                .execute()
            )
        except Exception as e:
            logger.error("Error actualizando campaña", campaign_id=campaign_id, error=str(e))
            raise PersistenceFailure(f"Could not update campaign {campaign_id}: {e}", operation="update_campaign") from e

        if not response.data:
            raise PersistenceFailure(f"Campaign {campaign_id} not updated", operation="update_campaign")
        return TargetingCampaign.model_validate(response.data[0])

    def get_by_id(self, campaign_id: int) -> Optional[TargetingCampaign]:
        response = (
            self.client.table(self.TABLE)
            .select("*")
            .eq("id", campaign_id)
            .limit(1)
            .execute()
        )
        rows = _parse_rows(TargetingCampaign, response.data, self.TABLE)
        return rows[0] if rows else None


class PropertyTenantMatchRepository(BaseRepository):
    """Campaign Store: matches individuales por campaña."""

    TABLE = "property_tenant_matches"

    def create(self, match: PropertyTenantMatch) -> PropertyTenantMatch:
        try:
            response = self.client.table(self.TABLE).insert(match.to_db_dict()).execute()
        except Exception as e:
            raise PersistenceFailure(
                f"Could not persist match {match.tenant_id}->{match.property_id}: {e}",
                operation="create_match",
            ) from e
        if not response.data:
            raise PersistenceFailure("Match insert returned no data", operation="create_match")
        return PropertyTenantMatch.model_validate(response.data[0])

    def list_by_campaign(self, campaign_id: int) -> list[PropertyTenantMatch]:
        response = (
            self.client.table(self.TABLE)
            .select("*")
            .eq("campaign_id", campaign_id)
            .order("id")
            .execute()
        )
        return _parse_rows(PropertyTenantMatch, response.data, self.TABLE)

    def delete_by_campaign(self, campaign_id: int) -> int:
        """Borra los matches de una campaña. Devuelve cuántos se borraron."""
        try:
            response = (
                self.client.table(self.TABLE)
                .delete()
                .eq("campaign_id", campaign_id)
                .execute()
            )
        except Exception as e:
            raise PersistenceFailure(
                f"Could not delete matches of campaign {campaign_id}: {e}",
                operation="delete_matches",
            ) from e
        deleted = len(response.data or [])
        logger.info("Matches previos borrados", campaign_id=campaign_id, deleted=deleted)
        return deleted
