"""
Modelos de campañas de targeting.

Una campaña asocia un set de propiedades con los inquilinos que
califican para ellas, más los filtros con los que se armó.
"""

from datetime import date, datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from rentmatch.models.tenant import Budget


class TargetDemographic(str, Enum):
    STUDENTS = "students"
    PROFESSIONALS = "professionals"
    FAMILIES = "families"
    PROPERTY_MANAGEMENT = "property_management"


class CampaignStatus(str, Enum):
    ACTIVE = "active"
    DRAFT = "draft"
    COMPLETED = "completed"


class DateWindow(BaseModel):
    """Ventana de fechas inclusiva."""

    min: date
    max: date

    @model_validator(mode="after")
    def _check_range(self) -> "DateWindow":
        if self.min > self.max:
            raise ValueError(f"date window min ({self.min}) > max ({self.max})")
        return self

    def contains(self, value: date) -> bool:
        return self.min <= value <= self.max


class PropertyFilter(BaseModel):
    """Filtro de propiedades a nivel campaña (se traduce a query del store)."""

    min_price: Optional[float] = Field(None, ge=0)
    max_price: Optional[float] = Field(None, ge=0)
    property_types: list[str] = Field(default_factory=list)
    min_bedrooms: Optional[int] = Field(None, ge=0)
    max_bedrooms: Optional[int] = Field(None, ge=0)
    locations: list[str] = Field(default_factory=list)
    university: Optional[str] = None
    features: list[str] = Field(default_factory=list)
    furnished: Optional[bool] = None
    bills_included: Optional[bool] = None
    available_from: Optional[date] = Field(
        None, description="Solo propiedades disponibles en o antes de esta fecha"
    )

    @model_validator(mode="after")
    def _check_ranges(self) -> "PropertyFilter":
        if (
            self.min_price is not None
            and self.max_price is not None
            and self.min_price > self.max_price
        ):
            raise ValueError("min_price > max_price")
        if (
            self.min_bedrooms is not None
            and self.max_bedrooms is not None
            and self.min_bedrooms > self.max_bedrooms
        ):
            raise ValueError("min_bedrooms > max_bedrooms")
        return self


class TenantFilter(BaseModel):
    """
    Filtro de inquilinos a nivel campaña.

    AND entre dimensiones presentes, intersección dentro de cada una.
    """

    lifestyles: list[str] = Field(default_factory=list)
    universities: list[str] = Field(default_factory=list)
    budget: Optional[Budget] = None
    move_in_dates: Optional[DateWindow] = None


class CampaignCriteria(BaseModel):
    """Pedido de creación de campaña hecho por un agente."""

    agent_id: int = Field(..., description="Agente que crea la campaña")
    name: str = Field(..., min_length=1)
    description: Optional[str] = None
    target_demographic: TargetDemographic
    property_ids: list[int] = Field(
        default_factory=list, description="IDs explícitos (prioridad máxima)"
    )
    property_filter: Optional[PropertyFilter] = None
    tenant_filter: Optional[TenantFilter] = None


class MatchedTenant(BaseModel):
    tenant_id: int
    best_score: int = Field(..., ge=0, le=100)
    recommended_property_ids: list[int] = Field(default_factory=list)


class PropertyTenantMatch(BaseModel):
    """Par inquilino-propiedad que calificó en una corrida de campaña."""

    model_config = ConfigDict(from_attributes=True)

    id: Optional[int] = Field(None, description="ID generado por el store")
    property_id: int
    tenant_id: int
    campaign_id: int
    score: int = Field(..., ge=0, le=100)
    reasons: list[str] = Field(default_factory=list)
    created_at: str = Field(
        default_factory=lambda: datetime.utcnow().isoformat(),
    )

    def to_db_dict(self) -> dict:
        """Convierte a diccionario para inserción en Supabase."""
        return self.model_dump(exclude={"id"})


class CampaignRunStats(BaseModel):
    """Conteos de una corrida; los fallos parciales se reportan acá."""

    tenants_considered: int = 0
    candidates_failed: int = 0
    tenants_matched: int = 0
    pairs_scored: int = 0
    pairs_failed: int = 0
    estimated_pairs: int = 0
    matches_persisted: int = 0
    matches_failed: int = 0
    matches_superseded: int = 0

    @property
    def has_failures(self) -> bool:
        return (
            self.candidates_failed > 0
            or self.pairs_failed > 0
            or self.matches_failed > 0
        )


class TargetingCampaign(BaseModel):
    """Campaña de targeting persistida."""

    model_config = ConfigDict(from_attributes=True)

    id: Optional[int] = Field(None, description="ID generado por el store")
    agent_id: int
    name: str
    description: Optional[str] = None
    target_demographic: TargetDemographic
    property_filter: Optional[PropertyFilter] = None
    tenant_filter: Optional[TenantFilter] = None
    target_properties: list[int] = Field(default_factory=list)
    matched_tenants: list[MatchedTenant] = Field(default_factory=list)
    status: CampaignStatus = CampaignStatus.ACTIVE
    insights: list[str] = Field(default_factory=list)

    # No se persiste: resultado de la última corrida
    run_stats: Optional[CampaignRunStats] = Field(None, exclude=True)

    created_at: str = Field(
        default_factory=lambda: datetime.utcnow().isoformat(),
    )
    updated_at: str = Field(
        default_factory=lambda: datetime.utcnow().isoformat(),
    )

    def ranked_tenants(self) -> list[MatchedTenant]:
        """Vista rankeada: mejor score primero, empate por tenant_id."""
        return sorted(self.matched_tenants, key=lambda m: (-m.best_score, m.tenant_id))

    def to_criteria(self) -> CampaignCriteria:
        """Reconstruye los criterios para re-ejecutar la campaña."""
        return CampaignCriteria(
            agent_id=self.agent_id,
            name=self.name,
            description=self.description,
            target_demographic=self.target_demographic,
            property_ids=list(self.target_properties),
            property_filter=self.property_filter,
            tenant_filter=self.tenant_filter,
        )

    def to_db_dict(self) -> dict:
        """Convierte a diccionario para inserción en Supabase."""
        return self.model_dump(mode="json", exclude={"id"})
