"""
Modelo de Inquilino y Preferencias

Define las preferencias declaradas por el inquilino que alimentan
el scorer y el selector de candidatos.
"""

from datetime import date
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class Tenant(BaseModel):
    """Inquilino tal como lo expone el directorio de usuarios."""

    model_config = ConfigDict(from_attributes=True)

    id: int = Field(..., description="ID del usuario")
    name: str = Field(default="", description="Nombre visible")
    email: Optional[str] = Field(None, description="Email de contacto")
    phone: Optional[str] = Field(None, description="Teléfono de contacto")
    user_type: str = Field(default="tenant", description="Tipo de usuario")

    def summary(self) -> dict:
        """
        Resumen no sensible para el oráculo de estimación.

        Nombre, email y teléfono quedan afuera: no deben influir en el score.
        """
        return {"tenant_id": self.id, "user_type": self.user_type}


class Budget(BaseModel):
    """Rango de presupuesto mensual."""

    min: float = Field(..., ge=0, description="Mínimo aceptable")
    max: float = Field(..., ge=0, description="Máximo aceptable")

    @model_validator(mode="after")
    def _check_range(self) -> "Budget":
        if self.min > self.max:
            raise ValueError(f"budget min ({self.min}) > max ({self.max})")
        return self

    def contains(self, value: float) -> bool:
        return self.min <= value <= self.max

    def overlaps(self, other: "Budget") -> bool:
        """True si ambos rangos comparten al menos un valor."""
        return self.min <= other.max and self.max >= other.min


class TenantPreference(BaseModel):
    """
    Preferencias de un inquilino.

    Se reemplazan completas en cada update (no hay merge parcial).
    Los campos tipo set son listas sin duplicados que conservan el orden.
    """

    model_config = ConfigDict(from_attributes=True)

    tenant_id: int = Field(..., description="FK al Tenant")

    property_types: list[str] = Field(default_factory=list)
    budget: Optional[Budget] = Field(None, description="Rango de precio aceptable")
    bedroom_counts: list[int] = Field(default_factory=list)

    # Ubicación
    locations: list[str] = Field(
        default_factory=list, description="Zonas o ciudades en texto libre"
    )
    universities: list[str] = Field(default_factory=list)
    max_distance_to_university: Optional[float] = Field(
        None, ge=0, description="Distancia máxima en millas"
    )

    # Features
    must_have_features: list[str] = Field(default_factory=list)
    nice_to_have_features: list[str] = Field(default_factory=list)
    deal_breakers: list[str] = Field(default_factory=list)

    furnished: Optional[bool] = Field(None, description="None = indiferente")
    move_in_date: Optional[date] = Field(None)

    lifestyle: list[str] = Field(
        default_factory=list, description="Etiquetas de estilo de vida (student, quiet, ...)"
    )

    @field_validator(
        "property_types",
        "bedroom_counts",
        "locations",
        "universities",
        "must_have_features",
        "nice_to_have_features",
        "deal_breakers",
        "lifestyle",
    )
    @classmethod
    def _dedupe(cls, values: list) -> list:
        return list(dict.fromkeys(values))

    def to_db_dict(self) -> dict:
        """Convierte a diccionario para inserción en Supabase."""
        data = self.model_dump(mode="json")
        return data
