"""
Modelo de Propiedad

Normaliza los campos de tipo mixto (furnished, distancia a la universidad)
en el borde, para que el scorer no tenga que ramificar por tipo.
"""

import re
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

_NUMBER_RE = re.compile(r"[^0-9.]")


class FurnishedStatus(str, Enum):
    """Estado de amoblado tri-estado."""

    FURNISHED = "furnished"
    UNFURNISHED = "unfurnished"
    UNKNOWN = "unknown"

    @classmethod
    def from_raw(cls, value) -> "FurnishedStatus":
        """
        Normaliza el valor crudo del store.

        Acepta bool, strings ("true", "Furnished", "unfurnished", ...) o None.
        """
        if value is None:
            return cls.UNKNOWN
        if isinstance(value, cls):
            return value
        if isinstance(value, bool):
            return cls.FURNISHED if value else cls.UNFURNISHED
        if isinstance(value, str):
            text = value.strip().lower()
            if not text:
                return cls.UNKNOWN
            if text in ("true", "furnished"):
                return cls.FURNISHED
            return cls.UNFURNISHED
        return cls.FURNISHED if value else cls.UNFURNISHED

    def as_bool(self) -> Optional[bool]:
        if self is FurnishedStatus.UNKNOWN:
            return None
        return self is FurnishedStatus.FURNISHED


class PropertyListing(BaseModel):
    """
    Propiedad publicada. Inmutable durante una pasada de scoring.
    """

    model_config = ConfigDict(from_attributes=True, frozen=True)

    # Identificadores
    id: int = Field(..., description="ID de la propiedad")
    owner_id: Optional[int] = Field(None, description="Agente/propietario dueño")
    title: str = Field(default="", description="Título del anuncio")

    # Características físicas
    property_type: str = Field(..., description="flat, house, studio, ...")
    price: Decimal = Field(..., ge=0, description="Renta mensual")
    bedrooms: int = Field(..., ge=0)
    bathrooms: int = Field(default=1, ge=0)

    # Ubicación
    address: str = Field(default="")
    city: str = Field(default="")
    area: Optional[str] = Field(None, description="Barrio o zona")
    university: Optional[str] = Field(None, description="Universidad cercana")
    distance_to_university: Optional[float] = Field(
        None, description="Distancia en millas"
    )

    # Servicios y features
    bills_included: bool = Field(default=False)
    included_bills: list[str] = Field(default_factory=list)
    features: list[str] = Field(default_factory=list)
    furnished: FurnishedStatus = Field(default=FurnishedStatus.UNKNOWN)

    # Disponibilidad
    available_date: Optional[date] = Field(None)
    available: bool = Field(default=True)

    @field_validator("furnished", mode="before")
    @classmethod
    def _normalize_furnished(cls, value) -> FurnishedStatus:
        return FurnishedStatus.from_raw(value)

    @field_validator("distance_to_university", mode="before")
    @classmethod
    def _parse_distance(cls, value) -> Optional[float]:
        # Puede venir como "0.8 miles"
        if value is None or isinstance(value, (int, float)):
            return value
        cleaned = _NUMBER_RE.sub("", str(value))
        try:
            return float(cleaned)
        except ValueError:
            return None

    @field_validator("included_bills", "features", mode="before")
    @classmethod
    def _none_to_empty(cls, value) -> list:
        return value or []

    def summary(self) -> dict:
        """Resumen para el oráculo de estimación y los insights."""
        return {
            "title": self.title,
            "property_type": self.property_type,
            "price": str(self.price),
            "location": ", ".join(p for p in (self.address, self.city) if p),
            "area": self.area or self.city,
            "bedrooms": self.bedrooms,
            "bathrooms": self.bathrooms,
            "features": list(self.features),
            "university": self.university,
            "furnished": self.furnished.value,
            "bills_included": list(self.included_bills) if self.bills_included else [],
        }
