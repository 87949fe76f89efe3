"""
Configuración centralizada del motor de matching.
Carga variables de entorno y define settings globales.
"""

from functools import lru_cache
from pathlib import Path
from typing import Literal, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# config.py -> rentmatch/ -> src/ -> raíz del proyecto (donde está el .env)
_PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
_ENV_FILE = _PROJECT_ROOT / ".env"


class Settings(BaseSettings):
    """Configuración principal de la aplicación."""

    model_config = SettingsConfigDict(
        env_file=str(_ENV_FILE),
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Supabase (Campaign Store + directorio de inquilinos/propiedades)
    supabase_url: Optional[str] = Field(None, description="URL del proyecto Supabase")
    supabase_key: Optional[str] = Field(None, description="Anon key de Supabase")
    supabase_service_key: Optional[str] = Field(
        None, description="Service role key para operaciones admin"
    )

    # LLM Provider (oráculo de estimación e insights)
    llm_provider: str = Field(
        "groq",
        description="Proveedor de LLM a usar: 'gemini' o 'groq'"
    )

    # Gemini
    gemini_api_key: Optional[str] = Field(None, description="API key de Google Gemini")
    gemini_model: str = Field("gemini-2.0-flash", description="Modelo de Gemini a usar")

    # Groq
    groq_api_key: Optional[str] = Field(None, description="API key de Groq")
    groq_model: str = Field(
        "llama-3.1-8b-instant",
        description="Modelo de Groq a usar (llama-3.1-8b-instant, llama-3.3-70b-versatile)"
    )

    # Matching
    match_threshold: int = Field(
        60, ge=0, le=100, description="Score mínimo (exclusivo) para que un par califique"
    )
    max_concurrent_pairs: int = Field(
        10, ge=1, description="Máximo de pares inquilino-propiedad evaluándose a la vez"
    )
    estimation_timeout_seconds: float = Field(
        20.0, gt=0, description="Timeout de una llamada al oráculo de estimación"
    )
    campaign_rerun_mode: Literal["append", "supersede"] = Field(
        "append",
        description="Re-ejecución de campaña: 'append' conserva matches previos, "
        "'supersede' los borra antes de persistir los nuevos",
    )
    generate_insights: bool = Field(
        True, description="Pedir insights al LLM al terminar una campaña"
    )
    recommendation_count: int = Field(
        5, ge=1, description="Cantidad por defecto de recomendaciones por consulta"
    )

    # Logging
    log_level: str = Field("INFO", description="Nivel de logging")


@lru_cache
def get_settings() -> Settings:
    """Obtiene la configuración cacheada."""
    return Settings()


# Constantes del sistema
TARGET_DEMOGRAPHICS = ["students", "professionals", "families", "property_management"]

# Categorías de servicios esenciales -> palabras clave que las identifican
ESSENTIAL_BILLS = {
    "electricity": ("electricity",),
    "gas": ("gas",),
    "water": ("water",),
    "internet": ("internet", "wifi", "broadband"),
}
