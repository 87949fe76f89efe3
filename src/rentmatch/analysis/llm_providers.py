"""
Abstracción de proveedores LLM.

El oráculo de estimación y el generador de insights hablan con esta
interfaz; el proveedor concreto (Gemini, Groq) se elige por configuración.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

import structlog

from rentmatch.config import Settings, get_settings

logger = structlog.get_logger()


@dataclass
class LLMResponse:
    """Respuesta normalizada de cualquier LLM."""
    text: str
    model: str
    provider: str


class BaseLLMProvider(ABC):
    """Clase base para proveedores de LLM."""

    provider_name: str = "base"

    @abstractmethod
    async def generate(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float = 0.2,
        max_tokens: int = 1024,
        json_mode: bool = False,
    ) -> LLMResponse:
        """
        Genera una respuesta del LLM.

        Args:
            system_prompt: Instrucciones del sistema
            user_prompt: Prompt con los datos del caso
            temperature: Temperatura de generación (0.0-1.0)
            max_tokens: Máximo de tokens a generar
            json_mode: Pedir al proveedor salida JSON estricta

        Returns:
            LLMResponse con el texto generado
        """


class GeminiProvider(BaseLLMProvider):
    """Proveedor de Google Gemini."""

    provider_name = "gemini"

    def __init__(self, settings: Settings):
        from google import genai

        if not settings.gemini_api_key:
            raise ValueError("GEMINI_API_KEY no configurada")

        self.model = settings.gemini_model
        self.client = genai.Client(api_key=settings.gemini_api_key)
        logger.info("GeminiProvider inicializado", model=self.model)

    async def generate(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float = 0.2,
        max_tokens: int = 1024,
        json_mode: bool = False,
    ) -> LLMResponse:
        from google.genai import types

        config = types.GenerateContentConfig(
            system_instruction=system_prompt,
            temperature=temperature,
            max_output_tokens=max_tokens,
            response_mime_type="application/json" if json_mode else None,
        )
        response = await self.client.aio.models.generate_content(
            model=self.model,
            contents=user_prompt,
            config=config,
        )

        return LLMResponse(
            text=(response.text or "").strip(),
            model=self.model,
            provider=self.provider_name,
        )


class GroqProvider(BaseLLMProvider):
    """
    Proveedor de Groq (LPU inference).

    llama-3.1-8b-instant alcanza para estimaciones cortas en JSON;
    llama-3.3-70b-versatile da mejores insights.
    """

    provider_name = "groq"

    def __init__(self, settings: Settings):
        from groq import AsyncGroq

        if not settings.groq_api_key:
            raise ValueError("GROQ_API_KEY no configurada")

        self.model = settings.groq_model
        self.client = AsyncGroq(api_key=settings.groq_api_key)
        logger.info("GroqProvider inicializado", model=self.model)

    async def generate(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float = 0.2,
        max_tokens: int = 1024,
        json_mode: bool = False,
    ) -> LLMResponse:
        extra = {"response_format": {"type": "json_object"}} if json_mode else {}
        response = await self.client.chat.completions.create(
            model=self.model,
            messages=[
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            temperature=temperature,
            max_tokens=max_tokens,
            **extra,
        )

        text = response.choices[0].message.content or ""
        return LLMResponse(
            text=text.strip(),
            model=self.model,
            provider=self.provider_name,
        )


_PROVIDERS = {
    GeminiProvider.provider_name: GeminiProvider,
    GroqProvider.provider_name: GroqProvider,
}


def get_llm_provider(settings: Optional[Settings] = None) -> BaseLLMProvider:
    """
    Proveedor elegido por settings.llm_provider.

    Raises:
        ValueError: proveedor desconocido o sin API key
    """
    settings = settings or get_settings()
    name = settings.llm_provider.lower()
    provider_cls = _PROVIDERS.get(name)
    if provider_cls is None:
        raise ValueError(
            f"Proveedor LLM no soportado: {name}. Usar uno de {sorted(_PROVIDERS)}"
        )
    return provider_cls(settings)


def strip_code_fences(text: str) -> str:
    """Quita los bloques ```json ... ``` que algunos modelos agregan."""
    text = (text or "").strip()
    if text.startswith("```"):
        parts = text.split("```")
        if len(parts) >= 2:
            text = parts[1].strip()
            if text.startswith("json"):
                text = text[4:].strip()
    return text
