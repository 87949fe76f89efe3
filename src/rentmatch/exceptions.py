"""
Errores del motor de matching y targeting.

Cada error lleva la operación en la que ocurrió y si es recuperable,
para que el orquestador decida entre degradar o abortar.
"""

from typing import Optional


class RentMatchError(Exception):
    """Error base del paquete."""

    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
        recoverable: bool = True,
    ):
        super().__init__(message)
        self.operation = operation
        self.recoverable = recoverable


class NotFoundError(RentMatchError):
    """Inquilino, propiedad o campaña inexistente."""

    def __init__(self, entity: str, entity_id, operation: Optional[str] = None):
        super().__init__(
            f"{entity} {entity_id} not found",
            operation=operation,
            recoverable=False,
        )
        self.entity = entity
        self.entity_id = entity_id


class NoPropertiesMatchedError(RentMatchError):
    """El set de propiedades resuelto para la campaña está vacío."""

    def __init__(self, message: str = "No properties found matching the given criteria"):
        super().__init__(message, operation="resolve_properties", recoverable=False)


class EstimationFailure(RentMatchError):
    """El oráculo de estimación no respondió, tardó demasiado o respondió basura."""

    def __init__(self, message: str, operation: Optional[str] = "estimate"):
        super().__init__(message, operation=operation, recoverable=True)


class PersistenceFailure(RentMatchError):
    """Falló la escritura de un registro individual en el store."""

    def __init__(self, message: str, operation: Optional[str] = None):
        super().__init__(message, operation=operation, recoverable=True)


class CriteriaValidationError(RentMatchError):
    """Criterios de campaña mal formados; se rechazan antes de empezar."""

    def __init__(self, message: str, errors: Optional[list] = None):
        super().__init__(message, operation="validate_criteria", recoverable=False)
        self.errors = errors or []


class CampaignTimeoutError(RentMatchError):
    """La corrida de la campaña superó su timeout; lo persistido se conserva."""

    def __init__(self, campaign_id: int, timeout: float):
        super().__init__(
            f"Campaign {campaign_id} timed out after {timeout}s",
            operation="run_campaign",
            recoverable=True,
        )
        self.campaign_id = campaign_id
        self.timeout = timeout
