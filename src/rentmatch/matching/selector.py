"""
Selector de candidatos.

Filtra el pool de inquilinos contra el filtro de la campaña
antes del fan-out de scoring.
"""

from dataclasses import dataclass, field
from typing import Optional

import structlog

from rentmatch.database import TenantRepository
from rentmatch.models import Tenant, TenantFilter, TenantPreference

logger = structlog.get_logger()


def passes_tenant_filter(preference: TenantPreference, tenant_filter: TenantFilter) -> bool:
    """
    True si las preferencias cumplen todas las dimensiones presentes del filtro.

    Dentro de cada dimensión alcanza con una intersección.
    """
    if tenant_filter.lifestyles:
        if not set(preference.lifestyle) & set(tenant_filter.lifestyles):
            return False

    if tenant_filter.universities:
        if not set(preference.universities) & set(tenant_filter.universities):
            return False

    if tenant_filter.budget is not None:
        if preference.budget is None or not preference.budget.overlaps(tenant_filter.budget):
            return False

    if tenant_filter.move_in_dates is not None:
        if preference.move_in_date is None:
            return False
        if not tenant_filter.move_in_dates.contains(preference.move_in_date):
            return False

    return True


@dataclass
class CandidateSelection:
    """Resultado de la selección; preferences solo tiene lo que ya se leyó."""

    candidates: list[Tenant]
    preferences: dict[int, Optional[TenantPreference]] = field(default_factory=dict)
    failed_tenant_ids: list[int] = field(default_factory=list)


class CandidateSelector:
    """Aplica el filtro de inquilinos de la campaña."""

    def __init__(self, tenant_repo: Optional[TenantRepository] = None):
        self.tenant_repo = tenant_repo or TenantRepository()

    def select_candidates(
        self,
        all_tenants: list[Tenant],
        tenant_filter: Optional[TenantFilter],
    ) -> CandidateSelection:
        """
        Filtra inquilinos conservando el orden de entrada.

        Sin filtro devuelve la lista tal cual. Con filtro, un inquilino
        sin preferencias queda afuera, y uno cuya lectura falla también
        (se cuenta en failed_tenant_ids).
        """
        if tenant_filter is None:
            return CandidateSelection(candidates=all_tenants)

        selection = CandidateSelection(candidates=[])
        without_preferences = 0
        for tenant in all_tenants:
            try:
                preference = self.tenant_repo.get_preferences(tenant.id)
            except Exception as e:
                logger.error("Error leyendo preferencias", tenant_id=tenant.id, error=str(e))
                selection.failed_tenant_ids.append(tenant.id)
                continue

            if preference is None:
                without_preferences += 1
                continue
            if passes_tenant_filter(preference, tenant_filter):
                selection.candidates.append(tenant)
                selection.preferences[tenant.id] = preference

        logger.info(
            "Candidatos seleccionados",
            total=len(all_tenants),
            selected=len(selection.candidates),
            without_preferences=without_preferences,
            failed=len(selection.failed_tenant_ids),
        )
        return selection
