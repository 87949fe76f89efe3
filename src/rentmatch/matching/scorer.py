"""
Scorer de compatibilidad inquilino-propiedad.

Con preferencias: suma determinística de cláusulas independientes,
evaluadas en orden fijo; cada una aporta puntos y a lo sumo un motivo.
Sin preferencias: delega en el oráculo de estimación.
"""

import math
from typing import Optional

import structlog

from rentmatch.analysis.estimation_oracle import EstimationOracle, LLMEstimationOracle
from rentmatch.config import ESSENTIAL_BILLS
from rentmatch.matching.proximity import get_similar_property_types, is_nearby_location
from rentmatch.models import FurnishedStatus, PropertyListing, Tenant, TenantPreference
from rentmatch.models.match_result import MatchResult, clamp_score

logger = structlog.get_logger()

NO_CRITERIA_REASON = "No specific match criteria met"
ESTIMATION_FAILED_REASON = "estimation failed"

DEAL_BREAKER_PENALTY = 15
DEAL_BREAKER_CAP = 50

# (distancia máxima en millas, puntos, motivo)
UNIVERSITY_DISTANCE_TIERS = (
    (0.5, 12, "Property is extremely close to university (under 0.5 miles)"),
    (1.0, 10, "Property is very close to university (under 1 mile)"),
    (2.0, 7, "Property is close to university (under 2 miles)"),
    (3.0, 4, "Property is within 3 miles of university"),
)

# (días máximos de diferencia, puntos, motivo)
MOVE_IN_TIERS = (
    (0, 10, "Property available exactly on tenant's preferred move-in date"),
    (7, 8, "Property available within a week of tenant's preferred move-in date"),
    (14, 5, "Property available within two weeks of tenant's preferred move-in date"),
)


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _matching_features(wanted: list[str], available: list[str]) -> list[str]:
    """Features pedidas que aparecen (substring, sin mayúsculas) en la propiedad."""
    lowered = [f.lower() for f in available]
    return [w for w in wanted if any(w.lower() in f for f in lowered)]


class _ScoreSheet:
    """Acumulador de puntos y motivos en orden de evaluación."""

    def __init__(self):
        self.total = 0
        self.reasons: list[str] = []

    def add(self, points: int, reason: str):
        self.total += points
        self.reasons.append(reason)

    def result(self) -> MatchResult:
        return MatchResult(
            score=clamp_score(self.total),
            reasons=self.reasons or [NO_CRITERIA_REASON],
        )


class MatchScorer:
    """
    Calcula el score (0-100) y los motivos de un par.

    score_preference es puro y sincrónico; score agrega el fallback
    al oráculo y nunca lanza excepciones por fallas del oráculo.
    """

    def __init__(self, oracle: Optional[EstimationOracle] = None):
        self._oracle = oracle

    @property
    def oracle(self) -> EstimationOracle:
        if self._oracle is None:
            self._oracle = LLMEstimationOracle()
        return self._oracle

    async def score(
        self,
        preference: Optional[TenantPreference],
        listing: PropertyListing,
        tenant: Optional[Tenant] = None,
    ) -> MatchResult:
        """
        Evalúa un par inquilino-propiedad.

        Args:
            preference: Preferencias del inquilino (None = usar oráculo)
            listing: Propiedad a evaluar
            tenant: Inquilino, solo para armar el resumen del oráculo

        Returns:
            MatchResult con score acotado a [0, 100]
        """
        if preference is None:
            return await self._estimate(listing, tenant)
        return self.score_preference(preference, listing)

    async def _estimate(
        self, listing: PropertyListing, tenant: Optional[Tenant]
    ) -> MatchResult:
        tenant_summary = tenant.summary() if tenant else {}
        try:
            estimated = await self.oracle.estimate(tenant_summary, listing.summary())
        except Exception as e:
            logger.warning(
                "Falló la estimación, score 0",
                property_id=listing.id,
                tenant_id=tenant.id if tenant else None,
                error=str(e),
            )
            return MatchResult(score=0, reasons=[ESTIMATION_FAILED_REASON], estimated=True)

        return MatchResult(
            score=clamp_score(estimated.score),
            reasons=list(estimated.reasons),
            estimated=True,
        )

    def score_preference(
        self, preference: TenantPreference, listing: PropertyListing
    ) -> MatchResult:
        """Score determinístico; el orden de las cláusulas fija el de los motivos."""
        sheet = _ScoreSheet()

        self._score_property_type(preference, listing, sheet)
        self._score_budget(preference, listing, sheet)
        self._score_bedrooms(preference, listing, sheet)
        self._score_location(preference, listing, sheet)
        self._score_university(preference, listing, sheet)
        self._score_university_distance(preference, listing, sheet)
        self._score_bills(listing, sheet)
        self._score_must_haves(preference, listing, sheet)
        self._score_nice_to_haves(preference, listing, sheet)
        self._score_deal_breakers(preference, listing, sheet)
        self._score_furnished(preference, listing, sheet)
        self._score_move_in(preference, listing, sheet)

        # Un único clamp al final, después de las penalidades
        return sheet.result()

    def _score_property_type(self, pref, listing, sheet):
        if not pref.property_types or not listing.property_type:
            return
        wanted = {t.lower().strip() for t in pref.property_types}
        actual = listing.property_type.lower().strip()

        if actual in wanted:
            sheet.add(15, f"Property type ({listing.property_type}) matches tenant preference")
        elif wanted & get_similar_property_types(actual):
            sheet.add(5, f"Property type ({listing.property_type}) is similar to tenant preference")

    def _score_budget(self, pref, listing, sheet):
        budget = pref.budget
        if budget is None:
            return
        price = float(listing.price)

        if budget.contains(price):
            sheet.add(20, "Property price is within tenant budget range")
        elif price < budget.min:
            below = (budget.min - price) / budget.min
            if below <= 0.15:
                sheet.add(15, "Property price is slightly below tenant budget (excellent value)")
            else:
                sheet.add(10, "Property price is below tenant budget (good value)")
        elif budget.max > 0:
            above = (price - budget.max) / budget.max
            if above <= 0.05:
                sheet.add(5, "Property price is slightly above tenant budget (may still be affordable)")

    def _score_bedrooms(self, pref, listing, sheet):
        if not pref.bedroom_counts:
            return
        if listing.bedrooms in pref.bedroom_counts:
            sheet.add(15, f"Number of bedrooms ({listing.bedrooms}) matches tenant preference")
        elif any(abs(b - listing.bedrooms) == 1 for b in pref.bedroom_counts):
            sheet.add(8, f"Number of bedrooms ({listing.bedrooms}) is close to tenant preference")

    def _score_location(self, pref, listing, sheet):
        locations = [loc for loc in pref.locations if loc and loc.strip()]
        if not locations:
            return
        haystacks = [
            (listing.address or "").lower(),
            (listing.city or "").lower(),
            (listing.area or "").lower(),
        ]

        if any(loc.lower() in h for loc in locations for h in haystacks if h):
            sheet.add(15, "Property location matches tenant preference")
        elif any(
            is_nearby_location(loc, listing.city) or is_nearby_location(loc, listing.area or "")
            for loc in locations
        ):
            sheet.add(10, "Property location is near tenant's preferred areas")

    def _score_university(self, pref, listing, sheet):
        if not pref.universities or not listing.university:
            return
        university = listing.university.lower()
        if any(u and u.lower() in university for u in pref.universities):
            sheet.add(10, "Property is near tenant's preferred university")

    def _score_university_distance(self, pref, listing, sheet):
        distance = listing.distance_to_university
        if distance is None:
            return

        if pref.max_distance_to_university is not None:
            if distance <= pref.max_distance_to_university:
                sheet.add(
                    10,
                    f"Property is within tenant's maximum distance to university ({distance} miles)",
                )
            return

        for limit, points, reason in UNIVERSITY_DISTANCE_TIERS:
            if distance <= limit:
                sheet.add(points, reason)
                return

    def _score_bills(self, listing, sheet):
        if not listing.bills_included or not listing.included_bills:
            return
        bills = [b.lower() for b in listing.included_bills]
        essentials = sum(
            1
            for keywords in ESSENTIAL_BILLS.values()
            if any(k in bill for bill in bills for k in keywords)
        )

        if essentials >= 4:
            sheet.add(12, "Property includes all essential bills (excellent for students)")
        elif essentials >= 2:
            sheet.add(8, "Property includes some essential bills")
        else:
            sheet.add(4, "Property includes some bills")

    def _score_must_haves(self, pref, listing, sheet):
        wanted = pref.must_have_features
        if not wanted:
            return
        matched = _matching_features(wanted, listing.features)

        if len(matched) == len(wanted):
            sheet.add(15, "Property has all must-have features")
        elif matched:
            points = _round_half_up(10 * len(matched) / len(wanted))
            sheet.add(
                points,
                f"Property has {len(matched)} of {len(wanted)} must-have features: {', '.join(matched)}",
            )

    def _score_nice_to_haves(self, pref, listing, sheet):
        wanted = pref.nice_to_have_features
        if not wanted:
            return
        matched = _matching_features(wanted, listing.features)
        if matched:
            points = _round_half_up(5 * len(matched) / len(wanted))
            sheet.add(
                points,
                f"Property has {len(matched)} of {len(wanted)} nice-to-have features: {', '.join(matched)}",
            )

    def _score_deal_breakers(self, pref, listing, sheet):
        if not pref.deal_breakers:
            return
        present = _matching_features(pref.deal_breakers, listing.features)
        if not present:
            return

        penalty = min(DEAL_BREAKER_CAP, DEAL_BREAKER_PENALTY * len(present))
        if len(present) > 1:
            reason = f"Property has {len(present)} deal-breaking features: {', '.join(present)}"
        else:
            reason = f"Property has a deal-breaking feature: {present[0]}"
        sheet.add(-penalty, reason)

    def _score_furnished(self, pref, listing, sheet):
        if pref.furnished is None or listing.furnished is FurnishedStatus.UNKNOWN:
            return
        is_furnished = listing.furnished.as_bool()
        if pref.furnished == is_furnished:
            label = "Furnished" if is_furnished else "Unfurnished"
            sheet.add(10, f"Property furnished status ({label}) matches tenant preference")

    def _score_move_in(self, pref, listing, sheet):
        if pref.move_in_date is None or listing.available_date is None:
            return
        diff_days = abs((pref.move_in_date - listing.available_date).days)
        for limit, points, reason in MOVE_IN_TIERS:
            if diff_days <= limit:
                sheet.add(points, reason)
                return
