"""
Trade negotiation: valuing bundles, creating/accepting offers and the AI heuristics
that propose and judge offers.

All functions here are decision logic only. They return new records or verdicts and
leave ledgers untouched; moving resources is the AgreementExecutor's job.
"""

import itertools
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Dict, Iterable, Mapping

from statecraft.shared.catalog import ResourceCatalog
from statecraft.shared.records import (
    Nation, TradeOffer, TradeAgreement, TradeTerms,
    OFFER_PENDING, OFFER_ACCEPTED, OFFER_REJECTED, OFFER_EXPIRED, AGREEMENT_ACTIVE,
)

logger = logging.getLogger(__name__)

OFFER_LIFETIME = timedelta(days=7)

# AI surplus detection
BUFFER_WEEKS = 8.0
SURPLUS_PRODUCTION_RATIO = 1.2
PARTNER_SURPLUS_CAP_WEEKS = 4.0
SURPLUS_SHARE = 0.5
NEED_SEVERITY = 0.2

# Fairness bands
AI_PROPOSE_MIN, AI_PROPOSE_MAX = 0.7, 1.4
AI_ACCEPT_MIN, AI_ACCEPT_MAX = 0.5, 2.0

# AI evaluation weights
PRIORITY_WEIGHT = 0.1
SCARCE_WEEKS = 12.0
ALLY_BONUS = 0.5


class TradeError(ValueError):
    """Raised for trade requests that can never be valid (wrong addressee, stale offer...)."""


@dataclass(frozen=True)
class TradeValue:
    offering_value: float
    requesting_value: float
    fairness: float


@dataclass
class FulfillmentCheck:
    can_fulfill: bool
    missing: Dict[str, float] = field(default_factory=dict)


@dataclass(frozen=True)
class OfferEvaluation:
    should_accept: bool
    priority: float
    reason: str


def _clean_bundle(bundle: Mapping[str, float]) -> Dict[str, float]:
    """Drops non-positive amounts; a bundle never asks for 'minus five oil'."""
    return {rid: float(amount) for rid, amount in bundle.items() if amount and amount > 0}


class TradeNegotiator:
    """
    Offer lifecycle and AI trade heuristics.

    Architecture Note:
        The catalog is injected and required. Valuing a bundle that references an
        unknown resource raises UnknownResourceError instead of pricing it at zero,
        because a silently free resource would skew every fairness check.
    """

    def __init__(self, catalog: ResourceCatalog):
        self.catalog = catalog
        self._seq = itertools.count(1)

    # --- Valuation -----------------------------------------------------------

    def calculate_trade_value(self, offering: Mapping[str, float], requesting: Mapping[str, float]) -> TradeValue:
        offering_value = sum(self.catalog.price(rid) * amount for rid, amount in offering.items())
        requesting_value = sum(self.catalog.price(rid) * amount for rid, amount in requesting.items())
        fairness = offering_value / requesting_value if requesting_value > 0 else 1.0
        return TradeValue(offering_value, requesting_value, fairness)

    @staticmethod
    def can_fulfill_offer(nation: Nation, offer: TradeOffer) -> FulfillmentCheck:
        """
        Checks the stock `nation` would have to export under `offer`.
        Never raises: shortfalls are reported in `missing`.
        """
        missing: Dict[str, float] = {}
        for rid, amount in offer.exports_of(nation.id).items():
            available = nation.ledger.stockpile(rid)
            if available < amount:
                missing[rid] = amount - available
        return FulfillmentCheck(can_fulfill=not missing, missing=missing)

    # --- Lifecycle -----------------------------------------------------------

    def create_offer(self, from_nation: Nation, to_nation_id: str,
                     offering: Mapping[str, float], requesting: Mapping[str, float],
                     now: datetime, duration: int = 52) -> TradeOffer:
        offering = _clean_bundle(offering)
        requesting = _clean_bundle(requesting)
        self.catalog.validate_bundle(offering)
        self.catalog.validate_bundle(requesting)

        if to_nation_id == from_nation.id:
            raise TradeError(f"Nation '{from_nation.id}' cannot trade with itself.")
        if duration <= 0:
            raise TradeError(f"Offer duration must be positive, got {duration}.")

        offer_id = f"trade_{from_nation.id}_{to_nation_id}_{now:%Y%m%d}_{next(self._seq)}"
        return TradeOffer(
            id=offer_id,
            from_nation=from_nation.id,
            to_nation=to_nation_id,
            offering=offering,
            requesting=requesting,
            duration=duration,
            created_date=now,
            expires_date=now + OFFER_LIFETIME,
            status=OFFER_PENDING,
        )

    def accept_offer(self, offer: TradeOffer, accepting_nation: Nation, now: datetime) -> TradeAgreement:
        """
        Marks the offer accepted and returns the agreement it produces.
        """
        if offer.status != OFFER_PENDING:
            raise TradeError(f"Offer '{offer.id}' is {offer.status}, not pending.")
        if accepting_nation.id != offer.to_nation:
            raise TradeError(f"Offer '{offer.id}' is addressed to '{offer.to_nation}', not '{accepting_nation.id}'.")

        offer.status = OFFER_ACCEPTED
        value = self.calculate_trade_value(offer.offering, offer.requesting).offering_value

        return TradeAgreement(
            id=f"agreement_{offer.id}",
            nations=(offer.from_nation, offer.to_nation),
            terms={
                offer.from_nation: TradeTerms(exports=dict(offer.offering), imports=dict(offer.requesting)),
                offer.to_nation: TradeTerms(exports=dict(offer.requesting), imports=dict(offer.offering)),
            },
            duration=offer.duration,
            value=value,
            start_date=now,
            status=AGREEMENT_ACTIVE,
        )

    @staticmethod
    def reject_offer(offer: TradeOffer):
        if offer.status != OFFER_PENDING:
            raise TradeError(f"Offer '{offer.id}' is {offer.status}, not pending.")
        offer.status = OFFER_REJECTED

    @staticmethod
    def expire_offers(offers: Iterable[TradeOffer], now: datetime) -> list[TradeOffer]:
        """Flags pending offers past their expiry date. Returns the newly expired ones."""
        expired = []
        for offer in offers:
            if offer.status == OFFER_PENDING and now >= offer.expires_date:
                offer.status = OFFER_EXPIRED
                expired.append(offer)
        return expired

    # --- Embargoes -----------------------------------------------------------

    @staticmethod
    def apply_embargo(nation: Nation, target_id: str) -> bool:
        """Returns True if the embargo is new."""
        if target_id == nation.id or target_id in nation.diplomacy.embargoes:
            return False
        nation.diplomacy.embargoes.add(target_id)
        return True

    @staticmethod
    def remove_embargo(nation: Nation, target_id: str) -> bool:
        if target_id not in nation.diplomacy.embargoes:
            return False
        nation.diplomacy.embargoes.discard(target_id)
        return True

    # --- AI ------------------------------------------------------------------

    @staticmethod
    def _surpluses(nation: Nation, cap_weeks: float | None = None) -> Dict[str, float]:
        """
        Tradeable surplus per resource: stock above an 8-week buffer, for resources
        produced at least 20% above consumption.
        """
        led = nation.ledger
        surpluses: Dict[str, float] = {}
        for rid in led.production:
            production = led.produced(rid)
            consumption = led.consumed(rid)
            stockpile = led.stockpile(rid)
            buffer = consumption * BUFFER_WEEKS
            if stockpile > buffer and production > consumption * SURPLUS_PRODUCTION_RATIO:
                available = stockpile - buffer
                if cap_weeks is not None:
                    available = min(available, production * cap_weeks)
                surpluses[rid] = available
        return surpluses

    def generate_ai_offer(self, nation: Nation, candidates: Iterable[Nation], now: datetime,
                          duration: int = 26) -> TradeOffer | None:
        """
        Looks for the first partner that needs what `nation` has spare and has spare
        what `nation` needs, with roughly fair terms. Returns None if nobody qualifies.
        """
        own_surplus = {rid: amt for rid, amt in self._surpluses(nation).items() if rid in self.catalog}
        if not own_surplus:
            return None

        for partner in candidates:
            if partner.id == nation.id:
                continue
            if partner.id in nation.diplomacy.enemies or nation.embargoes_with(partner):
                continue

            partner_surplus = self._surpluses(partner, cap_weeks=PARTNER_SURPLUS_CAP_WEEKS)

            offering = {
                rid: available * SURPLUS_SHARE
                for rid, available in own_surplus.items()
                if partner.ledger.severity(rid) > NEED_SEVERITY
            }
            requesting = {
                rid: available * SURPLUS_SHARE
                for rid, available in partner_surplus.items()
                if rid in self.catalog and nation.ledger.severity(rid) > NEED_SEVERITY
            }

            if not offering or not requesting:
                continue

            value = self.calculate_trade_value(offering, requesting)
            if AI_PROPOSE_MIN <= value.fairness <= AI_PROPOSE_MAX:
                logger.debug("[Trade] %s proposes to %s (fairness %.2f)", nation.id, partner.id, value.fairness)
                return self.create_offer(nation, partner.id, offering, requesting, now, duration)

        return None

    def evaluate_ai_offer(self, nation: Nation, offer: TradeOffer) -> OfferEvaluation:
        """
        AI verdict on an offer `nation` is party to.
        Priority rewards relief of own shortages and penalizes giving away scarce stock.
        """
        fulfillment = self.can_fulfill_offer(nation, offer)
        if not fulfillment.can_fulfill:
            missing = ", ".join(sorted(fulfillment.missing))
            return OfferEvaluation(False, 0.0, f"cannot_fulfill: {missing}")

        counterpart = offer.counterpart_of(nation.id)
        receiving = offer.imports_of(nation.id)
        giving = offer.exports_of(nation.id)

        priority = 0.0
        for rid, amount in receiving.items():
            severity = nation.ledger.severity(rid)
            if severity > NEED_SEVERITY:
                priority += severity * amount * PRIORITY_WEIGHT

        for rid, amount in giving.items():
            if nation.ledger.weeks_of_supply(rid, extra_outflow=amount) < SCARCE_WEEKS:
                priority -= amount * PRIORITY_WEIGHT

        reason = "neutral"
        rejected = False
        if counterpart in nation.diplomacy.allies:
            priority += ALLY_BONUS
            reason = "ally"
        elif counterpart in nation.diplomacy.enemies:
            rejected = True
            reason = "enemy"

        fairness = self.calculate_trade_value(offer.offering, offer.requesting).fairness
        if fairness < AI_ACCEPT_MIN or fairness > AI_ACCEPT_MAX:
            rejected = True
            reason = "unfair_terms"

        should_accept = not rejected and priority > 0
        if not rejected and not should_accept:
            reason = "no_benefit"
        return OfferEvaluation(should_accept, priority, reason)
