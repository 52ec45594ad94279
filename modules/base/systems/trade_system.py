import logging
import random
from typing import List

from statecraft.engine.interfaces import ISystem
from statecraft.engine.mechanics.trade import TradeNegotiator, TradeError
from statecraft.server.state import GameState
from statecraft.shared.actions import ActionProposeTrade, ActionRespondToOffer, ActionSetEmbargo
from statecraft.shared.config import EconomyTuning
from statecraft.shared.events import (
    EventTradeOfferReceived, EventTradeOfferAccepted, EventTradeOfferRejected,
    EventTradeOfferExpired, EventEmbargoChanged,
)
from statecraft.shared.records import Nation, TradeOffer

logger = logging.getLogger(__name__)


class TradeSystem(ISystem):
    """
    Runs the diplomacy side of trade once per week.

    Responsibility:
    - Reads 'ActionProposeTrade' / 'ActionRespondToOffer' / 'ActionSetEmbargo'
    - Expires offers older than a week
    - Lets AI nations propose deals and answers offers addressed to AI nations
    - Emits offer and embargo events
    """

    def __init__(self, negotiator: TradeNegotiator, tuning: EconomyTuning, rng: random.Random):
        self.negotiator = negotiator
        self.tuning = tuning
        self.rng = rng
        self._rng_checkpoint = rng.getstate()

    @property
    def id(self) -> str:
        return "base.trade"

    @property
    def dependencies(self) -> List[str]:
        return ["base.shortages"]

    def update(self, state: GameState) -> None:
        self._rng_checkpoint = self.rng.getstate()
        now = state.time.now

        # 1. Handle Player Actions
        for action in state.current_actions:
            if isinstance(action, ActionProposeTrade):
                self._propose(state, action)
            elif isinstance(action, ActionRespondToOffer):
                self._respond(state, action)
            elif isinstance(action, ActionSetEmbargo):
                self._set_embargo(state, action)

        # 2. Expire stale offers
        for offer in self.negotiator.expire_offers(list(state.offers.values()), now):
            self._retire(state, offer)
            state.events.append(EventTradeOfferExpired(offer.id, offer.from_nation, offer.to_nation))
            logger.debug("[Trade] Offer %s expired", offer.id)

        # 3. AI diplomacy
        if self.rng.random() < self.tuning.ai_offer_chance:
            self._run_ai_round(state)

    # --- Actions -------------------------------------------------------------

    @staticmethod
    def _nation(state: GameState, nation_id: str) -> Nation:
        try:
            return state.get_nation(nation_id)
        except KeyError:
            raise TradeError(f"Unknown nation '{nation_id}'.") from None

    def _propose(self, state: GameState, action: ActionProposeTrade):
        sender = self._nation(state, action.from_nation)
        self._nation(state, action.to_nation)
        duration = self.tuning.default_offer_duration if action.duration is None else action.duration
        offer = self.negotiator.create_offer(
            sender, action.to_nation, action.offering, action.requesting,
            state.time.now, duration,
        )
        self._register(state, offer)

    def _respond(self, state: GameState, action: ActionRespondToOffer):
        offer = state.offers.get(action.offer_id)
        if offer is None:
            raise TradeError(f"No pending offer '{action.offer_id}'.")
        responder = self._nation(state, action.nation_id)
        if responder.id != offer.to_nation:
            raise TradeError(f"Offer '{offer.id}' is addressed to '{offer.to_nation}', not '{responder.id}'.")

        if action.accept:
            self._accept(state, offer, responder)
        else:
            self._reject(state, offer, "declined")

    def _set_embargo(self, state: GameState, action: ActionSetEmbargo):
        nation = self._nation(state, action.nation_id)
        self._nation(state, action.target_id)
        if action.active:
            changed = self.negotiator.apply_embargo(nation, action.target_id)
        else:
            changed = self.negotiator.remove_embargo(nation, action.target_id)

        if changed:
            state.events.append(EventEmbargoChanged(nation.id, action.target_id, action.active))
            logger.info("[Trade] %s %s embargo on %s", nation.id,
                        "imposed" if action.active else "lifted", action.target_id)

    # --- Offer lifecycle -----------------------------------------------------

    def _register(self, state: GameState, offer: TradeOffer):
        """Stores a new pending offer and lets an AI recipient answer at once."""
        state.offers[offer.id] = offer
        state.nations[offer.from_nation].trade_offers.append(offer)
        state.events.append(EventTradeOfferReceived(
            offer.id, offer.from_nation, offer.to_nation, tuple(sorted(offer.offering)),
        ))

        if offer.to_nation == self.tuning.player_nation:
            return

        recipient = state.nations[offer.to_nation]
        evaluation = self.negotiator.evaluate_ai_offer(recipient, offer)
        if evaluation.should_accept:
            self._accept(state, offer, recipient)
        else:
            self._reject(state, offer, evaluation.reason)

    def _accept(self, state: GameState, offer: TradeOffer, accepter: Nation):
        agreement = self.negotiator.accept_offer(offer, accepter, state.time.now)
        self._retire(state, offer)

        state.agreements[agreement.id] = agreement
        for nation_id in agreement.nations:
            state.nations[nation_id].trade_agreements.append(agreement.id)

        state.events.append(EventTradeOfferAccepted(offer.id, agreement.id, offer.from_nation, offer.to_nation))
        logger.info("[Trade] Agreement %s signed (%d weeks, value %.1f)",
                    agreement.id, agreement.duration, agreement.value)

    def _reject(self, state: GameState, offer: TradeOffer, reason: str):
        self.negotiator.reject_offer(offer)
        self._retire(state, offer)
        state.events.append(EventTradeOfferRejected(offer.id, offer.from_nation, offer.to_nation, reason))
        logger.debug("[Trade] Offer %s rejected: %s", offer.id, reason)

    @staticmethod
    def _retire(state: GameState, offer: TradeOffer):
        """Removes a settled offer from the pending pool and from its author."""
        state.offers.pop(offer.id, None)
        author = state.nations.get(offer.from_nation)
        if author is not None:
            author.trade_offers = [o for o in author.trade_offers if o.id != offer.id]

    # --- AI ------------------------------------------------------------------

    def _run_ai_round(self, state: GameState):
        nations = [state.nations[nid] for nid in sorted(state.nations)]
        for nation in nations:
            if nation.id == self.tuning.player_nation:
                continue
            candidates = [n for n in nations if n.id != nation.id]
            offer = self.negotiator.generate_ai_offer(
                nation, candidates, state.time.now, self.tuning.ai_offer_duration,
            )
            if offer is not None:
                self._register(state, offer)

    def on_abort(self):
        # A discarded tick must not shift the AI's random sequence
        self.rng.setstate(self._rng_checkpoint)

    def on_commit(self):
        self._rng_checkpoint = self.rng.getstate()
