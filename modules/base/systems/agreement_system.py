import logging
from typing import List

from statecraft.engine.interfaces import ISystem
from statecraft.engine.mechanics.agreements import AgreementExecutor, INSUFFICIENT
from statecraft.server.state import GameState
from statecraft.shared.events import (
    EventAgreementSuspended, EventAgreementResumed, EventAgreementFailed, EventAgreementExpired,
)
from statecraft.shared.records import AGREEMENT_ACTIVE, AGREEMENT_SUSPENDED

logger = logging.getLogger(__name__)


class AgreementSystem(ISystem):
    """
    Settles every live trade agreement once per week.

    Each agreement is stored once in 'state.agreements', so a pair of nations
    exchanges goods exactly once per tick no matter how many nations list it.
    """

    def __init__(self, executor: AgreementExecutor):
        self.executor = executor

    @property
    def id(self) -> str:
        return "base.agreements"

    @property
    def dependencies(self) -> List[str]:
        # Agreements signed this week start settling immediately.
        return ["base.trade"]

    def update(self, state: GameState) -> None:
        expired = []

        for agreement in self.executor.settlement_order(list(state.agreements.values())):
            # 1. Embargo rule
            changed = self.executor.resolve_status(agreement, state.nations)
            if changed == AGREEMENT_SUSPENDED:
                state.events.append(EventAgreementSuspended(agreement.id, agreement.nations))
                logger.info("[Agreements] %s suspended by embargo", agreement.id)
            elif changed == AGREEMENT_ACTIVE:
                state.events.append(EventAgreementResumed(agreement.id, agreement.nations))
                logger.info("[Agreements] %s resumed", agreement.id)

            # 2. Exchange
            if agreement.status == AGREEMENT_ACTIVE:
                result = self.executor.settle(agreement, state.nations)
                if result.success:
                    for nation_id, stock in result.updates.items():
                        state.record_nation_update(nation_id, {"stockpiles": dict(stock)})
                elif result.reason == INSUFFICIENT:
                    state.events.append(EventAgreementFailed(agreement.id, agreement.nations, result.missing))
                    logger.debug("[Agreements] %s could not settle: %s", agreement.id, result.missing)
                else:
                    logger.warning("[Agreements] %s skipped: %s", agreement.id, result.reason)

            # 3. Clock
            if self.executor.advance(agreement):
                expired.append(agreement)

        for agreement in expired:
            state.agreements.pop(agreement.id, None)
            for nation_id in agreement.nations:
                nation = state.nations.get(nation_id)
                if nation is not None and agreement.id in nation.trade_agreements:
                    nation.trade_agreements.remove(agreement.id)
            state.events.append(EventAgreementExpired(agreement.id, agreement.nations))
            logger.info("[Agreements] %s expired", agreement.id)
