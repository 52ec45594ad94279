import logging
from typing import List

from statecraft.engine.interfaces import ISystem
from statecraft.engine.mechanics.production import ProductionAccounting
from statecraft.server.state import GameState
from statecraft.shared.catalog import ResourceCatalog

logger = logging.getLogger(__name__)


class LedgerSystem(ISystem):
    """
    Rebuilds every nation's weekly production, consumption and stockpile
    from its provinces before anything reads the ledgers.
    """

    def __init__(self, catalog: ResourceCatalog):
        self.accounting = ProductionAccounting(catalog)

    @property
    def id(self) -> str:
        return "base.ledger"

    @property
    def dependencies(self) -> List[str]:
        return ["base.time"]

    def update(self, state: GameState) -> None:
        for nation in state.nations.values():
            provinces = state.provinces_of(nation)
            update = self.accounting.account(nation, provinces)
            self.accounting.apply(nation, state.provinces, update)

            state.record_nation_update(nation.id, {
                "stockpiles": dict(update.stockpiles),
                "production": dict(update.production),
                "consumption": dict(update.consumption),
            })
            for province_id, efficiencies in update.building_efficiency.items():
                state.record_province_update(province_id, {"buildings": efficiencies})

            logger.debug("[Ledger] %s accounted over %d province(s)", nation.id, len(provinces))
