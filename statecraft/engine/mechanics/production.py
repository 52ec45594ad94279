import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List

from statecraft.shared.catalog import ResourceCatalog
from statecraft.shared.records import Nation, Province

logger = logging.getLogger(__name__)

# Weekly extraction from natural deposits
DEPOSIT_EXTRACTION_RATE = 0.1
# Base flows as fractions of population per week
MANPOWER_PER_CAPITA = 0.001
FOOD_PER_CAPITA = 0.01
CONSUMER_GOODS_PER_CAPITA = 0.005
# Share of accumulated research points yielded as research each week
RESEARCH_YIELD = 0.1


@dataclass
class LedgerUpdate:
    """
    Result of one week of production accounting for a nation.
    `building_efficiency` maps province id -> per-building efficiency list, only for
    provinces where a building ran short of inputs.
    """
    stockpiles: Dict[str, float] = field(default_factory=dict)
    production: Dict[str, float] = field(default_factory=dict)
    consumption: Dict[str, float] = field(default_factory=dict)
    building_efficiency: Dict[str, List[float]] = field(default_factory=dict)


class ProductionAccounting:
    """
    Rebuilds a nation's weekly production and consumption from its provinces.

    Responsibility:
        Buildings draw inputs from a running stockpile in province/building order.
        A building missing inputs runs at the fraction of its inputs that is available,
        both for what it consumes and what it produces.
    """

    def __init__(self, catalog: ResourceCatalog):
        self.catalog = catalog

    def account(self, nation: Nation, provinces: Iterable[Province]) -> LedgerUpdate:
        led = nation.ledger
        stock = {rid: led.stockpile(rid) for rid in self.catalog.resource_ids}
        production = {rid: 0.0 for rid in self.catalog.resource_ids}
        consumption = {rid: 0.0 for rid in self.catalog.resource_ids}
        drawn = {rid: 0.0 for rid in self.catalog.resource_ids}
        overall = min(1.0, max(0.0, led.efficiency.get("overall", 1.0)))

        update = LedgerUpdate()
        total_population = 0.0

        for province in provinces:
            total_population += province.population
            efficiencies = [b.efficiency for b in province.buildings]
            throttled = False

            for idx, building in enumerate(province.buildings):
                definition = self.catalog.building(building.building_id)
                if definition is None:
                    logger.debug("[Ledger] Unknown building '%s' in %s skipped.", building.building_id, province.id)
                    continue

                level = max(1, building.level)
                efficiency = building.efficiency * overall
                required = {rid: amt * level for rid, amt in definition.consumes.items()}

                ratio = 1.0
                for rid, amount in required.items():
                    if amount > 0:
                        ratio = min(ratio, stock.get(rid, 0.0) / amount)

                for rid, amount in required.items():
                    used = amount * ratio
                    consumption[rid] += used
                    drawn[rid] += used
                    stock[rid] = max(0.0, stock[rid] - used)

                for rid, amount in definition.produces.items():
                    production[rid] += amount * level * ratio * efficiency

                if ratio < 1.0:
                    efficiencies[idx] = min(1.0, max(0.0, ratio * efficiency))
                    throttled = True

            for rid, amount in province.resource_deposits.items():
                if rid in production and amount > 0:
                    production[rid] += amount * DEPOSIT_EXTRACTION_RATE

            if throttled:
                update.building_efficiency[province.id] = efficiencies

        # Base flows from population and accumulated research
        if "manpower" in production:
            production["manpower"] += nation.population * MANPOWER_PER_CAPITA
        if "research" in production:
            production["research"] += nation.research_points * RESEARCH_YIELD
        if "food" in consumption:
            consumption["food"] += total_population * FOOD_PER_CAPITA
        if "consumer_goods" in consumption:
            consumption["consumer_goods"] += total_population * CONSUMER_GOODS_PER_CAPITA

        # Building inputs were already drawn from `stock`; settle the remaining flows.
        for rid in self.catalog.resource_ids:
            remaining = consumption[rid] - drawn[rid]
            stock[rid] = max(0.0, stock[rid] + production[rid] - remaining)

        update.stockpiles = stock
        update.production = production
        update.consumption = consumption
        return update

    @staticmethod
    def apply(nation: Nation, provinces_by_id: Dict[str, Province], update: LedgerUpdate):
        led = nation.ledger
        led.stockpiles.update(update.stockpiles)
        led.production = dict(update.production)
        led.consumption = dict(update.consumption)
        for province_id, efficiencies in update.building_efficiency.items():
            province = provinces_by_id.get(province_id)
            if province is None:
                continue
            for building, eff in zip(province.buildings, efficiencies):
                building.efficiency = eff
