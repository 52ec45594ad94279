import logging
import math
from typing import Any, Callable, Dict, Iterable, List, Mapping

from statecraft.shared.catalog import ResourceCatalog
from statecraft.shared.records import Nation, Province, ShortageEffect

logger = logging.getLogger(__name__)

# Severities at or below this are noise and produce no effect.
MIN_SEVERITY = 0.1
MAX_UNREST = 10.0
# Fraction of the gap to the target readiness closed each tick.
READINESS_DRIFT = 0.1
# populationGrowth is applied as a weekly percentage.
GROWTH_SCALE = 0.01


def _electricity(e: ShortageEffect, s: float, nation: Nation):
    e.building_efficiency = max(0.3, 1 - s * 0.8)
    e.province_stability = s * 0.5

def _oil(e: ShortageEffect, s: float, nation: Nation):
    e.military_readiness = max(0.2, 1 - s * 0.9)
    e.building_efficiency = max(0.5, 1 - s * 0.5)

def _steel(e: ShortageEffect, s: float, nation: Nation):
    e.building_efficiency = max(0.2, 1 - s * 0.8)
    e.military_readiness = max(0.4, 1 - s * 0.6)

def _food(e: ShortageEffect, s: float, nation: Nation):
    e.province_stability = s * 1.5
    e.population_growth = max(-0.02, -s * 0.02)
    e.military_readiness = max(0.5, 1 - s * 0.5)

def _consumer_goods(e: ShortageEffect, s: float, nation: Nation):
    e.province_stability = s * 0.8
    e.population_growth = max(0.0, 1 - s * 0.3)

def _manpower(e: ShortageEffect, s: float, nation: Nation):
    e.military_readiness = max(0.1, 1 - s * 0.9)
    e.building_efficiency = max(0.6, 1 - s * 0.4)

def _rare_earth(e: ShortageEffect, s: float, nation: Nation):
    e.building_efficiency = max(0.4, 1 - s * 0.6)

def _semiconductors(e: ShortageEffect, s: float, nation: Nation):
    e.building_efficiency = max(0.3, 1 - s * 0.7)

def _uranium(e: ShortageEffect, s: float, nation: Nation):
    # Only matters for nations that field nuclear forces
    if nation.military.nuclear_capability:
        e.military_readiness = max(0.6, 1 - s * 0.4)

def _generic(e: ShortageEffect, s: float, nation: Nation):
    e.building_efficiency = max(0.5, 1 - s * 0.5)


EFFECT_RULES: Dict[str, Callable[[ShortageEffect, float, Nation], None]] = {
    "electricity": _electricity,
    "oil": _oil,
    "steel": _steel,
    "food": _food,
    "consumer_goods": _consumer_goods,
    "manpower": _manpower,
    "rare_earth": _rare_earth,
    "semiconductors": _semiconductors,
    "uranium": _uranium,
}


class EffectPropagator:
    """
    Maps shortage severities to gameplay modifiers and turns them into update deltas.

    Responsibility:
        `calculate_effects` is the pure severity -> modifier step.
        `province_updates` / `nation_update` turn effects into partial deltas
        (dicts keyed by record field) without touching the records.
        `apply_*` merge such deltas into records owned by a staged GameState.
    """

    def __init__(self, catalog: ResourceCatalog):
        self.catalog = catalog

    def calculate_effects(self, nation: Nation, severities: Mapping[str, float] | None = None) -> List[ShortageEffect]:
        """
        Builds one ShortageEffect per resource whose severity exceeds MIN_SEVERITY.
        Defaults to the nation's own ledger shortage map.
        """
        if severities is None:
            severities = nation.ledger.shortages

        effects: List[ShortageEffect] = []
        for resource_id, raw in severities.items():
            severity = min(1.0, max(0.0, raw))
            if severity <= MIN_SEVERITY:
                continue
            if resource_id not in self.catalog:
                logger.warning("[Effects] %s: shortage of unknown resource '%s' ignored.", nation.id, resource_id)
                continue

            effect = ShortageEffect(resource_id=resource_id, severity=severity)
            EFFECT_RULES.get(resource_id, _generic)(effect, severity, nation)
            effects.append(effect)

        return effects

    def province_updates(self, provinces: Iterable[Province], nation: Nation,
                         effects: List[ShortageEffect]) -> Dict[str, Dict[str, Any]]:
        """
        Returns province id -> delta for every owned province that changes.
        Effects of several resources apply one after another within the tick.
        """
        updates: Dict[str, Dict[str, Any]] = {}
        if not effects:
            return updates

        for province in provinces:
            if province.country != nation.name:
                continue

            unrest = province.unrest
            population = province.population
            efficiencies = [b.efficiency for b in province.buildings]
            delta: Dict[str, Any] = {}

            for effect in effects:
                if effect.province_stability:
                    unrest = min(MAX_UNREST, unrest + effect.province_stability * effect.severity)
                    delta["unrest"] = unrest

                if effect.population_growth and population > 0:
                    change = population * effect.population_growth * GROWTH_SCALE
                    if abs(change) >= 1:
                        population = max(0.0, float(math.floor(population + change)))
                        delta["population"] = population

                if effect.building_efficiency is not None and efficiencies:
                    modifier = effect.building_efficiency
                    efficiencies = [min(1.0, max(0.0, eff * modifier)) for eff in efficiencies]
                    delta["buildings"] = efficiencies

            if delta:
                updates[province.id] = delta

        return updates

    def nation_update(self, nation: Nation, effects: List[ShortageEffect]) -> Dict[str, Any]:
        """
        Readiness drifts 10% per tick toward 100 x the harshest readiness modifier;
        the overall efficiency becomes the harshest building modifier.
        """
        delta: Dict[str, Any] = {}
        readiness_mod = min((e.military_readiness for e in effects if e.military_readiness is not None), default=1.0)
        efficiency_mod = min((e.building_efficiency for e in effects if e.building_efficiency is not None), default=1.0)

        if readiness_mod < 1:
            current = min(100.0, max(0.0, nation.military.readiness))
            target = 100.0 * readiness_mod
            delta["readiness"] = min(100.0, max(0.0, current + (target - current) * READINESS_DRIFT))

        if efficiency_mod < 1:
            delta["efficiency_overall"] = min(1.0, max(0.0, efficiency_mod))

        return delta

    # --- Merge ---------------------------------------------------------------

    @staticmethod
    def apply_province_update(province: Province, delta: Mapping[str, Any]):
        if "unrest" in delta:
            province.unrest = delta["unrest"]
        if "population" in delta:
            province.population = delta["population"]
        if "buildings" in delta:
            for building, eff in zip(province.buildings, delta["buildings"]):
                building.efficiency = eff

    @staticmethod
    def apply_nation_update(nation: Nation, delta: Mapping[str, Any]):
        if "readiness" in delta:
            nation.military.readiness = delta["readiness"]
        if "efficiency_overall" in delta:
            nation.ledger.efficiency["overall"] = delta["efficiency_overall"]

    def propagate(self, nation: Nation, provinces: Iterable[Province]):
        """
        Convenience wrapper: effects + deltas for one nation.
        Returns (effects, nation_delta, province_deltas). Nothing is mutated.
        """
        effects = self.calculate_effects(nation)
        if not effects:
            return effects, {}, {}
        return effects, self.nation_update(nation, effects), self.province_updates(provinces, nation, effects)
