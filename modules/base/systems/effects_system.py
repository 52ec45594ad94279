import logging
from concurrent.futures import ThreadPoolExecutor
from typing import List

from statecraft.engine.interfaces import ISystem
from statecraft.engine.mechanics.effects import EffectPropagator
from statecraft.server.state import GameState
from statecraft.shared.records import Nation

logger = logging.getLogger(__name__)


class EffectsSystem(ISystem):
    """
    Turns this tick's shortages into readiness, efficiency, unrest and growth changes.

    Deltas are computed per nation without touching the state (optionally on a
    thread pool), then merged into the staged records one nation at a time.
    """

    def __init__(self, propagator: EffectPropagator, workers: int = 1):
        self.propagator = propagator
        self.workers = max(1, workers)

    @property
    def id(self) -> str:
        return "base.effects"

    @property
    def dependencies(self) -> List[str]:
        return ["base.shortages"]

    def update(self, state: GameState) -> None:
        nations = list(state.nations.values())

        def compute(nation: Nation):
            return nation.id, self.propagator.propagate(nation, state.provinces_of(nation))

        if self.workers > 1 and len(nations) > 1:
            with ThreadPoolExecutor(max_workers=self.workers) as pool:
                results = list(pool.map(compute, nations))
        else:
            results = [compute(n) for n in nations]

        for nation_id, (effects, nation_delta, province_deltas) in results:
            if not effects:
                continue

            state.effects[nation_id] = effects
            nation = state.nations[nation_id]
            self.propagator.apply_nation_update(nation, nation_delta)
            state.record_nation_update(nation_id, nation_delta)

            for province_id, delta in province_deltas.items():
                self.propagator.apply_province_update(state.provinces[province_id], delta)
                state.record_province_update(province_id, delta)

            logger.debug("[Effects] %s: %d effect(s), %d province(s) changed",
                         nation_id, len(effects), len(province_deltas))
