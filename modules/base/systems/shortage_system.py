import logging
from typing import List

import polars as pl

from statecraft.engine.interfaces import ISystem
from statecraft.engine.mechanics.shortages import ShortageAnalyzer, CRITICAL, SHORTAGE
from statecraft.server.state import GameState

logger = logging.getLogger(__name__)


class ShortageSystem(ISystem):
    """
    Classifies every (nation, resource) ledger entry in one vectorised pass.

    Responsibility:
    - Writes the shortage map of each ledger (critical/shortage severities only)
    - Fills 'state.shortage_report' for effects, alerts and trade
    - Refreshes the 'ledger' and 'shortages' inspection tables (empty without nations)
    """

    def __init__(self, analyzer: ShortageAnalyzer):
        self.analyzer = analyzer

    @property
    def id(self) -> str:
        return "base.shortages"

    @property
    def dependencies(self) -> List[str]:
        return ["base.ledger"]

    def update(self, state: GameState) -> None:
        ledger_df = self.analyzer.ledger_frame(state.nations.values())
        analyzed = self.analyzer.analyze_frame(ledger_df)

        state.update_table("ledger", ledger_df)
        state.update_table(
            "shortages",
            analyzed.filter(pl.col("status").is_in([CRITICAL, SHORTAGE]))
            .select(["nation_id", "resource_id", "status", "weeks_of_supply", "severity"])
            .sort(["nation_id", "severity"], descending=[False, True])
        )

        report = self.analyzer.frame_to_statuses(analyzed)
        state.shortage_report.update(report)

        for nation_id, statuses in report.items():
            nation = state.nations[nation_id]
            shortages = {
                rid: status.shortage_severity
                for rid, status in statuses.items()
                if status.is_shortage
            }
            nation.ledger.shortages = shortages
            state.record_nation_update(nation_id, {"shortages": dict(shortages)})

            if shortages:
                logger.debug("[Shortages] %s short on %s", nation_id, sorted(shortages))
