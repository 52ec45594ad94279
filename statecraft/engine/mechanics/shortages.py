"""
Shortage analysis: turns ledger numbers into a status and severity per resource.

Rules (per resource, all amounts per week):
    weeks_of_supply = stockpile / consumption   (infinite when consumption is 0)
    net             = production - consumption

    consumption == 0                               -> stable,   0
    weeks_of_supply < 2                            -> critical, 1 - wos / 2
    weeks_of_supply < 8                            -> shortage, 1 - wos / 8
    net > 0.3 * cons and stockpile > 12 * cons     -> surplus,  min(1, net / cons)
    otherwise                                      -> stable,   0

Two implementations are provided: `classify()` for a single ledger entry and
`analyze_frame()` which evaluates every nation at once on a polars DataFrame.
They must agree row-for-row.
"""

import logging
from dataclasses import dataclass
from typing import Dict, Iterable

import polars as pl

from statecraft.shared.catalog import ResourceCatalog
from statecraft.shared.records import Nation, ResourceLedger

logger = logging.getLogger(__name__)

CRITICAL = "critical"
SHORTAGE = "shortage"
SURPLUS = "surplus"
STABLE = "stable"

CRITICAL_WEEKS = 2.0
SHORTAGE_WEEKS = 8.0
SURPLUS_NET_RATIO = 0.3
SURPLUS_STOCK_WEEKS = 12.0

LEDGER_SCHEMA = {
    "nation_id": pl.String,
    "resource_id": pl.String,
    "stockpile": pl.Float64,
    "production": pl.Float64,
    "consumption": pl.Float64,
}


@dataclass(frozen=True)
class ShortageStatus:
    resource_id: str
    status: str
    weeks_of_supply: float
    net: float
    severity: float

    @property
    def is_shortage(self) -> bool:
        return self.status in (CRITICAL, SHORTAGE)

    @property
    def shortage_severity(self) -> float:
        """Severity as stored in the ledger's shortage map (surpluses count as 0)."""
        return self.severity if self.is_shortage else 0.0


def classify(resource_id: str, stockpile: float, production: float, consumption: float) -> ShortageStatus:
    """Pure status rule for one resource. Negative inputs are clamped to zero."""
    stockpile = max(0.0, stockpile)
    production = max(0.0, production)
    consumption = max(0.0, consumption)
    net = production - consumption

    if consumption <= 0:
        return ShortageStatus(resource_id, STABLE, float("inf"), net, 0.0)

    wos = stockpile / consumption
    if wos < CRITICAL_WEEKS:
        return ShortageStatus(resource_id, CRITICAL, wos, net, 1.0 - wos / CRITICAL_WEEKS)
    if wos < SHORTAGE_WEEKS:
        return ShortageStatus(resource_id, SHORTAGE, wos, net, 1.0 - wos / SHORTAGE_WEEKS)
    if net > SURPLUS_NET_RATIO * consumption and stockpile > SURPLUS_STOCK_WEEKS * consumption:
        return ShortageStatus(resource_id, SURPLUS, wos, net, min(1.0, net / consumption))
    return ShortageStatus(resource_id, STABLE, wos, net, 0.0)


class ShortageAnalyzer:
    """
    Derives ShortageStatus values from nation ledgers.

    Only resources defined in the catalog are analysed; ledger entries for unknown
    ids are skipped (and reported once per analyzer) instead of failing the tick.
    """

    def __init__(self, catalog: ResourceCatalog):
        self.catalog = catalog
        self._reported_unknown: set[str] = set()

    def analyze_ledger(self, ledger: ResourceLedger) -> Dict[str, ShortageStatus]:
        self._warn_unknown(ledger)
        return {
            rid: classify(rid, ledger.stockpile(rid), ledger.produced(rid), ledger.consumed(rid))
            for rid in self.catalog.resource_ids
        }

    def analyze_nation(self, nation: Nation) -> Dict[str, ShortageStatus]:
        return self.analyze_ledger(nation.ledger)

    # --- Vectorised path -----------------------------------------------------

    def ledger_frame(self, nations: Iterable[Nation]) -> pl.DataFrame:
        """
        Flattens ledgers into a long-form table: one row per (nation, catalog resource).
        """
        rows: Dict[str, list] = {k: [] for k in LEDGER_SCHEMA}
        resource_ids = self.catalog.resource_ids
        for nation in nations:
            self._warn_unknown(nation.ledger)
            led = nation.ledger
            for rid in resource_ids:
                rows["nation_id"].append(nation.id)
                rows["resource_id"].append(rid)
                rows["stockpile"].append(led.stockpiles.get(rid, 0.0))
                rows["production"].append(led.production.get(rid, 0.0))
                rows["consumption"].append(led.consumption.get(rid, 0.0))
        return pl.DataFrame(rows, schema=LEDGER_SCHEMA)

    def analyze_frame(self, ledger_df: pl.DataFrame) -> pl.DataFrame:
        """
        Adds 'weeks_of_supply', 'net', 'status' and 'severity' columns.
        Calculates for ALL nations at once without a Python loop.
        """
        df = ledger_df.with_columns(
            pl.col("stockpile").fill_null(0).clip(lower_bound=0),
            pl.col("production").fill_null(0).clip(lower_bound=0),
            pl.col("consumption").fill_null(0).clip(lower_bound=0),
        )

        has_demand = pl.col("consumption") > 0
        wos = pl.col("stockpile") / pl.col("consumption")

        df = df.with_columns(
            pl.when(has_demand).then(wos).otherwise(float("inf")).alias("weeks_of_supply"),
            (pl.col("production") - pl.col("consumption")).alias("net"),
        )

        is_surplus = (
            (pl.col("net") > pl.col("consumption") * SURPLUS_NET_RATIO)
            & (pl.col("stockpile") > pl.col("consumption") * SURPLUS_STOCK_WEEKS)
        )

        df = df.with_columns(
            pl.when(~has_demand).then(pl.lit(STABLE))
            .when(pl.col("weeks_of_supply") < CRITICAL_WEEKS).then(pl.lit(CRITICAL))
            .when(pl.col("weeks_of_supply") < SHORTAGE_WEEKS).then(pl.lit(SHORTAGE))
            .when(is_surplus).then(pl.lit(SURPLUS))
            .otherwise(pl.lit(STABLE))
            .alias("status")
        )

        return df.with_columns(
            pl.when(pl.col("status") == CRITICAL).then(1.0 - pl.col("weeks_of_supply") / CRITICAL_WEEKS)
            .when(pl.col("status") == SHORTAGE).then(1.0 - pl.col("weeks_of_supply") / SHORTAGE_WEEKS)
            .when(pl.col("status") == SURPLUS).then(pl.min_horizontal(pl.lit(1.0), pl.col("net") / pl.col("consumption")))
            .otherwise(0.0)
            .alias("severity")
        )

    @staticmethod
    def frame_to_statuses(analyzed: pl.DataFrame) -> Dict[str, Dict[str, ShortageStatus]]:
        report: Dict[str, Dict[str, ShortageStatus]] = {}
        for row in analyzed.iter_rows(named=True):
            report.setdefault(row["nation_id"], {})[row["resource_id"]] = ShortageStatus(
                resource_id=row["resource_id"],
                status=row["status"],
                weeks_of_supply=row["weeks_of_supply"],
                net=row["net"],
                severity=row["severity"],
            )
        return report

    def _warn_unknown(self, ledger: ResourceLedger):
        for rid in set(ledger.stockpiles) | set(ledger.production) | set(ledger.consumption):
            if rid not in self.catalog and rid not in self._reported_unknown:
                self._reported_unknown.add(rid)
                logger.warning("[Shortages] Ledger entry for unknown resource '%s' skipped.", rid)
