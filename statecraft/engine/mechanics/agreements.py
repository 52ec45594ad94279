import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Mapping

from statecraft.shared.records import (
    Nation, TradeAgreement,
    AGREEMENT_ACTIVE, AGREEMENT_SUSPENDED, AGREEMENT_CANCELLED,
)

logger = logging.getLogger(__name__)

# Failure reasons
MISSING_NATION = "missing_nation"
EMBARGO = "embargo"
INSUFFICIENT = "insufficient_stock"
NOT_ACTIVE = "not_active"


@dataclass
class ExecutionResult:
    """
    Outcome of one agreement tick.
    `updates` maps nation id -> complete new stockpile map, empty unless success.
    """
    success: bool
    updates: Dict[str, Dict[str, float]] = field(default_factory=dict)
    reason: str = ""
    missing: Dict[str, Dict[str, float]] = field(default_factory=dict)


class PairLocks:
    """
    Per-nation ledger locks.
    A pair is always locked in ascending nation-id order so two settlements
    sharing a nation can never deadlock each other.
    """

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: Dict[str, threading.Lock] = {}

    def _lock_for(self, nation_id: str) -> threading.Lock:
        with self._guard:
            return self._locks.setdefault(nation_id, threading.Lock())

    @contextmanager
    def hold(self, *nation_ids: str) -> Iterator[None]:
        ordered = [self._lock_for(nid) for nid in sorted(set(nation_ids))]
        for lock in ordered:
            lock.acquire()
        try:
            yield
        finally:
            for lock in reversed(ordered):
                lock.release()


class AgreementExecutor:
    """
    Settles trade agreements one tick at a time.

    Settlement is two-phase: both sides' exports are checked against the current
    stockpiles before either stockpile is touched, and the tick is all-or-nothing.
    """

    def __init__(self, locks: PairLocks | None = None):
        self.locks = locks or PairLocks()

    @staticmethod
    def embargo_between(a: Nation, b: Nation) -> bool:
        return a.embargoes_with(b)

    @staticmethod
    def _shortfalls(nation: Nation, exports: Mapping[str, float]) -> Dict[str, float]:
        missing = {}
        for rid, amount in exports.items():
            available = nation.ledger.stockpile(rid)
            if available < amount:
                missing[rid] = amount - available
        return missing

    def execute(self, agreement: TradeAgreement, nations: Mapping[str, Nation]) -> ExecutionResult:
        """
        Computes one tick of `agreement` without mutating anything.
        """
        if agreement.status != AGREEMENT_ACTIVE:
            return ExecutionResult(False, reason=NOT_ACTIVE)

        a_id, b_id = agreement.nations
        a, b = nations.get(a_id), nations.get(b_id)
        if a is None or b is None:
            return ExecutionResult(False, reason=MISSING_NATION)

        if self.embargo_between(a, b):
            return ExecutionResult(False, reason=EMBARGO)

        # Phase 1: feasibility for both sides
        missing = {}
        for nation in (a, b):
            terms = agreement.terms.get(nation.id)
            if terms is None:
                continue
            short = self._shortfalls(nation, terms.exports)
            if short:
                missing[nation.id] = short
        if missing:
            return ExecutionResult(False, reason=INSUFFICIENT, missing=missing)

        # Phase 2: compute new stockpiles on snapshots
        updates: Dict[str, Dict[str, float]] = {}
        for nation in (a, b):
            terms = agreement.terms.get(nation.id)
            if terms is None:
                continue
            stock = dict(nation.ledger.stockpiles)
            for rid, amount in terms.exports.items():
                stock[rid] = max(0.0, stock.get(rid, 0.0)) - amount
            for rid, amount in terms.imports.items():
                stock[rid] = max(0.0, stock.get(rid, 0.0)) + amount
            updates[nation.id] = stock

        return ExecutionResult(True, updates=updates)

    def settle(self, agreement: TradeAgreement, nations: Mapping[str, Nation]) -> ExecutionResult:
        """
        Executes and commits one tick of `agreement` under the pair lock.
        On failure neither nation's stockpile is touched.
        """
        with self.locks.hold(*agreement.nations):
            result = self.execute(agreement, nations)
            if result.success:
                for nation_id, stock in result.updates.items():
                    nations[nation_id].ledger.stockpiles = stock
        return result

    @staticmethod
    def advance(agreement: TradeAgreement, weeks: int = 1) -> bool:
        """
        Burns `weeks` of the agreement's duration. Returns True if it just expired.
        """
        if agreement.status == AGREEMENT_CANCELLED:
            return False
        agreement.duration = max(0, agreement.duration - weeks)
        if agreement.duration <= 0:
            agreement.status = AGREEMENT_CANCELLED
            return True
        return False

    def resolve_status(self, agreement: TradeAgreement, nations: Mapping[str, Nation]) -> str | None:
        """
        Applies the embargo rule to the agreement status.
        Returns the new status if it changed ('suspended' or 'active'), else None.
        """
        if agreement.status == AGREEMENT_CANCELLED:
            return None
        a, b = (nations.get(nid) for nid in agreement.nations)
        if a is None or b is None:
            return None

        embargoed = self.embargo_between(a, b)
        if agreement.status == AGREEMENT_ACTIVE and embargoed:
            agreement.status = AGREEMENT_SUSPENDED
            return AGREEMENT_SUSPENDED
        if agreement.status == AGREEMENT_SUSPENDED and not embargoed:
            agreement.status = AGREEMENT_ACTIVE
            return AGREEMENT_ACTIVE
        return None

    @staticmethod
    def settlement_order(agreements: List[TradeAgreement]) -> List[TradeAgreement]:
        """Deterministic order: by sorted nation pair, then id."""
        return sorted(agreements, key=lambda ag: (tuple(sorted(ag.nations)), ag.id))
