import copy
import polars as pl
from dataclasses import dataclass, field
from typing import Dict, Any, List, TYPE_CHECKING
from datetime import datetime

from statecraft.shared.records import Nation, Province, TradeOffer, TradeAgreement, ShortageEffect

if TYPE_CHECKING:
    from statecraft.shared.actions import GameAction
    from statecraft.shared.events import GameEvent
    from statecraft.engine.mechanics.alerts import AlertDecision
    from statecraft.engine.mechanics.shortages import ShortageStatus

# The starting point for the simulation time (Epoch).
GAME_EPOCH = datetime(2001, 1, 1, 0, 0)

@dataclass
class TimeData:
    """
    Data component for the game clock.
    One simulation tick is one in-game week.
    """
    # Source of Truth: whole weeks elapsed since GAME_EPOCH.
    week: int = 0

    # Cached Human-Readable fields (Updated only when the week changes)
    year: int = 2001
    month: int = 1
    day: int = 1

    @property
    def now(self) -> datetime:
        """Game date used for offer timestamps and alert cooldown arithmetic."""
        return datetime(self.year, self.month, self.day)

@dataclass
class GameState:
    """
    The central data store for the economy simulation.

    Nations, provinces, offers and agreements are record objects keyed by id.
    `tables` holds polars views of the ledgers for inspection panels; they are
    rebuilt every tick and never read back by the mechanics.
    """

    nations: Dict[str, Nation] = field(default_factory=dict)
    provinces: Dict[str, Province] = field(default_factory=dict)

    # Pending offers live here (keyed by id); nations keep their outgoing ones too.
    offers: Dict[str, TradeOffer] = field(default_factory=dict)
    agreements: Dict[str, TradeAgreement] = field(default_factory=dict)

    # Read-only DataFrame views (e.g., 'ledger', 'shortages').
    tables: Dict[str, pl.DataFrame] = field(default_factory=dict)

    # Dedicated component for Time state.
    time: TimeData = field(default_factory=TimeData)

    # Holds other global simulation variables that don't fit elsewhere.
    globals: Dict[str, Any] = field(default_factory=lambda: {"tick": 0})

    # --- Transient, per-tick outputs (cleared by the Engine at the start of every tick) ---

    # The Event Bus. Systems append events here during their update.
    events: List['GameEvent'] = field(default_factory=list)

    # Actions received this specific tick.
    current_actions: List['GameAction'] = field(default_factory=list)

    # Analyzer output for this tick: nation id -> resource id -> status
    shortage_report: Dict[str, Dict[str, 'ShortageStatus']] = field(default_factory=dict)

    # Effects computed this tick, per nation.
    effects: Dict[str, List[ShortageEffect]] = field(default_factory=dict)

    # Partial update deltas for the external state manager.
    nation_updates: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    province_updates: Dict[str, Dict[str, Any]] = field(default_factory=dict)

    # Alert decisions for the presentation layer.
    alerts: List['AlertDecision'] = field(default_factory=list)

    def get_table(self, name: str) -> pl.DataFrame:
        """
        Retrieves a reference to an inspection table.
        """
        if name not in self.tables:
            raise KeyError(f"Table '{name}' not found in GameState.")
        return self.tables[name]

    def update_table(self, name: str, df: pl.DataFrame):
        """
        Replaces a table in the state (Copy-on-Write).
        """
        self.tables[name] = df

    def get_nation(self, nation_id: str) -> Nation:
        if nation_id not in self.nations:
            raise KeyError(f"Nation '{nation_id}' not found in GameState.")
        return self.nations[nation_id]

    def provinces_of(self, nation: Nation) -> List[Province]:
        """Provinces reference their owner by nation name."""
        return [p for p in self.provinces.values() if p.country == nation.name]

    def reset_transient(self):
        self.events.clear()
        self.shortage_report.clear()
        self.effects.clear()
        self.nation_updates.clear()
        self.province_updates.clear()
        self.alerts.clear()

    def record_nation_update(self, nation_id: str, delta: Dict[str, Any]):
        if delta:
            self.nation_updates.setdefault(nation_id, {}).update(delta)

    def record_province_update(self, province_id: str, delta: Dict[str, Any]):
        if delta:
            self.province_updates.setdefault(province_id, {}).update(delta)

    # --- Staging -------------------------------------------------------------

    def fork(self) -> 'GameState':
        """
        Returns a deep, independent copy for staging one tick.
        DataFrames are immutable so the tables dict is only copied shallowly.
        """
        tables = self.tables
        self.tables = {}
        try:
            staged = copy.deepcopy(self)
        finally:
            self.tables = tables
        staged.tables = dict(tables)
        return staged

    def commit(self, staged: 'GameState'):
        """
        Adopts every field of a staged fork. Called once, after all systems succeeded.
        """
        for name in self.__dataclass_fields__:
            setattr(self, name, getattr(staged, name))
