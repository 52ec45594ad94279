import dataclasses
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List

import orjson

from statecraft.engine.mechanics.alerts import AlertDecision
from statecraft.server.state import GameState
from statecraft.shared.events import GameEvent
from statecraft.shared.records import ShortageEffect, TradeAgreement, TradeOffer


@dataclass
class TickReport:
    """
    Everything one committed tick produced for the external state manager:
    effects, partial record updates, alert decisions and the event log.
    `offers` and `agreements` are the trade records still live after the tick.
    """
    tick: int
    date: datetime
    effects: Dict[str, List[ShortageEffect]] = field(default_factory=dict)
    nation_updates: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    province_updates: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    alerts: List[AlertDecision] = field(default_factory=list)
    events: List[GameEvent] = field(default_factory=list)
    offers: List[TradeOffer] = field(default_factory=list)
    agreements: List[TradeAgreement] = field(default_factory=list)

    @classmethod
    def from_state(cls, state: GameState) -> "TickReport":
        # Committed records are never mutated again; the next tick works on a fork.
        return cls(
            tick=state.globals.get("tick", 0),
            date=state.time.now,
            effects={nid: list(effects) for nid, effects in state.effects.items()},
            nation_updates={nid: dict(delta) for nid, delta in state.nation_updates.items()},
            province_updates={pid: dict(delta) for pid, delta in state.province_updates.items()},
            alerts=list(state.alerts),
            events=list(state.events),
            offers=[state.offers[oid] for oid in sorted(state.offers)],
            agreements=[state.agreements[aid] for aid in sorted(state.agreements)],
        )

    def events_of(self, event_type: type) -> List[GameEvent]:
        return [e for e in self.events if isinstance(e, event_type)]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "tick": self.tick,
            "date": self.date.isoformat(),
            "effects": {nid: [e.to_dict() for e in effects] for nid, effects in self.effects.items()},
            "nationUpdates": self.nation_updates,
            "provinceUpdates": self.province_updates,
            "alerts": [a.to_dict() for a in self.alerts],
            "events": [{"type": type(e).__name__, **dataclasses.asdict(e)} for e in self.events],
            "offers": [o.to_dict() for o in self.offers],
            "agreements": [a.to_dict() for a in self.agreements],
        }

    def to_json(self) -> bytes:
        # orjson serializes tuples and nested dicts natively
        return orjson.dumps(self.to_dict())
