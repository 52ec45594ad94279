from dataclasses import dataclass, field
from typing import Dict, Tuple

@dataclass
class GameEvent:
    """
    Base class for all internal simulation events.

    Architecture Note:
        Events are distinct from Actions.
        - Actions: External commands FROM the user/network TO the engine.
        - Events: Internal signals FROM one system TO another, and to the presentation layer.

        Events only describe what happened. Turning them into toasts or panels is the
        client's job.
    """
    pass

@dataclass
class EventNewWeek(GameEvent):
    """
    Fired once per tick after the clock advanced by 7 days.
    """
    week: int
    year: int
    month: int
    day: int

# --- Trade Lifecycle ---

@dataclass
class EventTradeOfferReceived(GameEvent):
    offer_id: str
    from_nation: str
    to_nation: str
    resources: Tuple[str, ...] = ()

@dataclass
class EventTradeOfferAccepted(GameEvent):
    offer_id: str
    agreement_id: str
    from_nation: str
    to_nation: str

@dataclass
class EventTradeOfferRejected(GameEvent):
    offer_id: str
    from_nation: str
    to_nation: str
    reason: str = ""

@dataclass
class EventTradeOfferExpired(GameEvent):
    offer_id: str
    from_nation: str
    to_nation: str

@dataclass
class EventEmbargoChanged(GameEvent):
    """Fired when `nation_id` imposes (active=True) or lifts an embargo on `target_id`."""
    nation_id: str
    target_id: str
    active: bool

# --- Agreement Execution ---

@dataclass
class EventAgreementSuspended(GameEvent):
    agreement_id: str
    nations: Tuple[str, str]

@dataclass
class EventAgreementResumed(GameEvent):
    agreement_id: str
    nations: Tuple[str, str]

@dataclass
class EventAgreementFailed(GameEvent):
    """An agreement tick could not be settled; `missing` maps nation id -> shortfalls."""
    agreement_id: str
    nations: Tuple[str, str]
    missing: Dict[str, Dict[str, float]] = field(default_factory=dict)

@dataclass
class EventAgreementExpired(GameEvent):
    agreement_id: str
    nations: Tuple[str, str]
