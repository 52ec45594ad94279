from dataclasses import dataclass, field
from datetime import timedelta
from typing import Dict

@dataclass
class GameAction:
    """
    Base class for all discrete game actions following the Command Pattern.

    Architecture Note:
        Clients do not modify the GameState directly.
        Instead, they issue Actions. The Engine then processes these Actions deterministically
        inside the next tick, so an action can never leave half-applied state behind.
    """
    # Identifies who initiated the action ('local_player', 'server', or a specific player ID).
    player_id: str

# --- Trade Actions ---

@dataclass
class ActionProposeTrade(GameAction):
    """
    Sends a trade offer from one nation to another.
    Amounts are per week, for `duration` weeks once accepted (None: configured default).
    """
    from_nation: str
    to_nation: str
    offering: Dict[str, float] = field(default_factory=dict)
    requesting: Dict[str, float] = field(default_factory=dict)
    duration: int | None = None

@dataclass
class ActionRespondToOffer(GameAction):
    """
    Accepts or rejects a pending offer. Only the addressed nation may respond.
    """
    nation_id: str
    offer_id: str
    accept: bool

# --- Diplomacy Actions ---

@dataclass
class ActionSetEmbargo(GameAction):
    """
    Imposes (active=True) or lifts an embargo of `nation_id` against `target_id`.
    Existing agreements between the two are suspended, not cancelled.
    """
    nation_id: str
    target_id: str
    active: bool = True

# --- Alert Settings Actions ---

@dataclass
class ActionSnoozeAlerts(GameAction):
    nation_id: str
    duration: timedelta

@dataclass
class ActionToggleAlertMute(GameAction):
    nation_id: str

@dataclass
class ActionToggleAlertGrouping(GameAction):
    nation_id: str

@dataclass
class ActionClearAlertHistory(GameAction):
    nation_id: str
