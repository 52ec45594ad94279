from datetime import timedelta
from typing import List

from statecraft.engine.interfaces import ISystem
from statecraft.server.state import GameState, GAME_EPOCH
from statecraft.shared.events import EventNewWeek

TICK_LENGTH = timedelta(days=7)


class TimeSystem(ISystem):
    """
    Manages the flow of game time.
    Every tick is exactly one in-game week.

    Responsibility:
    - Updates 'state.time' (Week, Year, Month, Day)
    - Emits 'EventNewWeek'
    """

    @property
    def id(self) -> str:
        return "base.time"

    @property
    def dependencies(self) -> List[str]:
        # Time has no dependencies on other gameplay systems.
        return []

    def update(self, state: GameState) -> None:
        t = state.time
        t.week += 1

        # Recalculate human-readable fields using Python's datetime logic
        # This handles leap years and month lengths automatically.
        current_dt = GAME_EPOCH + TICK_LENGTH * t.week
        t.year = current_dt.year
        t.month = current_dt.month
        t.day = current_dt.day

        state.events.append(EventNewWeek(t.week, t.year, t.month, t.day))
