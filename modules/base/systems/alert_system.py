import logging
from typing import List

from statecraft.engine.interfaces import ISystem
from statecraft.engine.mechanics.alerts import AlertScheduler
from statecraft.server.state import GameState
from statecraft.shared.actions import (
    ActionSnoozeAlerts, ActionToggleAlertMute, ActionToggleAlertGrouping, ActionClearAlertHistory,
)

logger = logging.getLogger(__name__)


class AlertSystem(ISystem):
    """
    Decides which shortage/surplus alerts reach the presentation layer this week.

    The scheduler's history lives outside the GameState, so the system works on a
    fork of it and hands the fork back only when the Engine commits the tick.
    """

    def __init__(self, scheduler: AlertScheduler):
        self.scheduler = scheduler
        self._staged: AlertScheduler | None = None

    @property
    def id(self) -> str:
        return "base.alerts"

    @property
    def dependencies(self) -> List[str]:
        return ["base.shortages"]

    def update(self, state: GameState) -> None:
        staged = self.scheduler.fork()
        self._staged = staged
        now = state.time.now

        # 1. Handle Settings Actions
        for action in state.current_actions:
            if isinstance(action, ActionSnoozeAlerts):
                staged.snooze(action.nation_id, now, action.duration)
            elif isinstance(action, ActionToggleAlertMute):
                muted = staged.toggle_mute(action.nation_id)
                logger.info("[Alerts] %s %s", action.nation_id, "muted" if muted else "unmuted")
            elif isinstance(action, ActionToggleAlertGrouping):
                staged.toggle_grouping(action.nation_id)
            elif isinstance(action, ActionClearAlertHistory):
                staged.clear_history(action.nation_id)

        # 2. Decide
        for nation_id in sorted(state.nations):
            nation = state.nations[nation_id]
            statuses = state.shortage_report.get(nation_id)
            state.alerts.extend(staged.check_nation(nation, now, statuses))

    def on_commit(self):
        if self._staged is not None:
            self.scheduler.adopt(self._staged)
            self._staged = None

    def on_abort(self):
        self._staged = None
