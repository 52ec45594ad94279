"""
Debounced resource alert decisions.

The scheduler decides *whether* a nation should be told about a shortage or surplus,
never how the message looks. It is an explicit object owned by a game session; all
history lives on the instance, keyed by nation id.

Per tick and resource:
    1. muted / snoozed nations are skipped entirely
    2. status and severity come from the ShortageAnalyzer; severity < 0.3 never alerts
    3. a new state needs 2 ticks of grace, except critical with severity >= 0.9
    4. a previous alert of the same type imposes a cooldown (5 / 10 / 21 days)
    5. inside one unchanged state, re-alerting needs a severity move >= 0.3 and an
       escalated cooldown of min(3, ticks_in_state // 5 + 1) x base
"""

import copy
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Dict, List, Mapping, Tuple

from statecraft.engine.mechanics.shortages import ShortageAnalyzer, ShortageStatus, CRITICAL, SHORTAGE, SURPLUS
from statecraft.shared.records import Nation

logger = logging.getLogger(__name__)

MIN_ALERT_SEVERITY = 0.3
GRACE_PERIOD_TICKS = 2
GRACE_BYPASS_SEVERITY = 0.9
RENOTIFY_SEVERITY_DELTA = 0.3
MAX_COOLDOWN_FACTOR = 3

COOLDOWNS = {
    CRITICAL: timedelta(days=5),
    SHORTAGE: timedelta(days=10),
    SURPLUS: timedelta(days=21),
}
DEFAULT_COOLDOWN = timedelta(days=7)


@dataclass
class AlertRecord:
    """History of one (nation, resource) pair."""
    resource_id: str
    type: str
    severity: float
    ticks_in_state: int = 1
    # Set once an alert went out during the current, unchanged state
    threshold_crossed: bool = False
    last_notified_at: datetime | None = None
    last_alert_type: str | None = None
    last_alert_severity: float = 0.0


@dataclass
class AlertSettings:
    muted: bool = False
    snoozed_until: datetime | None = None
    group_notifications: bool = True


@dataclass(frozen=True)
class AlertDecision:
    """
    One alert for the presentation layer.
    Grouped summaries list several resources; individual alerts list exactly one.
    """
    nation_id: str
    alert_type: str
    resource_ids: Tuple[str, ...]
    severity: float
    grouped: bool
    decided_at: datetime

    @property
    def resource_id(self) -> str:
        return self.resource_ids[0]

    def to_dict(self) -> dict:
        return {
            "nationId": self.nation_id,
            "type": self.alert_type,
            "resourceIds": list(self.resource_ids),
            "severity": self.severity,
            "grouped": self.grouped,
            "decidedAt": self.decided_at.isoformat(),
        }


@dataclass
class _Pending:
    resource_id: str
    type: str
    severity: float


class AlertScheduler:
    """
    Holds per-nation alert history and settings for one game session.
    """

    def __init__(self, analyzer: ShortageAnalyzer):
        self.analyzer = analyzer
        self._history: Dict[str, Dict[str, AlertRecord]] = {}
        self._settings: Dict[str, AlertSettings] = {}

    # --- Settings ------------------------------------------------------------

    def settings_for(self, nation_id: str) -> AlertSettings:
        return self._settings.setdefault(nation_id, AlertSettings())

    def snooze(self, nation_id: str, now: datetime, duration: timedelta):
        self.settings_for(nation_id).snoozed_until = now + duration
        logger.info("[Alerts] %s snoozed until %s", nation_id, now + duration)

    def toggle_mute(self, nation_id: str) -> bool:
        settings = self.settings_for(nation_id)
        settings.muted = not settings.muted
        return settings.muted

    def toggle_grouping(self, nation_id: str) -> bool:
        settings = self.settings_for(nation_id)
        settings.group_notifications = not settings.group_notifications
        return settings.group_notifications

    def clear_history(self, nation_id: str):
        self._history.pop(nation_id, None)
        self._settings.pop(nation_id, None)

    def history_for(self, nation_id: str) -> Dict[str, AlertRecord]:
        return self._history.get(nation_id, {})

    def close(self):
        """Drops all state; called when the owning session ends."""
        self._history.clear()
        self._settings.clear()

    def fork(self) -> "AlertScheduler":
        """Independent copy used while a tick is staged."""
        staged = AlertScheduler(self.analyzer)
        staged._history = copy.deepcopy(self._history)
        staged._settings = copy.deepcopy(self._settings)
        return staged

    def adopt(self, staged: "AlertScheduler"):
        """Takes over the history and settings of a committed fork."""
        self._history = staged._history
        self._settings = staged._settings

    # --- Decision ------------------------------------------------------------

    def _should_alert(self, record: AlertRecord, now: datetime) -> bool:
        if record.severity < MIN_ALERT_SEVERITY:
            return False

        bypass_grace = record.type == CRITICAL and record.severity >= GRACE_BYPASS_SEVERITY
        if record.ticks_in_state < GRACE_PERIOD_TICKS and not bypass_grace:
            return False

        if record.last_notified_at is None or record.last_alert_type != record.type:
            return True

        elapsed = now - record.last_notified_at
        cooldown = COOLDOWNS.get(record.type, DEFAULT_COOLDOWN)
        if elapsed < cooldown:
            return False

        if record.threshold_crossed:
            # Same state as the last alert: needs a real change and a longer wait
            if abs(record.severity - record.last_alert_severity) < RENOTIFY_SEVERITY_DELTA:
                return False
            factor = min(MAX_COOLDOWN_FACTOR, record.ticks_in_state // 5 + 1)
            if elapsed < cooldown * factor:
                return False

        return True

    def _track(self, nation_id: str, resource_id: str, status: str, severity: float) -> AlertRecord:
        history = self._history.setdefault(nation_id, {})
        record = history.get(resource_id)
        if record is None:
            record = AlertRecord(resource_id=resource_id, type=status, severity=severity)
            history[resource_id] = record
        elif record.type != status:
            # New state: restart the grace period, keep the alert timestamps for cooldowns
            record.type = status
            record.ticks_in_state = 1
            record.threshold_crossed = False
            record.severity = severity
        else:
            record.ticks_in_state += 1
            record.severity = severity
        return record

    def check_nation(self, nation: Nation, now: datetime,
                     statuses: Mapping[str, ShortageStatus] | None = None) -> List[AlertDecision]:
        """
        Runs one tick of alert logic for `nation` and returns the decisions to emit.
        `statuses` defaults to a fresh analysis of the nation's ledger.
        """
        settings = self.settings_for(nation.id)
        if settings.muted or (settings.snoozed_until is not None and now < settings.snoozed_until):
            return []

        decisions: List[AlertDecision] = []
        pending: List[_Pending] = []

        if statuses is None:
            statuses = self.analyzer.analyze_nation(nation)

        for resource_id, status in statuses.items():
            record = self._track(nation.id, resource_id, status.status, status.severity)
            if status.status not in COOLDOWNS:
                continue
            if not self._should_alert(record, now):
                continue

            record.last_notified_at = now
            record.last_alert_type = record.type
            record.last_alert_severity = record.severity
            record.threshold_crossed = True

            if settings.group_notifications and record.type != CRITICAL:
                pending.append(_Pending(resource_id, record.type, record.severity))
            else:
                decisions.append(AlertDecision(
                    nation_id=nation.id,
                    alert_type=record.type,
                    resource_ids=(resource_id,),
                    severity=record.severity,
                    grouped=False,
                    decided_at=now,
                ))

        decisions.extend(self._group(nation.id, pending, now))
        if decisions:
            logger.debug("[Alerts] %s: %d alert(s) this tick", nation.id, len(decisions))
        return decisions

    @staticmethod
    def _group(nation_id: str, pending: List[_Pending], now: datetime) -> List[AlertDecision]:
        """One summary per type-class; a lone alert of its class goes out individually."""
        by_type: Dict[str, List[_Pending]] = {}
        for p in pending:
            by_type.setdefault(p.type, []).append(p)

        decisions = []
        for alert_type in (SHORTAGE, SURPLUS):
            items = by_type.get(alert_type, [])
            if not items:
                continue
            decisions.append(AlertDecision(
                nation_id=nation_id,
                alert_type=alert_type,
                resource_ids=tuple(p.resource_id for p in items),
                severity=max(p.severity for p in items),
                grouped=len(items) > 1,
                decided_at=now,
            ))
        return decisions
