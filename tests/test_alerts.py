from datetime import datetime, timedelta

from statecraft.engine.mechanics.alerts import AlertScheduler
from statecraft.engine.mechanics.shortages import (
    ShortageAnalyzer, ShortageStatus, CRITICAL, SHORTAGE, STABLE, SURPLUS,
)

START = datetime(2001, 1, 1)


def week(n):
    return START + timedelta(days=7 * n)


def make_scheduler(catalog):
    return AlertScheduler(ShortageAnalyzer(catalog))


def test_shortage_waits_one_tick_of_grace(catalog, make_nation):
    scheduler = make_scheduler(catalog)
    nation = make_nation("A", stock={"food": 40}, cons={"food": 10})  # severity 0.5

    assert scheduler.check_nation(nation, week(1)) == []
    (decision,) = scheduler.check_nation(nation, week(2))
    assert decision.alert_type == SHORTAGE
    assert decision.resource_ids == ("food",)
    assert not decision.grouped


def test_severe_critical_bypasses_grace(catalog, make_nation):
    scheduler = make_scheduler(catalog)
    nation = make_nation("A", stock={"food": 1}, cons={"food": 10})  # severity 0.95

    (decision,) = scheduler.check_nation(nation, week(1))
    assert decision.alert_type == CRITICAL
    assert decision.severity > 0.9


def test_low_severity_never_alerts(catalog, make_nation):
    scheduler = make_scheduler(catalog)
    nation = make_nation("A", stock={"food": 70}, cons={"food": 10})  # severity 0.125
    for n in range(1, 6):
        assert scheduler.check_nation(nation, week(n)) == []


def test_cooldown_and_renotify_on_large_change(catalog, make_nation):
    scheduler = make_scheduler(catalog)
    nation = make_nation("A", stock={"food": 50}, cons={"food": 10})  # severity 0.375

    assert scheduler.check_nation(nation, week(1)) == []
    assert len(scheduler.check_nation(nation, week(2))) == 1

    # Same state, same severity: silent
    assert scheduler.check_nation(nation, week(3)) == []
    assert scheduler.check_nation(nation, week(4)) == []

    # Worse but still a shortage (0.75); 21 days passed, escalated cooldown is 20
    nation.ledger.stockpiles["food"] = 20
    (decision,) = scheduler.check_nation(nation, week(5))
    assert decision.severity == 0.75

    # Back to 0.375: base cooldown, then the escalated one (ticks_in_state >= 5)
    nation.ledger.stockpiles["food"] = 50
    assert scheduler.check_nation(nation, week(6)) == []
    assert scheduler.check_nation(nation, week(7)) == []
    assert len(scheduler.check_nation(nation, week(8))) == 1


def test_state_change_restarts_grace(catalog, make_nation):
    scheduler = make_scheduler(catalog)
    nation = make_nation("A", stock={"food": 40}, cons={"food": 10})
    scheduler.check_nation(nation, week(1))
    assert len(scheduler.check_nation(nation, week(2))) == 1

    nation.ledger.stockpiles["food"] = 10  # critical, severity 0.5
    assert scheduler.check_nation(nation, week(3)) == []
    (decision,) = scheduler.check_nation(nation, week(4))
    assert decision.alert_type == CRITICAL
    assert scheduler.history_for("A")["food"].ticks_in_state == 2


def test_grouping(catalog, make_nation):
    scheduler = make_scheduler(catalog)
    nation = make_nation("A", stock={"food": 40, "water": 40}, cons={"food": 10, "water": 10})

    scheduler.check_nation(nation, week(1))
    (summary,) = scheduler.check_nation(nation, week(2))
    assert summary.grouped
    assert set(summary.resource_ids) == {"food", "water"}

    other = make_scheduler(catalog)
    assert other.toggle_grouping("A") is False
    other.check_nation(nation, week(1))
    decisions = other.check_nation(nation, week(2))
    assert len(decisions) == 2
    assert not any(d.grouped for d in decisions)


def test_mute_and_snooze(catalog, make_nation):
    scheduler = make_scheduler(catalog)
    nation = make_nation("A", stock={"food": 1}, cons={"food": 10})

    assert scheduler.toggle_mute("A") is True
    assert scheduler.check_nation(nation, week(1)) == []
    assert scheduler.toggle_mute("A") is False

    scheduler.snooze("A", week(1), timedelta(days=14))
    assert scheduler.check_nation(nation, week(2)) == []
    assert len(scheduler.check_nation(nation, week(3))) == 1


def test_clear_history_and_close(catalog, make_nation):
    scheduler = make_scheduler(catalog)
    nation = make_nation("A", stock={"food": 40}, cons={"food": 10})
    scheduler.check_nation(nation, week(1))
    assert scheduler.history_for("A")

    scheduler.clear_history("A")
    assert scheduler.history_for("A") == {}

    scheduler.check_nation(nation, week(2))
    scheduler.close()
    assert scheduler.history_for("A") == {}


def test_fork_is_independent_until_adopted(catalog, make_nation):
    scheduler = make_scheduler(catalog)
    nation = make_nation("A", stock={"food": 40}, cons={"food": 10})

    staged = scheduler.fork()
    staged.check_nation(nation, week(1))
    assert scheduler.history_for("A") == {}

    scheduler.adopt(staged)
    assert scheduler.history_for("A")["food"].ticks_in_state == 1


def day(n):
    return START + timedelta(days=n)


def oil(status, severity):
    return {"oil": ShortageStatus("oil", status, 5.0, 0.0, severity)}


def test_critical_cooldown_is_five_days(catalog, make_nation):
    scheduler = make_scheduler(catalog)
    nation = make_nation("A")

    (first,) = scheduler.check_nation(nation, day(0), oil(CRITICAL, 0.95))
    assert first.alert_type == CRITICAL

    # Leaving and re-entering critical inside the cooldown stays silent
    assert scheduler.check_nation(nation, day(1), oil(STABLE, 0.0)) == []
    assert scheduler.check_nation(nation, day(4), oil(CRITICAL, 0.95)) == []

    assert scheduler.check_nation(nation, day(5), oil(STABLE, 0.0)) == []
    (again,) = scheduler.check_nation(nation, day(6), oil(CRITICAL, 0.95))
    assert again.decided_at == day(6)


def test_surplus_cooldown_is_three_weeks(catalog, make_nation):
    scheduler = make_scheduler(catalog)
    nation = make_nation("A")

    assert scheduler.check_nation(nation, day(0), oil(SURPLUS, 0.5)) == []
    (first,) = scheduler.check_nation(nation, day(7), oil(SURPLUS, 0.5))
    assert first.alert_type == SURPLUS

    scheduler.check_nation(nation, day(8), oil(STABLE, 0.0))
    scheduler.check_nation(nation, day(9), oil(SURPLUS, 0.5))
    # past the grace period, but only 20 days since the last surplus alert
    assert scheduler.check_nation(nation, day(27), oil(SURPLUS, 0.5)) == []
    (again,) = scheduler.check_nation(nation, day(28), oil(SURPLUS, 0.5))
    assert again.alert_type == SURPLUS
    assert not again.grouped
