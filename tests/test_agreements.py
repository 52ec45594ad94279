import threading
from datetime import datetime

from statecraft.engine.mechanics.agreements import (
    AgreementExecutor, PairLocks, EMBARGO, INSUFFICIENT, NOT_ACTIVE, MISSING_NATION,
)
from statecraft.shared.records import (
    TradeAgreement, TradeTerms, AGREEMENT_ACTIVE, AGREEMENT_SUSPENDED, AGREEMENT_CANCELLED,
)


def make_agreement(duration=4, status=AGREEMENT_ACTIVE):
    return TradeAgreement(
        id="agreement_test",
        nations=("A", "B"),
        terms={
            "A": TradeTerms(exports={"food": 10.0}, imports={"oil": 5.0}),
            "B": TradeTerms(exports={"oil": 5.0}, imports={"food": 10.0}),
        },
        duration=duration,
        value=5000.0,
        start_date=datetime(2001, 1, 1),
        status=status,
    )


def test_successful_exchange(make_nation):
    nations = {
        "A": make_nation("A", stock={"food": 100.0, "oil": 1.0}),
        "B": make_nation("B", stock={"oil": 50.0}),
    }
    result = AgreementExecutor().settle(make_agreement(), nations)

    assert result.success
    assert nations["A"].ledger.stockpiles == {"food": 90.0, "oil": 6.0}
    assert nations["B"].ledger.stockpiles == {"oil": 45.0, "food": 10.0}


def test_execute_does_not_mutate(make_nation):
    nations = {
        "A": make_nation("A", stock={"food": 100.0}),
        "B": make_nation("B", stock={"oil": 50.0}),
    }
    result = AgreementExecutor().execute(make_agreement(), nations)
    assert result.success
    assert result.updates["A"]["food"] == 90.0
    assert nations["A"].ledger.stockpiles == {"food": 100.0}


def test_embargo_in_either_direction_blocks(make_nation):
    for a_embargoes, b_embargoes in ((["B"], []), ([], ["A"])):
        nations = {
            "A": make_nation("A", stock={"food": 100.0}, embargoes=a_embargoes),
            "B": make_nation("B", stock={"oil": 50.0}, embargoes=b_embargoes),
        }
        result = AgreementExecutor().settle(make_agreement(), nations)
        assert not result.success
        assert result.reason == EMBARGO
        assert nations["A"].ledger.stockpiles == {"food": 100.0}
        assert nations["B"].ledger.stockpiles == {"oil": 50.0}


def test_insufficient_stock_is_all_or_nothing(make_nation):
    nations = {
        "A": make_nation("A", stock={"food": 100.0}),
        "B": make_nation("B", stock={"oil": 2.0}),
    }
    result = AgreementExecutor().settle(make_agreement(), nations)

    assert not result.success
    assert result.reason == INSUFFICIENT
    assert result.missing == {"B": {"oil": 3.0}}
    # A's side was feasible but must not have been applied either
    assert nations["A"].ledger.stockpiles == {"food": 100.0}
    assert nations["B"].ledger.stockpiles == {"oil": 2.0}


def test_missing_nation_and_inactive(make_nation):
    executor = AgreementExecutor()
    assert executor.execute(make_agreement(), {"A": make_nation("A")}).reason == MISSING_NATION
    suspended = make_agreement(status=AGREEMENT_SUSPENDED)
    assert executor.execute(suspended, {}).reason == NOT_ACTIVE


def test_suspension_and_resume(make_nation):
    executor = AgreementExecutor()
    agreement = make_agreement()
    nations = {"A": make_nation("A", embargoes=["B"]), "B": make_nation("B")}

    assert executor.resolve_status(agreement, nations) == AGREEMENT_SUSPENDED
    assert agreement.status == AGREEMENT_SUSPENDED
    assert executor.resolve_status(agreement, nations) is None

    nations["A"].diplomacy.embargoes.clear()
    assert executor.resolve_status(agreement, nations) == AGREEMENT_ACTIVE
    assert agreement.status == AGREEMENT_ACTIVE


def test_agreement_expires_after_duration():
    agreement = make_agreement(duration=3)
    assert [AgreementExecutor.advance(agreement) for _ in range(3)] == [False, False, True]
    assert agreement.status == AGREEMENT_CANCELLED
    assert agreement.duration == 0
    assert AgreementExecutor.advance(agreement) is False


def test_settlement_order_is_deterministic():
    first, second = make_agreement(), make_agreement()
    second.id = "agreement_other"
    second.nations = ("B", "A")
    ordered = AgreementExecutor.settlement_order([first, second])
    assert [a.id for a in ordered] == ["agreement_other", "agreement_test"]


def test_pair_locks_do_not_deadlock_on_reversed_pairs():
    locks = PairLocks()
    done = []

    def worker(a, b):
        for _ in range(200):
            with locks.hold(a, b):
                pass
        done.append((a, b))

    threads = [threading.Thread(target=worker, args=pair) for pair in (("A", "B"), ("B", "A"))]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=5)
    assert len(done) == 2
