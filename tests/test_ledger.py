import random

import pytest

from vaultledger.ledger import (
    MAX_AMOUNT,
    PER_OPERATION_WITHDRAWAL_LIMIT,
    UNIT,
    CapacityExceeded,
    InsufficientBalance,
    InvalidAmount,
    LimitExceeded,
    VaultLedger,
    ZeroAmount,
)


def _state(led: VaultLedger):
    return (
        led.snapshot().balances,
        led.get_held_assets(),
        led.get_total_deposits(),
        led.get_total_withdrawals(),
        len(led.events),
    )


def test_new_ledger_is_empty():
    led = VaultLedger(capacity=10)
    assert led.capacity == 10
    assert led.get_held_assets() == 0
    assert led.get_total_deposits() == 0
    assert led.get_total_withdrawals() == 0
    assert led.get_available_capacity() == 10
    assert led.get_balance("nobody") == 0


def test_scenarios_a_to_c():
    led = VaultLedger(capacity=10)
    # A
    assert led.deposit("X", 4) == 4
    assert led.get_balance("X") == 4
    assert led.get_held_assets() == 4
    assert led.get_total_deposits() == 1
    # B
    assert led.withdraw("X", 1) == 3
    assert led.get_balance("X") == 3
    assert led.get_held_assets() == 3
    assert led.get_total_withdrawals() == 1
    # C
    before = _state(led)
    with pytest.raises(InsufficientBalance) as ei:
        led.withdraw("X", 5)
    assert ei.value.requested == 5
    assert ei.value.available == 3
    assert _state(led) == before


def test_scenario_d_capacity_reports_pre_deposit_space():
    led = VaultLedger(capacity=10)
    led.deposit("X", 6)
    led.deposit("Z", 3)
    before = _state(led)
    with pytest.raises(CapacityExceeded) as ei:
        led.deposit("Y", 2)
    assert ei.value.attempted == 2
    assert ei.value.available == 1
    assert _state(led) == before
    assert led.get_balance("Y") == 0
    # retrying with the reported figure succeeds
    assert led.deposit("Y", ei.value.available) == 1
    assert led.get_available_capacity() == 0


def test_deposit_exactly_capacity_and_one_over():
    led = VaultLedger(capacity=10)
    with pytest.raises(CapacityExceeded) as ei:
        led.deposit("X", 11)
    assert ei.value.available == 10
    assert led.deposit("X", 10) == 10
    assert led.get_held_assets() == led.capacity


def test_zero_capacity_rejects_every_deposit():
    led = VaultLedger(capacity=0)
    with pytest.raises(CapacityExceeded) as ei:
        led.deposit("X", 1)
    assert ei.value.available == 0
    assert led.get_total_deposits() == 0


@pytest.mark.parametrize("capacity", [-1, 1.5, "10", True, None])
def test_invalid_capacity_rejected(capacity):
    with pytest.raises(ValueError):
        VaultLedger(capacity=capacity)


def test_zero_amounts_rejected_without_side_effects():
    led = VaultLedger(capacity=10)
    led.deposit("X", 2)
    before = _state(led)
    with pytest.raises(ZeroAmount) as ei:
        led.deposit("X", 0)
    assert ei.value.operation == "deposit"
    with pytest.raises(ZeroAmount) as ei:
        led.withdraw("X", 0)
    assert ei.value.operation == "withdraw"
    assert _state(led) == before


@pytest.mark.parametrize("amount", [-1, 1.0, True, "3"])
def test_non_integer_or_negative_amounts_rejected(amount):
    led = VaultLedger(capacity=10)
    led.deposit("X", 5)
    with pytest.raises(InvalidAmount):
        led.deposit("X", amount)
    with pytest.raises(InvalidAmount):
        led.withdraw("X", amount)
    assert led.get_balance("X") == 5


def test_empty_account_rejected():
    led = VaultLedger(capacity=10)
    with pytest.raises(ValueError):
        led.deposit("", 1)


def test_withdraw_exactly_limit_and_one_over():
    led = VaultLedger(capacity=5 * UNIT)
    led.deposit("X", 3 * UNIT)
    assert led.withdraw("X", PER_OPERATION_WITHDRAWAL_LIMIT) == 2 * UNIT
    before = _state(led)
    with pytest.raises(LimitExceeded) as ei:
        led.withdraw("X", PER_OPERATION_WITHDRAWAL_LIMIT + 1)
    assert ei.value.attempted == PER_OPERATION_WITHDRAWAL_LIMIT + 1
    assert ei.value.limit == PER_OPERATION_WITHDRAWAL_LIMIT
    assert _state(led) == before


def test_limit_checked_before_balance():
    led = VaultLedger(capacity=10 * UNIT)
    # no balance at all, but the limit error wins
    with pytest.raises(LimitExceeded):
        led.withdraw("X", 2 * UNIT)


def test_counters_only_count_successes():
    led = VaultLedger(capacity=100)
    ok_deposits = ok_withdrawals = 0
    calls = [
        ("deposit", "a", 40), ("deposit", "b", 70), ("deposit", "b", 50),
        ("withdraw", "a", 10), ("withdraw", "b", 60), ("withdraw", "c", 1),
        ("deposit", "c", 0), ("withdraw", "a", 30), ("deposit", "c", 20),
    ]
    for op, acct, amt in calls:
        try:
            getattr(led, op)(acct, amt)
        except ValueError:
            continue
        if op == "deposit":
            ok_deposits += 1
        else:
            ok_withdrawals += 1
        snap = led.snapshot()
        assert sum(snap.balances.values()) == snap.held_assets <= snap.capacity
    assert led.get_total_deposits() == ok_deposits == 3
    assert led.get_total_withdrawals() == ok_withdrawals == 2
    assert led.reconcile() == {"expected": 70, "recorded": 70, "delta": 0}


def test_reads_are_idempotent():
    led = VaultLedger(capacity=10)
    led.deposit("X", 7)
    assert led.get_balance("X") == led.get_balance("X") == 7
    assert led.snapshot() == led.snapshot()


def test_balance_persists_at_zero():
    led = VaultLedger(capacity=10)
    led.deposit("X", 1)
    led.withdraw("X", 1)
    assert "X" in led.snapshot().balances
    assert led.get_balance("X") == 0
    assert led.get_available_capacity() == 10


def test_notifications_carry_account_amount_and_balance():
    led = VaultLedger(capacity=10, name="notify")
    seen = []
    led.subscribe(seen.append)
    led.deposit("X", 4)
    led.withdraw("X", 1)
    with pytest.raises(InsufficientBalance):
        led.withdraw("X", 9)
    assert [e.event.event_type for e in led.events] == ["deposit", "withdrawal"]
    assert [e.sequence for e in led.events] == [1, 2]
    dep, wd = led.events
    assert (dep.event.account, dep.event.amount, dep.event.balance) == ("X", 4, 4)
    assert (wd.event.account, wd.event.amount, wd.event.balance) == ("X", 1, 3)
    assert dep.event.vault == "notify"
    assert seen == led.events


def test_listener_sees_committed_state():
    led = VaultLedger(capacity=10)
    observed = []
    led.subscribe(lambda env: observed.append((led.get_balance("X"), led.get_total_deposits())))
    led.deposit("X", 3)
    assert observed == [(3, 1)]


def test_broken_listener_does_not_undo_operation(caplog):
    led = VaultLedger(capacity=10)

    def _boom(env):
        raise RuntimeError("listener down")

    led.subscribe(_boom)
    assert led.deposit("X", 2) == 2
    assert led.get_held_assets() == 2
    assert any("listener failed" in r.message for r in caplog.records)


def test_notifications_reach_bus(monkeypatch):
    published = []
    monkeypatch.setattr("vaultledger.ledger.ledger.publish_event", published.append)
    led = VaultLedger(capacity=10)
    led.deposit("X", 2)
    led.withdraw("X", 2)
    assert [env.event.event_type for env in published] == ["deposit", "withdrawal"]


def test_rejection_logged_as_json(caplog):
    import json

    led = VaultLedger(capacity=3, name="logs")
    with caplog.at_level("WARNING"):
        with pytest.raises(CapacityExceeded):
            led.deposit("X", 4)
    payloads = [json.loads(r.message) for r in caplog.records if r.levelname == "WARNING"]
    assert payloads[-1]["event"] == "vault_operation_rejected"
    assert payloads[-1]["kind"] == "capacity_exceeded"
    assert payloads[-1]["attempted"] == 4
    assert payloads[-1]["available"] == 3


def test_error_to_dict_is_structured():
    err = InsufficientBalance(requested=5, available=3)
    assert err.to_dict() == {"kind": "insufficient_balance", "requested": 5, "available": 3}
    assert isinstance(err, ValueError)


def test_write_parquet(tmp_path):
    pd = pytest.importorskip("pandas")
    led = VaultLedger(capacity=10 * UNIT)
    led.deposit("X", 4 * UNIT)
    led.withdraw("X", UNIT)
    led.write_parquet(str(tmp_path))
    events = pd.read_parquet(tmp_path / "vault_events.parquet")
    balances = pd.read_parquet(tmp_path / "vault_balances.parquet")
    assert list(events["event_type"]) == ["deposit", "withdrawal"]
    assert list(events["balance"]) == [str(4 * UNIT), str(3 * UNIT)]
    assert balances.loc[0, "account"] == "X"
    assert int(balances.loc[0, "balance"]) == 3 * UNIT


def test_amount_above_uint256_rejected_without_side_effects():
    led = VaultLedger(capacity=MAX_AMOUNT)
    before = _state(led)
    with pytest.raises(InvalidAmount):
        led.deposit("X", 10**400)
    with pytest.raises(InvalidAmount):
        led.deposit("X", MAX_AMOUNT + 1)
    assert _state(led) == before
    assert led.get_balance("X") == 0


def test_capacity_above_uint256_rejected():
    with pytest.raises(ValueError):
        VaultLedger(capacity=MAX_AMOUNT + 1)


def test_deposit_of_max_amount_commits_once():
    led = VaultLedger(capacity=MAX_AMOUNT, name="max-amount")
    assert led.deposit("X", MAX_AMOUNT) == MAX_AMOUNT
    assert led.get_total_deposits() == 1
    assert len(led.events) == 1
    assert led.get_available_capacity() == 0


def test_random_sequences_keep_invariants():
    random.seed(1234)
    for _ in range(20):
        capacity = random.randint(0, 200)
        led = VaultLedger(capacity=capacity)
        ok_deposits = ok_withdrawals = 0
        for _ in range(60):
            op = random.choice(["deposit", "withdraw"])
            acct = random.choice(["a", "b", "c"])
            amt = random.randint(0, 60)
            try:
                getattr(led, op)(acct, amt)
            except ValueError:
                continue
            if op == "deposit":
                ok_deposits += 1
            else:
                ok_withdrawals += 1
            snap = led.snapshot()
            assert all(bal >= 0 for bal in snap.balances.values())
            assert sum(snap.balances.values()) == snap.held_assets <= snap.capacity
        assert led.get_total_deposits() == ok_deposits
        assert led.get_total_withdrawals() == ok_withdrawals
        assert led.reconcile()["delta"] == 0


def test_huge_amount_error_is_describable():
    led = VaultLedger(capacity=10)
    with pytest.raises(InvalidAmount) as ei:
        led.deposit("X", 10**5000)
    assert "bits" in str(ei.value)
    assert ei.value.to_dict()["kind"] == "invalid_amount"
