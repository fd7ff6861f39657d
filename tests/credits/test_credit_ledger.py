from datetime import datetime, timedelta, timezone

import pytest

from credits import ledger
from credits.ledger import (
    FreezePolicy,
    LedgerError,
    LedgerState,
    LedgerStatus,
    LineItem,
)

NOW = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)


def _apply(state, kind, amount, items=()):
    if kind == "consumption":
        return ledger.apply_transaction(state, ledger.consumption(amount, NOW, items))
    return ledger.apply_transaction(state, ledger.payment(amount, NOW))


class TestApplyTransaction:
    def test_consumption_increases_balance(self):
        result = _apply(LedgerState(credit_limit=10000), "consumption", 4000)

        assert result.ok
        assert result.state.current_balance == 4000
        assert result.state.total_credited == 4000
        assert result.state.is_balanced

    def test_payment_decreases_balance_and_dates_it(self):
        state = _apply(LedgerState(), "consumption", 5000).state
        result = _apply(state, "payment", 2000)

        assert result.state.current_balance == 3000
        assert result.state.total_paid == 2000
        assert result.state.last_payment_date == NOW

    def test_overpayment_boundary(self):
        state = _apply(LedgerState(), "consumption", 5000).state

        exact = _apply(state, "payment", 5000)
        assert exact.ok
        assert exact.state.current_balance == 0

        over = _apply(state, "payment", 5001)
        assert over.error is LedgerError.OVERPAYMENT_REJECTED
        assert over.state == state

    def test_backdated_payment_keeps_latest_payment_date(self):
        state = _apply(LedgerState(), "consumption", 5000).state
        state = _apply(state, "payment", 100).state

        result = ledger.apply_transaction(state, ledger.payment(100, NOW - timedelta(days=35)))

        assert result.ok
        assert result.state.current_balance == 4800
        assert result.state.last_payment_date == NOW

    def test_limit_enforcement(self):
        state = LedgerState(credit_limit=10000, current_balance=8000, total_credited=8000)

        assert _apply(state, "consumption", 2000).ok
        rejected = _apply(state, "consumption", 2001)
        assert rejected.error is LedgerError.CREDIT_LIMIT_EXCEEDED
        assert rejected.state == state

    def test_zero_limit_means_unlimited(self):
        result = _apply(LedgerState(credit_limit=0), "consumption", 10_000_000)
        assert result.ok

    def test_non_positive_amount(self):
        for amount in (0, -100):
            assert _apply(LedgerState(), "consumption", amount).error is LedgerError.INVALID_TRANSACTION_AMOUNT
            assert _apply(LedgerState(), "payment", amount).error is LedgerError.INVALID_TRANSACTION_AMOUNT

    def test_line_items_must_add_up(self):
        items = [LineItem.of("Flag 65cl", 2, 500), LineItem.of("Coca 33cl", 1, 400)]

        assert _apply(LedgerState(), "consumption", 1400, items).ok
        wrong_total = _apply(LedgerState(), "consumption", 1500, items)
        assert wrong_total.error is LedgerError.INCONSISTENT_LINE_ITEMS

        bad_line = [LineItem("Flag 65cl", 2, 500, subtotal=900)]
        assert _apply(LedgerState(), "consumption", 900, bad_line).error is LedgerError.INCONSISTENT_LINE_ITEMS

    def test_frozen_customer_cannot_consume_but_can_pay(self):
        state = LedgerState(current_balance=3000, total_credited=3000, status=LedgerStatus.FROZEN)

        assert _apply(state, "consumption", 100).error is LedgerError.CREDIT_LIMIT_EXCEEDED
        assert _apply(state, "payment", 1000).ok

    def test_float_amounts_rejected(self):
        with pytest.raises(TypeError):
            _apply(LedgerState(), "consumption", 100.5)

    def test_negative_limit_rejected(self):
        with pytest.raises(ValueError):
            LedgerState(credit_limit=-1)


class TestReplay:
    def test_balance_invariant_holds_after_every_step(self):
        txs = [
            ledger.consumption(5000, NOW),
            ledger.payment(2000, NOW),
            ledger.consumption(700, NOW),
            ledger.payment(3700, NOW),
        ]
        state = LedgerState()
        for tx in txs:
            state = ledger.apply_transaction(state, tx).state
            assert state.is_balanced

        result = ledger.replay(LedgerState(), txs)
        assert result.ok
        assert result.state == state
        assert result.state.current_balance == 0

    def test_stops_at_first_rejection(self):
        txs = [
            ledger.consumption(1000, NOW),
            ledger.payment(1500, NOW),
            ledger.consumption(200, NOW),
        ]
        result = ledger.replay(LedgerState(), txs)

        assert result.error is LedgerError.OVERPAYMENT_REJECTED
        assert result.failed_index == 1
        assert result.state.current_balance == 1000


class TestStatusTransitions:
    def test_freeze_full_caps_limit_at_balance(self):
        state = LedgerState(credit_limit=50000, current_balance=12000, total_credited=12000)
        result = ledger.freeze(state, FreezePolicy.FREEZE_FULL, reason="Retards", at=NOW)

        assert result.state.status is LedgerStatus.FROZEN
        assert result.state.credit_limit == 12000
        assert result.state.freeze_reason == "Retards"
        assert result.state.frozen_at == NOW
        assert _apply(result.state, "consumption", 1).error is LedgerError.CREDIT_LIMIT_EXCEEDED

    def test_reduce_limit(self):
        result = ledger.freeze(LedgerState(credit_limit=50000), FreezePolicy.REDUCE_LIMIT, new_limit=20000)
        assert result.state.credit_limit == 20000
        assert result.state.status is LedgerStatus.FROZEN

    def test_reduce_limit_rejects_negative(self):
        with pytest.raises(ValueError):
            ledger.freeze(LedgerState(), FreezePolicy.REDUCE_LIMIT, new_limit=-5)

    def test_disable_from_frozen(self):
        frozen = ledger.freeze(LedgerState(), FreezePolicy.FREEZE_FULL).state
        result = ledger.disable(frozen, reason="Depart")
        assert result.state.status is LedgerStatus.DISABLED

    def test_cannot_freeze_twice(self):
        frozen = ledger.freeze(LedgerState(), FreezePolicy.FREEZE_FULL).state
        assert ledger.freeze(frozen, FreezePolicy.FREEZE_FULL).error is LedgerError.INVALID_STATE_TRANSITION

    def test_unfreeze_and_reactivate(self):
        frozen = ledger.freeze(LedgerState(credit_limit=50000), FreezePolicy.FREEZE_FULL, reason="x").state
        active = ledger.unfreeze(frozen, new_limit=30000).state
        assert active.status is LedgerStatus.ACTIVE
        assert active.credit_limit == 30000
        assert active.freeze_reason == ""
        assert active.frozen_at is None

        assert ledger.reactivate(active).error is LedgerError.INVALID_STATE_TRANSITION
        disabled = ledger.disable(active).state
        assert ledger.unfreeze(disabled).error is LedgerError.INVALID_STATE_TRANSITION
        assert ledger.reactivate(disabled).state.status is LedgerStatus.ACTIVE

    def test_unfreeze_restores_limit_after_freeze_at_zero_balance(self):
        frozen = ledger.freeze(LedgerState(credit_limit=5000), FreezePolicy.FREEZE_FULL).state
        assert frozen.credit_limit == 0
        assert frozen.limit_before_freeze == 5000

        active = ledger.unfreeze(frozen).state
        assert active.credit_limit == 5000
        assert active.limit_before_freeze is None
        assert _apply(active, "consumption", 1_000_000).error is LedgerError.CREDIT_LIMIT_EXCEEDED

    def test_reactivate_after_freeze_then_disable_restores_limit(self):
        state = LedgerState(credit_limit=20000, current_balance=3000, total_credited=3000)
        frozen = ledger.freeze(state, FreezePolicy.REDUCE_LIMIT, new_limit=5000).state
        disabled = ledger.disable(frozen).state

        assert ledger.reactivate(disabled).state.credit_limit == 20000
