"""Credit ledger state machine.

``LedgerState`` is the financial state of one credit customer. Every
operation returns a ``LedgerResult`` holding the next state, or the
unchanged state together with a ``LedgerError`` when the domain rules reject
the operation. Only malformed input (wrong types, negative limits) raises.

After any accepted transaction::

    current_balance == total_credited - total_paid

The module does no I/O; ``credits.services`` loads the state from a locked
customer row, applies the operation and writes the result back.
"""
from __future__ import annotations

import enum
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Iterable, Optional, Sequence


class LedgerStatus(str, enum.Enum):
    ACTIVE = "active"
    FROZEN = "frozen"
    DISABLED = "disabled"


class TransactionKind(str, enum.Enum):
    CONSUMPTION = "consumption"
    PAYMENT = "payment"


class FreezePolicy(str, enum.Enum):
    FREEZE_FULL = "freeze_full"
    REDUCE_LIMIT = "reduce_limit"
    DISABLE = "disable"


class LedgerError(str, enum.Enum):
    CREDIT_LIMIT_EXCEEDED = "CreditLimitExceeded"
    OVERPAYMENT_REJECTED = "OverpaymentRejected"
    INVALID_TRANSACTION_AMOUNT = "InvalidTransactionAmount"
    INCONSISTENT_LINE_ITEMS = "InconsistentLineItems"
    INVALID_STATE_TRANSITION = "InvalidStateTransition"


def _require_int(value, label):
    if isinstance(value, bool) or not isinstance(value, int):
        raise TypeError(f"{label} doit etre un entier (FCFA), recu {value!r}.")
    return value


@dataclass(frozen=True)
class LineItem:
    product_name: str
    quantity: int
    unit_price: int
    subtotal: int
    product_id: Optional[str] = None

    @classmethod
    def of(cls, product_name, quantity, unit_price, product_id=None) -> "LineItem":
        return cls(
            product_name=product_name,
            quantity=quantity,
            unit_price=unit_price,
            subtotal=quantity * unit_price,
            product_id=product_id,
        )

    @property
    def is_consistent(self) -> bool:
        return (
            self.quantity > 0
            and self.unit_price >= 0
            and self.subtotal == self.quantity * self.unit_price
        )


@dataclass(frozen=True)
class LedgerTransaction:
    kind: TransactionKind
    amount: int
    transaction_date: datetime
    items: tuple[LineItem, ...] = ()


@dataclass(frozen=True)
class LedgerState:
    credit_limit: int = 0
    current_balance: int = 0
    total_credited: int = 0
    total_paid: int = 0
    status: LedgerStatus = LedgerStatus.ACTIVE
    last_payment_date: Optional[datetime] = None
    freeze_reason: str = ""
    frozen_at: Optional[datetime] = None
    # Limit in force when the customer was frozen, restored on unfreeze.
    limit_before_freeze: Optional[int] = None

    def __post_init__(self):
        _require_int(self.credit_limit, "Le plafond de credit")
        if self.credit_limit < 0:
            raise ValueError("Le plafond de credit ne peut pas etre negatif.")
        _require_int(self.current_balance, "Le solde")
        object.__setattr__(self, "status", LedgerStatus(self.status))

    @property
    def is_balanced(self) -> bool:
        return self.current_balance == self.total_credited - self.total_paid


@dataclass(frozen=True)
class LedgerResult:
    state: LedgerState
    error: Optional[LedgerError] = None
    failed_index: Optional[int] = None

    @property
    def ok(self) -> bool:
        return self.error is None


# ---------------------------------------------------------------------------
# Transactions
# ---------------------------------------------------------------------------

def _items_consistent(tx: LedgerTransaction) -> bool:
    if tx.kind is TransactionKind.PAYMENT:
        return not tx.items
    if not tx.items:
        return True
    if not all(item.is_consistent for item in tx.items):
        return False
    return sum(item.subtotal for item in tx.items) == tx.amount


def apply_transaction(state: LedgerState, tx: LedgerTransaction) -> LedgerResult:
    """Apply one consumption or payment to *state*.

    Checks run in a fixed order: amount, line items, then the limit (for a
    consumption) or the balance (for a payment). A rejected transaction
    leaves the state untouched. Payments are accepted whatever the status.
    """
    kind = TransactionKind(tx.kind)
    _require_int(tx.amount, "Le montant")

    if tx.amount <= 0:
        return LedgerResult(state, LedgerError.INVALID_TRANSACTION_AMOUNT)
    if not _items_consistent(tx):
        return LedgerResult(state, LedgerError.INCONSISTENT_LINE_ITEMS)

    if kind is TransactionKind.CONSUMPTION:
        if state.status is not LedgerStatus.ACTIVE:
            return LedgerResult(state, LedgerError.CREDIT_LIMIT_EXCEEDED)
        new_balance = state.current_balance + tx.amount
        if state.credit_limit > 0 and new_balance > state.credit_limit:
            return LedgerResult(state, LedgerError.CREDIT_LIMIT_EXCEEDED)
        return LedgerResult(
            replace(
                state,
                current_balance=new_balance,
                total_credited=state.total_credited + tx.amount,
            )
        )

    if tx.amount > state.current_balance:
        return LedgerResult(state, LedgerError.OVERPAYMENT_REJECTED)
    # A backdated payment never moves the last payment date backwards.
    last_payment_date = tx.transaction_date
    if state.last_payment_date is not None and state.last_payment_date > last_payment_date:
        last_payment_date = state.last_payment_date
    return LedgerResult(
        replace(
            state,
            current_balance=state.current_balance - tx.amount,
            total_paid=state.total_paid + tx.amount,
            last_payment_date=last_payment_date,
        )
    )


def replay(initial: LedgerState, transactions: Iterable[LedgerTransaction]) -> LedgerResult:
    """Fold *transactions* over *initial*, stopping at the first rejection.

    On failure the result carries the state reached before the rejected
    transaction and its position in the sequence.
    """
    state = initial
    for index, tx in enumerate(transactions):
        result = apply_transaction(state, tx)
        if not result.ok:
            return LedgerResult(state, result.error, failed_index=index)
        state = result.state
    return LedgerResult(state)


# ---------------------------------------------------------------------------
# Status transitions
# ---------------------------------------------------------------------------

def freeze(
    state: LedgerState,
    policy: FreezePolicy,
    new_limit: Optional[int] = None,
    reason: str = "",
    at: Optional[datetime] = None,
) -> LedgerResult:
    """Restrict a customer's credit.

    ``freeze_full`` caps the limit at the current balance, ``reduce_limit``
    sets it to *new_limit* (0 when omitted) and ``disable`` turns the
    customer off. Freezing requires an active customer; disabling accepts a
    frozen one too. The limit in force before the freeze is kept in
    ``limit_before_freeze`` so that ``unfreeze`` can restore it.
    """
    policy = FreezePolicy(policy)

    if policy is FreezePolicy.DISABLE:
        if state.status not in (LedgerStatus.ACTIVE, LedgerStatus.FROZEN):
            return LedgerResult(state, LedgerError.INVALID_STATE_TRANSITION)
        return LedgerResult(
            replace(state, status=LedgerStatus.DISABLED, freeze_reason=reason or "", frozen_at=at)
        )

    if state.status is not LedgerStatus.ACTIVE:
        return LedgerResult(state, LedgerError.INVALID_STATE_TRANSITION)

    if policy is FreezePolicy.FREEZE_FULL:
        limit = max(state.current_balance, 0)
    else:
        limit = _require_int(new_limit if new_limit is not None else 0, "Le nouveau plafond")
        if limit < 0:
            raise ValueError("Le nouveau plafond ne peut pas etre negatif.")

    return LedgerResult(
        replace(
            state,
            credit_limit=limit,
            status=LedgerStatus.FROZEN,
            freeze_reason=reason or "",
            frozen_at=at,
            limit_before_freeze=state.credit_limit,
        )
    )


def disable(state: LedgerState, reason: str = "", at: Optional[datetime] = None) -> LedgerResult:
    return freeze(state, FreezePolicy.DISABLE, reason=reason, at=at)


def _restore(state: LedgerState, expected: LedgerStatus, new_limit: Optional[int]) -> LedgerResult:
    if state.status is not expected:
        return LedgerResult(state, LedgerError.INVALID_STATE_TRANSITION)
    if new_limit is not None:
        limit = _require_int(new_limit, "Le nouveau plafond")
        if limit < 0:
            raise ValueError("Le nouveau plafond ne peut pas etre negatif.")
    elif state.limit_before_freeze is not None:
        limit = state.limit_before_freeze
    else:
        limit = state.credit_limit
    return LedgerResult(
        replace(
            state,
            credit_limit=limit,
            status=LedgerStatus.ACTIVE,
            freeze_reason="",
            frozen_at=None,
            limit_before_freeze=None,
        )
    )


def unfreeze(state: LedgerState, new_limit: Optional[int] = None) -> LedgerResult:
    """Frozen -> active with *new_limit*, or the limit held before the freeze.

    A *new_limit* of 0 means unlimited.
    """
    return _restore(state, LedgerStatus.FROZEN, new_limit)


def reactivate(state: LedgerState, new_limit: Optional[int] = None) -> LedgerResult:
    """Disabled -> active. Administrative action."""
    return _restore(state, LedgerStatus.DISABLED, new_limit)


def consumption(amount: int, transaction_date: datetime, items: Sequence[LineItem] = ()) -> LedgerTransaction:
    return LedgerTransaction(TransactionKind.CONSUMPTION, amount, transaction_date, tuple(items))


def payment(amount: int, transaction_date: datetime) -> LedgerTransaction:
    return LedgerTransaction(TransactionKind.PAYMENT, amount, transaction_date)
