"""Business logic / service functions for the credits app.

All balance-modifying operations use ``select_for_update()`` to prevent
race conditions when multiple requests touch the same customer concurrently.
The rules themselves live in ``credits.ledger``; a rejected operation raises
``CreditOperationError`` before anything is written.
"""
import logging
from dataclasses import replace
from typing import Optional

from django.conf import settings
from django.db import transaction
from django.utils import timezone

from . import ledger
from .alerts import AlertThresholds, CreditAlert, classify_many
from .ledger import FreezePolicy, LedgerError, LedgerState, LedgerStatus, LineItem
from .models import CreditCustomer, CreditTransaction, CreditTransactionItem

logger = logging.getLogger("ravito")

_LEDGER_FIELDS = [
    "credit_limit",
    "current_balance",
    "total_credited",
    "total_paid",
    "status",
    "last_payment_date",
    "freeze_reason",
    "frozen_at",
    "limit_before_freeze",
]

ERROR_MESSAGES = {
    LedgerError.CREDIT_LIMIT_EXCEEDED: "Le plafond de credit du client serait depasse.",
    LedgerError.OVERPAYMENT_REJECTED: "Le montant rembourse ne peut pas depasser le solde du credit.",
    LedgerError.INVALID_TRANSACTION_AMOUNT: "Le montant doit etre strictement positif.",
    LedgerError.INCONSISTENT_LINE_ITEMS: "Les lignes de consommation ne correspondent pas au montant.",
    LedgerError.INVALID_STATE_TRANSITION: "Operation impossible dans le statut actuel du client.",
}

ERROR_CODES = {
    LedgerError.CREDIT_LIMIT_EXCEEDED: "credit_limit_exceeded",
    LedgerError.OVERPAYMENT_REJECTED: "overpayment_rejected",
    LedgerError.INVALID_TRANSACTION_AMOUNT: "invalid_transaction_amount",
    LedgerError.INCONSISTENT_LINE_ITEMS: "inconsistent_line_items",
    LedgerError.INVALID_STATE_TRANSITION: "invalid_state_transition",
}


class CreditOperationError(ValueError):
    """A ledger rule rejected the operation. Nothing was persisted."""

    def __init__(self, error: LedgerError, message: Optional[str] = None):
        self.error = error
        self.code = ERROR_CODES[error]
        super().__init__(message or ERROR_MESSAGES[error])


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _state_of(customer: CreditCustomer) -> LedgerState:
    return LedgerState(
        credit_limit=customer.credit_limit,
        current_balance=customer.current_balance,
        total_credited=customer.total_credited,
        total_paid=customer.total_paid,
        status=LedgerStatus(customer.status),
        last_payment_date=customer.last_payment_date,
        freeze_reason=customer.freeze_reason,
        frozen_at=customer.frozen_at,
        limit_before_freeze=customer.limit_before_freeze,
    )


def _apply_state(customer: CreditCustomer, state: LedgerState) -> None:
    customer.credit_limit = state.credit_limit
    customer.current_balance = state.current_balance
    customer.total_credited = state.total_credited
    customer.total_paid = state.total_paid
    customer.status = state.status.value
    customer.last_payment_date = state.last_payment_date
    customer.freeze_reason = state.freeze_reason
    customer.frozen_at = state.frozen_at
    customer.limit_before_freeze = state.limit_before_freeze


def _lock(customer) -> CreditCustomer:
    locked = CreditCustomer.objects.select_for_update().get(pk=customer.pk)
    if not locked.is_active:
        raise CreditOperationError(
            LedgerError.INVALID_STATE_TRANSITION,
            "Ce client a ete supprime du carnet.",
        )
    return locked


def _commit(caller_instance, locked, result: ledger.LedgerResult, operation: str, message=None):
    if not result.ok:
        logger.warning(
            "Operation %s refusee pour le client %s: %s",
            operation,
            locked.pk,
            result.error.value,
        )
        raise CreditOperationError(result.error, message)
    _apply_state(locked, result.state)
    locked.save(update_fields=[*_LEDGER_FIELDS, "updated_at"])
    if caller_instance is not None and caller_instance is not locked:
        _apply_state(caller_instance, result.state)
    return locked


def alert_thresholds() -> AlertThresholds:
    return AlertThresholds(
        warning_days=getattr(settings, "CREDIT_ALERT_WARNING_DAYS", 14),
        critical_days=getattr(settings, "CREDIT_ALERT_CRITICAL_DAYS", 30),
    )


# ---------------------------------------------------------------------------
# Customers
# ---------------------------------------------------------------------------

def fetch_customer(customer_id, organization=None) -> CreditCustomer:
    """Return an active (not deleted) customer; raises ``DoesNotExist``."""
    qs = CreditCustomer.objects.filter(is_active=True)
    if organization is not None:
        qs = qs.filter(organization=organization)
    return qs.get(pk=customer_id)


def create_customer(organization, name, phone="", address="", notes="", credit_limit=0) -> CreditCustomer:
    if not name or not str(name).strip():
        raise ValueError("Le nom du client est obligatoire.")
    if credit_limit is None or credit_limit < 0:
        raise ValueError("Le plafond de credit ne peut pas etre negatif.")
    customer = CreditCustomer.objects.create(
        organization=organization,
        name=str(name).strip(),
        phone=phone or "",
        address=address or "",
        notes=notes or "",
        credit_limit=credit_limit,
    )
    logger.info("Client credit cree: %s (%s).", customer.name, organization)
    return customer


CUSTOMER_INFO_FIELDS = {"name", "phone", "address", "notes", "credit_limit"}


@transaction.atomic
def update_customer_info(customer, **patch) -> CreditCustomer:
    """Update descriptive fields; balances and status are not patchable."""
    unknown = set(patch) - CUSTOMER_INFO_FIELDS
    if unknown:
        raise ValueError(f"Champs non modifiables: {', '.join(sorted(unknown))}")
    if "name" in patch and not str(patch["name"] or "").strip():
        raise ValueError("Le nom du client est obligatoire.")
    if "credit_limit" in patch and (patch["credit_limit"] is None or patch["credit_limit"] < 0):
        raise ValueError("Le plafond de credit ne peut pas etre negatif.")

    locked = _lock(customer)
    for name, value in patch.items():
        setattr(locked, name, value if value is not None else "")
    locked.save(update_fields=[*patch.keys(), "updated_at"])
    return locked


@transaction.atomic
def delete_customer(customer, actor=None) -> CreditCustomer:
    """Soft delete: the customer and their history stay in the database."""
    locked = _lock(customer)
    locked.is_active = False
    locked.save(update_fields=["is_active", "updated_at"])
    logger.info("Client credit %s supprime par %s (solde %s).", locked.pk, actor, locked.current_balance)
    return locked


# ---------------------------------------------------------------------------
# record_consumption
# ---------------------------------------------------------------------------

def _build_items(items) -> list[LineItem]:
    built = []
    for raw in items or ():
        if isinstance(raw, LineItem):
            built.append(raw)
            continue
        product = raw.get("product")
        quantity = int(raw["quantity"])
        unit_price = int(raw["unit_price"])
        name = raw.get("product_name") or (product.name if product is not None else "")
        if not name:
            raise ValueError("Chaque ligne doit indiquer un produit.")
        subtotal = raw.get("subtotal")
        built.append(
            LineItem(
                product_name=name,
                quantity=quantity,
                unit_price=unit_price,
                subtotal=int(subtotal) if subtotal is not None else quantity * unit_price,
                product_id=str(product.pk) if product is not None else raw.get("product_id"),
            )
        )
    return built


@transaction.atomic
def record_consumption(
    customer,
    amount=None,
    items=None,
    actor=None,
    notes="",
    transaction_date=None,
) -> CreditTransaction:
    """Record products taken on credit: increases the customer's balance.

    Parameters
    ----------
    customer : CreditCustomer
        The customer consuming on credit.
    amount : int, optional
        Total in FCFA. Defaults to the sum of the item subtotals.
    items : list[dict | LineItem], optional
        Lines with ``product`` or ``product_name``, ``quantity`` and
        ``unit_price`` (``subtotal`` defaults to their product).
    actor : User
        The user recording this transaction.

    Returns
    -------
    CreditTransaction
        The newly created, immutable transaction.
    """
    line_items = _build_items(items)
    if amount is None:
        amount = sum(item.subtotal for item in line_items)
    transaction_date = transaction_date or timezone.now()

    locked = _lock(customer)
    state = _state_of(locked)
    result = ledger.apply_transaction(
        state,
        ledger.consumption(int(amount), transaction_date, line_items),
    )
    message = None
    if result.error is LedgerError.CREDIT_LIMIT_EXCEEDED and state.status is not LedgerStatus.ACTIVE:
        message = "Le credit de ce client est gele ou desactive."
    _commit(customer, locked, result, "consommation", message)

    entry = CreditTransaction.objects.create(
        organization_id=locked.organization_id,
        customer=locked,
        transaction_type=CreditTransaction.TransactionType.CONSUMPTION,
        amount=int(amount),
        notes=notes or "",
        transaction_date=transaction_date,
        balance_after=locked.current_balance,
        created_by=actor,
    )
    CreditTransactionItem.objects.bulk_create([
        CreditTransactionItem(
            transaction=entry,
            product_id=item.product_id,
            product_name=item.product_name,
            quantity=item.quantity,
            unit_price=item.unit_price,
            subtotal=item.subtotal,
        )
        for item in line_items
    ])
    logger.info(
        "Consommation de %s FCFA enregistree pour %s (solde %s).",
        amount,
        locked.name,
        locked.current_balance,
    )
    return entry


# ---------------------------------------------------------------------------
# record_payment
# ---------------------------------------------------------------------------

@transaction.atomic
def record_payment(
    customer,
    amount,
    payment_method=CreditTransaction.PaymentMethod.CASH,
    actor=None,
    notes="",
    transaction_date=None,
) -> CreditTransaction:
    """Record a repayment: decreases the balance, accepted in any status.

    Parameters
    ----------
    customer : CreditCustomer
        The customer repaying.
    amount : int
        Amount in FCFA; may not exceed the current balance.
    payment_method : str
        ``cash``, ``mobile_money`` or ``transfer``.
    actor : User
        The user recording this transaction.

    Returns
    -------
    CreditTransaction
        The newly created, immutable transaction.
    """
    if payment_method not in CreditTransaction.PaymentMethod.values:
        raise ValueError(f"Moyen de paiement inconnu: {payment_method}")
    transaction_date = transaction_date or timezone.now()

    locked = _lock(customer)
    result = ledger.apply_transaction(
        _state_of(locked),
        ledger.payment(int(amount), transaction_date),
    )
    _commit(customer, locked, result, "paiement")

    entry = CreditTransaction.objects.create(
        organization_id=locked.organization_id,
        customer=locked,
        transaction_type=CreditTransaction.TransactionType.PAYMENT,
        amount=int(amount),
        payment_method=payment_method,
        notes=notes or "",
        transaction_date=transaction_date,
        balance_after=locked.current_balance,
        created_by=actor,
    )
    logger.info(
        "Paiement de %s FCFA (%s) enregistre pour %s (solde %s).",
        amount,
        payment_method,
        locked.name,
        locked.current_balance,
    )
    return entry


# ---------------------------------------------------------------------------
# Status transitions
# ---------------------------------------------------------------------------

@transaction.atomic
def freeze_customer(customer, policy, new_limit=None, reason="", actor=None) -> CreditCustomer:
    locked = _lock(customer)
    result = ledger.freeze(
        _state_of(locked),
        FreezePolicy(policy),
        new_limit=new_limit,
        reason=reason,
        at=timezone.now(),
    )
    _commit(customer, locked, result, "gel")
    logger.info(
        "Client %s gele (%s, plafond %s) par %s: %s",
        locked.pk,
        policy,
        locked.credit_limit,
        actor,
        reason or "-",
    )
    return locked


@transaction.atomic
def disable_customer(customer, reason="", actor=None) -> CreditCustomer:
    locked = _lock(customer)
    result = ledger.disable(_state_of(locked), reason=reason, at=timezone.now())
    _commit(customer, locked, result, "desactivation")
    logger.info("Client %s desactive par %s.", locked.pk, actor)
    return locked


@transaction.atomic
def unfreeze_customer(customer, new_limit=None, actor=None) -> CreditCustomer:
    locked = _lock(customer)
    result = ledger.unfreeze(_state_of(locked), new_limit=new_limit)
    _commit(customer, locked, result, "degel")
    logger.info("Client %s degele par %s (plafond %s).", locked.pk, actor, locked.credit_limit)
    return locked


@transaction.atomic
def reactivate_customer(customer, new_limit=None, actor=None) -> CreditCustomer:
    locked = _lock(customer)
    result = ledger.reactivate(_state_of(locked), new_limit=new_limit)
    _commit(customer, locked, result, "reactivation")
    logger.info("Client %s reactive par %s.", locked.pk, actor)
    return locked


# ---------------------------------------------------------------------------
# Alerts
# ---------------------------------------------------------------------------

def get_credit_alerts(organization, now=None) -> list[CreditAlert]:
    """Current alerts of an organization's carnet, most overdue first."""
    customers = CreditCustomer.objects.filter(
        organization=organization,
        is_active=True,
        current_balance__gt=0,
    )
    return classify_many(customers, now or timezone.now(), alert_thresholds())


def rebuild_state(customer) -> LedgerState:
    """Replay the stored transactions of *customer* from an empty carnet.

    Used to audit that the stored balance matches the transaction log.
    Transactions are replayed in the order they were recorded: a backdated
    ``transaction_date`` does not move an entry ahead of the ones it settles.
    """
    transactions = [
        ledger.LedgerTransaction(
            kind=ledger.TransactionKind(tx.transaction_type),
            amount=tx.amount,
            transaction_date=tx.transaction_date,
        )
        for tx in customer.transactions.order_by("created_at")
    ]
    result = ledger.replay(LedgerState(), transactions)
    if not result.ok:
        raise CreditOperationError(result.error)
    return replace(result.state, credit_limit=customer.credit_limit)
