"""Days-since-payment alerts for credit customers.

Alerts are derived on read and never stored. ``classify`` accepts any object
exposing ``id``, ``name``, ``phone``, ``current_balance``,
``last_payment_date``, ``created_at`` and ``status``; a ``CreditCustomer``
row qualifies.
"""
from __future__ import annotations

import enum
import math
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, Optional

SECONDS_PER_DAY = 86400


class AlertLevel(str, enum.Enum):
    WARNING = "warning"
    CRITICAL = "critical"


@dataclass(frozen=True)
class AlertThresholds:
    """An alert is raised once the day count is strictly above a threshold."""

    warning_days: int = 14
    critical_days: int = 30

    def __post_init__(self):
        if self.warning_days < 0 or self.critical_days < self.warning_days:
            raise ValueError("Seuils d'alerte invalides.")


@dataclass(frozen=True)
class CreditAlert:
    id: str
    name: str
    phone: str
    current_balance: int
    last_payment_date: Optional[datetime]
    days_since_payment: int
    alert_level: AlertLevel
    status: str

    def as_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "phone": self.phone,
            "current_balance": self.current_balance,
            "last_payment_date": self.last_payment_date.isoformat() if self.last_payment_date else None,
            "days_since_payment": self.days_since_payment,
            "alert_level": self.alert_level.value,
            "status": self.status,
        }


def days_since(reference: datetime, now: datetime) -> int:
    """Whole days elapsed, any started day counting as one."""
    return math.ceil((now - reference).total_seconds() / SECONDS_PER_DAY)


def classify(customer, now: datetime, thresholds: Optional[AlertThresholds] = None) -> Optional[CreditAlert]:
    """Return the alert for *customer* at *now*, or ``None``.

    Customers who owe nothing never alert. The day count starts at the last
    payment, or at the customer's creation when they never paid.
    """
    thresholds = thresholds or AlertThresholds()
    if customer.current_balance <= 0:
        return None

    reference = customer.last_payment_date or customer.created_at
    days = days_since(reference, now)

    if days > thresholds.critical_days:
        level = AlertLevel.CRITICAL
    elif days > thresholds.warning_days:
        level = AlertLevel.WARNING
    else:
        return None

    status = getattr(customer.status, "value", customer.status)
    return CreditAlert(
        id=str(customer.id),
        name=customer.name,
        phone=customer.phone or "",
        current_balance=customer.current_balance,
        last_payment_date=customer.last_payment_date,
        days_since_payment=days,
        alert_level=level,
        status=str(status),
    )


def classify_many(customers: Iterable, now: datetime, thresholds: Optional[AlertThresholds] = None) -> list[CreditAlert]:
    """Alerts for *customers*, longest without payment first."""
    alerts = [alert for alert in (classify(c, now, thresholds) for c in customers) if alert]
    alerts.sort(key=lambda alert: alert.days_since_payment, reverse=True)
    return alerts
