"""Carnet statistics: outstanding credit, monthly and annual recovery."""
from __future__ import annotations

from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal

from django.conf import settings
from django.db.models import Count, Q, Sum
from django.db.models.functions import ExtractMonth
from django.utils import timezone

from .alerts import classify, days_since
from .models import CreditCustomer, CreditTransaction
from .services import alert_thresholds, get_credit_alerts

MONTH_NAMES = [
    "Janvier", "Fevrier", "Mars", "Avril", "Mai", "Juin",
    "Juillet", "Aout", "Septembre", "Octobre", "Novembre", "Decembre",
]

_CENT = Decimal("0.01")


def _rate(part, whole):
    """``part / whole * 100`` rounded to two decimals, 0 when *whole* is 0."""
    if not whole:
        return 0.0
    return float((Decimal(part) / Decimal(whole) * 100).quantize(_CENT, rounding=ROUND_HALF_UP))


def _month_bounds(year, month):
    tz = timezone.get_current_timezone()
    start = timezone.make_aware(datetime(year, month, 1), tz)
    if month == 12:
        end = timezone.make_aware(datetime(year + 1, 1, 1), tz)
    else:
        end = timezone.make_aware(datetime(year, month + 1, 1), tz)
    return start, end


def _year_bounds(year):
    return _month_bounds(year, 1)[0], _month_bounds(year, 12)[1]


def _totals(transactions):
    totals = transactions.aggregate(
        credited=Sum("amount", filter=Q(transaction_type=CreditTransaction.TransactionType.CONSUMPTION)),
        paid=Sum("amount", filter=Q(transaction_type=CreditTransaction.TransactionType.PAYMENT)),
    )
    return totals["credited"] or 0, totals["paid"] or 0


def _active_customers(organization):
    return CreditCustomer.objects.filter(organization=organization, is_active=True)


def get_credit_statistics(organization) -> dict:
    stats = _active_customers(organization).aggregate(
        total_credit=Sum("current_balance"),
        customers_with_balance=Count("pk", filter=Q(current_balance__gt=0)),
    )
    return {
        "total_credit": stats["total_credit"] or 0,
        "customers_with_balance": stats["customers_with_balance"] or 0,
    }


def get_monthly_credit_stats(organization, year, month, now=None) -> dict:
    """Credited and repaid amounts of one month, with current risk figures.

    ``end_balance``, alerts and top debtors describe the carnet as of *now*.
    """
    if not 1 <= int(month) <= 12:
        raise ValueError("Le mois doit etre compris entre 1 et 12.")
    now = now or timezone.now()
    start, end = _month_bounds(int(year), int(month))
    credited, paid = _totals(
        CreditTransaction.objects.filter(
            organization=organization,
            transaction_date__gte=start,
            transaction_date__lt=end,
        )
    )

    customers = _active_customers(organization)
    alerts = get_credit_alerts(organization, now=now)
    thresholds = alert_thresholds()

    top_debtors = []
    for customer in customers.filter(current_balance__gt=0).order_by("-current_balance")[:5]:
        alert = classify(customer, now, thresholds)
        top_debtors.append({
            "id": str(customer.pk),
            "name": customer.name,
            "balance": customer.current_balance,
            "last_payment_date": customer.last_payment_date,
            "days_since_payment": days_since(customer.last_payment_date or customer.created_at, now),
            "alert_level": alert.alert_level.value if alert else None,
        })

    return {
        "year": int(year),
        "month": int(month),
        "total_credited": credited,
        "total_paid": paid,
        "end_balance": customers.aggregate(total=Sum("current_balance"))["total"] or 0,
        "recovery_rate": _rate(paid, credited),
        "alerts_count": len(alerts),
        "amount_at_risk": sum(alert.current_balance for alert in alerts),
        "top_debtors": top_debtors,
    }


def _customer_stats(customer) -> dict:
    return {
        "id": str(customer.pk),
        "name": customer.name,
        "total_credited": customer.total_credited,
        "total_paid": customer.total_paid,
        "recovery_rate": _rate(customer.total_paid, customer.total_credited),
        "current_balance": customer.current_balance,
    }


def get_annual_credit_stats(organization, year) -> dict:
    """Yearly totals, month by month rows and best / worst payers."""
    year = int(year)
    start, end = _year_bounds(year)
    transactions = CreditTransaction.objects.filter(
        organization=organization,
        transaction_date__gte=start,
        transaction_date__lt=end,
    )
    credited, paid = _totals(transactions)

    per_month = {
        row["month"]: row
        for row in (
            transactions
            .annotate(month=ExtractMonth("transaction_date"))
            .values("month")
            .annotate(
                credited=Sum("amount", filter=Q(transaction_type=CreditTransaction.TransactionType.CONSUMPTION)),
                paid=Sum("amount", filter=Q(transaction_type=CreditTransaction.TransactionType.PAYMENT)),
            )
        )
    }
    monthly_data = [
        {
            "month": m,
            "month_name": MONTH_NAMES[m - 1],
            "credited": (per_month.get(m) or {}).get("credited") or 0,
            "paid": (per_month.get(m) or {}).get("paid") or 0,
        }
        for m in range(1, 13)
    ]

    customers = _active_customers(organization)
    minimum = getattr(settings, "CREDIT_TOP_CUSTOMERS_MIN_CREDITED", 10000)
    at_risk_rate = getattr(settings, "CREDIT_AT_RISK_RECOVERY_RATE", 80)
    eligible = [_customer_stats(c) for c in customers.filter(total_credited__gte=minimum)]

    top_customers = sorted(eligible, key=lambda c: c["recovery_rate"], reverse=True)[:10]
    at_risk_customers = sorted(
        (c for c in eligible if c["recovery_rate"] < at_risk_rate),
        key=lambda c: c["recovery_rate"],
    )[:10]

    prev_start, prev_end = _year_bounds(year - 1)
    prev_credited, _prev_paid = _totals(
        CreditTransaction.objects.filter(
            organization=organization,
            transaction_date__gte=prev_start,
            transaction_date__lt=prev_end,
        )
    )
    comparison = None
    if prev_credited > 0:
        comparison = _rate(credited - prev_credited, prev_credited)

    return {
        "year": year,
        "total_credited": credited,
        "total_paid": paid,
        "end_balance": customers.aggregate(total=Sum("current_balance"))["total"] or 0,
        "recovery_rate": _rate(paid, credited),
        "previous_year_comparison": comparison,
        "monthly_data": monthly_data,
        "top_customers": top_customers,
        "at_risk_customers": at_risk_customers,
    }
