from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

import pytest

from credits.alerts import AlertLevel, AlertThresholds, classify, classify_many, days_since

NOW = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)


@dataclass
class FakeCustomer:
    id: str = "c1"
    name: str = "Konan"
    phone: str = ""
    current_balance: int = 5000
    last_payment_date: Optional[datetime] = None
    created_at: datetime = NOW - timedelta(days=100)
    status: str = "active"


def _paid(days_ago, **kwargs):
    return FakeCustomer(last_payment_date=NOW - timedelta(days=days_ago), **kwargs)


class TestAlerts:
    def test_thresholds(self):
        assert classify(_paid(14), NOW) is None
        assert classify(_paid(15), NOW).alert_level is AlertLevel.WARNING
        assert classify(_paid(30), NOW).alert_level is AlertLevel.WARNING
        assert classify(_paid(31), NOW).alert_level is AlertLevel.CRITICAL

    def test_started_day_counts(self):
        customer = FakeCustomer(last_payment_date=NOW - timedelta(days=14, hours=1))
        assert days_since(customer.last_payment_date, NOW) == 15
        assert classify(customer, NOW).alert_level is AlertLevel.WARNING

    def test_no_balance_no_alert(self):
        assert classify(_paid(60, current_balance=0), NOW) is None

    def test_never_paid_counts_from_creation(self):
        alert = classify(FakeCustomer(created_at=NOW - timedelta(days=20)), NOW)
        assert alert.alert_level is AlertLevel.WARNING
        assert alert.days_since_payment == 20
        assert alert.last_payment_date is None

    def test_custom_thresholds(self):
        thresholds = AlertThresholds(warning_days=7, critical_days=10)
        assert classify(_paid(8), NOW, thresholds).alert_level is AlertLevel.WARNING
        assert classify(_paid(11), NOW, thresholds).alert_level is AlertLevel.CRITICAL

    def test_invalid_thresholds(self):
        with pytest.raises(ValueError):
            AlertThresholds(warning_days=30, critical_days=14)

    def test_classify_many_sorted_most_overdue_first(self):
        alerts = classify_many(
            [_paid(20, id="a"), _paid(5, id="b"), _paid(45, id="c")],
            NOW,
        )
        assert [a.id for a in alerts] == ["c", "a"]

    def test_as_dict(self):
        payload = classify(_paid(31, name="Awa"), NOW).as_dict()
        assert payload["alert_level"] == "critical"
        assert payload["name"] == "Awa"
        assert payload["days_since_payment"] == 31
