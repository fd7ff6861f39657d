from datetime import datetime

import pytest
from django.utils import timezone

from credits import reports, services
from credits.models import CreditCustomer


def _at(year, month, day):
    return timezone.make_aware(datetime(year, month, day, 10, 0))


@pytest.mark.django_db
class TestCreditStatistics:
    def test_outstanding_credit(self, organization, credit_customer, unlimited_customer):
        services.record_consumption(credit_customer, amount=5000)
        services.record_consumption(unlimited_customer, amount=2000)
        services.record_payment(unlimited_customer, 2000)

        stats = reports.get_credit_statistics(organization)

        assert stats == {"total_credit": 5000, "customers_with_balance": 1}

    def test_empty_organization(self, other_organization):
        assert reports.get_credit_statistics(other_organization) == {
            "total_credit": 0,
            "customers_with_balance": 0,
        }


@pytest.mark.django_db
class TestMonthlyStats:
    def test_monthly_totals(self, organization, credit_customer):
        services.record_consumption(credit_customer, amount=10000, transaction_date=_at(2024, 3, 5))
        services.record_payment(credit_customer, 4000, transaction_date=_at(2024, 3, 20))
        services.record_consumption(credit_customer, amount=1000, transaction_date=_at(2024, 4, 2))

        stats = reports.get_monthly_credit_stats(organization, 2024, 3, now=_at(2024, 4, 30))

        assert stats["total_credited"] == 10000
        assert stats["total_paid"] == 4000
        assert stats["recovery_rate"] == 40.0
        assert stats["end_balance"] == 7000
        # Last payment on 20 March, 41 days before "now".
        assert stats["alerts_count"] == 1
        assert stats["amount_at_risk"] == 7000
        assert stats["top_debtors"][0]["alert_level"] == "critical"

    def test_empty_month(self, organization):
        stats = reports.get_monthly_credit_stats(organization, 2024, 1)
        assert stats["total_credited"] == 0
        assert stats["recovery_rate"] == 0.0
        assert stats["top_debtors"] == []

    def test_invalid_month(self, organization):
        with pytest.raises(ValueError):
            reports.get_monthly_credit_stats(organization, 2024, 13)


@pytest.mark.django_db
class TestAnnualStats:
    def test_annual_report(self, organization, credit_customer, unlimited_customer):
        services.record_consumption(credit_customer, amount=20000, transaction_date=_at(2023, 6, 1))
        services.record_consumption(credit_customer, amount=30000, transaction_date=_at(2024, 2, 1))
        services.record_payment(credit_customer, 45000, transaction_date=_at(2024, 2, 10))
        services.record_consumption(unlimited_customer, amount=12000, transaction_date=_at(2024, 5, 1))
        services.record_payment(unlimited_customer, 3000, transaction_date=_at(2024, 5, 15))

        stats = reports.get_annual_credit_stats(organization, 2024)

        assert stats["total_credited"] == 42000
        assert stats["total_paid"] == 48000
        assert stats["previous_year_comparison"] == 110.0
        assert len(stats["monthly_data"]) == 12
        assert stats["monthly_data"][1] == {
            "month": 2,
            "month_name": "Fevrier",
            "credited": 30000,
            "paid": 45000,
        }
        assert stats["monthly_data"][0]["credited"] == 0
        assert [c["name"] for c in stats["top_customers"]] == ["Konan Ange", "Bamba Issa"]
        assert [c["name"] for c in stats["at_risk_customers"]] == ["Bamba Issa"]

    def test_no_previous_year(self, organization, unlimited_customer):
        services.record_consumption(unlimited_customer, amount=5000, transaction_date=_at(2024, 1, 10))
        stats = reports.get_annual_credit_stats(organization, 2024)
        assert stats["previous_year_comparison"] is None

    def test_small_customers_are_not_ranked(self, organization, unlimited_customer):
        services.record_consumption(unlimited_customer, amount=9999, transaction_date=_at(2024, 1, 10))
        stats = reports.get_annual_credit_stats(organization, 2024)
        assert stats["top_customers"] == []

    def test_deleted_customers_are_excluded(self, organization, unlimited_customer):
        services.record_consumption(unlimited_customer, amount=15000, transaction_date=_at(2024, 1, 10))
        CreditCustomer.objects.filter(pk=unlimited_customer.pk).update(is_active=False)

        stats = reports.get_annual_credit_stats(organization, 2024)

        assert stats["end_balance"] == 0
        assert stats["top_customers"] == []
        # Transactions stay in the yearly totals.
        assert stats["total_credited"] == 15000
