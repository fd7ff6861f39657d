from datetime import timedelta

import pytest
from django.utils import timezone

from credits import services
from credits.models import CreditCustomer
from credits.tasks import log_credit_alerts


@pytest.mark.django_db
def test_log_credit_alerts_counts_overdue_customers(organization, credit_customer, caplog):
    services.record_consumption(credit_customer, amount=5000)
    CreditCustomer.objects.filter(pk=credit_customer.pk).update(
        last_payment_date=timezone.now() - timedelta(days=31),
    )

    with caplog.at_level("WARNING", logger="ravito"):
        result = log_credit_alerts()

    assert result == "1 alerts"
    assert "1 alerte(s) dont 1 critique(s)" in caplog.text


@pytest.mark.django_db
def test_log_credit_alerts_quiet_when_nothing_overdue(organization, credit_customer):
    services.record_consumption(credit_customer, amount=5000)
    assert log_credit_alerts(organization_id=str(organization.pk)) == "0 alerts"
