from datetime import timedelta

import pytest
from django.utils import timezone

from credits import services
from credits.models import CreditCustomer, CreditTransaction
from credits.services import CreditOperationError


@pytest.mark.django_db
class TestCustomers:
    def test_create_customer(self, organization):
        customer = services.create_customer(organization, "  Yao Marc ", phone="0707", credit_limit=20000)

        assert customer.name == "Yao Marc"
        assert customer.current_balance == 0
        assert customer.status == CreditCustomer.Status.ACTIVE

    def test_create_customer_requires_name(self, organization):
        with pytest.raises(ValueError):
            services.create_customer(organization, " ")

    def test_update_info_cannot_touch_balances(self, credit_customer):
        with pytest.raises(ValueError):
            services.update_customer_info(credit_customer, current_balance=0)

        updated = services.update_customer_info(credit_customer, phone="0505", credit_limit=80000)
        assert updated.phone == "0505"
        assert updated.credit_limit == 80000

    def test_delete_is_soft(self, credit_customer, client_user):
        services.delete_customer(credit_customer, actor=client_user)
        credit_customer.refresh_from_db()

        assert not credit_customer.is_active
        with pytest.raises(CreditCustomer.DoesNotExist):
            services.fetch_customer(credit_customer.pk)
        with pytest.raises(CreditOperationError):
            services.record_payment(credit_customer, 100)


@pytest.mark.django_db
class TestConsumptionAndPayment:
    def test_consumption_with_items(self, credit_customer, product, client_user):
        entry = services.record_consumption(
            credit_customer,
            items=[
                {"product": product, "quantity": 3, "unit_price": 500},
                {"product_name": "Arachides", "quantity": 2, "unit_price": 100},
            ],
            actor=client_user,
        )

        credit_customer.refresh_from_db()
        assert entry.amount == 1700
        assert entry.transaction_type == CreditTransaction.TransactionType.CONSUMPTION
        assert entry.balance_after == 1700
        assert entry.created_by == client_user
        assert credit_customer.current_balance == 1700
        assert credit_customer.total_credited == 1700
        names = sorted(entry.items.values_list("product_name", flat=True))
        assert names == ["Arachides", "Flag 65cl"]

    def test_caller_instance_is_synced(self, credit_customer):
        services.record_consumption(credit_customer, amount=2500)
        assert credit_customer.current_balance == 2500

    def test_limit_exceeded_is_rejected_without_writes(self, credit_customer):
        services.record_consumption(credit_customer, amount=45000)

        with pytest.raises(CreditOperationError) as exc_info:
            services.record_consumption(credit_customer, amount=5001)

        assert exc_info.value.code == "credit_limit_exceeded"
        credit_customer.refresh_from_db()
        assert credit_customer.current_balance == 45000
        assert CreditTransaction.objects.filter(customer=credit_customer).count() == 1

    def test_inconsistent_items_rejected(self, credit_customer):
        with pytest.raises(CreditOperationError) as exc_info:
            services.record_consumption(
                credit_customer,
                amount=999,
                items=[{"product_name": "Flag", "quantity": 2, "unit_price": 500}],
            )
        assert exc_info.value.code == "inconsistent_line_items"

    def test_payment(self, credit_customer):
        services.record_consumption(credit_customer, amount=10000)
        entry = services.record_payment(credit_customer, 4000, payment_method="mobile_money")

        credit_customer.refresh_from_db()
        assert entry.balance_after == 6000
        assert entry.payment_method == "mobile_money"
        assert credit_customer.total_paid == 4000
        assert credit_customer.last_payment_date == entry.transaction_date

    def test_overpayment_rejected(self, credit_customer):
        services.record_consumption(credit_customer, amount=3000)

        with pytest.raises(ValueError, match="ne peut pas depasser le solde"):
            services.record_payment(credit_customer, 3001)

        entry = services.record_payment(credit_customer, 3000)
        assert entry.balance_after == 0

    def test_unknown_payment_method(self, credit_customer):
        services.record_consumption(credit_customer, amount=3000)
        with pytest.raises(ValueError):
            services.record_payment(credit_customer, 1000, payment_method="cheque")

    def test_rebuild_state_matches_stored_balance(self, unlimited_customer):
        services.record_consumption(unlimited_customer, amount=8000)
        services.record_payment(unlimited_customer, 3000)
        services.record_consumption(unlimited_customer, amount=1200)

        state = services.rebuild_state(unlimited_customer)
        unlimited_customer.refresh_from_db()
        assert state.current_balance == unlimited_customer.current_balance == 6200
        assert state.total_credited == unlimited_customer.total_credited
        assert state.total_paid == unlimited_customer.total_paid

    def test_rebuild_state_with_backdated_payment(self, credit_customer):
        now = timezone.now()
        services.record_consumption(credit_customer, amount=1000, transaction_date=now)
        services.record_payment(credit_customer, 500, transaction_date=now - timedelta(days=1))

        state = services.rebuild_state(credit_customer)
        credit_customer.refresh_from_db()
        assert state.current_balance == credit_customer.current_balance == 500
        assert state.total_paid == 500


@pytest.mark.django_db
class TestStatusTransitions:
    def test_freeze_full(self, credit_customer):
        services.record_consumption(credit_customer, amount=12000)
        services.freeze_customer(credit_customer, "freeze_full", reason="Retards")
        credit_customer.refresh_from_db()

        assert credit_customer.status == CreditCustomer.Status.FROZEN
        assert credit_customer.credit_limit == 12000
        assert credit_customer.frozen_at is not None

        with pytest.raises(CreditOperationError, match="gele ou desactive"):
            services.record_consumption(credit_customer, amount=1)
        services.record_payment(credit_customer, 2000)

    def test_unfreeze_with_new_limit(self, credit_customer):
        services.freeze_customer(credit_customer, "reduce_limit", new_limit=10000)
        services.unfreeze_customer(credit_customer, new_limit=30000)
        credit_customer.refresh_from_db()

        assert credit_customer.status == CreditCustomer.Status.ACTIVE
        assert credit_customer.credit_limit == 30000
        assert credit_customer.freeze_reason == ""

    def test_unfreeze_restores_limit_after_freeze_at_zero_balance(self, credit_customer):
        services.freeze_customer(credit_customer, "freeze_full")
        credit_customer.refresh_from_db()
        assert credit_customer.credit_limit == 0
        assert credit_customer.limit_before_freeze == 50000

        services.unfreeze_customer(credit_customer)
        credit_customer.refresh_from_db()
        assert credit_customer.credit_limit == 50000
        assert credit_customer.limit_before_freeze is None

        with pytest.raises(CreditOperationError) as exc_info:
            services.record_consumption(credit_customer, amount=1_000_000)
        assert exc_info.value.code == "credit_limit_exceeded"

    def test_disable_and_reactivate(self, credit_customer):
        services.disable_customer(credit_customer, reason="Demenagement")
        with pytest.raises(CreditOperationError) as exc_info:
            services.unfreeze_customer(credit_customer)
        assert exc_info.value.code == "invalid_state_transition"

        services.reactivate_customer(credit_customer)
        credit_customer.refresh_from_db()
        assert credit_customer.status == CreditCustomer.Status.ACTIVE


@pytest.mark.django_db
class TestAlerts:
    def test_get_credit_alerts(self, organization, credit_customer, unlimited_customer):
        now = timezone.now()
        services.record_consumption(credit_customer, amount=5000)
        services.record_consumption(unlimited_customer, amount=7000)
        CreditCustomer.objects.filter(pk=credit_customer.pk).update(last_payment_date=now - timedelta(days=40))
        CreditCustomer.objects.filter(pk=unlimited_customer.pk).update(last_payment_date=now - timedelta(days=16))

        alerts = services.get_credit_alerts(organization, now=now)

        assert [(a.name, a.alert_level.value) for a in alerts] == [
            ("Konan Ange", "critical"),
            ("Bamba Issa", "warning"),
        ]

    def test_deleted_customers_do_not_alert(self, organization, credit_customer):
        services.record_consumption(credit_customer, amount=5000)
        CreditCustomer.objects.filter(pk=credit_customer.pk).update(
            last_payment_date=timezone.now() - timedelta(days=40),
            is_active=False,
        )
        assert services.get_credit_alerts(organization) == []

    def test_backdated_payment_does_not_raise_alert(self, organization, credit_customer):
        now = timezone.now()
        services.record_consumption(credit_customer, amount=5000)
        services.record_payment(credit_customer, 100, transaction_date=now)
        services.record_payment(credit_customer, 100, transaction_date=now - timedelta(days=35))
        credit_customer.refresh_from_db()

        assert credit_customer.last_payment_date == now
        assert services.get_credit_alerts(organization, now=now) == []
