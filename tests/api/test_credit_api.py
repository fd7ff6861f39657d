from datetime import timedelta

import pytest
from django.utils import timezone

from credits import services
from credits.models import CreditCustomer, CreditTransaction


def _url(customer, action=None):
    base = f"/api/v1/credit-customers/{customer.pk}/"
    return f"{base}{action}/" if action else base


@pytest.mark.django_db
class TestCustomerEndpoints:
    def test_client_creates_customer_in_own_organization(self, client_api, organization):
        response = client_api.post(
            "/api/v1/credit-customers/",
            {"name": "Yao Marc", "phone": "0707070707", "credit_limit": 20000},
            format="json",
        )

        assert response.status_code == 201
        body = response.json()
        assert body["organization"] == str(organization.pk)
        assert body["current_balance"] == 0
        assert body["available_credit"] == 20000

    def test_balances_are_read_only(self, client_api, credit_customer):
        response = client_api.patch(_url(credit_customer), {"current_balance": 999, "phone": "0505"}, format="json")

        assert response.status_code == 200
        credit_customer.refresh_from_db()
        assert credit_customer.current_balance == 0
        assert credit_customer.phone == "0505"

    def test_admin_must_name_organization(self, admin_client, organization):
        payload = {"name": "Kone Ali"}
        assert admin_client.post("/api/v1/credit-customers/", payload, format="json").status_code == 400

        response = admin_client.post(
            f"/api/v1/credit-customers/?organization={organization.pk}", payload, format="json"
        )
        assert response.status_code == 201
        assert CreditCustomer.objects.filter(name="Kone Ali", organization=organization).exists()

    def test_supplier_is_refused(self, supplier_client):
        assert supplier_client.get("/api/v1/credit-customers/").status_code == 403

    def test_other_organization_is_invisible(self, client_api, other_organization):
        stranger = CreditCustomer.objects.create(organization=other_organization, name="Inconnu")

        assert client_api.get(_url(stranger)).status_code == 404
        assert client_api.post(_url(stranger, "payment"), {"amount": 10}, format="json").status_code == 404

    def test_delete_is_soft(self, client_api, credit_customer):
        services.record_consumption(credit_customer, amount=1000)

        assert client_api.delete(_url(credit_customer)).status_code == 204
        assert client_api.get(_url(credit_customer)).status_code == 404
        assert CreditCustomer.objects.filter(pk=credit_customer.pk, is_active=False).exists()
        assert CreditTransaction.objects.filter(customer=credit_customer).count() == 1


@pytest.mark.django_db
class TestTransactionsEndpoints:
    def test_consumption_then_payment(self, client_api, client_user, credit_customer, product):
        response = client_api.post(
            _url(credit_customer, "consumption"),
            {
                "items": [
                    {"product": str(product.pk), "quantity": 2, "unit_price": 500},
                    {"product_name": "Glacons", "quantity": 1, "unit_price": 200},
                ],
                "notes": "Soiree",
            },
            format="json",
        )

        assert response.status_code == 201
        body = response.json()
        assert body["current_balance"] == 1200
        assert body["transaction"]["amount"] == 1200
        assert len(body["transaction"]["items"]) == 2

        response = client_api.post(
            _url(credit_customer, "payment"),
            {"amount": 700, "payment_method": "mobile_money"},
            format="json",
        )
        assert response.status_code == 201
        assert response.json()["current_balance"] == 500
        assert response.json()["transaction"]["balance_after"] == 500

        entry = CreditTransaction.objects.get(pk=response.json()["transaction"]["id"])
        assert entry.created_by == client_user

        history = client_api.get(_url(credit_customer, "transactions")).json()
        assert history["total_pages"] == 1
        assert [row["transaction_type"] for row in history["results"]] == ["payment", "consumption"]

    def test_consumption_requires_amount_or_items(self, client_api, credit_customer):
        response = client_api.post(_url(credit_customer, "consumption"), {}, format="json")
        assert response.status_code == 400

    def test_limit_exceeded(self, client_api, credit_customer):
        response = client_api.post(_url(credit_customer, "consumption"), {"amount": 50001}, format="json")

        assert response.status_code == 400
        assert response.json()["code"] == "credit_limit_exceeded"
        credit_customer.refresh_from_db()
        assert credit_customer.current_balance == 0

    def test_overpayment(self, client_api, credit_customer):
        services.record_consumption(credit_customer, amount=3000)

        response = client_api.post(_url(credit_customer, "payment"), {"amount": 3001}, format="json")

        assert response.status_code == 400
        assert response.json()["code"] == "overpayment_rejected"
        assert "solde" in response.json()["detail"]

    def test_transactions_are_read_only(self, client_api, credit_customer):
        entry = services.record_consumption(credit_customer, amount=3000)
        url = f"/api/v1/credit-transactions/{entry.pk}/"

        assert client_api.get(url).status_code == 200
        assert client_api.delete(url).status_code == 405

    def test_transactions_scoped_to_organization(self, client_api, credit_customer, other_organization):
        stranger = CreditCustomer.objects.create(organization=other_organization, name="Inconnu")
        services.record_consumption(stranger, amount=800)
        services.record_consumption(credit_customer, amount=400)

        rows = client_api.get("/api/v1/credit-transactions/").json()["results"]
        assert [row["customer_name"] for row in rows] == ["Konan Ange"]


@pytest.mark.django_db
class TestStatusEndpoints:
    def test_freeze_and_unfreeze(self, client_api, credit_customer):
        services.record_consumption(credit_customer, amount=8000)

        response = client_api.post(
            _url(credit_customer, "freeze"),
            {"policy": "freeze_full", "reason": "Retards"},
            format="json",
        )
        assert response.status_code == 200
        assert response.json()["status"] == "frozen"
        assert response.json()["credit_limit"] == 8000

        blocked = client_api.post(_url(credit_customer, "consumption"), {"amount": 100}, format="json")
        assert blocked.status_code == 400
        assert blocked.json()["code"] == "credit_limit_exceeded"

        response = client_api.post(_url(credit_customer, "unfreeze"), {"new_limit": 20000}, format="json")
        assert response.json()["status"] == "active"
        assert response.json()["credit_limit"] == 20000

    def test_unfreeze_active_customer_is_rejected(self, client_api, credit_customer):
        response = client_api.post(_url(credit_customer, "unfreeze"), {}, format="json")
        assert response.status_code == 400
        assert response.json()["code"] == "invalid_state_transition"

    def test_only_admin_reactivates(self, client_api, admin_client, credit_customer):
        client_api.post(_url(credit_customer, "disable"), {"reason": "Depart"}, format="json")

        assert client_api.post(_url(credit_customer, "reactivate"), {}, format="json").status_code == 403

        response = admin_client.post(_url(credit_customer, "reactivate"), {}, format="json")
        assert response.status_code == 200
        assert response.json()["status"] == "active"


@pytest.mark.django_db
class TestReportEndpoints:
    def test_alerts(self, client_api, credit_customer, unlimited_customer):
        services.record_consumption(credit_customer, amount=5000)
        services.record_consumption(unlimited_customer, amount=2000)
        CreditCustomer.objects.filter(pk=credit_customer.pk).update(
            last_payment_date=timezone.now() - timedelta(days=35),
        )

        alerts = client_api.get("/api/v1/credit-customers/alerts/").json()

        assert [(a["name"], a["alert_level"]) for a in alerts] == [("Konan Ange", "critical")]

    def test_statistics(self, client_api, credit_customer):
        services.record_consumption(credit_customer, amount=5000)

        response = client_api.get("/api/v1/credit-customers/statistics/")

        assert response.json() == {"total_credit": 5000, "customers_with_balance": 1}

    def test_monthly_and_annual_stats(self, client_api, credit_customer):
        now = timezone.localtime()
        services.record_consumption(credit_customer, amount=6000)
        services.record_payment(credit_customer, 1500)

        monthly = client_api.get(
            "/api/v1/credit-customers/monthly-stats/",
            {"year": now.year, "month": now.month},
        )
        assert monthly.status_code == 200
        assert monthly.json()["total_credited"] == 6000
        assert monthly.json()["recovery_rate"] == 25.0

        annual = client_api.get("/api/v1/credit-customers/annual-stats/", {"year": now.year})
        assert annual.status_code == 200
        assert annual.json()["total_paid"] == 1500

    def test_monthly_stats_requires_month(self, client_api):
        response = client_api.get("/api/v1/credit-customers/monthly-stats/", {"year": 2024})
        assert response.status_code == 400

    def test_admin_statistics_need_organization(self, admin_client, organization):
        assert admin_client.get("/api/v1/credit-customers/statistics/").status_code == 400
        response = admin_client.get(
            "/api/v1/credit-customers/statistics/", {"organization": str(organization.pk)}
        )
        assert response.status_code == 200

    def test_export_csv(self, client_api, credit_customer, unlimited_customer):
        services.record_consumption(credit_customer, amount=4200)

        response = client_api.get("/api/v1/credit-customers/export-csv/")

        assert response.status_code == 200
        filename = f"carnet_credit_{timezone.localdate():%Y-%m-%d}.csv"
        assert response["Content-Disposition"] == f'attachment; filename="{filename}"'
        lines = response.content.decode("utf-8-sig").strip().splitlines()
        assert lines[0] == "Client;Telephone;Solde;Plafond;Statut;Dernier paiement"
        assert "Konan Ange;+2250101010101;4200;50000;Actif;" in lines
        assert len(lines) == 3
