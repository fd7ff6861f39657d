import pytest
from rest_framework.test import APIClient

from accounts.models import Organization, User
from catalog.models import Product
from credits.models import CreditCustomer
from pricing.models import SupplierPriceGrid, Zone


@pytest.fixture(autouse=True)
def _clear_cache():
    from django.core.cache import cache

    cache.clear()
    yield
    cache.clear()


@pytest.fixture
def organization(db):
    return Organization.objects.create(
        name="Maquis Le Baobab",
        phone="+2250700000000",
        address="Yopougon",
    )


@pytest.fixture
def other_organization(db):
    return Organization.objects.create(name="Bar Chez Tanti")


@pytest.fixture
def admin_user(db):
    return User.objects.create_user(
        email="admin@test.com",
        password="testpass123",
        first_name="Admin",
        last_name="User",
        role=User.Role.ADMIN,
    )


@pytest.fixture
def supplier_user(db):
    return User.objects.create_user(
        email="fournisseur@test.com",
        password="testpass123",
        first_name="Kouassi",
        last_name="Yao",
        business_name="Depot Yao",
        role=User.Role.SUPPLIER,
    )


@pytest.fixture
def other_supplier(db):
    return User.objects.create_user(
        email="fournisseur2@test.com",
        password="testpass123",
        first_name="Awa",
        last_name="Traore",
        business_name="Boissons Traore",
        role=User.Role.SUPPLIER,
    )


@pytest.fixture
def client_user(organization):
    return User.objects.create_user(
        email="client@test.com",
        password="testpass123",
        first_name="Client",
        last_name="User",
        role=User.Role.CLIENT,
        organization=organization,
    )


@pytest.fixture
def zone(db):
    return Zone.objects.create(name="Cocody")


@pytest.fixture
def other_zone(db):
    return Zone.objects.create(name="Marcory")


@pytest.fixture
def product(db):
    return Product.objects.create(
        reference="FLAG-65",
        name="Flag 65cl",
        brand="Solibra",
        category=Product.Category.BEER,
        crate_type=Product.CrateType.C24,
        volume="65cl",
        reference_unit_price=500,
        reference_crate_price=10000,
        reference_consign_price=3000,
    )


@pytest.fixture
def product_without_reference(db):
    return Product.objects.create(
        reference="COCA-33",
        name="Coca-Cola 33cl",
        category=Product.Category.SODA,
    )


@pytest.fixture
def grid(supplier_user, product):
    return SupplierPriceGrid.objects.create(
        supplier=supplier_user,
        product=product,
        unit_price=550,
        crate_price=11000,
        consign_price=3000,
        initial_stock=10,
    )


@pytest.fixture
def other_grid(other_supplier, product):
    return SupplierPriceGrid.objects.create(
        supplier=other_supplier,
        product=product,
        unit_price=450,
        crate_price=9000,
        consign_price=3000,
        initial_stock=5,
    )


@pytest.fixture
def credit_customer(organization):
    return CreditCustomer.objects.create(
        organization=organization,
        name="Konan Ange",
        phone="+2250101010101",
        credit_limit=50000,
    )


@pytest.fixture
def unlimited_customer(organization):
    return CreditCustomer.objects.create(
        organization=organization,
        name="Bamba Issa",
        credit_limit=0,
    )


@pytest.fixture
def api_client():
    return APIClient()


@pytest.fixture
def admin_client(admin_user):
    client = APIClient()
    client.force_authenticate(user=admin_user)
    return client


@pytest.fixture
def supplier_client(supplier_user):
    client = APIClient()
    client.force_authenticate(user=supplier_user)
    return client


@pytest.fixture
def client_api(client_user):
    client = APIClient()
    client.force_authenticate(user=client_user)
    return client
