"""Demo data for manual testing and load tests.

Products and addresses have no write API of their own, so they are seeded
straight through their repositories. Identifiers are deterministic, which
lets load test users refer to them without a lookup, and re-running the
seed leaves existing rows untouched.
"""

from protean.domain import Domain
from protean.exceptions import ObjectNotFoundError

DEMO_SELLER_ID = "demo-seller-001"
DEMO_PRODUCT_COUNT = 20
SCARCE_PRODUCT_ID = "demo-product-scarce"

_CITIES = [
    ("Johannesburg", "Gauteng", "2001"),
    ("Cape Town", "Western Cape", "8001"),
    ("Durban", "KwaZulu-Natal", "4001"),
    ("Pretoria", "Gauteng", "0002"),
    ("Gqeberha", "Eastern Cape", "6001"),
]


def demo_product_id(n: int) -> str:
    return f"demo-product-{n:03d}"


def demo_customer_id(n: int) -> str:
    return f"demo-customer-{n:03d}"


def demo_address_id(n: int) -> str:
    return f"demo-address-{n:03d}"


def _add_if_missing(repo, obj) -> bool:
    try:
        repo.get(obj.id)
    except ObjectNotFoundError:
        repo.add(obj)
        return True
    return False


def seed_demo_data(domain: Domain, customers: int = 100, stock: int = 100_000) -> dict:
    """Create demo products, one scarce product and one address per demo customer.

    Returns the number of rows created per kind.
    """
    from ordering.catalogue.product import Product
    from ordering.customer.address import Address

    created = {"products": 0, "addresses": 0}
    with domain.domain_context():
        product_repo = domain.repository_for(Product)
        for n in range(1, DEMO_PRODUCT_COUNT + 1):
            product = Product(
                id=demo_product_id(n),
                name=f"Demo Product {n}",
                sku=f"DEMO-{n:04d}",
                description=f"Demo catalogue item number {n}",
                brand="Demo",
                price=round(49.99 + n * 10, 2),
                stock_quantity=stock,
                user_id=DEMO_SELLER_ID,
            )
            created["products"] += _add_if_missing(product_repo, product)

        scarce = Product(
            id=SCARCE_PRODUCT_ID,
            name="Limited Edition Demo",
            sku="DEMO-SCARCE",
            brand="Demo",
            price=999.0,
            stock_quantity=50,
            user_id=DEMO_SELLER_ID,
        )
        created["products"] += _add_if_missing(product_repo, scarce)

        address_repo = domain.repository_for(Address)
        for n in range(1, customers + 1):
            city, province, postal_code = _CITIES[n % len(_CITIES)]
            address = Address(
                id=demo_address_id(n),
                user_id=demo_customer_id(n),
                recipient_name=f"Demo Customer {n}",
                phone=f"+2782{n:07d}",
                street_address=f"{n} Demo Street",
                city=city,
                province=province,
                postal_code=postal_code,
            )
            created["addresses"] += _add_if_missing(address_repo, address)

    return created
