from decimal import Decimal

from django.contrib.auth import get_user_model
from django.core.management.base import BaseCommand

from core.models import Branch, StoreSettings
from inventory.models import Product
from sales.models import Customer, Sale
from sales.services import create_sale

DEMO_PRODUCTS = [
    ("Cola 330ml", "Beverages", Decimal("40.00"), 120, "Chilled soft drink can."),
    ("Green Tea 25 bags", "Beverages", Decimal("150.00"), 35, ""),
    ("Potato Chips", "Snacks", Decimal("20.00"), 60, "Salted, 50g pack."),
    ("Basmati Rice 5kg", "Groceries", Decimal("650.00"), 12, ""),
    ("Cooking Oil 1L", "Groceries", Decimal("180.00"), 8, ""),
]


class Command(BaseCommand):
    help = "Seed a demo store account with catalog, branch, customer and one sale for local development."

    def handle(self, *args, **options):
        User = get_user_model()

        owner, owner_created = User.objects.get_or_create(
            username="demo",
            defaults={
                "email": "demo@example.com",
                "first_name": "Demo",
                "last_name": "Owner",
                "is_active": True,
            },
        )
        if owner_created:
            owner.set_password("demo1234")
            owner.save(update_fields=["password"])

        Branch.objects.get_or_create(
            owner=owner,
            name="Main Branch",
            defaults={"location": "Main Street", "size": "Medium", "manager": "Demo Owner"},
        )

        StoreSettings.objects.get_or_create(
            owner=owner,
            defaults={
                "tax_rate": Decimal("18.00"),
                "admin_email": "admin@example.com",
                "low_stock_email": True,
            },
        )

        products = {}
        for name, category, price, stock, description in DEMO_PRODUCTS:
            product, _ = Product.objects.get_or_create(
                owner=owner,
                name=name,
                defaults={
                    "category": category,
                    "price": price,
                    "stock": stock,
                    "description": description,
                },
            )
            products[name] = product

        customer, _ = Customer.objects.get_or_create(
            owner=owner,
            email="customer@example.com",
            defaults={"name": "Demo Customer", "phone": "+910000000001", "address": "12 Market Road"},
        )

        if not Sale.objects.filter(owner=owner).exists():
            sale = create_sale(
                owner,
                items=[
                    {"product_id": products["Cola 330ml"].id, "quantity": 2},
                    {"product_id": products["Potato Chips"].id, "quantity": 3},
                ],
                discount_applied=Decimal("5"),
                customer={"customer_id": customer.id},
            )
            self.stdout.write(f"Demo sale: {sale.invoice_number} total {sale.total_amount}")

        self.stdout.write(self.style.SUCCESS("Demo data seeded successfully."))
        self.stdout.write("Credentials: demo/demo1234")
