from decimal import Decimal
from unittest.mock import patch

from django.contrib.auth import get_user_model
from django.core import mail
from django.test import TestCase, override_settings
from rest_framework.test import APIClient

from core.models import AuditLog, StoreSettings
from inventory.models import Product
from inventory.services import StockUpdateConflict, decrement_stock, send_low_stock_email


class OwnerScopedProductTests(TestCase):
    def setUp(self):
        self.client = APIClient()
        self.user_model = get_user_model()
        self.owner_a = self.user_model.objects.create_user(username="owner-a", password="pass1234")
        self.owner_b = self.user_model.objects.create_user(username="owner-b", password="pass1234")

        self.product_a = Product.objects.create(
            owner=self.owner_a,
            name="A Product",
            category="Beverages",
            price=Decimal("10.00"),
            stock=50,
        )
        self.product_b = Product.objects.create(
            owner=self.owner_b,
            name="B Product",
            category="Snacks",
            price=Decimal("20.00"),
            stock=50,
        )

    def test_user_cannot_read_other_owner_products(self):
        self.client.force_authenticate(user=self.owner_a)

        response = self.client.get("/api/v1/products/")

        self.assertEqual(response.status_code, 200)
        payload = response.json()
        self.assertEqual(sorted(payload.keys()), ["count", "next", "previous", "results"])
        ids = {item["id"] for item in payload["results"]}
        self.assertIn(str(self.product_a.id), ids)
        self.assertNotIn(str(self.product_b.id), ids)

    def test_other_owner_product_detail_is_not_found(self):
        self.client.force_authenticate(user=self.owner_a)

        response = self.client.get(f"/api/v1/products/{self.product_b.id}/")

        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json()["code"], "not_found")

    def test_create_product_ignores_injected_owner(self):
        self.client.force_authenticate(user=self.owner_a)

        response = self.client.post(
            "/api/v1/products/",
            {
                "owner": str(self.owner_b.id),
                "name": "Injected Owner Product",
                "category": "Snacks",
                "price": "3.50",
                "stock": 40,
            },
            format="json",
        )

        self.assertEqual(response.status_code, 201)
        created = Product.objects.get(id=response.json()["id"])
        self.assertEqual(created.owner_id, self.owner_a.id)
        self.assertTrue(AuditLog.objects.filter(action="product.create", entity_id=created.id).exists())

    def test_create_rejects_negative_price_and_stock(self):
        self.client.force_authenticate(user=self.owner_a)

        response = self.client.post(
            "/api/v1/products/",
            {"name": "Broken", "category": "Snacks", "price": "-1.00", "stock": -3},
            format="json",
        )

        self.assertEqual(response.status_code, 400)
        payload = response.json()
        self.assertEqual(payload["code"], "validation_error")
        self.assertIn("price", payload["errors"])
        self.assertIn("stock", payload["errors"])

    def test_list_filters_by_category_and_search(self):
        Product.objects.create(owner=self.owner_a, name="Orange Juice", category="Beverages", price=Decimal("4.00"), stock=20)
        Product.objects.create(owner=self.owner_a, name="Crackers", category="Snacks", price=Decimal("2.00"), stock=20)
        self.client.force_authenticate(user=self.owner_a)

        by_category = self.client.get("/api/v1/products/", {"category": "beverages"})
        by_search = self.client.get("/api/v1/products/", {"search": "juice"})

        self.assertEqual(by_category.json()["count"], 2)
        self.assertEqual([item["name"] for item in by_search.json()["results"]], ["Orange Juice"])

    def test_restock_update_is_audited(self):
        self.client.force_authenticate(user=self.owner_a)

        response = self.client.patch(f"/api/v1/products/{self.product_a.id}/", {"stock": 75}, format="json")

        self.assertEqual(response.status_code, 200)
        self.product_a.refresh_from_db()
        self.assertEqual(self.product_a.stock, 75)
        log = AuditLog.objects.get(action="product.update", entity_id=self.product_a.id)
        self.assertEqual(log.before_snapshot["stock"], 50)
        self.assertEqual(log.after_snapshot["stock"], 75)


class LowStockNotificationTests(TestCase):
    def setUp(self):
        self.client = APIClient()
        self.owner = get_user_model().objects.create_user(username="notify-owner", password="pass1234")
        self.client.force_authenticate(user=self.owner)
        self.product = Product.objects.create(
            owner=self.owner,
            name="Green Tea",
            category="Beverages",
            price=Decimal("5.00"),
            stock=30,
        )

    def _enable_email(self):
        StoreSettings.objects.create(owner=self.owner, admin_email="admin@store.com", low_stock_email=True)

    def test_update_below_threshold_sends_email_on_commit(self):
        self._enable_email()

        with self.captureOnCommitCallbacks(execute=True):
            response = self.client.patch(f"/api/v1/products/{self.product.id}/", {"stock": 4}, format="json")

        self.assertEqual(response.status_code, 200)
        self.assertEqual(len(mail.outbox), 1)
        self.assertEqual(mail.outbox[0].to, ["admin@store.com"])
        self.assertIn("Green Tea", mail.outbox[0].subject)
        self.assertIn("Current Stock: 4", mail.outbox[0].body)

    def test_create_below_threshold_sends_email(self):
        self._enable_email()

        with self.captureOnCommitCallbacks(execute=True):
            response = self.client.post(
                "/api/v1/products/",
                {"name": "Rare Spice", "category": "Pantry", "price": "9.99", "stock": 2},
                format="json",
            )

        self.assertEqual(response.status_code, 201)
        self.assertEqual(len(mail.outbox), 1)

    def test_no_email_when_notifications_disabled(self):
        StoreSettings.objects.create(owner=self.owner, admin_email="admin@store.com", low_stock_email=False)

        with self.captureOnCommitCallbacks(execute=True):
            self.client.patch(f"/api/v1/products/{self.product.id}/", {"stock": 1}, format="json")

        self.assertEqual(len(mail.outbox), 0)

    def test_no_email_when_stock_at_threshold(self):
        self._enable_email()

        with self.captureOnCommitCallbacks(execute=True):
            self.client.patch(f"/api/v1/products/{self.product.id}/", {"stock": 10}, format="json")

        self.assertEqual(len(mail.outbox), 0)

    @override_settings(LOW_STOCK_THRESHOLD=50)
    def test_threshold_is_configurable(self):
        self._enable_email()

        with self.captureOnCommitCallbacks(execute=True):
            self.client.patch(f"/api/v1/products/{self.product.id}/", {"stock": 40}, format="json")

        self.assertEqual(len(mail.outbox), 1)

    def test_send_failure_is_logged_not_raised(self):
        with patch("inventory.services.send_mail", side_effect=RuntimeError("mail down")):
            with self.assertLogs("inventory.services", level="ERROR") as logs:
                send_low_stock_email("admin@store.com", self.product, "Corner Shop")

        self.assertTrue(any("low_stock_email_send_failed" in entry for entry in logs.output))

    def test_send_skips_without_admin_email(self):
        with self.assertLogs("inventory.services", level="WARNING"):
            send_low_stock_email("", self.product)

        self.assertEqual(len(mail.outbox), 0)


class DecrementStockTests(TestCase):
    def setUp(self):
        self.owner = get_user_model().objects.create_user(username="stock-owner", password="pass1234")
        self.product = Product.objects.create(
            owner=self.owner,
            name="Rice 5kg",
            category="Grains",
            price=Decimal("12.00"),
            stock=5,
        )

    def test_decrement_returns_remaining_stock(self):
        remaining = decrement_stock(self.owner, self.product, 3)

        self.assertEqual(remaining, 2)
        self.product.refresh_from_db()
        self.assertEqual(self.product.stock, 2)

    def test_decrement_refuses_to_go_negative(self):
        with self.assertRaises(StockUpdateConflict) as ctx:
            decrement_stock(self.owner, self.product, 6)

        self.assertIn("Rice 5kg", str(ctx.exception.detail))
        self.product.refresh_from_db()
        self.assertEqual(self.product.stock, 5)

    def test_decrement_ignores_other_owner(self):
        other = get_user_model().objects.create_user(username="stock-other", password="pass1234")

        with self.assertRaises(StockUpdateConflict):
            decrement_stock(other, self.product, 1)
