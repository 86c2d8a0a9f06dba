import re
import uuid
from datetime import datetime, timezone as dt_timezone
from decimal import Decimal
from unittest.mock import patch

from django.contrib.auth import get_user_model
from django.core import mail
from django.db import DatabaseError
from django.test import TestCase
from rest_framework.test import APIClient

from core.models import AuditLog, StoreSettings
from inventory.models import Product
from inventory.services import StockUpdateConflict
from sales.models import Customer, Sale, SaleItem
from sales.reports import pareto_rows
from sales.services import compute_totals, generate_invoice_number


class CheckoutTestMixin:
    def setUp(self):
        self.client = APIClient()
        self.user_model = get_user_model()
        self.owner = self.user_model.objects.create_user(username="store-owner", password="pass1234")
        self.other_owner = self.user_model.objects.create_user(username="other-owner", password="pass1234")
        self.client.force_authenticate(user=self.owner)

        self.product_a = Product.objects.create(
            owner=self.owner,
            name="Product A",
            category="General",
            price=Decimal("10.00"),
            stock=5,
        )
        self.product_b = Product.objects.create(
            owner=self.owner,
            name="Product B",
            category="General",
            price=Decimal("20.00"),
            stock=2,
        )

    def checkout(self, items, discount_applied="0", **extra):
        payload = {
            "items": [{"product_id": str(product.id), "quantity": quantity} for product, quantity in items],
            "discount_applied": discount_applied,
            **extra,
        }
        return self.client.post("/api/v1/sales/", payload, format="json")

    def assert_stock(self, product, expected):
        product.refresh_from_db()
        self.assertEqual(product.stock, expected)


class CheckoutTests(CheckoutTestMixin, TestCase):
    def test_successful_checkout_records_sale_and_decrements_stock(self):
        response = self.checkout([(self.product_a, 3), (self.product_b, 2)], discount_applied="10")

        self.assertEqual(response.status_code, 201)
        payload = response.json()
        self.assertEqual(payload["subtotal"], "70.00")
        self.assertEqual(payload["discount_amount"], "7.00")
        self.assertEqual(payload["total_amount"], "63.00")
        self.assertRegex(payload["invoice_number"], r"^INV-\d{8}-[0-9A-F]{10}$")
        self.assertEqual(len(payload["items"]), 2)
        item_a = next(item for item in payload["items"] if item["product_id"] == str(self.product_a.id))
        self.assertEqual(item_a["product_name"], "Product A")
        self.assertEqual(item_a["unit_price"], "10.00")
        self.assertEqual(item_a["total_price"], "30.00")

        self.assert_stock(self.product_a, 2)
        self.assert_stock(self.product_b, 0)
        self.assertTrue(AuditLog.objects.filter(action="sale.create", entity_id=payload["id"]).exists())

    def test_insufficient_stock_lists_only_short_products_and_changes_nothing(self):
        response = self.checkout([(self.product_a, 3), (self.product_b, 5)])

        self.assertEqual(response.status_code, 409)
        payload = response.json()
        self.assertEqual(payload["code"], "insufficient_stock")
        self.assertEqual(payload["status"], 409)
        self.assertEqual(
            payload["errors"]["insufficient_stock"],
            [
                {
                    "product_id": str(self.product_b.id),
                    "product_name": "Product B",
                    "requested": 5,
                    "available": 2,
                }
            ],
        )
        self.assert_stock(self.product_a, 5)
        self.assert_stock(self.product_b, 2)
        self.assertEqual(Sale.objects.count(), 0)

    def test_all_short_products_are_reported(self):
        response = self.checkout([(self.product_a, 6), (self.product_b, 3)])

        self.assertEqual(response.status_code, 409)
        names = [row["product_name"] for row in response.json()["errors"]["insufficient_stock"]]
        self.assertEqual(names, ["Product A", "Product B"])

    def test_repeated_lines_for_same_product_are_summed(self):
        response = self.checkout([(self.product_a, 3), (self.product_a, 3)])

        self.assertEqual(response.status_code, 409)
        shortfall = response.json()["errors"]["insufficient_stock"][0]
        self.assertEqual(shortfall["requested"], 6)
        self.assertEqual(shortfall["available"], 5)

    def test_unknown_product_is_not_found(self):
        missing_id = uuid.uuid4()
        response = self.client.post(
            "/api/v1/sales/",
            {"items": [{"product_id": str(missing_id), "quantity": 1}], "discount_applied": "0"},
            format="json",
        )

        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json()["code"], "product_not_found")
        self.assertEqual(Sale.objects.count(), 0)

    def test_other_owner_product_is_not_found(self):
        foreign = Product.objects.create(
            owner=self.other_owner,
            name="Foreign",
            category="General",
            price=Decimal("1.00"),
            stock=100,
        )

        response = self.checkout([(foreign, 1)])

        self.assertEqual(response.status_code, 404)
        self.assert_stock(foreign, 100)

    def test_empty_cart_is_rejected(self):
        response = self.client.post("/api/v1/sales/", {"items": [], "discount_applied": "0"}, format="json")

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["code"], "validation_error")

    def test_invalid_quantity_and_discount_are_rejected(self):
        response = self.client.post(
            "/api/v1/sales/",
            {"items": [{"product_id": str(self.product_a.id), "quantity": 0}], "discount_applied": "120"},
            format="json",
        )

        self.assertEqual(response.status_code, 400)
        errors = response.json()["errors"]
        self.assertIn("items", errors)
        self.assertIn("discount_applied", errors)

    def test_matching_client_totals_are_accepted(self):
        response = self.checkout(
            [(self.product_a, 1)],
            discount_applied="10",
            subtotal="10.00",
            discount_amount="1.00",
            total_amount="9.00",
        )

        self.assertEqual(response.status_code, 201)

    def test_mismatched_client_total_is_rejected_before_any_change(self):
        response = self.checkout([(self.product_a, 1)], total_amount="1.00")

        self.assertEqual(response.status_code, 400)
        self.assertIn("total_amount", response.json()["errors"])
        self.assert_stock(self.product_a, 5)
        self.assertEqual(Sale.objects.count(), 0)

    def test_stock_conflict_rolls_back_the_sale(self):
        with patch(
            "sales.services.decrement_stock",
            side_effect=StockUpdateConflict("Failed to update stock for product Product A."),
        ):
            with self.assertLogs("sales.checkout", level="CRITICAL") as logs:
                response = self.checkout([(self.product_a, 1)])

        self.assertEqual(response.status_code, 409)
        payload = response.json()
        self.assertEqual(payload["code"], "stock_update_conflict")
        self.assertIn("Product A", payload["message"])
        self.assertTrue(any("stock_update_conflict" in entry for entry in logs.output))
        self.assertEqual(Sale.objects.count(), 0)
        self.assertEqual(SaleItem.objects.count(), 0)

    def test_checkout_requires_authentication(self):
        self.client.force_authenticate(user=None)

        response = self.checkout([(self.product_a, 1)])

        self.assertEqual(response.status_code, 401)


class CheckoutCustomerTests(CheckoutTestMixin, TestCase):
    def test_new_customer_is_created_with_empty_history(self):
        response = self.checkout(
            [(self.product_a, 1)],
            customer={"name": "Asha", "email": "Asha@Example.com", "phone": "555-0101"},
        )

        self.assertEqual(response.status_code, 201)
        customer = Customer.objects.get(owner=self.owner)
        self.assertEqual(customer.email, "asha@example.com")
        self.assertEqual(customer.loyalty_points, 0)
        self.assertEqual(customer.purchase_history, [])
        self.assertEqual(response.json()["customer"], str(customer.id))
        self.assertEqual(response.json()["customer_phone"], "555-0101")

    def test_existing_customer_is_reused_and_stored_contact_wins(self):
        existing = Customer.objects.create(
            owner=self.owner,
            name="Asha Rao",
            email="asha@example.com",
            phone="555-0000",
            address="",
        )

        response = self.checkout(
            [(self.product_a, 1)],
            customer={"name": "Asha", "email": "ASHA@example.com", "phone": "555-9999", "address": "12 Hill Rd"},
        )

        self.assertEqual(response.status_code, 201)
        payload = response.json()
        self.assertEqual(Customer.objects.filter(owner=self.owner).count(), 1)
        self.assertEqual(payload["customer"], str(existing.id))
        self.assertEqual(payload["customer_name"], "Asha Rao")
        self.assertEqual(payload["customer_phone"], "555-0000")
        self.assertEqual(payload["customer_address"], "12 Hill Rd")

    def test_customer_with_same_email_under_other_owner_is_not_reused(self):
        Customer.objects.create(owner=self.other_owner, name="Asha", email="asha@example.com")

        response = self.checkout([(self.product_a, 1)], customer={"name": "Asha", "email": "asha@example.com"})

        self.assertEqual(response.status_code, 201)
        self.assertEqual(Customer.objects.filter(owner=self.owner).count(), 1)
        self.assertEqual(Customer.objects.filter(owner=self.other_owner).count(), 1)

    def test_explicit_customer_id_must_belong_to_owner(self):
        foreign = Customer.objects.create(owner=self.other_owner, name="Ravi", email="ravi@example.com")

        response = self.checkout([(self.product_a, 1)], customer={"customer_id": str(foreign.id)})

        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json()["code"], "customer_not_found")
        self.assert_stock(self.product_a, 5)

    def test_explicit_customer_id_fills_missing_fields(self):
        customer = Customer.objects.create(owner=self.owner, name="Ravi", email="ravi@example.com", phone="555-1234")

        response = self.checkout([(self.product_a, 1)], customer={"customer_id": str(customer.id)})

        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.json()["customer_name"], "Ravi")
        self.assertEqual(response.json()["customer_phone"], "555-1234")

    def test_customer_creation_failure_falls_back_to_anonymous_sale(self):
        with patch.object(Customer.objects, "create", side_effect=DatabaseError("insert failed")):
            with self.assertLogs("sales.checkout", level="ERROR"):
                response = self.checkout([(self.product_a, 1)], customer={"name": "Meera", "email": "meera@example.com"})

        self.assertEqual(response.status_code, 201)
        payload = response.json()
        self.assertIsNone(payload["customer"])
        self.assertEqual(payload["customer_name"], "Meera")
        self.assertEqual(payload["customer_email"], "meera@example.com")
        self.assert_stock(self.product_a, 4)

    def test_name_without_email_is_stored_without_customer_link(self):
        response = self.checkout([(self.product_a, 1)], customer={"name": "Walk-in"})

        self.assertEqual(response.status_code, 201)
        self.assertIsNone(response.json()["customer"])
        self.assertEqual(response.json()["customer_name"], "Walk-in")
        self.assertFalse(Customer.objects.exists())


class CheckoutLowStockTests(CheckoutTestMixin, TestCase):
    def test_low_stock_email_sent_after_commit_when_enabled(self):
        StoreSettings.objects.create(owner=self.owner, admin_email="admin@store.com", low_stock_email=True)

        with self.captureOnCommitCallbacks(execute=True):
            response = self.checkout([(self.product_a, 3)])

        self.assertEqual(response.status_code, 201)
        self.assertEqual(len(mail.outbox), 1)
        self.assertIn("Product A", mail.outbox[0].subject)
        self.assertIn("Current Stock: 2", mail.outbox[0].body)

    def test_low_stock_email_not_sent_when_disabled(self):
        StoreSettings.objects.create(owner=self.owner, admin_email="admin@store.com", low_stock_email=False)

        with self.captureOnCommitCallbacks(execute=True):
            response = self.checkout([(self.product_a, 3)])

        self.assertEqual(response.status_code, 201)
        self.assertEqual(len(mail.outbox), 0)

    def test_low_stock_email_not_sent_without_settings(self):
        with self.captureOnCommitCallbacks(execute=True):
            self.checkout([(self.product_a, 3)])

        self.assertEqual(len(mail.outbox), 0)

    def test_failing_mail_backend_does_not_fail_checkout(self):
        StoreSettings.objects.create(owner=self.owner, admin_email="admin@store.com", low_stock_email=True)

        with patch("inventory.services.send_mail", side_effect=RuntimeError("smtp down")):
            with self.assertLogs("inventory.services", level="ERROR") as logs:
                with self.captureOnCommitCallbacks(execute=True):
                    response = self.checkout([(self.product_a, 3)])

        self.assertEqual(response.status_code, 201)
        self.assertTrue(any("low_stock_email_send_failed" in entry for entry in logs.output))
        self.assert_stock(self.product_a, 2)

    def test_no_notification_scheduled_for_failed_checkout(self):
        StoreSettings.objects.create(owner=self.owner, admin_email="admin@store.com", low_stock_email=True)

        with self.captureOnCommitCallbacks(execute=True) as callbacks:
            self.checkout([(self.product_b, 5)])

        self.assertEqual(callbacks, [])
        self.assertEqual(len(mail.outbox), 0)


class SaleLookupTests(CheckoutTestMixin, TestCase):
    def test_retrieve_own_sale(self):
        created = self.checkout([(self.product_a, 1)]).json()

        response = self.client.get(f"/api/v1/sales/{created['id']}/")

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["invoice_number"], created["invoice_number"])
        self.assertRegex(response.json()["date"], r"^\d{4}-\d{2}-\d{2}T")

    def test_malformed_sale_id_is_a_validation_error(self):
        response = self.client.get("/api/v1/sales/not-a-sale-id/")

        self.assertEqual(response.status_code, 400)
        payload = response.json()
        self.assertEqual(payload["code"], "validation_error")
        self.assertIn("Invalid sale ID format.", str(payload["errors"]["id"]))

    def test_other_owner_sale_is_not_found(self):
        created = self.checkout([(self.product_a, 1)]).json()
        self.client.force_authenticate(user=self.other_owner)

        response = self.client.get(f"/api/v1/sales/{created['id']}/")

        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json()["code"], "not_found")

    def test_unknown_sale_is_not_found(self):
        response = self.client.get(f"/api/v1/sales/{uuid.uuid4()}/")

        self.assertEqual(response.status_code, 404)

    def test_list_is_owner_scoped_and_newest_first(self):
        first = self.checkout([(self.product_a, 1)]).json()
        second = self.checkout([(self.product_a, 1)]).json()
        Sale.objects.create(
            owner=self.other_owner,
            subtotal=Decimal("5.00"),
            total_amount=Decimal("5.00"),
            invoice_number="INV-OTHER",
        )

        response = self.client.get("/api/v1/sales/")

        self.assertEqual(response.status_code, 200)
        ids = [item["id"] for item in response.json()["results"]]
        self.assertEqual(ids, [second["id"], first["id"]])

    def test_sales_cannot_be_edited_or_deleted(self):
        created = self.checkout([(self.product_a, 1)]).json()

        update = self.client.patch(f"/api/v1/sales/{created['id']}/", {"total_amount": "0.00"}, format="json")
        delete = self.client.delete(f"/api/v1/sales/{created['id']}/")

        self.assertEqual(update.status_code, 405)
        self.assertEqual(delete.status_code, 405)


class CustomerApiTests(TestCase):
    def setUp(self):
        self.client = APIClient()
        self.user_model = get_user_model()
        self.owner = self.user_model.objects.create_user(username="cust-owner", password="pass1234")
        self.other_owner = self.user_model.objects.create_user(username="cust-other", password="pass1234")
        self.customer = Customer.objects.create(owner=self.owner, name="Kiran", email="kiran@example.com")
        self.foreign = Customer.objects.create(owner=self.other_owner, name="Leela", email="leela@example.com")
        self.client.force_authenticate(user=self.owner)

    def test_list_only_returns_own_customers(self):
        response = self.client.get("/api/v1/customers/")

        self.assertEqual(response.status_code, 200)
        ids = {item["id"] for item in response.json()["results"]}
        self.assertEqual(ids, {str(self.customer.id)})

    def test_create_starts_with_zero_loyalty_and_empty_history(self):
        response = self.client.post(
            "/api/v1/customers/",
            {"name": "Nila", "email": "Nila@Example.com", "phone": "555-2222"},
            format="json",
        )

        self.assertEqual(response.status_code, 201)
        payload = response.json()
        self.assertEqual(payload["email"], "nila@example.com")
        self.assertEqual(payload["loyalty_points"], 0)
        self.assertEqual(payload["purchase_history"], [])
        self.assertTrue(AuditLog.objects.filter(action="customer.create").exists())

    def test_duplicate_email_for_owner_is_rejected(self):
        response = self.client.post(
            "/api/v1/customers/",
            {"name": "Another Kiran", "email": "KIRAN@example.com"},
            format="json",
        )

        self.assertEqual(response.status_code, 400)
        self.assertIn("email", response.json()["errors"])

    def test_same_email_is_allowed_for_different_owners(self):
        response = self.client.post(
            "/api/v1/customers/",
            {"name": "Leela Too", "email": "leela@example.com"},
            format="json",
        )

        self.assertEqual(response.status_code, 201)

    def test_update_normalizes_purchase_history(self):
        response = self.client.patch(
            f"/api/v1/customers/{self.customer.id}/",
            {
                "purchase_history": [
                    {"total_amount": "63.00", "invoice_number": "INV-1", "items": []},
                    {"id": "keep-me", "date": "2024-01-05T10:00:00+00:00", "total_amount": 10, "invoice_number": "INV-2"},
                ]
            },
            format="json",
        )

        self.assertEqual(response.status_code, 200)
        self.customer.refresh_from_db()
        first, second = self.customer.purchase_history
        self.assertTrue(first["id"])
        self.assertTrue(first["date"])
        self.assertEqual(first["total_amount"], 63.0)
        self.assertEqual(second["id"], "keep-me")
        self.assertEqual(second["date"], "2024-01-05T10:00:00+00:00")

    def test_purchase_history_entry_may_omit_total_and_invoice(self):
        response = self.client.patch(
            f"/api/v1/customers/{self.customer.id}/",
            {"purchase_history": [{"items": [{"name": "Tea", "quantity": 1}]}]},
            format="json",
        )

        self.assertEqual(response.status_code, 200)
        self.customer.refresh_from_db()
        (entry,) = self.customer.purchase_history
        self.assertEqual(entry["total_amount"], 0.0)
        self.assertEqual(entry["invoice_number"], "")
        self.assertTrue(entry["id"])

    def test_other_owner_customer_behaves_as_missing(self):
        detail = self.client.get(f"/api/v1/customers/{self.foreign.id}/")
        delete = self.client.delete(f"/api/v1/customers/{self.foreign.id}/")

        self.assertEqual(detail.status_code, 404)
        self.assertEqual(delete.status_code, 404)
        self.assertEqual(detail.json()["code"], "not_found")
        self.assertEqual(delete.json()["code"], "not_found")
        self.assertTrue(Customer.objects.filter(id=self.foreign.id).exists())

    def test_deleting_customer_keeps_sales(self):
        sale = Sale.objects.create(
            owner=self.owner,
            subtotal=Decimal("5.00"),
            total_amount=Decimal("5.00"),
            invoice_number="INV-KEEP",
            customer=self.customer,
            customer_name="Kiran",
        )

        response = self.client.delete(f"/api/v1/customers/{self.customer.id}/")

        self.assertEqual(response.status_code, 204)
        sale.refresh_from_db()
        self.assertIsNone(sale.customer_id)
        self.assertEqual(sale.customer_name, "Kiran")


class ServiceHelperTests(TestCase):
    def test_compute_totals_rounds_half_up(self):
        lines = [{"unit_price": Decimal("0.05"), "quantity": 1}]

        subtotal, discount_amount, total_amount = compute_totals(lines, Decimal("50"))

        self.assertEqual(subtotal, Decimal("0.05"))
        self.assertEqual(discount_amount, Decimal("0.03"))
        self.assertEqual(total_amount, Decimal("0.02"))

    def test_generate_invoice_number_uses_date_and_random_suffix(self):
        now = datetime(2024, 3, 9, 12, 0, tzinfo=dt_timezone.utc)

        first = generate_invoice_number(now)
        second = generate_invoice_number(now)

        self.assertTrue(re.match(r"^INV-20240309-[0-9A-F]{10}$", first))
        self.assertNotEqual(first, second)


class ReportTests(TestCase):
    def setUp(self):
        self.client = APIClient()
        self.user_model = get_user_model()
        self.owner = self.user_model.objects.create_user(username="report-owner", password="pass1234")
        self.other_owner = self.user_model.objects.create_user(username="report-other", password="pass1234")
        self.client.force_authenticate(user=self.owner)
        self._invoice_seq = 0

    def make_sale(self, total, when, owner=None, items=()):
        self._invoice_seq += 1
        sale = Sale.objects.create(
            owner=owner or self.owner,
            date=when,
            subtotal=Decimal(total),
            total_amount=Decimal(total),
            invoice_number=f"INV-TEST-{self._invoice_seq}",
        )
        for product_id, name, quantity, unit_price in items:
            SaleItem.objects.create(
                sale=sale,
                product_id=product_id,
                product_name=name,
                quantity=quantity,
                unit_price=Decimal(unit_price),
                total_price=Decimal(unit_price) * quantity,
            )
        return sale

    def test_sales_by_period_monthly_and_daily(self):
        self.make_sale("10.00", datetime(2024, 1, 15, 10, 0, tzinfo=dt_timezone.utc))
        self.make_sale("20.00", datetime(2024, 1, 15, 12, 0, tzinfo=dt_timezone.utc))
        self.make_sale("5.50", datetime(2024, 2, 1, 9, 0, tzinfo=dt_timezone.utc))
        self.make_sale("999.00", datetime(2024, 1, 15, 9, 0, tzinfo=dt_timezone.utc), owner=self.other_owner)

        monthly = self.client.get("/api/v1/reports/sales-by-period/")
        daily = self.client.get("/api/v1/reports/sales-by-period/", {"period": "daily"})

        self.assertEqual(monthly.status_code, 200)
        self.assertEqual(
            monthly.json()["results"],
            [{"time_period": "2024-01", "sales": 30.0}, {"time_period": "2024-02", "sales": 5.5}],
        )
        self.assertEqual(
            daily.json()["results"],
            [{"time_period": "2024-01-15", "sales": 30.0}, {"time_period": "2024-02-01", "sales": 5.5}],
        )

    def test_period_buckets_follow_requested_timezone(self):
        self.make_sale("10.00", datetime(2024, 1, 31, 20, 0, tzinfo=dt_timezone.utc))

        response = self.client.get("/api/v1/reports/sales-by-period/", {"timezone": "Asia/Kolkata"})

        self.assertEqual(response.json()["results"], [{"time_period": "2024-02", "sales": 10.0}])

    def test_invalid_period_and_timezone_are_rejected(self):
        bad_period = self.client.get("/api/v1/reports/sales-by-period/", {"period": "weekly"})
        bad_tz = self.client.get("/api/v1/reports/sales-by-period/", {"timezone": "Mars/Base"})

        self.assertEqual(bad_period.status_code, 400)
        self.assertEqual(bad_tz.status_code, 400)

    def test_date_range_filters_sales(self):
        self.make_sale("10.00", datetime(2024, 1, 10, tzinfo=dt_timezone.utc))
        self.make_sale("20.00", datetime(2024, 3, 10, tzinfo=dt_timezone.utc))

        response = self.client.get(
            "/api/v1/reports/sales-by-period/",
            {"date_from": "2024-01-01", "date_to": "2024-01-31"},
        )

        self.assertEqual(response.json()["results"], [{"time_period": "2024-01", "sales": 10.0}])

    def test_nonexistent_calendar_date_is_rejected(self):
        response = self.client.get(
            "/api/v1/reports/sales-by-period/",
            {"date_from": "2024-02-30", "date_to": "2024-03-01"},
        )

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["code"], "validation_error")
        self.assertIn("date_from", response.json()["errors"])

    def test_malformed_dates_are_rejected_not_ignored(self):
        self.make_sale("10.00", datetime(2024, 1, 10, tzinfo=dt_timezone.utc))

        for path in ("/api/v1/reports/sales-by-period/", "/api/v1/reports/top-products/"):
            response = self.client.get(path, {"date_from": "abc", "date_to": "xyz"})

            self.assertEqual(response.status_code, 400)
            self.assertIn("date_from", response.json()["errors"])

    def test_profit_loss_reports_revenue_with_zero_loss(self):
        self.make_sale("42.00", datetime(2024, 5, 2, tzinfo=dt_timezone.utc))

        response = self.client.get("/api/v1/reports/profit-loss/")

        self.assertEqual(response.json()["results"], [{"time_period": "2024-05", "profit": 42.0, "loss": 0}])

    def test_average_order_value(self):
        self.make_sale("10.00", datetime(2024, 1, 1, tzinfo=dt_timezone.utc))
        self.make_sale("25.00", datetime(2024, 1, 2, tzinfo=dt_timezone.utc))
        self.make_sale("10.00", datetime(2024, 1, 3, tzinfo=dt_timezone.utc))

        response = self.client.get("/api/v1/reports/average-order-value/")

        self.assertEqual(response.json()["results"], [{"time_period": "2024-01", "aov": 15.0}])

    def test_average_order_value_without_sales_is_empty(self):
        response = self.client.get("/api/v1/reports/average-order-value/")

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["results"], [])

    def test_customer_growth_counts_new_customers(self):
        Customer.objects.create(owner=self.owner, name="One", email="one@example.com")
        Customer.objects.create(owner=self.owner, name="Two", email="two@example.com")
        Customer.objects.create(owner=self.other_owner, name="Other", email="other@example.com")

        response = self.client.get("/api/v1/reports/customer-growth/")

        results = response.json()["results"]
        self.assertEqual(len(results), 1)
        self.assertEqual(results[0]["customers"], 2)
        self.assertRegex(results[0]["time_period"], r"^\d{4}-\d{2}$")

    def test_inventory_by_category(self):
        Product.objects.create(owner=self.owner, name="Chips", category="Snacks", price=Decimal("1"), stock=5)
        Product.objects.create(owner=self.owner, name="Cola", category="Beverages", price=Decimal("1"), stock=10)
        Product.objects.create(owner=self.owner, name="Juice", category="Beverages", price=Decimal("1"), stock=3)
        Product.objects.create(owner=self.other_owner, name="Tea", category="Beverages", price=Decimal("1"), stock=99)

        response = self.client.get("/api/v1/reports/inventory-by-category/")

        self.assertEqual(
            response.json()["results"],
            [{"name": "Beverages", "value": 13}, {"name": "Snacks", "value": 5}],
        )

    def test_top_products_by_units(self):
        cola, chips, tea = uuid.uuid4(), uuid.uuid4(), uuid.uuid4()
        when = datetime(2024, 1, 1, tzinfo=dt_timezone.utc)
        self.make_sale("30.00", when, items=[(cola, "Cola", 3, "5.00"), (chips, "Chips", 1, "15.00")])
        self.make_sale("20.00", when, items=[(cola, "Cola", 2, "5.00"), (tea, "Tea", 4, "2.50")])

        response = self.client.get("/api/v1/reports/top-products/", {"limit": 2})

        self.assertEqual(
            response.json()["results"],
            [
                {"product_id": str(cola), "name": "Cola", "sales": 5},
                {"product_id": str(tea), "name": "Tea", "sales": 4},
            ],
        )

    def test_sales_distribution_buckets(self):
        when = datetime(2024, 1, 1, tzinfo=dt_timezone.utc)
        for total in ("10.00", "50.50", "75.00", "1500.00", "1001.00"):
            self.make_sale(total, when)

        response = self.client.get("/api/v1/reports/sales-distribution/")

        self.assertEqual(
            response.json()["results"],
            [
                {"sales_range": "0-50", "transaction_count": 2},
                {"sales_range": "51-100", "transaction_count": 1},
                {"sales_range": "1001+", "transaction_count": 2},
            ],
        )

    def test_product_pareto_is_cumulative_over_full_ranking(self):
        a, b, c = uuid.uuid4(), uuid.uuid4(), uuid.uuid4()
        when = datetime(2024, 1, 1, tzinfo=dt_timezone.utc)
        self.make_sale("100.00", when, items=[(a, "Alpha", 6, "10.00"), (b, "Beta", 3, "10.00"), (c, "Gamma", 1, "10.00")])

        full = self.client.get("/api/v1/reports/product-pareto/").json()["results"]
        truncated = self.client.get("/api/v1/reports/product-pareto/", {"limit": 2}).json()["results"]

        self.assertEqual([row["product_name"] for row in full], ["Alpha", "Beta", "Gamma"])
        self.assertEqual([row["cumulative_percentage"] for row in full], [60.0, 90.0, 100.0])
        self.assertEqual(truncated, full[:2])

    def test_pareto_percentages_are_zero_when_nothing_sold(self):
        rows = pareto_rows(
            [
                {"product_name": "Alpha", "sales_amount": Decimal("0")},
                {"product_name": "Beta", "sales_amount": Decimal("0")},
            ]
        )

        self.assertEqual([row["cumulative_percentage"] for row in rows], [0.0, 0.0])

    def test_pareto_percentages_never_decrease(self):
        ranked = [
            {"product_name": name, "sales_amount": Decimal(amount)}
            for name, amount in [("A", "33.33"), ("B", "33.33"), ("C", "20.01"), ("D", "13.33")]
        ]

        percentages = [row["cumulative_percentage"] for row in pareto_rows(ranked)]

        self.assertEqual(percentages, sorted(percentages))
        self.assertEqual(percentages[-1], 100.0)

    def test_csv_export(self):
        self.make_sale("10.00", datetime(2024, 1, 10, tzinfo=dt_timezone.utc))

        response = self.client.get("/api/v1/reports/sales-by-period/", {"format": "csv"})

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response["Content-Type"], "text/csv")
        self.assertIn("time_period,sales", response.content.decode())
