from io import StringIO

from django.contrib.auth import get_user_model
from django.core.management import call_command
from django.test import TestCase
from rest_framework.test import APIClient

from core.models import AuditLog, Branch, StoreSettings
from inventory.models import Product
from sales.models import Customer, Sale


class AccountTests(TestCase):
    def setUp(self):
        self.client = APIClient()
        self.user_model = get_user_model()

    def test_register_creates_user_and_audit_entry(self):
        response = self.client.post(
            "/api/v1/register/",
            {"username": "shop-owner", "email": "Owner@Example.com", "password": "s3cure-pass-123"},
            format="json",
        )

        self.assertEqual(response.status_code, 201)
        user = self.user_model.objects.get(username="shop-owner")
        self.assertEqual(user.email, "owner@example.com")
        self.assertTrue(AuditLog.objects.filter(action="user.create", entity_id=user.id).exists())

    def test_register_rejects_duplicate_email_case_insensitively(self):
        self.user_model.objects.create_user(username="first", email="dup@example.com", password="pass1234")

        response = self.client.post(
            "/api/v1/register/",
            {"username": "second", "email": "DUP@example.com", "password": "s3cure-pass-123"},
            format="json",
        )

        self.assertEqual(response.status_code, 400)
        payload = response.json()
        self.assertEqual(payload["code"], "validation_error")
        self.assertIn("email", payload["errors"])

    def test_token_login_accepts_email_or_username(self):
        self.user_model.objects.create_user(username="cashier", email="cashier@example.com", password="pass1234")

        by_email = self.client.post(
            "/api/v1/token/",
            {"username": "Cashier@Example.com", "password": "pass1234"},
            format="json",
        )
        by_username = self.client.post(
            "/api/v1/token/",
            {"username": "cashier", "password": "pass1234"},
            format="json",
        )

        self.assertEqual(by_email.status_code, 200)
        self.assertIn("access", by_email.json())
        self.assertEqual(by_username.status_code, 200)

    def test_token_login_rejects_wrong_password(self):
        self.user_model.objects.create_user(username="cashier", email="cashier@example.com", password="pass1234")

        response = self.client.post(
            "/api/v1/token/",
            {"username": "cashier", "password": "wrong"},
            format="json",
        )

        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.json()["code"], "authentication_failed")

    def test_protected_endpoint_requires_authentication(self):
        response = self.client.get("/api/v1/branches/")

        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.json()["code"], "not_authenticated")


class BranchTests(TestCase):
    def setUp(self):
        self.client = APIClient()
        self.user_model = get_user_model()
        self.owner_a = self.user_model.objects.create_user(username="owner-a", password="pass1234")
        self.owner_b = self.user_model.objects.create_user(username="owner-b", password="pass1234")
        self.branch_a = Branch.objects.create(owner=self.owner_a, name="Downtown", location="Main St", size="Large")
        self.branch_b = Branch.objects.create(owner=self.owner_b, name="Airport", location="Terminal 2", size="Small")

    def test_list_only_returns_own_branches(self):
        self.client.force_authenticate(user=self.owner_a)

        response = self.client.get("/api/v1/branches/")

        self.assertEqual(response.status_code, 200)
        payload = response.json()
        self.assertEqual(sorted(payload.keys()), ["count", "next", "previous", "results"])
        ids = {item["id"] for item in payload["results"]}
        self.assertEqual(ids, {str(self.branch_a.id)})

    def test_create_ignores_injected_owner(self):
        self.client.force_authenticate(user=self.owner_a)

        response = self.client.post(
            "/api/v1/branches/",
            {
                "owner": str(self.owner_b.id),
                "name": "Mall",
                "location": "City Mall",
                "size": "Medium",
                "manager": "Priya",
            },
            format="json",
        )

        self.assertEqual(response.status_code, 201)
        created = Branch.objects.get(id=response.json()["id"])
        self.assertEqual(created.owner_id, self.owner_a.id)
        self.assertTrue(AuditLog.objects.filter(action="branch.create", entity_id=created.id).exists())

    def test_other_owners_branch_behaves_as_missing(self):
        self.client.force_authenticate(user=self.owner_a)

        detail = self.client.get(f"/api/v1/branches/{self.branch_b.id}/")
        update = self.client.patch(f"/api/v1/branches/{self.branch_b.id}/", {"name": "Hijacked"}, format="json")
        delete = self.client.delete(f"/api/v1/branches/{self.branch_b.id}/")

        self.assertEqual(detail.status_code, 404)
        self.assertEqual(update.status_code, 404)
        self.assertEqual(delete.status_code, 404)
        self.assertEqual(detail.json()["code"], "not_found")
        self.assertEqual(update.json()["code"], "not_found")
        self.branch_b.refresh_from_db()
        self.assertEqual(self.branch_b.name, "Airport")

    def test_update_and_delete_own_branch(self):
        self.client.force_authenticate(user=self.owner_a)

        update = self.client.patch(f"/api/v1/branches/{self.branch_a.id}/", {"manager": "Ravi"}, format="json")
        self.assertEqual(update.status_code, 200)
        self.assertEqual(update.json()["manager"], "Ravi")

        delete = self.client.delete(f"/api/v1/branches/{self.branch_a.id}/")
        self.assertEqual(delete.status_code, 204)
        self.assertFalse(Branch.objects.filter(id=self.branch_a.id).exists())
        self.assertTrue(AuditLog.objects.filter(action="branch.delete", entity_id=self.branch_a.id).exists())


class StoreSettingsTests(TestCase):
    def setUp(self):
        self.client = APIClient()
        self.owner = get_user_model().objects.create_user(username="settings-owner", password="pass1234")
        self.client.force_authenticate(user=self.owner)

    def test_get_returns_defaults_without_creating_a_row(self):
        response = self.client.get("/api/v1/settings/")

        self.assertEqual(response.status_code, 200)
        payload = response.json()
        self.assertIsNone(payload["id"])
        self.assertEqual(payload["tax_rate"], "0.00")
        self.assertEqual(payload["currency_symbol"], "₹")
        self.assertEqual(payload["admin_email"], "")
        self.assertEqual(
            payload["notifications"],
            {
                "low_stock_email": False,
                "low_stock_sms": False,
                "daily_sales_email": False,
                "weekly_sales_email": False,
            },
        )
        self.assertFalse(StoreSettings.objects.filter(owner=self.owner).exists())

    def test_put_creates_then_patch_updates_single_row(self):
        created = self.client.put(
            "/api/v1/settings/",
            {
                "tax_rate": "18.00",
                "currency_symbol": "$",
                "prices_include_tax": True,
                "admin_email": "Admin@Store.com",
                "notifications": {"low_stock_email": True},
            },
            format="json",
        )

        self.assertEqual(created.status_code, 200)
        payload = created.json()
        self.assertIsNotNone(payload["id"])
        self.assertEqual(payload["admin_email"], "admin@store.com")
        self.assertTrue(payload["notifications"]["low_stock_email"])

        updated = self.client.patch("/api/v1/settings/", {"notifications": {"daily_sales_email": True}}, format="json")

        self.assertEqual(updated.status_code, 200)
        self.assertEqual(updated.json()["id"], payload["id"])
        self.assertTrue(updated.json()["notifications"]["low_stock_email"])
        self.assertTrue(updated.json()["notifications"]["daily_sales_email"])
        self.assertEqual(StoreSettings.objects.filter(owner=self.owner).count(), 1)
        self.assertEqual(AuditLog.objects.filter(action="store_settings.update").count(), 2)

    def test_rejects_out_of_range_tax_rate(self):
        response = self.client.patch("/api/v1/settings/", {"tax_rate": "150"}, format="json")

        self.assertEqual(response.status_code, 400)
        self.assertIn("tax_rate", response.json()["errors"])
        self.assertFalse(StoreSettings.objects.filter(owner=self.owner).exists())

    def test_settings_are_per_owner(self):
        StoreSettings.objects.create(owner=self.owner, currency_symbol="€")
        other = get_user_model().objects.create_user(username="other-owner", password="pass1234")
        self.client.force_authenticate(user=other)

        response = self.client.get("/api/v1/settings/")

        self.assertEqual(response.json()["currency_symbol"], "₹")


class AuditLogTests(TestCase):
    def setUp(self):
        self.client = APIClient()
        self.user_model = get_user_model()
        self.owner_a = self.user_model.objects.create_user(username="audit-a", password="pass1234")
        self.owner_b = self.user_model.objects.create_user(username="audit-b", password="pass1234")
        AuditLog.objects.create(actor=self.owner_a, action="branch.create", entity="branch")
        AuditLog.objects.create(actor=self.owner_b, action="branch.create", entity="branch")

    def test_audit_logs_are_scoped_to_actor(self):
        self.client.force_authenticate(user=self.owner_a)

        response = self.client.get("/api/v1/admin/audit-logs/")

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["count"], 1)
        self.assertEqual(response.json()["results"][0]["actor_username"], "audit-a")

    def test_export_returns_csv(self):
        self.client.force_authenticate(user=self.owner_a)

        response = self.client.get("/api/v1/admin/audit-logs/export/")

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response["Content-Type"], "text/csv")
        lines = response.content.decode().strip().splitlines()
        self.assertEqual(len(lines), 2)


class HealthTests(TestCase):
    def test_health_and_readiness(self):
        client = APIClient()

        self.assertEqual(client.get("/healthz/").json()["status"], "ok")
        self.assertEqual(client.get("/readyz/").json()["status"], "ready")


class SeedDemoDataTests(TestCase):
    def test_seed_is_idempotent(self):
        call_command("seed_demo_data", stdout=StringIO())
        call_command("seed_demo_data", stdout=StringIO())

        owner = get_user_model().objects.get(username="demo")
        self.assertEqual(Branch.objects.filter(owner=owner).count(), 1)
        self.assertEqual(Product.objects.filter(owner=owner).count(), 5)
        self.assertEqual(Customer.objects.filter(owner=owner).count(), 1)
        self.assertEqual(Sale.objects.filter(owner=owner).count(), 1)
        self.assertEqual(Product.objects.get(owner=owner, name="Cola 330ml").stock, 118)
