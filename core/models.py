import uuid
from decimal import Decimal

from django.contrib.auth.models import AbstractUser
from django.db import models
from django.db.models import Q
from django.db.models.functions import Lower


class User(AbstractUser):
    """A store account. Every owned record points back to one of these."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    email = models.EmailField(blank=True)

    class Meta(AbstractUser.Meta):
        constraints = [
            models.UniqueConstraint(
                Lower("email"),
                condition=~Q(email=""),
                name="core_user_email_ci_unique",
            )
        ]

    def save(self, *args, **kwargs):
        if self.email:
            self.email = self.email.strip().lower()
        super().save(*args, **kwargs)


class Branch(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    owner = models.ForeignKey(User, on_delete=models.CASCADE, related_name="branches")
    name = models.CharField(max_length=255)
    location = models.CharField(max_length=255)
    size = models.CharField(max_length=64)
    manager = models.CharField(max_length=255, blank=True, default="")
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        indexes = [
            models.Index(fields=["owner", "name"], name="branch_owner_name_idx"),
        ]


class StoreSettings(models.Model):
    DEFAULT_CURRENCY_SYMBOL = "₹"

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    owner = models.OneToOneField(User, on_delete=models.CASCADE, related_name="store_settings")
    tax_rate = models.DecimalField(max_digits=6, decimal_places=2, default=Decimal("0"))
    currency_symbol = models.CharField(max_length=8, default=DEFAULT_CURRENCY_SYMBOL)
    prices_include_tax = models.BooleanField(default=False)
    admin_email = models.EmailField(blank=True, default="")
    low_stock_email = models.BooleanField(default=False)
    low_stock_sms = models.BooleanField(default=False)
    daily_sales_email = models.BooleanField(default=False)
    weekly_sales_email = models.BooleanField(default=False)
    updated_at = models.DateTimeField(auto_now=True)

    @classmethod
    def for_owner(cls, owner):
        """Stored settings for `owner`, or an unsaved instance holding the defaults."""
        settings = cls.objects.filter(owner=owner).first()
        if settings is None:
            settings = cls(owner=owner)
        return settings

    @property
    def wants_low_stock_email(self):
        return bool(self.low_stock_email and self.admin_email)


class AuditLog(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    actor = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True)
    action = models.CharField(max_length=64)
    entity = models.CharField(max_length=64)
    entity_id = models.UUIDField(null=True, blank=True)
    before_snapshot = models.JSONField(null=True, blank=True)
    after_snapshot = models.JSONField(null=True, blank=True)
    request_id = models.CharField(max_length=255, null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        indexes = [
            models.Index(fields=["created_at"], name="auditlog_created_idx"),
            models.Index(fields=["action", "created_at"], name="auditlog_action_created_idx"),
            models.Index(fields=["entity", "created_at"], name="auditlog_entity_created_idx"),
            models.Index(fields=["actor", "created_at"], name="auditlog_actor_created_idx"),
        ]
