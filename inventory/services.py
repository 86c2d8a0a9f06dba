import logging

from django.conf import settings
from django.core.mail import send_mail
from django.db import transaction
from django.db.models import F
from django.utils import timezone
from rest_framework import status

from common.exceptions import ServiceError
from core.models import StoreSettings
from inventory.models import Product

logger = logging.getLogger(__name__)


class StockUpdateConflict(ServiceError):
    status_code = status.HTTP_409_CONFLICT
    default_detail = "Stock changed while the sale was being recorded."
    default_code = "stock_update_conflict"


def is_low_stock(stock):
    return stock < settings.LOW_STOCK_THRESHOLD


def decrement_stock(owner, product, quantity):
    """Take `quantity` units off `product`, refusing to go below zero.

    Returns the remaining stock. Raises StockUpdateConflict when the guarded
    update matches no row.
    """
    updated = Product.objects.filter(id=product.id, owner=owner, stock__gte=quantity).update(
        stock=F("stock") - quantity,
        updated_at=timezone.now(),
    )
    if updated == 0:
        raise StockUpdateConflict(
            f"Failed to update stock for product {product.name}.",
            errors={"product_id": str(product.id), "product_name": product.name, "requested": quantity},
        )
    product.stock -= quantity
    return product.stock


def send_low_stock_email(admin_email, product, store_name=None):
    store_name = store_name or settings.STORE_NAME
    if not admin_email:
        logger.warning(
            "low_stock_email_skipped_no_admin_email",
            extra={"product_id": str(product.id), "stock": product.stock},
        )
        return

    try:
        send_mail(
            subject=f"Low Stock Alert: {product.name} at {store_name}",
            message=(
                "Hello Admin,\n\n"
                f'The stock for the product "{product.name}" (ID: {product.id}) is running low.\n'
                f"Current Stock: {product.stock}\n\n"
                "Please take necessary action to restock this item.\n\n"
                f"Thank you,\nYour {store_name} System"
            ),
            from_email=settings.DEFAULT_FROM_EMAIL,
            recipient_list=[admin_email],
            fail_silently=False,
        )
    except Exception:
        logger.exception(
            "low_stock_email_send_failed",
            extra={"product_id": str(product.id), "email": admin_email},
        )


def notify_low_stock(owner, product):
    if not is_low_stock(product.stock):
        return
    try:
        store_settings = StoreSettings.for_owner(owner)
        if store_settings.wants_low_stock_email:
            send_low_stock_email(store_settings.admin_email, product, settings.STORE_NAME)
    except Exception:
        logger.exception(
            "low_stock_notification_failed",
            extra={"owner_id": owner.id, "product_id": product.id},
        )


def schedule_low_stock_notification(owner, product):
    """Queue a low-stock notification to run once the current transaction commits."""
    if is_low_stock(product.stock):
        transaction.on_commit(lambda: notify_low_stock(owner, product))
