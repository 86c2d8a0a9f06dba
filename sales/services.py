import logging
import uuid
from collections import OrderedDict
from decimal import Decimal

from django.db import DatabaseError, transaction
from django.utils import timezone
from rest_framework import status
from rest_framework.exceptions import NotFound, ValidationError

from common.exceptions import ServiceError
from common.utils import require_uuid, to_money
from inventory.models import Product
from inventory.services import StockUpdateConflict, decrement_stock, schedule_low_stock_notification
from sales.models import Customer, Sale, SaleItem

logger = logging.getLogger("sales.checkout")


class ProductNotFound(ServiceError):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = "Product not found."
    default_code = "product_not_found"


class CustomerNotFound(ServiceError):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = "Customer not found."
    default_code = "customer_not_found"


class InsufficientStock(ServiceError):
    status_code = status.HTTP_409_CONFLICT
    default_detail = "Insufficient stock for one or more items."
    default_code = "insufficient_stock"


def generate_invoice_number(now=None):
    now = now or timezone.now()
    return f"INV-{now:%Y%m%d}-{uuid.uuid4().hex[:10].upper()}"


def compute_totals(lines, discount_applied):
    """Return (subtotal, discount_amount, total_amount) for priced cart lines."""
    subtotal = to_money(sum((line["unit_price"] * line["quantity"] for line in lines), Decimal("0")))
    discount_amount = to_money(subtotal * Decimal(discount_applied) / Decimal("100"))
    return subtotal, discount_amount, to_money(subtotal - discount_amount)


def _aggregate_quantities(items):
    quantities = OrderedDict()
    for item in items:
        product_id = require_uuid(item["product_id"], field="product_id", label="product")
        quantities[product_id] = quantities.get(product_id, 0) + int(item["quantity"])
    return quantities


def _lock_products(owner, quantities):
    products = {
        product.id: product
        for product in Product.objects.select_for_update().filter(owner=owner, id__in=list(quantities))
    }
    for product_id in quantities:
        if product_id not in products:
            raise ProductNotFound(
                f"Product {product_id} not found.",
                errors={"product_id": str(product_id)},
            )

    shortfalls = [
        {
            "product_id": str(product_id),
            "product_name": products[product_id].name,
            "requested": requested,
            "available": products[product_id].stock,
        }
        for product_id, requested in quantities.items()
        if products[product_id].stock < requested
    ]
    if shortfalls:
        raise InsufficientStock(errors={"insufficient_stock": shortfalls})
    return products


def _check_client_totals(computed, submitted):
    mismatches = {}
    for field, value in computed.items():
        claimed = submitted.get(field)
        if claimed is not None and to_money(claimed) != value:
            mismatches[field] = f"Expected {value}, got {to_money(claimed)}."
    if mismatches:
        raise ValidationError(mismatches)


def resolve_customer(owner, info):
    """Work out which customer a sale belongs to.

    Returns (customer, fields) where `customer` may be None and `fields` holds
    the name, email, phone and address to store on the sale.
    """
    info = info or {}
    fields = {
        "customer_name": info.get("name") or "",
        "customer_email": (info.get("email") or "").strip().lower(),
        "customer_phone": info.get("phone") or "",
        "customer_address": info.get("address") or "",
    }

    customer_id = info.get("customer_id")
    if customer_id:
        customer = Customer.objects.filter(owner=owner, id=customer_id).first()
        if customer is None:
            raise CustomerNotFound(errors={"customer_id": str(customer_id)})
        return customer, {
            "customer_name": fields["customer_name"] or customer.name,
            "customer_email": fields["customer_email"] or customer.email,
            "customer_phone": fields["customer_phone"] or customer.phone,
            "customer_address": fields["customer_address"] or customer.address,
        }

    if not (fields["customer_name"] and fields["customer_email"]):
        return None, fields

    customer = Customer.objects.filter(owner=owner, email__iexact=fields["customer_email"]).first()
    if customer is not None:
        return customer, {
            "customer_name": customer.name,
            "customer_email": customer.email,
            "customer_phone": customer.phone or fields["customer_phone"],
            "customer_address": customer.address or fields["customer_address"],
        }

    try:
        with transaction.atomic():
            customer = Customer.objects.create(
                owner=owner,
                name=fields["customer_name"],
                email=fields["customer_email"],
                phone=fields["customer_phone"],
                address=fields["customer_address"],
                loyalty_points=0,
                purchase_history=[],
            )
    except DatabaseError:
        logger.exception(
            "customer_create_failed_during_checkout",
            extra={"owner_id": owner.id},
        )
        return None, fields
    return customer, fields


@transaction.atomic
def create_sale(
    owner,
    *,
    items,
    discount_applied=Decimal("0"),
    customer=None,
    subtotal=None,
    discount_amount=None,
    total_amount=None,
):
    quantities = _aggregate_quantities(items)
    products = _lock_products(owner, quantities)

    lines = [
        {
            "product": products[product_id],
            "quantity": quantity,
            "unit_price": products[product_id].price,
        }
        for product_id, quantity in quantities.items()
    ]
    computed_subtotal, computed_discount, computed_total = compute_totals(lines, discount_applied)
    _check_client_totals(
        {
            "subtotal": computed_subtotal,
            "discount_amount": computed_discount,
            "total_amount": computed_total,
        },
        {
            "subtotal": subtotal,
            "discount_amount": discount_amount,
            "total_amount": total_amount,
        },
    )

    linked_customer, customer_fields = resolve_customer(owner, customer)

    now = timezone.now()
    sale = Sale.objects.create(
        owner=owner,
        date=now,
        subtotal=computed_subtotal,
        discount_applied=Decimal(discount_applied),
        discount_amount=computed_discount,
        total_amount=computed_total,
        invoice_number=generate_invoice_number(now),
        customer=linked_customer,
        **customer_fields,
    )
    SaleItem.objects.bulk_create(
        [
            SaleItem(
                sale=sale,
                product_id=line["product"].id,
                product_name=line["product"].name,
                quantity=line["quantity"],
                unit_price=line["unit_price"],
                total_price=to_money(line["unit_price"] * line["quantity"]),
            )
            for line in lines
        ]
    )

    for line in lines:
        product = line["product"]
        try:
            decrement_stock(owner, product, line["quantity"])
        except StockUpdateConflict:
            logger.critical(
                "stock_update_conflict",
                extra={
                    "owner_id": owner.id,
                    "sale_id": sale.id,
                    "product_id": product.id,
                    "product_name": product.name,
                },
            )
            raise
        schedule_low_stock_notification(owner, product)

    logger.info(
        "sale_created",
        extra={"owner_id": owner.id, "sale_id": sale.id, "invoice_number": sale.invoice_number},
    )
    return sale


def get_sale(owner, sale_id):
    sale_id = require_uuid(sale_id, field="id", label="sale")
    sale = Sale.objects.filter(owner=owner, id=sale_id).prefetch_related("items").first()
    if sale is None:
        raise NotFound("Sale not found.")
    return sale
