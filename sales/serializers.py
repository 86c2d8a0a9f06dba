import uuid

from django.utils import timezone
from rest_framework import serializers

from sales.models import Customer, Sale, SaleItem


class PurchaseSerializer(serializers.Serializer):
    id = serializers.CharField(required=False, allow_blank=True)
    date = serializers.CharField(required=False, allow_blank=True)
    items = serializers.ListField(child=serializers.DictField(), required=False, default=list)
    total_amount = serializers.DecimalField(max_digits=12, decimal_places=2, required=False, coerce_to_string=False)
    invoice_number = serializers.CharField(required=False, allow_blank=True)

    def to_internal_value(self, data):
        attrs = super().to_internal_value(data)
        attrs["id"] = attrs.get("id") or uuid.uuid4().hex
        attrs["date"] = attrs.get("date") or timezone.now().isoformat()
        attrs["total_amount"] = float(attrs.get("total_amount", 0))
        attrs.setdefault("items", [])
        attrs.setdefault("invoice_number", "")
        return attrs


class CustomerSerializer(serializers.ModelSerializer):
    purchase_history = serializers.ListField(child=PurchaseSerializer(), required=False)
    loyalty_points = serializers.IntegerField(min_value=0, required=False)

    class Meta:
        model = Customer
        fields = [
            "id",
            "owner",
            "name",
            "email",
            "phone",
            "address",
            "loyalty_points",
            "purchase_history",
            "created_at",
            "updated_at",
        ]
        read_only_fields = ["id", "owner", "created_at", "updated_at"]

    def validate_email(self, value):
        normalized_email = value.strip().lower()
        request = self.context.get("request")
        if request is None:
            return normalized_email

        qs = Customer.objects.filter(owner=request.user, email__iexact=normalized_email)
        if self.instance is not None:
            qs = qs.exclude(id=self.instance.id)
        if qs.exists():
            raise serializers.ValidationError("A customer with this email already exists.")
        return normalized_email


class SaleItemSerializer(serializers.ModelSerializer):
    class Meta:
        model = SaleItem
        fields = ["product_id", "product_name", "quantity", "unit_price", "total_price"]
        read_only_fields = fields


class SaleSerializer(serializers.ModelSerializer):
    items = SaleItemSerializer(many=True, read_only=True)

    class Meta:
        model = Sale
        fields = [
            "id",
            "owner",
            "date",
            "items",
            "subtotal",
            "discount_applied",
            "discount_amount",
            "total_amount",
            "invoice_number",
            "customer",
            "customer_name",
            "customer_email",
            "customer_phone",
            "customer_address",
        ]
        read_only_fields = fields


class CartItemSerializer(serializers.Serializer):
    product_id = serializers.UUIDField(error_messages={"invalid": "Invalid product ID format."})
    quantity = serializers.IntegerField(min_value=1)


class CheckoutCustomerSerializer(serializers.Serializer):
    customer_id = serializers.UUIDField(required=False, allow_null=True, error_messages={"invalid": "Invalid customer ID format."})
    name = serializers.CharField(required=False, allow_blank=True, default="")
    email = serializers.EmailField(required=False, allow_blank=True, default="")
    phone = serializers.CharField(required=False, allow_blank=True, default="")
    address = serializers.CharField(required=False, allow_blank=True, default="")


class CheckoutSerializer(serializers.Serializer):
    items = CartItemSerializer(many=True, allow_empty=False)
    discount_applied = serializers.DecimalField(max_digits=5, decimal_places=2, min_value=0, max_value=100, default=0)
    subtotal = serializers.DecimalField(max_digits=12, decimal_places=2, required=False, allow_null=True)
    discount_amount = serializers.DecimalField(max_digits=12, decimal_places=2, required=False, allow_null=True)
    total_amount = serializers.DecimalField(max_digits=12, decimal_places=2, required=False, allow_null=True)
    customer = CheckoutCustomerSerializer(required=False, allow_null=True)
