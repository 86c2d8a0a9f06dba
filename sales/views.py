from rest_framework import mixins, status, viewsets
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from common.audit import create_audit_log_from_request
from common.mixins import OwnedMutationMixin, scoped_queryset_for_user
from common.utils import parse_uuid
from sales.models import Customer, Sale
from sales.serializers import CheckoutSerializer, CustomerSerializer, SaleSerializer
from sales.services import create_sale, get_sale


class CustomerViewSet(OwnedMutationMixin, viewsets.ModelViewSet):
    queryset = Customer.objects.all().order_by("name", "created_at")
    serializer_class = CustomerSerializer
    permission_classes = [IsAuthenticated]
    audit_entity = "customer"


class SaleViewSet(mixins.ListModelMixin, viewsets.GenericViewSet):
    """Checkout and sale lookup. Sales are never edited or deleted."""

    queryset = Sale.objects.prefetch_related("items").order_by("-date")
    serializer_class = SaleSerializer
    permission_classes = [IsAuthenticated]

    def get_queryset(self):
        qs = scoped_queryset_for_user(super().get_queryset(), self.request.user)
        customer_id = parse_uuid(self.request.query_params.get("customer"))
        if customer_id:
            qs = qs.filter(customer_id=customer_id)
        return qs

    def retrieve(self, request, pk=None):
        sale = get_sale(request.user, pk)
        return Response(SaleSerializer(sale).data)

    def create(self, request):
        serializer = CheckoutSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        sale = create_sale(
            request.user,
            items=data["items"],
            discount_applied=data["discount_applied"],
            customer=data.get("customer"),
            subtotal=data.get("subtotal"),
            discount_amount=data.get("discount_amount"),
            total_amount=data.get("total_amount"),
        )

        sale_payload = SaleSerializer(get_sale(request.user, sale.id)).data
        create_audit_log_from_request(
            request,
            action="sale.create",
            entity="sale",
            entity_id=sale.id,
            after_snapshot=sale_payload,
        )
        return Response(sale_payload, status=status.HTTP_201_CREATED)
