from rest_framework import viewsets
from rest_framework.permissions import IsAuthenticated

from common.mixins import OwnedMutationMixin
from inventory.models import Product
from inventory.serializers import ProductSerializer
from inventory.services import schedule_low_stock_notification


class ProductViewSet(OwnedMutationMixin, viewsets.ModelViewSet):
    queryset = Product.objects.all().order_by("name", "created_at")
    serializer_class = ProductSerializer
    permission_classes = [IsAuthenticated]
    audit_entity = "product"

    def get_queryset(self):
        qs = super().get_queryset()
        category = self.request.query_params.get("category")
        search = self.request.query_params.get("search")
        if category:
            qs = qs.filter(category__iexact=category)
        if search:
            qs = qs.filter(name__icontains=search)
        return qs

    def perform_create(self, serializer):
        product = super().perform_create(serializer)
        schedule_low_stock_notification(self.request.user, product)
        return product

    def perform_update(self, serializer):
        product = super().perform_update(serializer)
        schedule_low_stock_notification(self.request.user, product)
        return product
