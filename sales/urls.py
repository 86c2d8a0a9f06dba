from django.urls import path
from rest_framework.routers import DefaultRouter

from sales.reports import (
    AverageOrderValueReportView,
    CustomerGrowthReportView,
    InventoryByCategoryReportView,
    ProductParetoReportView,
    ProfitLossReportView,
    SalesByPeriodReportView,
    SalesDistributionReportView,
    TopProductsReportView,
)
from sales.views import CustomerViewSet, SaleViewSet

router = DefaultRouter()
router.register(r"customers", CustomerViewSet, basename="customer")
router.register(r"sales", SaleViewSet, basename="sale")

urlpatterns = router.urls + [
    path("reports/sales-by-period/", SalesByPeriodReportView.as_view(), name="report-sales-by-period"),
    path("reports/profit-loss/", ProfitLossReportView.as_view(), name="report-profit-loss"),
    path("reports/average-order-value/", AverageOrderValueReportView.as_view(), name="report-average-order-value"),
    path("reports/customer-growth/", CustomerGrowthReportView.as_view(), name="report-customer-growth"),
    path("reports/inventory-by-category/", InventoryByCategoryReportView.as_view(), name="report-inventory-by-category"),
    path("reports/top-products/", TopProductsReportView.as_view(), name="report-top-products"),
    path("reports/sales-distribution/", SalesDistributionReportView.as_view(), name="report-sales-distribution"),
    path("reports/product-pareto/", ProductParetoReportView.as_view(), name="report-product-pareto"),
]
