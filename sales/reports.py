import csv
from datetime import datetime, time
from decimal import ROUND_HALF_UP, Decimal
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from django.conf import settings
from django.core.cache import cache
from django.db.models import Case, CharField, Count, Max, Sum, Value, When
from django.db.models.functions import Coalesce, TruncDate, TruncMonth
from django.http import HttpResponse
from django.utils.dateparse import parse_date
from rest_framework.exceptions import ValidationError
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from common.utils import to_money
from inventory.models import Product
from sales.models import Customer, Sale, SaleItem

PERIODS = ("daily", "monthly")

SALES_BUCKETS = (
    ("0-50", Decimal("0"), Decimal("51")),
    ("51-100", Decimal("51"), Decimal("101")),
    ("101-200", Decimal("101"), Decimal("201")),
    ("201-500", Decimal("201"), Decimal("501")),
    ("501-1000", Decimal("501"), Decimal("1001")),
)
OVERFLOW_BUCKET = "1001+"
PERCENT_QUANT = Decimal("0.1")


class BaseReportView(APIView):
    permission_classes = [IsAuthenticated]
    report_key = None
    filename = None

    @property
    def cache_timeout(self):
        return settings.REPORT_CACHE_SECONDS

    def perform_content_negotiation(self, request, force=False):
        # `format=csv` is answered with a plain HttpResponse, not a renderer.
        if request.query_params.get("format") == "csv":
            force = True
        return super().perform_content_negotiation(request, force=force)

    def _parse_timezone(self, tz_name):
        try:
            return ZoneInfo(tz_name)
        except (ZoneInfoNotFoundError, ValueError):
            raise ValidationError({"timezone": "Invalid IANA timezone."})

    def _parse_period(self, request):
        period = request.query_params.get("period", "monthly")
        if period not in PERIODS:
            raise ValidationError({"period": "Period must be one of: daily, monthly."})
        return period

    def _parse_limit(self, request, default=10, minimum=1, maximum=1000):
        raw_limit = request.query_params.get("limit")
        if raw_limit is None:
            return default

        try:
            limit = int(raw_limit)
        except (TypeError, ValueError):
            raise ValidationError({"limit": f"Limit must be an integer between {minimum} and {maximum}."})

        if not minimum <= limit <= maximum:
            raise ValidationError({"limit": f"Limit must be between {minimum} and {maximum}."})
        return limit

    def _parse_date_param(self, request, name):
        raw_value = request.query_params.get(name, "")
        if not raw_value:
            return None

        try:
            value = parse_date(raw_value)
        except ValueError:
            value = None
        if value is None:
            raise ValidationError({name: "Date must be a valid YYYY-MM-DD value."})
        return value

    def _date_range(self, request, tz):
        date_from = self._parse_date_param(request, "date_from")
        date_to = self._parse_date_param(request, "date_to")
        if not date_from and not date_to:
            return None, None

        if not date_from or not date_to:
            raise ValidationError({"date_range": "Both date_from and date_to are required."})
        if date_from > date_to:
            raise ValidationError({"date_range": "date_from must be before or equal to date_to."})

        start = datetime.combine(date_from, time.min).replace(tzinfo=tz)
        end = datetime.combine(date_to, time.max).replace(tzinfo=tz)
        return start, end

    def _csv_response(self, filename, rows):
        response = HttpResponse(content_type="text/csv")
        response["Content-Disposition"] = f'attachment; filename="{filename}"'

        if not rows:
            return response

        writer = csv.DictWriter(response, fieldnames=list(rows[0].keys()))
        writer.writeheader()
        for row in rows:
            writer.writerow(row)
        return response

    def _cached(self, request, key, callback):
        cache_key = f"reports:{key}:{request.user.id}:{request.get_full_path()}"
        payload = cache.get(cache_key)
        if payload is None:
            payload = callback()
            cache.set(cache_key, payload, self.cache_timeout)
        return payload

    def _respond(self, request, rows, **meta):
        if request.query_params.get("format") == "csv":
            return self._csv_response(self.filename, rows)
        return Response({**meta, "results": rows})


class PeriodReportView(BaseReportView):
    """Report bucketed by day or month in the caller's timezone."""

    date_field = "date"

    def get_queryset(self, request):
        raise NotImplementedError

    def aggregates(self):
        raise NotImplementedError

    def format_row(self, label, row):
        raise NotImplementedError

    def get(self, request):
        period = self._parse_period(request)
        tz_name = request.query_params.get("timezone") or "UTC"
        tz = self._parse_timezone(tz_name)
        start, end = self._date_range(request, tz)

        def run():
            qs = self.get_queryset(request)
            if start and end:
                qs = qs.filter(**{f"{self.date_field}__gte": start, f"{self.date_field}__lte": end})
            trunc = TruncDate if period == "daily" else TruncMonth
            rows = (
                qs.annotate(bucket=trunc(self.date_field, tzinfo=tz))
                .values("bucket")
                .annotate(**self.aggregates())
                .order_by("bucket")
            )
            return [self.format_row(_bucket_label(row["bucket"], period), row) for row in rows]

        rows = self._cached(request, self.report_key, run)
        return self._respond(request, rows, period=period, timezone=tz_name)


def _bucket_label(value, period):
    if period == "daily":
        return value.isoformat()
    return f"{value:%Y-%m}"


def _number(value):
    return float(to_money(value or 0))


class SalesByPeriodReportView(PeriodReportView):
    report_key = "sales-by-period"
    filename = "sales_by_period.csv"

    def get_queryset(self, request):
        return Sale.objects.filter(owner=request.user)

    def aggregates(self):
        return {"sales": Coalesce(Sum("total_amount"), Decimal("0.00"))}

    def format_row(self, label, row):
        return {"time_period": label, "sales": _number(row["sales"])}


class ProfitLossReportView(SalesByPeriodReportView):
    report_key = "profit-loss"
    filename = "profit_loss.csv"

    def format_row(self, label, row):
        # Cost is not tracked; revenue stands in for profit.
        return {"time_period": label, "profit": _number(row["sales"]), "loss": 0}


class AverageOrderValueReportView(PeriodReportView):
    report_key = "average-order-value"
    filename = "average_order_value.csv"

    def get_queryset(self, request):
        return Sale.objects.filter(owner=request.user)

    def aggregates(self):
        return {
            "total": Coalesce(Sum("total_amount"), Decimal("0.00")),
            "count": Count("id"),
        }

    def format_row(self, label, row):
        aov = Decimal("0") if not row["count"] else row["total"] / row["count"]
        return {"time_period": label, "aov": _number(aov)}


class CustomerGrowthReportView(PeriodReportView):
    report_key = "customer-growth"
    filename = "customer_growth.csv"
    date_field = "created_at"

    def get_queryset(self, request):
        return Customer.objects.filter(owner=request.user)

    def aggregates(self):
        return {"customers": Count("id")}

    def format_row(self, label, row):
        return {"time_period": label, "customers": row["customers"]}


class InventoryByCategoryReportView(BaseReportView):
    report_key = "inventory-by-category"
    filename = "inventory_by_category.csv"

    def get(self, request):
        def run():
            rows = (
                Product.objects.filter(owner=request.user)
                .values("category")
                .annotate(value=Coalesce(Sum("stock"), 0))
                .order_by("category")
            )
            return [{"name": row["category"], "value": row["value"]} for row in rows]

        rows = self._cached(request, self.report_key, run)
        return self._respond(request, rows)


class SaleItemReportView(BaseReportView):
    def _items(self, request):
        tz = self._parse_timezone(request.query_params.get("timezone") or "UTC")
        start, end = self._date_range(request, tz)
        qs = SaleItem.objects.filter(sale__owner=request.user)
        if start and end:
            qs = qs.filter(sale__date__gte=start, sale__date__lte=end)
        return qs


class TopProductsReportView(SaleItemReportView):
    report_key = "top-products"
    filename = "top_products.csv"

    def get(self, request):
        limit = self._parse_limit(request, default=5)
        items = self._items(request)

        def run():
            rows = (
                items.values("product_id")
                .annotate(name=Max("product_name"), sales=Sum("quantity"))
                .order_by("-sales", "name")[:limit]
            )
            return [
                {"product_id": str(row["product_id"]), "name": row["name"], "sales": row["sales"]}
                for row in rows
            ]

        rows = self._cached(request, self.report_key, run)
        return self._respond(request, rows)


class ProductParetoReportView(SaleItemReportView):
    report_key = "product-pareto"
    filename = "product_pareto.csv"

    def get(self, request):
        limit = self._parse_limit(request, default=7)
        items = self._items(request)

        def run():
            ranked = list(
                items.values("product_id")
                .annotate(product_name=Max("product_name"), sales_amount=Sum("total_price"))
                .order_by("-sales_amount", "product_name")
            )
            return pareto_rows(ranked)[:limit]

        rows = self._cached(request, self.report_key, run)
        return self._respond(request, rows)


def pareto_rows(ranked):
    """Attach running cumulative percentages to rows ranked by sales amount.

    Percentages are computed against the whole ranking, so truncating the
    result afterwards keeps them comparable with the full list.
    """
    overall = sum((row["sales_amount"] for row in ranked), Decimal("0"))
    rows = []
    cumulative = Decimal("0")
    for row in ranked:
        cumulative += row["sales_amount"]
        if overall:
            percentage = (cumulative / overall * 100).quantize(PERCENT_QUANT, rounding=ROUND_HALF_UP)
        else:
            percentage = Decimal("0")
        rows.append(
            {
                "product_name": row["product_name"],
                "sales_amount": _number(row["sales_amount"]),
                "cumulative_percentage": float(percentage),
            }
        )
    return rows


class SalesDistributionReportView(BaseReportView):
    report_key = "sales-distribution"
    filename = "sales_distribution.csv"

    def get(self, request):
        tz = self._parse_timezone(request.query_params.get("timezone") or "UTC")
        start, end = self._date_range(request, tz)

        def run():
            qs = Sale.objects.filter(owner=request.user)
            if start and end:
                qs = qs.filter(date__gte=start, date__lte=end)
            bucket = Case(
                *[
                    When(total_amount__gte=lower, total_amount__lt=upper, then=Value(label))
                    for label, lower, upper in SALES_BUCKETS
                ],
                default=Value(OVERFLOW_BUCKET),
                output_field=CharField(),
            )
            counts = {
                row["sales_range"]: row["transaction_count"]
                for row in qs.annotate(sales_range=bucket).values("sales_range").annotate(transaction_count=Count("id"))
            }
            labels = [label for label, _, _ in SALES_BUCKETS] + [OVERFLOW_BUCKET]
            return [
                {"sales_range": label, "transaction_count": counts[label]}
                for label in labels
                if counts.get(label)
            ]

        rows = self._cached(request, self.report_key, run)
        return self._respond(request, rows)
