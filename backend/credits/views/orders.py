"""Payment order creation, history and cancellation endpoints."""
from __future__ import annotations

from rest_framework import status
from rest_framework.permissions import IsAuthenticated
from rest_framework.views import APIView
from rest_framework.viewsets import ReadOnlyModelViewSet

from credits.filters import PaymentOrderFilter
from credits.pagination import BoundedPageNumberPagination
from credits.serializers import CreatePaymentOrderSerializer, PaymentOrderSerializer
from credits.services import orders as order_services

from .base import CreditsMetricsMixin


class PaymentOrderViewSet(CreditsMetricsMixin, ReadOnlyModelViewSet):
    """List the caller's payment history and start new checkouts."""

    serializer_class = PaymentOrderSerializer
    permission_classes = [IsAuthenticated]
    pagination_class = BoundedPageNumberPagination
    filterset_class = PaymentOrderFilter
    ordering_fields = ("created_at", "amount", "status")
    ordering = ("-created_at",)
    lookup_field = "order_id"
    endpoint_label = "credits.orders"

    def get_queryset(self):
        return order_services.list_orders(self.request.user.pk)

    def create(self, request):
        serializer = CreatePaymentOrderSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        idempotency_key = request.headers.get("Idempotency-Key") or data.get("idempotency_key")
        result = order_services.create_order(
            author_id=request.user.pk,
            items=[dict(item) for item in data["packages"]],
            idempotency_key=idempotency_key,
        )
        return self._success_response(
            PaymentOrderSerializer(result.order).data,
            status=status.HTTP_201_CREATED if result.created else status.HTTP_200_OK,
            author_id=request.user.pk,
            message="Payment order requested",
        )


class PaymentOrderCancelView(CreditsMetricsMixin, APIView):
    permission_classes = [IsAuthenticated]
    endpoint_label = "credits.orders.cancel"

    def post(self, request, order_id):
        order = order_services.cancel_order(order_id=order_id, author_id=request.user.pk, reason="cancelled_by_author")
        return self._success_response(
            PaymentOrderSerializer(order).data,
            author_id=request.user.pk,
            message="Payment order cancellation requested",
        )
