"""Balance, history, package catalog and admin adjustment endpoints."""
from __future__ import annotations

from django.contrib.auth import get_user_model
from rest_framework import status
from rest_framework.permissions import IsAdminUser, IsAuthenticated
from rest_framework.views import APIView

from credits.exceptions import AuthorNotFound
from credits.serializers import (
    AdminAdjustmentSerializer,
    CreditPackageSerializer,
    HistoryQuerySerializer,
    LedgerEntrySerializer,
    LedgerHistoryEntrySerializer,
)
from credits.services import ledger
from credits.services.catalog import list_active_packages

from .base import CreditsMetricsMixin


class CreditBalanceView(CreditsMetricsMixin, APIView):
    permission_classes = [IsAuthenticated]
    endpoint_label = "credits.balance"

    def get(self, request):
        return self._success_response(
            {"author_id": request.user.pk, "balance": ledger.get_balance(request.user.pk)},
        )


class CreditHistoryView(CreditsMetricsMixin, APIView):
    permission_classes = [IsAuthenticated]
    endpoint_label = "credits.history"

    def get(self, request):
        query = HistoryQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)
        limit = query.validated_data["limit"]

        history = ledger.get_history(request.user.pk, limit=limit)
        balance = history[0].balance_after if history else ledger.get_balance(request.user.pk)
        return self._success_response(
            {
                "balance": balance,
                "results": LedgerHistoryEntrySerializer(history, many=True).data,
            }
        )


class CreditPackageListView(CreditsMetricsMixin, APIView):
    """Expose purchasable credit bundles together with the caller's balance."""

    permission_classes = [IsAuthenticated]
    endpoint_label = "credits.packages"

    def get(self, request):
        packages = list_active_packages()
        return self._success_response(
            {
                "balance": ledger.get_balance(request.user.pk),
                "packages": CreditPackageSerializer(packages, many=True).data,
            }
        )


class AdminCreditAdjustmentView(CreditsMetricsMixin, APIView):
    """Staff-only manual credit correction, recorded as an offsetting entry."""

    permission_classes = [IsAdminUser]
    endpoint_label = "credits.admin_adjustment"

    def post(self, request, author_id):
        if not get_user_model().objects.filter(pk=author_id).exists():
            raise AuthorNotFound(details={"author_id": str(author_id)})

        serializer = AdminAdjustmentSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        entry = ledger.adjust_balance(
            author_id=author_id,
            amount=data["amount"],
            reason=data["reason"],
            event_type=data["event_type"],
            actor=request.user.get_username(),
            allow_negative_balance=data["allow_negative_balance"],
        )
        return self._success_response(
            {
                "entry": LedgerEntrySerializer(entry).data,
                "balance": ledger.get_balance(author_id),
            },
            status=status.HTTP_201_CREATED,
            author_id=author_id,
            message="Admin credit adjustment recorded",
        )
