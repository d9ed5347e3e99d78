"""Promotion code redemption endpoint."""
from __future__ import annotations

from rest_framework import status
from rest_framework.permissions import IsAuthenticated
from rest_framework.views import APIView

from credits.serializers import PromotionRedeemSerializer
from credits.services import promotions

from .base import CreditsMetricsMixin


class PromotionRedeemView(CreditsMetricsMixin, APIView):
    permission_classes = [IsAuthenticated]
    endpoint_label = "credits.promotions.redeem"

    def post(self, request):
        serializer = PromotionRedeemSerializer(data=request.data)
        raw_code = serializer.validated_data.get("code") if serializer.is_valid() else None

        result = promotions.redeem(request.user.pk, raw_code)
        if not result.ok:
            return self._error_response(
                status=status.HTTP_400_BAD_REQUEST,
                code=promotions.INVALID_CODE,
                message="This promotion code is not valid.",
                author_id=request.user.pk,
            )

        return self._success_response(
            {
                "code": result.code,
                "credits_granted": result.credits_granted,
                "balance": result.balance,
            },
            author_id=request.user.pk,
            message="Promotion code redeemed",
        )
