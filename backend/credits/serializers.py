"""Request and response serializers for the credits API."""
from __future__ import annotations

from typing import Any, Dict

from django.conf import settings
from rest_framework import serializers

from credits.models import CreditLedgerEntry, CreditPackage, EditAction, PaymentOrder
from credits.services.entitlements import MAX_BATCH_SIZE
from credits.services.ledger import ADJUSTMENT_EVENT_TYPES, DEFAULT_HISTORY_LIMIT


class HistoryQuerySerializer(serializers.Serializer):
    limit = serializers.IntegerField(required=False, min_value=1, default=DEFAULT_HISTORY_LIMIT)

    def validate_limit(self, value: int) -> int:
        max_limit = int(getattr(settings, "CREDITS_HISTORY_MAX_LIMIT", 100))
        if value > max_limit:
            raise serializers.ValidationError(f"Ensure this value is less than or equal to {max_limit}.")
        return value


class LedgerHistoryEntrySerializer(serializers.Serializer):
    id = serializers.IntegerField()
    amount = serializers.IntegerField()
    event_type = serializers.CharField()
    story_id = serializers.CharField(source="entry.story_id", allow_null=True)
    purchase_order_id = serializers.UUIDField(source="entry.purchase_order_id", allow_null=True)
    description = serializers.CharField(source="entry.description")
    created_at = serializers.DateTimeField()
    balance_after = serializers.IntegerField()


class CreditPackageSerializer(serializers.ModelSerializer):
    class Meta:
        model = CreditPackage
        fields = ("id", "key", "credits", "price", "currency", "popular", "best_value")
        read_only_fields = fields


class OrderItemSerializer(serializers.Serializer):
    package = serializers.CharField(max_length=32)
    quantity = serializers.IntegerField(required=False, default=1, min_value=1)


class CreatePaymentOrderSerializer(serializers.Serializer):
    packages = OrderItemSerializer(many=True, allow_empty=False)
    idempotency_key = serializers.CharField(required=False, max_length=255)


class PaymentOrderSerializer(serializers.ModelSerializer):
    class Meta:
        model = PaymentOrder
        fields = (
            "order_id",
            "status",
            "credits",
            "amount",
            "currency",
            "credit_bundle",
            "provider",
            "provider_order_id",
            "checkout_token",
            "failure_reason",
            "created_at",
            "completed_at",
        )
        read_only_fields = fields


class EditCheckSerializer(serializers.Serializer):
    action = serializers.ChoiceField(choices=EditAction.choices)
    story_id = serializers.CharField(required=False, allow_blank=True, max_length=64)


class BatchEditCheckSerializer(EditCheckSerializer):
    count = serializers.IntegerField(min_value=1, max_value=MAX_BATCH_SIZE)


class EditCommitSerializer(serializers.Serializer):
    action = serializers.ChoiceField(choices=EditAction.choices)
    story_id = serializers.CharField(max_length=64)
    count = serializers.IntegerField(required=False, default=1, min_value=1, max_value=MAX_BATCH_SIZE)
    metadata = serializers.DictField(required=False)
    item_metadata = serializers.ListField(child=serializers.DictField(), required=False)
    expected_credits = serializers.IntegerField(required=False, min_value=0)

    def validate(self, attrs: Dict[str, Any]) -> Dict[str, Any]:
        items = attrs.get("item_metadata")
        if items is not None and len(items) != attrs.get("count", 1):
            raise serializers.ValidationError({"item_metadata": ["Provide one entry per edit."]})
        return attrs


class PromotionRedeemSerializer(serializers.Serializer):
    code = serializers.CharField(required=False, allow_blank=True, trim_whitespace=False, max_length=255)


class AdminAdjustmentSerializer(serializers.Serializer):
    amount = serializers.IntegerField()
    reason = serializers.CharField(max_length=500)
    event_type = serializers.ChoiceField(
        choices=sorted(ADJUSTMENT_EVENT_TYPES),
        required=False,
        default=CreditLedgerEntry.EventType.ADMIN_ADJUSTMENT,
    )
    allow_negative_balance = serializers.BooleanField(required=False, default=False)

    def validate_amount(self, value: int) -> int:
        if value == 0:
            raise serializers.ValidationError("Adjustment amount must be non-zero.")
        return value


class LedgerEntrySerializer(serializers.ModelSerializer):
    class Meta:
        model = CreditLedgerEntry
        fields = ("id", "author", "amount", "event_type", "story_id", "purchase_order", "description", "created_at")
        read_only_fields = fields
