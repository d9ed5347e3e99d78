"""Persistence for the credit ledger, payment orders, promotions and AI edit records."""
from __future__ import annotations

import re
import uuid

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import models
from django.db.models import Q
from django.utils import timezone


PROMOTION_CODE_PATTERN = re.compile(r"^[A-Z0-9_-]{1,64}$")


class EditAction(models.TextChoices):
    TEXT_EDIT = "textEdit", "Text edit"
    IMAGE_EDIT = "imageEdit", "Image edit"


class CreditLedgerEntry(models.Model):
    """Immutable signed credit movement; an author's balance is the sum of these rows."""

    class EventType(models.TextChoices):
        PURCHASE = "purchase", "Purchase"
        PROMO_REDEEM = "promo_redeem", "Promotion redemption"
        AI_EDIT_DEBIT = "ai_edit_debit", "AI edit debit"
        INITIAL_GRANT = "initial_grant", "Initial grant"
        ADMIN_ADJUSTMENT = "admin_adjustment", "Admin adjustment"
        REFUND = "refund", "Refund"

    id = models.BigAutoField(primary_key=True)
    author = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="credit_entries",
        help_text="Author whose balance this entry affects.",
    )
    amount = models.IntegerField(
        help_text="Signed amount; positive grants credits, negative debits them.",
    )
    event_type = models.CharField(
        max_length=32,
        choices=EventType.choices,
        help_text="Categorisation of the credit movement.",
    )
    story_id = models.CharField(
        max_length=64,
        blank=True,
        null=True,
        help_text="Story the movement relates to, if any.",
    )
    purchase_order = models.ForeignKey(
        "credits.PaymentOrder",
        on_delete=models.PROTECT,
        blank=True,
        null=True,
        related_name="ledger_entries",
        help_text="Payment order that produced this entry, if any.",
    )
    description = models.TextField(
        blank=True,
        help_text="Human-readable explanation of the movement.",
    )
    metadata = models.JSONField(
        default=dict,
        blank=True,
        help_text="Optional structured metadata captured alongside the entry.",
    )
    created_at = models.DateTimeField(default=timezone.now, editable=False, db_index=True)

    class Meta:
        db_table = "credits_ledger_entry"
        verbose_name = "Credit ledger entry"
        verbose_name_plural = "Credit ledger entries"
        ordering = ["-created_at", "-id"]
        constraints = [
            models.CheckConstraint(
                condition=~Q(amount=0),
                name="credit_ledger_entry_non_zero_amount",
            ),
            models.UniqueConstraint(
                fields=["purchase_order"],
                condition=Q(event_type="purchase"),
                name="credit_ledger_entry_single_purchase",
            ),
        ]
        indexes = [
            models.Index(fields=["author", "created_at"], name="credit_ledger_author_idx"),
            models.Index(fields=["event_type"], name="credit_ledger_event_idx"),
        ]

    def clean(self):
        super().clean()
        if self.amount == 0:
            raise ValidationError("Amount must be non-zero.")

    def save(self, *args, **kwargs):
        if self.pk and CreditLedgerEntry.objects.filter(pk=self.pk).exists():
            raise ValidationError("CreditLedgerEntry records are immutable.")
        self.full_clean()
        return super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ValidationError("CreditLedgerEntry records are immutable.")

    def __str__(self):
        return f"CreditLedgerEntry<{self.event_type}:{self.amount} for {self.author_id}>"


class CreditPackage(models.Model):
    """Purchasable credit bundle priced in minor currency units."""

    key = models.SlugField(max_length=32, unique=True)
    credits = models.PositiveIntegerField()
    price = models.PositiveIntegerField(help_text="Price in minor currency units (e.g. cents).")
    currency = models.CharField(max_length=3, default="eur")
    is_active = models.BooleanField(default=True)
    popular = models.BooleanField(default=False)
    best_value = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "credits_credit_package"
        ordering = ["credits"]
        constraints = [
            models.CheckConstraint(condition=Q(credits__gt=0), name="credit_package_positive_credits"),
        ]

    def __str__(self):
        return f"{self.key} ({self.credits} credits)"


class EditPricing(models.Model):
    """Free-tier threshold and per-edit price for one AI editing action."""

    action = models.CharField(max_length=32, choices=EditAction.choices, unique=True)
    free_threshold = models.PositiveIntegerField(
        help_text="Number of edits an author gets for free before pricing applies.",
    )
    price_credits = models.PositiveIntegerField(
        help_text="Credits charged for each edit past the free threshold.",
    )
    is_active = models.BooleanField(default=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "credits_edit_pricing"
        verbose_name = "Edit pricing rule"
        verbose_name_plural = "Edit pricing rules"
        ordering = ["action"]

    def __str__(self):
        return f"{self.action}: {self.free_threshold} free, then {self.price_credits}"


class PaymentOrder(models.Model):
    """Checkout request for a credit bundle; granted only once the gateway confirms it."""

    class Status(models.TextChoices):
        PENDING = "pending", "Pending"
        COMPLETED = "completed", "Completed"
        FAILED = "failed", "Failed"
        CANCELLED = "cancelled", "Cancelled"

    TERMINAL_STATUSES = frozenset({Status.COMPLETED, Status.FAILED, Status.CANCELLED})

    order_id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    author = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="payment_orders",
    )
    credit_bundle = models.JSONField(
        help_text="Requested packages with quantities plus the resolved totals.",
    )
    credits = models.PositiveIntegerField(help_text="Credits granted when the order completes.")
    amount = models.PositiveIntegerField(help_text="Total price in minor currency units.")
    currency = models.CharField(max_length=3)
    idempotency_key = models.CharField(max_length=255)
    request_fingerprint = models.CharField(
        max_length=64,
        help_text="Hash of the requested bundle used to detect idempotency key reuse.",
    )
    provider = models.CharField(max_length=32, blank=True)
    provider_order_id = models.CharField(max_length=255, blank=True, null=True)
    checkout_token = models.TextField(blank=True)
    status = models.CharField(max_length=16, choices=Status.choices, default=Status.PENDING)
    failure_reason = models.CharField(max_length=255, blank=True)
    created_at = models.DateTimeField(default=timezone.now, editable=False)
    updated_at = models.DateTimeField(auto_now=True)
    completed_at = models.DateTimeField(blank=True, null=True)

    class Meta:
        db_table = "credits_payment_order"
        ordering = ["-created_at"]
        constraints = [
            models.UniqueConstraint(
                fields=["author", "idempotency_key"],
                name="payment_order_author_idempotency",
            ),
            models.UniqueConstraint(
                fields=["provider_order_id"],
                condition=Q(provider_order_id__isnull=False),
                name="payment_order_provider_reference",
            ),
            models.CheckConstraint(condition=Q(credits__gt=0), name="payment_order_positive_credits"),
        ]
        indexes = [
            models.Index(fields=["status", "created_at"], name="payment_order_status_idx"),
            models.Index(fields=["author", "created_at"], name="payment_order_author_idx"),
        ]

    @property
    def is_terminal(self) -> bool:
        return self.status in self.TERMINAL_STATUSES

    def __str__(self):
        return f"PaymentOrder<{self.order_id}:{self.status}>"


class PaymentEvent(models.Model):
    """Audit trail of everything that happened to a payment order."""

    class EventType(models.TextChoices):
        ORDER_CREATED = "order_created", "Order created"
        GATEWAY_ORDER_CREATED = "gateway_order_created", "Gateway order created"
        WEBHOOK_RECEIVED = "webhook_received", "Webhook received"
        WEBHOOK_IGNORED = "webhook_ignored", "Webhook ignored"
        STATUS_CHANGED = "status_changed", "Status changed"

    id = models.BigAutoField(primary_key=True)
    order = models.ForeignKey(
        PaymentOrder,
        on_delete=models.CASCADE,
        blank=True,
        null=True,
        related_name="events",
    )
    event_type = models.CharField(max_length=32, choices=EventType.choices)
    provider_order_id = models.CharField(max_length=255, blank=True)
    data = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = "credits_payment_event"
        ordering = ["-created_at", "-id"]
        indexes = [
            models.Index(fields=["order", "created_at"], name="payment_event_order_idx"),
        ]

    def __str__(self):
        return f"PaymentEvent<{self.event_type} for {self.order_id}>"


class PromotionCode(models.Model):
    """One-time-per-author code granting a fixed number of credits."""

    code = models.CharField(max_length=64, unique=True, help_text="Stored upper-case.")
    credits_granted = models.PositiveIntegerField()
    description = models.CharField(max_length=255, blank=True)
    is_active = models.BooleanField(default=True)
    valid_from = models.DateTimeField(blank=True, null=True)
    valid_until = models.DateTimeField(blank=True, null=True)
    max_redemptions = models.PositiveIntegerField(
        blank=True,
        null=True,
        help_text="Optional cap on redemptions across all authors.",
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "credits_promotion_code"
        ordering = ["-created_at"]
        constraints = [
            models.CheckConstraint(condition=Q(credits_granted__gt=0), name="promotion_code_positive_grant"),
        ]

    def clean(self):
        super().clean()
        self.code = (self.code or "").strip().upper()
        if not PROMOTION_CODE_PATTERN.match(self.code):
            raise ValidationError({"code": "Use 1-64 characters from A-Z, 0-9, '_' and '-'."})

    def save(self, *args, **kwargs):
        self.full_clean()
        return super().save(*args, **kwargs)

    def __str__(self):
        return self.code


class PromotionRedemption(models.Model):
    """Marks that an author consumed a promotion code; unique per (promotion, author)."""

    promotion = models.ForeignKey(PromotionCode, on_delete=models.PROTECT, related_name="redemptions")
    author = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="promotion_redemptions",
    )
    ledger_entry = models.OneToOneField(
        CreditLedgerEntry,
        on_delete=models.PROTECT,
        blank=True,
        null=True,
        related_name="promotion_redemption",
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = "credits_promotion_redemption"
        ordering = ["-created_at"]
        constraints = [
            models.UniqueConstraint(fields=["promotion", "author"], name="promotion_redemption_once_per_author"),
        ]

    def __str__(self):
        return f"PromotionRedemption<{self.promotion_id} by {self.author_id}>"


class AIEditRecord(models.Model):
    """Successful AI edit; counted to decide whether the next edit is free."""

    id = models.BigAutoField(primary_key=True)
    author = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="ai_edits",
    )
    story_id = models.CharField(max_length=64)
    action = models.CharField(max_length=32, choices=EditAction.choices)
    batch_id = models.UUIDField(default=uuid.uuid4, db_index=True)
    ledger_entry = models.ForeignKey(
        CreditLedgerEntry,
        on_delete=models.PROTECT,
        blank=True,
        null=True,
        related_name="edit_records",
    )
    metadata = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(default=timezone.now, editable=False)

    class Meta:
        db_table = "credits_ai_edit_record"
        ordering = ["-created_at", "-id"]
        indexes = [
            models.Index(fields=["author", "action"], name="ai_edit_author_action_idx"),
        ]

    def __str__(self):
        return f"AIEditRecord<{self.action} on {self.story_id} by {self.author_id}>"
