from django.contrib import admin

from .models import (
    AIEditRecord,
    CreditLedgerEntry,
    CreditPackage,
    EditPricing,
    PaymentEvent,
    PaymentOrder,
    PromotionCode,
    PromotionRedemption,
)


class ReadOnlyAdmin(admin.ModelAdmin):
    """Audit tables are append-only; nothing is edited through the admin."""

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(CreditLedgerEntry)
class CreditLedgerEntryAdmin(ReadOnlyAdmin):
    list_display = ("id", "author", "amount", "event_type", "story_id", "purchase_order", "created_at")
    list_filter = ("event_type", "created_at")
    search_fields = ("author__username", "author__email", "story_id", "description")
    ordering = ("-created_at", "-id")
    list_select_related = ("author",)
    raw_id_fields = ("author", "purchase_order")


class PaymentEventInline(admin.TabularInline):
    model = PaymentEvent
    extra = 0
    can_delete = False
    readonly_fields = ("event_type", "provider_order_id", "data", "created_at")

    def has_add_permission(self, request, obj=None):
        return False


@admin.register(PaymentOrder)
class PaymentOrderAdmin(ReadOnlyAdmin):
    list_display = ("order_id", "author", "status", "credits", "amount", "currency", "provider", "created_at")
    list_filter = ("status", "provider", "currency", "created_at")
    search_fields = ("order_id", "provider_order_id", "idempotency_key", "author__username", "author__email")
    ordering = ("-created_at",)
    list_select_related = ("author",)
    inlines = [PaymentEventInline]
    readonly_fields = ("order_id", "created_at", "updated_at", "completed_at")

    fieldsets = (
        ("Order", {"fields": ("order_id", "author", "status", "failure_reason")}),
        ("Bundle", {"fields": ("credit_bundle", "credits", "amount", "currency")}),
        ("Gateway", {"fields": ("provider", "provider_order_id", "idempotency_key")}),
        ("Timestamps", {"fields": ("created_at", "updated_at", "completed_at")}),
    )


@admin.register(PaymentEvent)
class PaymentEventAdmin(ReadOnlyAdmin):
    list_display = ("id", "order", "event_type", "provider_order_id", "created_at")
    list_filter = ("event_type", "created_at")
    search_fields = ("provider_order_id",)


@admin.register(CreditPackage)
class CreditPackageAdmin(admin.ModelAdmin):
    list_display = ("key", "credits", "price", "currency", "is_active", "popular", "best_value")
    list_filter = ("is_active", "currency")
    search_fields = ("key",)


@admin.register(EditPricing)
class EditPricingAdmin(admin.ModelAdmin):
    list_display = ("action", "free_threshold", "price_credits", "is_active", "updated_at")
    list_filter = ("is_active",)


@admin.register(PromotionCode)
class PromotionCodeAdmin(admin.ModelAdmin):
    list_display = ("code", "credits_granted", "is_active", "valid_from", "valid_until", "max_redemptions", "redemption_count")
    list_filter = ("is_active",)
    search_fields = ("code", "description")

    @admin.display(description="Redemptions")
    def redemption_count(self, obj):
        return obj.redemptions.count()


@admin.register(PromotionRedemption)
class PromotionRedemptionAdmin(ReadOnlyAdmin):
    list_display = ("promotion", "author", "ledger_entry", "created_at")
    search_fields = ("promotion__code", "author__username", "author__email")
    list_select_related = ("promotion", "author")


@admin.register(AIEditRecord)
class AIEditRecordAdmin(ReadOnlyAdmin):
    list_display = ("id", "author", "action", "story_id", "batch_id", "ledger_entry", "created_at")
    list_filter = ("action", "created_at")
    search_fields = ("author__username", "story_id")
    list_select_related = ("author",)
