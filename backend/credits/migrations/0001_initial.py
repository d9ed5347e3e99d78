import uuid

import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models


EDIT_ACTION_CHOICES = [("textEdit", "Text edit"), ("imageEdit", "Image edit")]


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="CreditPackage",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("key", models.SlugField(max_length=32, unique=True)),
                ("credits", models.PositiveIntegerField()),
                ("price", models.PositiveIntegerField(help_text="Price in minor currency units (e.g. cents).")),
                ("currency", models.CharField(default="eur", max_length=3)),
                ("is_active", models.BooleanField(default=True)),
                ("popular", models.BooleanField(default=False)),
                ("best_value", models.BooleanField(default=False)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "db_table": "credits_credit_package",
                "ordering": ["credits"],
                "constraints": [
                    models.CheckConstraint(condition=models.Q(credits__gt=0), name="credit_package_positive_credits"),
                ],
            },
        ),
        migrations.CreateModel(
            name="EditPricing",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("action", models.CharField(choices=EDIT_ACTION_CHOICES, max_length=32, unique=True)),
                ("free_threshold", models.PositiveIntegerField(help_text="Number of edits an author gets for free before pricing applies.")),
                ("price_credits", models.PositiveIntegerField(help_text="Credits charged for each edit past the free threshold.")),
                ("is_active", models.BooleanField(default=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "db_table": "credits_edit_pricing",
                "ordering": ["action"],
                "verbose_name": "Edit pricing rule",
                "verbose_name_plural": "Edit pricing rules",
            },
        ),
        migrations.CreateModel(
            name="PaymentOrder",
            fields=[
                ("order_id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("credit_bundle", models.JSONField(help_text="Requested packages with quantities plus the resolved totals.")),
                ("credits", models.PositiveIntegerField(help_text="Credits granted when the order completes.")),
                ("amount", models.PositiveIntegerField(help_text="Total price in minor currency units.")),
                ("currency", models.CharField(max_length=3)),
                ("idempotency_key", models.CharField(max_length=255)),
                ("request_fingerprint", models.CharField(help_text="Hash of the requested bundle used to detect idempotency key reuse.", max_length=64)),
                ("provider", models.CharField(blank=True, max_length=32)),
                ("provider_order_id", models.CharField(blank=True, max_length=255, null=True)),
                ("checkout_token", models.TextField(blank=True)),
                ("status", models.CharField(choices=[("pending", "Pending"), ("completed", "Completed"), ("failed", "Failed"), ("cancelled", "Cancelled")], default="pending", max_length=16)),
                ("failure_reason", models.CharField(blank=True, max_length=255)),
                ("created_at", models.DateTimeField(default=django.utils.timezone.now, editable=False)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("completed_at", models.DateTimeField(blank=True, null=True)),
                ("author", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="payment_orders", to=settings.AUTH_USER_MODEL)),
            ],
            options={
                "db_table": "credits_payment_order",
                "ordering": ["-created_at"],
                "constraints": [
                    models.UniqueConstraint(fields=["author", "idempotency_key"], name="payment_order_author_idempotency"),
                    models.UniqueConstraint(condition=models.Q(provider_order_id__isnull=False), fields=["provider_order_id"], name="payment_order_provider_reference"),
                    models.CheckConstraint(condition=models.Q(credits__gt=0), name="payment_order_positive_credits"),
                ],
                "indexes": [
                    models.Index(fields=["status", "created_at"], name="payment_order_status_idx"),
                    models.Index(fields=["author", "created_at"], name="payment_order_author_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="CreditLedgerEntry",
            fields=[
                ("id", models.BigAutoField(primary_key=True, serialize=False)),
                ("amount", models.IntegerField(help_text="Signed amount; positive grants credits, negative debits them.")),
                ("event_type", models.CharField(choices=[("purchase", "Purchase"), ("promo_redeem", "Promotion redemption"), ("ai_edit_debit", "AI edit debit"), ("initial_grant", "Initial grant"), ("admin_adjustment", "Admin adjustment"), ("refund", "Refund")], help_text="Categorisation of the credit movement.", max_length=32)),
                ("story_id", models.CharField(blank=True, help_text="Story the movement relates to, if any.", max_length=64, null=True)),
                ("description", models.TextField(blank=True, help_text="Human-readable explanation of the movement.")),
                ("metadata", models.JSONField(blank=True, default=dict, help_text="Optional structured metadata captured alongside the entry.")),
                ("created_at", models.DateTimeField(db_index=True, default=django.utils.timezone.now, editable=False)),
                ("author", models.ForeignKey(help_text="Author whose balance this entry affects.", on_delete=django.db.models.deletion.PROTECT, related_name="credit_entries", to=settings.AUTH_USER_MODEL)),
                ("purchase_order", models.ForeignKey(blank=True, help_text="Payment order that produced this entry, if any.", null=True, on_delete=django.db.models.deletion.PROTECT, related_name="ledger_entries", to="credits.paymentorder")),
            ],
            options={
                "db_table": "credits_ledger_entry",
                "ordering": ["-created_at", "-id"],
                "verbose_name": "Credit ledger entry",
                "verbose_name_plural": "Credit ledger entries",
                "constraints": [
                    models.CheckConstraint(condition=~models.Q(amount=0), name="credit_ledger_entry_non_zero_amount"),
                    models.UniqueConstraint(condition=models.Q(event_type="purchase"), fields=["purchase_order"], name="credit_ledger_entry_single_purchase"),
                ],
                "indexes": [
                    models.Index(fields=["author", "created_at"], name="credit_ledger_author_idx"),
                    models.Index(fields=["event_type"], name="credit_ledger_event_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="PaymentEvent",
            fields=[
                ("id", models.BigAutoField(primary_key=True, serialize=False)),
                ("event_type", models.CharField(choices=[("order_created", "Order created"), ("gateway_order_created", "Gateway order created"), ("webhook_received", "Webhook received"), ("webhook_ignored", "Webhook ignored"), ("status_changed", "Status changed")], max_length=32)),
                ("provider_order_id", models.CharField(blank=True, max_length=255)),
                ("data", models.JSONField(blank=True, default=dict)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("order", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.CASCADE, related_name="events", to="credits.paymentorder")),
            ],
            options={
                "db_table": "credits_payment_event",
                "ordering": ["-created_at", "-id"],
                "indexes": [
                    models.Index(fields=["order", "created_at"], name="payment_event_order_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="PromotionCode",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("code", models.CharField(help_text="Stored upper-case.", max_length=64, unique=True)),
                ("credits_granted", models.PositiveIntegerField()),
                ("description", models.CharField(blank=True, max_length=255)),
                ("is_active", models.BooleanField(default=True)),
                ("valid_from", models.DateTimeField(blank=True, null=True)),
                ("valid_until", models.DateTimeField(blank=True, null=True)),
                ("max_redemptions", models.PositiveIntegerField(blank=True, help_text="Optional cap on redemptions across all authors.", null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "db_table": "credits_promotion_code",
                "ordering": ["-created_at"],
                "constraints": [
                    models.CheckConstraint(condition=models.Q(credits_granted__gt=0), name="promotion_code_positive_grant"),
                ],
            },
        ),
        migrations.CreateModel(
            name="PromotionRedemption",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("author", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="promotion_redemptions", to=settings.AUTH_USER_MODEL)),
                ("ledger_entry", models.OneToOneField(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name="promotion_redemption", to="credits.creditledgerentry")),
                ("promotion", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="redemptions", to="credits.promotioncode")),
            ],
            options={
                "db_table": "credits_promotion_redemption",
                "ordering": ["-created_at"],
                "constraints": [
                    models.UniqueConstraint(fields=["promotion", "author"], name="promotion_redemption_once_per_author"),
                ],
            },
        ),
        migrations.CreateModel(
            name="AIEditRecord",
            fields=[
                ("id", models.BigAutoField(primary_key=True, serialize=False)),
                ("story_id", models.CharField(max_length=64)),
                ("action", models.CharField(choices=EDIT_ACTION_CHOICES, max_length=32)),
                ("batch_id", models.UUIDField(db_index=True, default=uuid.uuid4)),
                ("metadata", models.JSONField(blank=True, default=dict)),
                ("created_at", models.DateTimeField(default=django.utils.timezone.now, editable=False)),
                ("author", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="ai_edits", to=settings.AUTH_USER_MODEL)),
                ("ledger_entry", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name="edit_records", to="credits.creditledgerentry")),
            ],
            options={
                "db_table": "credits_ai_edit_record",
                "ordering": ["-created_at", "-id"],
                "indexes": [
                    models.Index(fields=["author", "action"], name="ai_edit_author_action_idx"),
                ],
            },
        ),
    ]
