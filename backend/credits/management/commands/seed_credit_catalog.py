"""Apply CREDIT_PACKAGES and AI_EDIT_PRICING from settings to the database."""
from __future__ import annotations

from django.core.management.base import BaseCommand

from credits.models import CreditPackage, EditPricing
from credits.services.catalog import ensure_default_catalog


class Command(BaseCommand):
    help = "Create or update credit packages and AI edit pricing from settings"

    def handle(self, *args, **options):
        result = ensure_default_catalog(force=True)

        for name in result["created"]:
            self.stdout.write(self.style.SUCCESS(f"Created {name}"))
        for name in result["updated"]:
            self.stdout.write(self.style.SUCCESS(f"Updated {name}"))
        if not result["created"] and not result["updated"]:
            self.stdout.write(self.style.WARNING("Catalog already matches settings."))

        self.stdout.write("\nActive packages:")
        for package in CreditPackage.objects.filter(is_active=True).order_by("credits"):
            self.stdout.write(f"  • {package.key}: {package.credits} credits for {package.price} {package.currency}")

        self.stdout.write("\nEdit pricing:")
        for rule in EditPricing.objects.order_by("action"):
            self.stdout.write(
                f"  • {rule.action}: {rule.free_threshold} free, then {rule.price_credits} credit(s) each"
            )
