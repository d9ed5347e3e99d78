"""Credit packages and AI edit pricing, backed by the database and seeded from settings."""
from __future__ import annotations

from dataclasses import dataclass
import logging
from typing import Dict, List, Mapping

from django.conf import settings

from credits.exceptions import CreditValidationError
from credits.models import CreditPackage, EditAction, EditPricing

logger = logging.getLogger(__name__)

_CATALOG_INITIALISED = False


@dataclass(frozen=True)
class PricingRule:
    """Free-tier threshold ``threshold`` and per-edit ``price`` for an action."""

    action: str
    threshold: int
    price: int


def _configured_packages() -> Mapping[str, Mapping[str, object]]:
    packages = getattr(settings, "CREDIT_PACKAGES", {}) or {}
    if not isinstance(packages, Mapping):
        raise CreditValidationError("CREDIT_PACKAGES must be a mapping of package keys to definitions.")
    return packages


def _configured_pricing() -> Mapping[str, Mapping[str, object]]:
    pricing = getattr(settings, "AI_EDIT_PRICING", {}) or {}
    if not isinstance(pricing, Mapping):
        raise CreditValidationError("AI_EDIT_PRICING must be a mapping of actions to pricing rules.")
    return pricing


def ensure_default_catalog(*, force: bool = False) -> Dict[str, List[str]]:
    """Create or update packages and pricing rules so they match settings."""
    global _CATALOG_INITIALISED
    if _CATALOG_INITIALISED and not force:
        return {"created": [], "updated": []}

    created, updated = [], []
    default_currency = str(getattr(settings, "PAYMENT_CURRENCY", "eur")).lower()

    for key, config in _configured_packages().items():
        defaults = {
            "credits": int(config["credits"]),
            "price": int(config["price"]),
            "currency": str(config.get("currency") or default_currency).lower(),
            "popular": bool(config.get("popular", False)),
            "best_value": bool(config.get("best_value", False)),
        }
        package, was_created = CreditPackage.objects.get_or_create(key=key, defaults=defaults)
        if was_created:
            created.append(f"package:{key}")
            continue
        if _apply_defaults(package, defaults):
            updated.append(f"package:{key}")

    for action, config in _configured_pricing().items():
        if action not in EditAction.values:
            logger.warning("Ignoring pricing for unknown edit action '%s'.", action)
            continue
        defaults = {
            "free_threshold": int(config["free_threshold"]),
            "price_credits": int(config["price_credits"]),
        }
        rule, was_created = EditPricing.objects.get_or_create(action=action, defaults=defaults)
        if was_created:
            created.append(f"pricing:{action}")
            continue
        if _apply_defaults(rule, defaults):
            updated.append(f"pricing:{action}")

    _CATALOG_INITIALISED = True

    if created or updated:
        logger.info("Credit catalog initialisation completed. created=%s updated=%s", created, updated)
    return {"created": created, "updated": updated}


def _apply_defaults(instance, defaults: Mapping[str, object]) -> bool:
    fields_to_update = []
    for field, expected in defaults.items():
        if getattr(instance, field) != expected:
            setattr(instance, field, expected)
            fields_to_update.append(field)
    if fields_to_update:
        instance.save(update_fields=fields_to_update + ["updated_at"])
    return bool(fields_to_update)


def get_pricing_rule(action: str) -> PricingRule:
    """Return the active pricing for ``action``, falling back to the settings default."""

    rule = EditPricing.objects.filter(action=action, is_active=True).first()
    if rule is not None:
        return PricingRule(action=action, threshold=rule.free_threshold, price=rule.price_credits)

    configured = _configured_pricing().get(action)
    if not configured:
        raise CreditValidationError(
            f"No pricing configured for action '{action}'.",
            details={"action": action},
        )
    return PricingRule(
        action=action,
        threshold=int(configured["free_threshold"]),
        price=int(configured["price_credits"]),
    )


def list_active_packages() -> List[CreditPackage]:
    return list(CreditPackage.objects.filter(is_active=True).order_by("credits"))


def get_active_package(identifier) -> CreditPackage:
    """Look up an active package by key or numeric id."""

    lookup = {"key": identifier}
    if isinstance(identifier, int) and not isinstance(identifier, bool):
        lookup = {"pk": identifier}
    elif isinstance(identifier, str) and identifier.isdigit():
        lookup = {"pk": int(identifier)}
    elif not isinstance(identifier, str) or not identifier:
        raise CreditValidationError("Invalid package ID.", details={"package": identifier})

    package = CreditPackage.objects.filter(is_active=True, **lookup).first()
    if package is None:
        raise CreditValidationError("Invalid package ID.", details={"package": identifier})
    return package
