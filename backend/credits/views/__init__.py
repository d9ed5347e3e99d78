"""Credits API views."""
from .entitlements import BatchEditPermissionCheckView, EditCommitView, EditPermissionCheckView
from .ledger import AdminCreditAdjustmentView, CreditBalanceView, CreditHistoryView, CreditPackageListView
from .orders import PaymentOrderCancelView, PaymentOrderViewSet
from .promotions import PromotionRedeemView
from .webhooks import PaymentWebhookView

__all__ = [
    "AdminCreditAdjustmentView",
    "BatchEditPermissionCheckView",
    "CreditBalanceView",
    "CreditHistoryView",
    "CreditPackageListView",
    "EditCommitView",
    "EditPermissionCheckView",
    "PaymentOrderCancelView",
    "PaymentOrderViewSet",
    "PaymentWebhookView",
    "PromotionRedeemView",
]
