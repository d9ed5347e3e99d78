"""URL routes for credits endpoints."""
from django.urls import path

from .views import (
    AdminCreditAdjustmentView,
    BatchEditPermissionCheckView,
    CreditBalanceView,
    CreditHistoryView,
    CreditPackageListView,
    EditCommitView,
    EditPermissionCheckView,
    PaymentOrderCancelView,
    PaymentOrderViewSet,
    PaymentWebhookView,
    PromotionRedeemView,
)

app_name = "credits"

payment_order_list = PaymentOrderViewSet.as_view({"get": "list", "post": "create"})
payment_order_detail = PaymentOrderViewSet.as_view({"get": "retrieve"})

urlpatterns = [
    path("balance/", CreditBalanceView.as_view(), name="balance"),
    path("history/", CreditHistoryView.as_view(), name="history"),
    path("packages/", CreditPackageListView.as_view(), name="packages"),
    path("orders/", payment_order_list, name="orders"),
    path("orders/<uuid:order_id>/", payment_order_detail, name="order-detail"),
    path("orders/<uuid:order_id>/cancel/", PaymentOrderCancelView.as_view(), name="order-cancel"),
    path("webhooks/payments/", PaymentWebhookView.as_view(), name="payment-webhook"),
    path("promotions/redeem/", PromotionRedeemView.as_view(), name="promotion-redeem"),
    path("ai-edits/check/", EditPermissionCheckView.as_view(), name="ai-edit-check"),
    path("ai-edits/check-batch/", BatchEditPermissionCheckView.as_view(), name="ai-edit-check-batch"),
    path("ai-edits/commit/", EditCommitView.as_view(), name="ai-edit-commit"),
    path(
        "admin/authors/<int:author_id>/adjustments/",
        AdminCreditAdjustmentView.as_view(),
        name="admin-adjustment",
    ),
]
