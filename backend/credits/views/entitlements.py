"""AI edit entitlement checks and the confirmed-edit commit endpoint."""
from __future__ import annotations

from dataclasses import asdict

from rest_framework import status
from rest_framework.permissions import IsAuthenticated
from rest_framework.views import APIView

from credits.serializers import BatchEditCheckSerializer, EditCheckSerializer, EditCommitSerializer
from credits.services import entitlements

from .base import CreditsMetricsMixin


class EditPermissionCheckView(CreditsMetricsMixin, APIView):
    permission_classes = [IsAuthenticated]
    endpoint_label = "credits.ai_edits.check"

    def post(self, request):
        serializer = EditCheckSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        permission = entitlements.check_edit_permission(request.user.pk, serializer.validated_data["action"])
        return self._success_response(asdict(permission))


class BatchEditPermissionCheckView(CreditsMetricsMixin, APIView):
    """Quote a multi-item edit (e.g. every chapter of a story) as one unit."""

    permission_classes = [IsAuthenticated]
    endpoint_label = "credits.ai_edits.check_batch"

    def post(self, request):
        serializer = BatchEditCheckSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        permission = entitlements.check_batch_edit_permission(request.user.pk, data["action"], data["count"])
        payload = asdict(permission)
        payload["breakdown"] = permission.breakdown
        return self._success_response(payload)


class EditCommitView(CreditsMetricsMixin, APIView):
    permission_classes = [IsAuthenticated]
    endpoint_label = "credits.ai_edits.commit"

    def post(self, request):
        serializer = EditCommitSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        commit = entitlements.commit_edits(
            author_id=request.user.pk,
            action=data["action"],
            story_id=data["story_id"],
            count=data["count"],
            metadata=data.get("metadata"),
            item_metadata=data.get("item_metadata"),
            expected_credits=data.get("expected_credits"),
        )
        return self._success_response(
            {
                "batch_id": str(commit.batch_id),
                "action": commit.action,
                "story_id": commit.story_id,
                "count": len(commit.records),
                "credits_charged": commit.quote.total_credits,
                "breakdown": {
                    "free_edits": commit.quote.free_edits,
                    "paid_edits": commit.quote.paid_edits,
                },
                "ledger_entry_id": commit.ledger_entry.id if commit.ledger_entry else None,
                "balance": commit.balance,
            },
            status=status.HTTP_201_CREATED,
            author_id=request.user.pk,
            message="AI edits committed",
        )
