# apps/finance/api.py
from rest_framework import viewsets
from rest_framework.decorators import action
from rest_framework.filters import OrderingFilter, SearchFilter
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from drf_spectacular.utils import OpenApiParameter, extend_schema, extend_schema_view
from drf_spectacular.types import OpenApiTypes

from apps.audit.utils import log_event
from apps.rbac.permissions import PolicyPermission
from apps.rbac.utils import request_caller

from .models import Transaction
from .serializers import FinancialSummarySerializer, TransactionSerializer
from .services import approve_transaction, filter_transactions, financial_summary, top_categories

FILTER_PARAMS = [
    OpenApiParameter(name="type", required=False, type=OpenApiTypes.STR, enum=["income", "expense"]),
    OpenApiParameter(name="category", required=False, type=OpenApiTypes.STR),
    OpenApiParameter(name="status", required=False, type=OpenApiTypes.STR),
    OpenApiParameter(name="date_from", required=False, type=OpenApiTypes.DATE),
    OpenApiParameter(name="date_to", required=False, type=OpenApiTypes.DATE),
    OpenApiParameter(name="event_id", required=False, type=OpenApiTypes.INT),
    OpenApiParameter(name="department_id", required=False, type=OpenApiTypes.INT),
]


@extend_schema_view(
    list=extend_schema(summary="List transactions (finance roles)", parameters=FILTER_PARAMS),
    create=extend_schema(summary="Record a transaction"),
    destroy=extend_schema(summary="Delete transaction (admin)"),
)
class TransactionViewSet(viewsets.ModelViewSet):
    """
    Income and expense ledger. Managers and finance managers read and write;
    approving and deleting stay with admins.
    """
    schema_tags = ["Finance"]
    queryset = Transaction.objects.select_related("created_by", "event", "department", "approved_by")
    serializer_class = TransactionSerializer
    permission_classes = [IsAuthenticated, PolicyPermission]
    policy_resource = "transaction"
    policy_actions = {"summary": "summary", "approve": "approve"}
    filter_backends = [SearchFilter, OrderingFilter]
    search_fields = ["category", "description", "reference"]
    ordering_fields = ["date", "amount", "created_at"]
    ordering = ["-date", "-id"]

    def get_queryset(self):
        return filter_transactions(super().get_queryset(), self.request.query_params)

    def perform_create(self, serializer):
        txn = serializer.save(created_by=self.request.user)
        log_event(self.request, "transaction.create", "Transaction", txn.id,
                  metadata={"type": txn.type, "amount": str(txn.amount)})

    def perform_update(self, serializer):
        txn = serializer.save()
        log_event(self.request, "transaction.update", "Transaction", txn.id)

    def perform_destroy(self, instance):
        log_event(self.request, "transaction.delete", "Transaction", instance.id)
        instance.delete()

    @extend_schema(
        summary="Income, expense and balance over the filtered set",
        parameters=FILTER_PARAMS,
        responses={200: FinancialSummarySerializer},
    )
    @action(detail=False, methods=["get"], url_path="summary")
    def summary(self, request):
        qs = self.filter_queryset(self.get_queryset())
        data = financial_summary(qs)
        data["top_categories"] = top_categories(qs)
        data["recent"] = qs.order_by("-date", "-id")[:5]
        return Response(FinancialSummarySerializer(data).data)

    @extend_schema(summary="Approve transaction (admin)", request=None, responses={200: TransactionSerializer})
    @action(detail=True, methods=["post"], url_path="approve")
    def approve(self, request, pk=None):
        txn = approve_transaction(request_caller(request), self.get_object())
        log_event(request, "transaction.approve", "Transaction", txn.id)
        return Response(TransactionSerializer(txn).data)
