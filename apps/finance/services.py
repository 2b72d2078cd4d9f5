# apps/finance/services.py
from __future__ import annotations

from decimal import Decimal
from typing import Dict, List

from django.db.models import Count, Q, Sum
from django.utils import timezone
from django.utils.dateparse import parse_date

from apps.rbac.policy import Caller, authorize

from .models import Transaction

ZERO = Decimal("0.00")


def financial_summary(queryset=None) -> Dict[str, object]:
    """
    Totals over ``queryset`` (defaults to all transactions):
    income, expense, balance = income - expense, and the row count.
    An empty queryset yields zeros.
    """
    qs = Transaction.objects.all() if queryset is None else queryset
    agg = qs.order_by().aggregate(
        income=Sum("amount", filter=Q(type="income")),
        expense=Sum("amount", filter=Q(type="expense")),
        total_transactions=Count("id"),
    )
    income = agg["income"] or ZERO
    expense = agg["expense"] or ZERO
    return {
        "income": income,
        "expense": expense,
        "balance": income - abs(expense),
        "total_transactions": agg["total_transactions"] or 0,
    }


def top_categories(queryset, limit: int = 5) -> List[Dict[str, object]]:
    rows = (
        queryset.order_by()
        .values("category", "type")
        .annotate(total=Sum("amount"), count=Count("id"))
        .order_by("-total", "category")[:limit]
    )
    return list(rows)


def filter_transactions(queryset, params):
    """Apply the query-string filters shared by list and summary."""
    if params.get("type"):
        queryset = queryset.filter(type=params["type"])
    if params.get("category"):
        queryset = queryset.filter(category__iexact=params["category"])
    if params.get("status"):
        queryset = queryset.filter(status=params["status"])
    df = parse_date(params.get("date_from") or "")
    dt = parse_date(params.get("date_to") or "")
    if df:
        queryset = queryset.filter(date__gte=df)
    if dt:
        queryset = queryset.filter(date__lte=dt)
    if params.get("event_id"):
        queryset = queryset.filter(event_id=params["event_id"])
    if params.get("department_id"):
        queryset = queryset.filter(department_id=params["department_id"])
    return queryset


def approve_transaction(caller: Caller, txn: Transaction) -> Transaction:
    authorize(caller, "approve", txn, "Only administrators can approve transactions.")
    txn.approved = True
    txn.approved_by_id = caller.id
    txn.approval_date = timezone.now()
    if txn.status == "pending":
        txn.status = "completed"
    txn.save(update_fields=["approved", "approved_by", "approval_date", "status", "updated_at"])
    return txn
