# apps/reports/services.py
from __future__ import annotations

import csv
import io
import json
import logging
from datetime import datetime, time
from typing import Any, Callable, Dict, List, Tuple

from django.contrib.auth import get_user_model
from django.core.serializers.json import DjangoJSONEncoder
from django.db.models import Count, Q
from django.db.models.functions import TruncMonth
from django.utils import timezone
from django.utils.dateparse import parse_date

from apps.events.models import Attendance, Event
from apps.finance.models import Transaction
from apps.finance.services import filter_transactions, financial_summary

from .models import Report

logger = logging.getLogger(__name__)

MIME_TYPES = {
    "csv": "text/csv",
    "json": "application/json",
    "pdf": "application/pdf",
}


# ---------------------------------------------------------------------------
# Filters
# ---------------------------------------------------------------------------

def _bounds(filters: Dict[str, Any]):
    """(start, end) aware datetimes from date_from/date_to (inclusive days)."""
    tz = timezone.get_current_timezone()
    start = end = None
    d0 = parse_date(str(filters.get("date_from") or ""))
    d1 = parse_date(str(filters.get("date_to") or ""))
    if d0:
        start = timezone.make_aware(datetime.combine(d0, time.min), tz)
    if d1:
        end = timezone.make_aware(datetime.combine(d1, time.max), tz)
    return start, end


def _fmt(value):
    if isinstance(value, datetime):
        return timezone.localtime(value).strftime("%Y-%m-%d %H:%M")
    return value


# ---------------------------------------------------------------------------
# Datasets
# ---------------------------------------------------------------------------

def _transaction_queryset(filters):
    params = {
        "type": filters.get("type"),
        "category": filters.get("category"),
        "status": filters.get("status"),
        "date_from": filters.get("date_from"),
        "date_to": filters.get("date_to"),
        "event_id": filters.get("event"),
        "department_id": filters.get("department"),
    }
    return filter_transactions(Transaction.objects.all(), params)


def financial_overview(filters: Dict[str, Any]) -> Dict[str, Any]:
    qs = _transaction_queryset(filters)
    summary = financial_summary(qs)
    by_category = list(
        qs.order_by().values("type", "category").annotate(n=Count("id")).order_by("type", "category")
    )
    summary["by_category"] = by_category
    return summary


def _financial(filters):
    qs = _transaction_queryset(filters).select_related("event", "department").order_by("date", "id")
    columns = ["date", "type", "category", "amount", "payment_method", "status", "reference", "event", "department"]
    rows = [
        [
            t.date.isoformat(), t.type, t.category, t.amount, t.payment_method, t.status, t.reference,
            t.event.title if t.event else "", t.department.name if t.department else "",
        ]
        for t in qs
    ]
    return columns, rows, financial_summary(qs)


def _attendance_queryset(filters):
    qs = Attendance.objects.select_related("event", "user")
    start, end = _bounds(filters)
    if start:
        qs = qs.filter(check_in__gte=start)
    if end:
        qs = qs.filter(check_in__lte=end)
    if filters.get("event"):
        qs = qs.filter(event_id=filters["event"])
    if filters.get("department"):
        qs = qs.filter(event__department_id=filters["department"])
    return qs


def attendance_overview(filters: Dict[str, Any]) -> Dict[str, Any]:
    qs = _attendance_queryset(filters)
    counts = {row["status"]: row["n"] for row in qs.order_by().values("status").annotate(n=Count("id"))}
    total = sum(counts.values())
    attended = counts.get("present", 0) + counts.get("late", 0)
    return {
        "total_records": total,
        "by_status": {status: counts.get(status, 0) for status, _ in Attendance.STATUS_CHOICES},
        "attendance_rate": round(attended / total, 4) if total else 0.0,
        "events": qs.order_by().values("event_id").distinct().count(),
        "people": qs.order_by().values("user_id").distinct().count(),
    }


def _attendance(filters):
    qs = _attendance_queryset(filters).order_by("event__start", "user__username")
    columns = ["event", "user", "status", "check_in", "check_out", "duration_minutes"]
    rows = [
        [a.event.title, a.user.get_username(), a.status, _fmt(a.check_in), _fmt(a.check_out) or "", a.duration_minutes]
        for a in qs
    ]
    overview = attendance_overview(filters)
    summary = {"total_records": overview["total_records"], "attendance_rate": overview["attendance_rate"], **overview["by_status"]}
    return columns, rows, summary


def _event_queryset(filters):
    qs = Event.objects.all()
    start, end = _bounds(filters)
    if start:
        qs = qs.filter(start__gte=start)
    if end:
        qs = qs.filter(start__lte=end)
    if filters.get("department"):
        qs = qs.filter(department_id=filters["department"])
    if filters.get("event"):
        qs = qs.filter(pk=filters["event"])
    if filters.get("status"):
        qs = qs.filter(status=filters["status"])
    return qs


def _with_attendee_counts(qs):
    return qs.select_related("organizer", "department").annotate(n_attendees=Count("attendees", distinct=True))


def participation_overview(filters: Dict[str, Any]) -> Dict[str, Any]:
    qs = _event_queryset(filters)
    counted = _with_attendee_counts(qs)
    events = list(counted.order_by("-n_attendees", "start").values("id", "title", "n_attendees")[:5])
    total_events = qs.count()
    registrations = sum(counted.values_list("n_attendees", flat=True))
    participants = (
        get_user_model().objects.filter(registered_events__in=qs.values("pk")).distinct().count()
    )
    by_status = {row["status"]: row["n"] for row in qs.order_by().values("status").annotate(n=Count("id"))}
    return {
        "total_events": total_events,
        "total_registrations": registrations,
        "unique_participants": participants,
        "average_attendees": round(registrations / total_events, 2) if total_events else 0.0,
        "by_status": by_status,
        "top_events": [{"id": e["id"], "title": e["title"], "attendees": e["n_attendees"]} for e in events],
    }


def _events(filters):
    qs = _with_attendee_counts(_event_queryset(filters)).order_by("start", "id")
    columns = ["title", "start", "end", "location", "status", "organizer", "department", "attendees"]
    rows = [
        [
            e.title, _fmt(e.start), _fmt(e.end), e.location, e.status, e.organizer.get_username(),
            e.department.name if e.department else "", e.n_attendees,
        ]
        for e in qs
    ]
    overview = participation_overview(filters)
    summary = {k: overview[k] for k in ("total_events", "total_registrations", "unique_participants", "average_attendees")}
    return columns, rows, summary


def _users(filters):
    qs = get_user_model().objects.select_related("department").order_by("username")
    if filters.get("role"):
        qs = qs.filter(role=filters["role"])
    if filters.get("department"):
        qs = qs.filter(Q(department_id=filters["department"]) | Q(member_departments=filters["department"])).distinct()
    if "is_active" in filters:
        qs = qs.filter(is_active=bool(filters["is_active"]))
    start, end = _bounds(filters)
    if start:
        qs = qs.filter(date_joined__gte=start)
    if end:
        qs = qs.filter(date_joined__lte=end)
    columns = ["username", "display_name", "email", "role", "department", "is_active", "date_joined"]
    rows = [
        [u.username, u.display_name, u.email, u.role, u.department.name if u.department else "", u.is_active, _fmt(u.date_joined)]
        for u in qs
    ]
    by_role = {row["role"]: row["n"] for row in qs.order_by().values("role").annotate(n=Count("id", distinct=True))}
    return columns, rows, {"total_users": len(rows), **{f"role:{k}": v for k, v in sorted(by_role.items())}}


BUILDERS: Dict[str, Callable] = {
    "financial": _financial,
    "attendance": _attendance,
    "event": _events,
    "user": _users,
}


def _apply_layout(layout: Dict[str, Any], columns: List[str], rows: List[list]):
    """Keep only the layout's ``columns`` (in its order); unknown names are ignored."""
    wanted = [c for c in layout.get("columns") or () if c in columns]
    if not wanted:
        return columns, rows
    idx = [columns.index(c) for c in wanted]
    return wanted, [[row[i] for i in idx] for row in rows]


def build_dataset(report: Report) -> Dict[str, Any]:
    """
    Rows for the report's type. ``custom`` reports name one of the other
    datasets in ``filters["dataset"]``; otherwise they come out empty.
    A template contributes default filters (the report's own win) and may
    pick and order the columns.
    """
    template = report.template if report.template_id else None
    filters = {**(template.default_filters if template else {}), **(report.filters or {})}
    kind = report.type
    if kind == "custom":
        kind = filters.get("dataset", "")
    builder = BUILDERS.get(kind)
    if builder is None:
        columns, rows, summary = [], [], {}
    else:
        columns, rows, summary = builder(filters)
    if template is not None:
        columns, rows = _apply_layout(template.layout or {}, columns, rows)
    return {
        "title": report.title,
        "type": report.type,
        "generated_at": timezone.now(),
        "filters": filters,
        "columns": columns,
        "rows": rows,
        "summary": summary,
    }


# ---------------------------------------------------------------------------
# Rendering
# ---------------------------------------------------------------------------

def _render_csv(dataset) -> bytes:
    out = io.StringIO()
    writer = csv.writer(out)
    writer.writerow(dataset["columns"])
    writer.writerows(dataset["rows"])
    if dataset["summary"]:
        writer.writerow([])
        for key, value in dataset["summary"].items():
            writer.writerow([key, value])
    return out.getvalue().encode("utf-8")


def _render_json(dataset) -> bytes:
    payload = {
        **{k: dataset[k] for k in ("title", "type", "generated_at", "filters", "summary")},
        "rows": [dict(zip(dataset["columns"], row)) for row in dataset["rows"]],
    }
    return json.dumps(payload, cls=DjangoJSONEncoder, indent=2).encode("utf-8")


def _render_pdf(dataset) -> bytes:
    from reportlab.lib import colors
    from reportlab.lib.pagesizes import A4, landscape
    from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
    from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

    buffer = io.BytesIO()
    pagesize = landscape(A4) if len(dataset["columns"]) > 6 else A4
    doc = SimpleDocTemplate(
        buffer, pagesize=pagesize,
        leftMargin=36, rightMargin=36, topMargin=36, bottomMargin=36,
        title=dataset["title"],
    )

    styles = getSampleStyleSheet()
    H1 = ParagraphStyle("H1", parent=styles["Heading1"], fontSize=16, leading=20, spaceAfter=6)
    Meta = ParagraphStyle("Meta", parent=styles["Normal"], fontSize=9.5, textColor=colors.HexColor("#475569"))
    Cell = ParagraphStyle("Cell", parent=styles["Normal"], fontSize=8.5, leading=10)

    generated = timezone.localtime(dataset["generated_at"])
    story = [
        Paragraph(dataset["title"], H1),
        Paragraph(f"{dataset['type'].title()} report · generated {generated:%Y-%m-%d %H:%M}", Meta),
        Spacer(1, 10),
    ]

    if dataset["summary"]:
        summary = Table([[str(k), str(v)] for k, v in dataset["summary"].items()], colWidths=[160, 160], hAlign="LEFT")
        summary.setStyle(TableStyle([
            ("FONTSIZE", (0, 0), (-1, -1), 9),
            ("TEXTCOLOR", (0, 0), (0, -1), colors.HexColor("#475569")),
            ("LINEBELOW", (0, 0), (-1, -1), 0.25, colors.HexColor("#e5e7eb")),
        ]))
        story += [summary, Spacer(1, 12)]

    if dataset["columns"]:
        data = [[Paragraph(f"<b>{c}</b>", Cell) for c in dataset["columns"]]]
        data += [[Paragraph(str(v), Cell) for v in row] for row in dataset["rows"]]
        grid = Table(data, repeatRows=1)
        grid.setStyle(TableStyle([
            ("BACKGROUND", (0, 0), (-1, 0), colors.HexColor("#f1f5f9")),
            ("GRID", (0, 0), (-1, -1), 0.25, colors.HexColor("#cbd5e1")),
            ("VALIGN", (0, 0), (-1, -1), "TOP"),
        ]))
        story.append(grid)
    else:
        story.append(Paragraph("No data for this report.", Meta))

    doc.build(story)
    pdf = buffer.getvalue()
    buffer.close()
    return pdf


RENDERERS = {
    "csv": _render_csv,
    "json": _render_json,
    "pdf": _render_pdf,
}


def render(report: Report, dataset: Dict[str, Any]) -> Tuple[bytes, str, str]:
    """(content, mime type, file extension) for the report's format."""
    fmt = report.format
    renderer = RENDERERS.get(fmt)
    if renderer is None:
        raise ValueError(f"Unsupported report format '{fmt}'.")
    return renderer(dataset), MIME_TYPES[fmt], fmt


def report_stats() -> Dict[str, Any]:
    """Counts by status and type plus monthly creation trend (last six months with data)."""
    status_counts = {r["status"]: r["n"] for r in Report.objects.order_by().values("status").annotate(n=Count("id"))}
    type_counts = {r["type"]: r["n"] for r in Report.objects.order_by().values("type").annotate(n=Count("id"))}
    monthly = (
        Report.objects.order_by()
        .annotate(month=TruncMonth("created_at"))
        .values("month")
        .annotate(n=Count("id"))
        .order_by("-month")[:6]
    )
    trends = [{"month": row["month"].strftime("%Y-%m"), "count": row["n"]} for row in reversed(list(monthly))]
    return {
        "status": status_counts,
        "types": type_counts,
        "scheduled": Report.objects.scheduled().count(),
        "monthly_trends": trends,
    }
