# apps/reports/tasks.py
from __future__ import annotations

import logging
from email.utils import formatdate

from celery import shared_task
from django.conf import settings
from django.contrib.auth import get_user_model
from django.core.files.base import ContentFile
from django.core.mail import EmailMessage
from django.db.models import Q
from django.utils import timezone
from django.utils.text import slugify

from apps.notifications.services import notify

from .models import Report
from .scheduling import InvalidScheduleError, next_run
from .services import build_dataset, render

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _audience_ids(report: Report) -> list:
    """Owner, explicit recipients and everyone holding a recipient role."""
    q = Q(pk=report.generated_by_id) | Q(pk__in=report.recipient_users.values("pk"))
    if report.recipient_roles:
        q |= Q(role__in=report.recipient_roles)
    return list(get_user_model().objects.filter(q, is_active=True).values_list("pk", flat=True).distinct())


def advance_schedule(report: Report, now) -> Report:
    """
    Stamp last_run and move next_run forward. Custom schedules have no
    period, so they fire once and switch themselves off; saving the report
    with `schedule_active=True` re-arms them at today's time of day.
    """
    report.last_run = now
    spec = report.schedule_spec()
    try:
        if spec is None or spec.frequency == "custom":
            report.schedule_active = False
            report.next_run = None
        else:
            report.next_run = next_run(spec, now)
    except InvalidScheduleError as exc:
        logger.warning("report %s has an invalid schedule (%s); deactivating", report.pk, exc)
        report.schedule_active = False
        report.next_run = None
    report.save(update_fields=["last_run", "next_run", "schedule_active", "updated_at"])
    return report

# ---------------------------------------------------------------------------
# Generation
# ---------------------------------------------------------------------------

@shared_task(bind=True, max_retries=1)
def generate_report(self, report_id: int):
    """
    pending -> processing -> completed | failed. Failures are recorded on the
    report, never raised.
    """
    report = Report.objects.filter(pk=report_id).first()
    if report is None:
        return {"skipped": True, "reason": "report not found", "report": report_id}

    report.status = "processing"
    report.error = ""
    report.save(update_fields=["status", "error", "updated_at"])

    try:
        dataset = build_dataset(report)
        content, mime, ext = render(report, dataset)
    except Exception as exc:
        logger.exception("report %s failed to generate", report.pk)
        report.status = "failed"
        report.error = str(exc)[:2000]
        report.save(update_fields=["status", "error", "updated_at"])
        return {"failed": True, "report": report.pk, "error": report.error}

    if report.file:
        report.file.delete(save=False)
    stamp = timezone.now().strftime("%Y%m%d-%H%M%S")
    report.file.save(f"{slugify(report.title) or 'report'}-{stamp}.{ext}", ContentFile(content), save=False)
    report.file_size = len(content)
    report.mime_type = mime
    report.status = "completed"
    report.metadata = {**(report.metadata or {}), "rows": len(dataset["rows"]), "generated_at": timezone.now().isoformat()}
    report.save(update_fields=["file", "file_size", "mime_type", "status", "metadata", "updated_at"])
    logger.info("report %s generated (%s, %d bytes)", report.pk, report.format, report.file_size)

    if getattr(settings, "NOTIFY_USERS", True):
        notify(
            _audience_ids(report),
            title=f"Report ready: {report.title}",
            message=f"Your {report.type} report is ready to download.",
            type="report",
            related_type="report",
            related_id=report.pk,
            action_url=report.download_url or "",
        )
        if report.recipient_emails:
            send_report_email.delay(report.pk)

    return {"generated": True, "report": report.pk, "bytes": report.file_size}


@shared_task(bind=True, max_retries=2)
def send_report_email(self, report_id: int, to_override=None):
    """Email the generated file to the report's recipient addresses."""
    if not getattr(settings, "NOTIFY_USERS", True):
        return {"skipped": True, "reason": "notifications disabled"}

    report = Report.objects.get(pk=report_id)
    to_list = to_override or list(report.recipient_emails or [])
    if not to_list:
        return {"skipped": True, "reason": "no recipient email", "report": report.pk}
    if not report.file:
        return {"skipped": True, "reason": "no file", "report": report.pk}

    msg = EmailMessage(
        subject=f"Report: {report.title}",
        body=report.description or f"Attached: {report.title} ({report.type}).",
        from_email=getattr(settings, "DEFAULT_FROM_EMAIL", "no-reply@orbit.local"),
        to=to_list,
    )
    with report.file.open("rb") as fh:
        msg.attach(report.file.name.rsplit("/", 1)[-1], fh.read(), report.mime_type or "application/octet-stream")
    msg.extra_headers = {
        "Date": formatdate(localtime=True),
        "X-Entity-Ref-ID": str(report.pk),
    }
    msg.send(fail_silently=False)
    return {"sent": True, "to": to_list, "report": report.pk}

# ---------------------------------------------------------------------------
# Scheduler sweep
# ---------------------------------------------------------------------------

@shared_task(bind=True, max_retries=1)
def run_due_reports(self):
    """Beat job: generate every active schedule whose next_run has passed."""
    now = timezone.now()
    queued = 0
    for report in Report.objects.due(now).order_by("next_run", "id"):
        generate_report.delay(report.pk)
        advance_schedule(report, now)
        queued += 1
    if queued:
        logger.info("queued %d scheduled report(s)", queued)
    return {"queued": queued}
