# apps/reports/management/commands/run_due_reports.py
from django.core.management.base import BaseCommand
from django.utils import timezone

from apps.reports.models import Report
from apps.reports.tasks import advance_schedule, generate_report


class Command(BaseCommand):
    help = "Generate scheduled reports whose next run has passed. Use --dry-run to preview only."

    def add_arguments(self, parser):
        parser.add_argument("--dry-run", action="store_true", help="Preview only; do not generate")

    def handle(self, *args, **opts):
        now = timezone.now()
        qs = Report.objects.due(now).select_related("generated_by").order_by("next_run", "id")

        count = 0
        for report in qs:
            if opts["dry_run"]:
                self.stdout.write(
                    f"[DRY RUN] would generate report #{report.id} '{report.title}' "
                    f"(due {report.next_run.isoformat()})"
                )
                count += 1
                continue

            # Celery runs inline in dev because ALWAYS_EAGER=True
            generate_report.delay(report.id)
            advance_schedule(report, now)
            nxt = report.next_run.isoformat() if report.next_run else "none"
            self.stdout.write(self.style.SUCCESS(f"generated report #{report.id}; next run {nxt}"))
            count += 1

        self.stdout.write(self.style.SUCCESS(f"Done. Total: {count}"))
