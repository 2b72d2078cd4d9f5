# config/celery.py
import os
from celery import Celery

os.environ.setdefault(
    "DJANGO_SETTINGS_MODULE",
    os.getenv("DJANGO_SETTINGS_MODULE", "config.settings"),
)

app = Celery("orbit")
app.config_from_object("django.conf:settings", namespace="CELERY")
app.autodiscover_tasks()

# Upstash TLS relax (dev-only) if needed
if str(app.conf.broker_url or "").startswith("rediss://"):
    app.conf.broker_transport_options = {"ssl": {"cert_reqs": "CERT_NONE"}}
if str(app.conf.result_backend or "").startswith("rediss://"):
    app.conf.redis_backend_use_ssl = {"cert_reqs": "CERT_NONE"}

app.conf.beat_schedule = {
    "run-due-reports-every-5m": {
        "task": "apps.reports.tasks.run_due_reports",
        "schedule": 300.0,
    },
    "purge-expired-notifications-hourly": {
        "task": "apps.notifications.tasks.purge_expired_notifications",
        "schedule": 3600.0,
    },
}
