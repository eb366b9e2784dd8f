from __future__ import annotations
import os
from celery import Celery
from celery.schedules import crontab

# ensure Django settings are set for Celery
os.environ.setdefault("DJANGO_SETTINGS_MODULE", "bk_project.settings")

# name should match your project package
celery_app = Celery("bk_project")

# read config from Django settings, using CELERY_ prefix
celery_app.config_from_object("django.conf:settings", namespace="CELERY")

# autoload tasks from installed apps
celery_app.autodiscover_tasks()

# Housekeeping jobs, both run at midnight in CELERY_TIMEZONE
celery_app.conf.beat_schedule = {
    "refresh-invoice-aging": {
        "task": "books_core.tasks.refresh_invoice_aging",
        "schedule": crontab(minute=0, hour=0),
    },
    "verify-ledger-consistency": {
        "task": "books_core.tasks.verify_all_entities",
        "schedule": crontab(minute=30, hour=0),
    },
}
