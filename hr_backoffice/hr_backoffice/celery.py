from __future__ import annotations
import os
from celery import Celery

# Django settings must be known before the app reads its config
os.environ.setdefault("DJANGO_SETTINGS_MODULE", "hr_backoffice.settings")

celery_app = Celery("hr_backoffice")

# read config from Django settings, using CELERY_ prefix
# (CELERY_BROKER_URL, CELERY_TASK_ALWAYS_EAGER, ...)
celery_app.config_from_object("django.conf:settings", namespace="CELERY")

# picks up hr_core/tasks.py
celery_app.autodiscover_tasks()
