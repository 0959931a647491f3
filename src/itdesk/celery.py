"""Celery configuration for itdesk."""

import os

from celery import Celery

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "itdesk.settings")

app = Celery("itdesk")
app.config_from_object("django.conf:settings", namespace="CELERY")
app.autodiscover_tasks()
