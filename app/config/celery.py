"""
Celery configuration for the booking and escrow service.

Celery runs:
- Payment notification emails, queued after escrow transactions commit
- The escrow deadline sweeper (celery-beat, DatabaseScheduler; the
  schedule row is created by payments migration 0002)

Tasks are auto-discovered from all installed Django apps.

Usage:
    celery -A config worker -l info
    celery -A config beat -l info

For more information, see:
https://docs.celeryq.dev/en/stable/django/first-steps-with-django.html
"""

import os

from celery import Celery

# Set the default Django settings module for the Celery worker
os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")

app = Celery("config")

# All Celery settings are prefixed with CELERY_ in settings.py
app.config_from_object("django.conf:settings", namespace="CELERY")

# Looks for tasks.py in each installed app; worker tasks are imported
# through payments.tasks
app.autodiscover_tasks()
