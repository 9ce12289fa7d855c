"""
Add celery-beat schedule for releasing escrow after the hold period.

This migration creates the periodic task schedule for the
process_due_escrow_releases task, which runs every 15 minutes to
queue release of verified payments whose hold deadline has passed.
"""

from django.db import migrations

TASK_NAME = "Process Due Escrow Releases"


def create_periodic_task(apps, schema_editor):
    """Create the periodic task for releasing due escrow payments."""
    IntervalSchedule = apps.get_model("django_celery_beat", "IntervalSchedule")
    PeriodicTask = apps.get_model("django_celery_beat", "PeriodicTask")

    schedule, _ = IntervalSchedule.objects.get_or_create(
        every=15,
        period="minutes",
    )

    PeriodicTask.objects.get_or_create(
        name=TASK_NAME,
        defaults={
            "task": "payments.workers.escrow_sweeper.process_due_escrow_releases",
            "interval": schedule,
            "enabled": True,
            "description": (
                "Queues release of verified payments whose escrow hold "
                "has elapsed. Funds go to the provider by deadline."
            ),
        },
    )


def remove_periodic_task(apps, schema_editor):
    """Remove the periodic task on migration rollback."""
    PeriodicTask = apps.get_model("django_celery_beat", "PeriodicTask")

    PeriodicTask.objects.filter(name=TASK_NAME).delete()


class Migration(migrations.Migration):
    dependencies = [
        ("payments", "0001_initial"),
        ("django_celery_beat", "0019_alter_periodictasks_options"),
    ]

    operations = [
        migrations.RunPython(create_periodic_task, remove_periodic_task),
    ]
