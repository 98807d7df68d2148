"""
🚀 CELERY CONFIGURATION for the Tuki bookings service

Async side effects of payment settlement (ticket issuance, notifications) and the
periodic sync of payments still pending at the gateway.
"""

import os
from celery import Celery
from celery.schedules import crontab

# Set the default Django settings module for the 'celery' program.
os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'config.settings.development')

app = Celery('tuki_bookings')

# Using a string here means the worker doesn't have to serialize
# the configuration object to child processes.
app.config_from_object('django.conf:settings', namespace='CELERY')

# Load task modules from all registered Django app configs.
app.autodiscover_tasks()

# 🚀 PERIODIC TASKS SCHEDULE
app.conf.beat_schedule = {
    # Reconcile registrations whose payment never called back
    'sync-pending-payments': {
        'task': 'payment_processor.tasks.sync_pending_payments',
        'schedule': crontab(minute='*/10'),
        'options': {
            'queue': 'payments',
            'routing_key': 'payments.sync_pending',
        }
    },
}

app.conf.task_routes = {
    'payment_processor.tasks.issue_ticket_task': {'queue': 'tickets'},
    'payment_processor.tasks.send_booking_success_email_task': {'queue': 'emails'},
    'payment_processor.tasks.send_booking_failure_email_task': {'queue': 'emails'},
    'payment_processor.tasks.sync_pending_payments': {'queue': 'payments'},
    'apps.bookings.tasks.send_waitlist_confirmation_task': {'queue': 'emails'},
}

app.conf.update(
    timezone='Asia/Kolkata',
    enable_utc=True,

    task_acks_late=True,       # Acknowledge after task completion
    worker_prefetch_multiplier=1,
    result_expires=3600,

    task_default_queue='default',
    task_default_exchange='default',
    task_default_exchange_type='direct',
    task_default_routing_key='default',
)

