import os
from celery import Celery
from celery.schedules import crontab as _celery_crontab

# Set the default Django settings module for the 'celery' program.
os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'creditengine.settings')

app = Celery('creditengine')

# Using a string here means the worker doesn't have to serialize
# the configuration object to child processes.
app.config_from_object('django.conf:settings', namespace='CELERY')

# Load task modules from all registered Django apps.
app.autodiscover_tasks()

# Task routing: ledger housekeeping runs on its own queue
app.conf.task_routes = {
    "credits.tasks.cancel_abandoned_orders": {"queue": "credits"},
    "credits.tasks.audit_author_ledgers": {"queue": "maintenance"},

    # Default queue
    '*': {'queue': 'default'},
}

app.conf.task_default_queue = 'default'

app.conf.update(
    # Serialization settings
    task_serializer='json',
    accept_content=['json'],
    result_serializer='json',

    # Timezone settings
    timezone='UTC',
    enable_utc=True,

    # Task execution settings
    task_track_started=True,
    task_time_limit=10 * 60,
    task_soft_time_limit=8 * 60,

    # Worker settings
    worker_prefetch_multiplier=1,
    worker_max_tasks_per_child=1000,

    # Retry settings
    task_acks_late=True,
    task_reject_on_worker_lost=True,

    task_queues={
        'default': {
            'exchange': 'default',
            'routing_key': 'default',
        },
        'credits': {
            'exchange': 'credits',
            'routing_key': 'credits',
        },
        'maintenance': {
            'exchange': 'maintenance',
            'routing_key': 'maintenance',
        },
    },

    task_ignore_result=False,
    task_store_errors_even_if_ignored=True,
)

app.conf.task_annotations = {
    'credits.tasks.cancel_abandoned_orders': {
        'rate_limit': '4/h',
        'time_limit': 300,
        'soft_time_limit': 240,
    },
}

# Celery Beat schedule configuration
app.conf.beat_schedule = {
    'cancel-abandoned-payment-orders': {
        'task': 'credits.tasks.cancel_abandoned_orders',
        'schedule': _celery_crontab(minute=15),
        'options': {'queue': 'credits'},
    },
    'audit-author-ledgers-nightly': {
        'task': 'credits.tasks.audit_author_ledgers',
        'schedule': _celery_crontab(hour=3, minute=30),
        'options': {'queue': 'maintenance'},
    },
}
