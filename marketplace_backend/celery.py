# marketplace_backend/celery.py

import os

from celery import Celery

# Set the default Django settings module for the 'celery' program.
os.environ.setdefault(
    "DJANGO_SETTINGS_MODULE", "marketplace_backend.settings.production"
)

app = Celery("marketplace_backend")

# Using a string here means the worker doesn't have to serialize
# the configuration object to child processes.
app.config_from_object("django.conf:settings", namespace="CELERY")

# Load task modules from all registered Django app configs.
app.autodiscover_tasks()

# Configure periodic tasks
app.conf.beat_schedule = {
    "cancel-unpaid-orders": {
        "task": "apps.orders.tasks.cancel_unpaid_orders",
        "schedule": 1800.0,  # Run every 30 minutes
    },
    "reconcile-order-stock": {
        "task": "apps.orders.tasks.reconcile_order_stock_task",
        "schedule": 900.0,  # Run every 15 minutes
    },
    "reconcile-pending-payments": {
        "task": "apps.payments.tasks.reconcile_pending_payments_task",
        "schedule": 900.0,
    },
}
