# marketplace_backend/settings/testing.py

import logging

from .base import *  # noqa

DEBUG = False
TESTING = True

# Disable rate limiting during testing
REST_FRAMEWORK.update(  # noqa: F405
    {
        "DEFAULT_THROTTLE_CLASSES": [],
        "DEFAULT_THROTTLE_RATES": {
            "anon": None,
            "user": None,
            "payments": None,
        },
        "TEST_REQUEST_DEFAULT_FORMAT": "json",
    }
)

# Use faster password hasher for testing
PASSWORD_HASHERS = [
    "django.contrib.auth.hashers.MD5PasswordHasher",
]

# Use in-memory SQLite for faster tests
DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": ":memory:",
    }
}

# Disable logging during tests
logging.disable(logging.CRITICAL)

# Disable cache for tests
CACHES = {
    "default": {
        "BACKEND": "django.core.cache.backends.dummy.DummyCache",
    },
    "sessions": {
        "BACKEND": "django.core.cache.backends.locmem.LocMemCache",
        "LOCATION": "sessions",
    },
}

SESSION_ENGINE = "django.contrib.sessions.backends.cache"
SESSION_CACHE_ALIAS = "sessions"

# Celery
CELERY_TASK_ALWAYS_EAGER = True
CELERY_TASK_EAGER_PROPAGATES = True
CELERY_BROKER_URL = "memory://"
CELERY_RESULT_BACKEND = "cache+memory://"

# Fixed gateway credentials so signatures are reproducible in tests
PAYMENT_GATEWAY = {
    "KEY_ID": "rzp_test_key",
    "KEY_SECRET": "test_secret",
    "BASE_URL": "https://gateway.test",
    "TIMEOUT": 5,
    "MERCHANT_NAME": "Marketplace Test",
}
