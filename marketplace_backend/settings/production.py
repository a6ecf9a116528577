# marketplace_backend/settings/production.py

import os

from .base import *  # noqa: F403

# Core settings
DEBUG = False
ENVIRONMENT = env("ENVIRONMENT", default="production")  # type: ignore # noqa: F405

# Security settings
SECURE_SSL_REDIRECT = True
SECURE_CONTENT_TYPE_NOSNIFF = True
SECURE_HSTS_SECONDS = 31536000  # 1 year
SECURE_HSTS_INCLUDE_SUBDOMAINS = True
SECURE_HSTS_PRELOAD = True
SECURE_PROXY_SSL_HEADER = ("HTTP_X_FORWARDED_PROTO", "https")
SECURE_REFERRER_POLICY = "same-origin"
X_FRAME_OPTIONS = "DENY"
SECURE_CROSS_ORIGIN_OPENER_POLICY = "same-origin-allow-popups"

# Session settings for production
SESSION_ENGINE = "django.contrib.sessions.backends.cached_db"
SESSION_CACHE_ALIAS = "sessions"
SESSION_COOKIE_SECURE = True
CSRF_COOKIE_SECURE = True

# Postgres on managed hosts requires TLS
if "OPTIONS" in DATABASES["default"] or os.environ.get("DATABASE_URL"):  # noqa: F405
    DATABASES["default"].setdefault("OPTIONS", {})["sslmode"] = "require"  # noqa: F405

# Cache settings for production
CACHES["default"]["OPTIONS"].update(  # noqa: F405
    {
        "SOCKET_CONNECT_TIMEOUT": 5,
        "SOCKET_TIMEOUT": 5,
        "CONNECTION_POOL_KWARGS": {"max_connections": 100},
    }
)

redis_password = env("REDIS_PASSWORD", default=None)  # type: ignore # noqa: F405
if redis_password:
    CACHES["default"]["OPTIONS"]["PASSWORD"] = redis_password  # noqa: F405

# Celery settings for production
CELERY_TASK_TRACK_STARTED = True
CELERY_TASK_TIME_LIMIT = 30 * 60  # 30 minutes

# Static files
STORAGES = {
    "default": {"BACKEND": "django.core.files.storage.FileSystemStorage"},
    "staticfiles": {
        "BACKEND": "whitenoise.storage.CompressedManifestStaticFilesStorage"
    },
}
WHITENOISE_MAX_AGE = 31536000  # 1 year cache for static files
WHITENOISE_MANIFEST_STRICT = False

TEMPLATES[0]["OPTIONS"]["debug"] = False  # noqa: F405

# JSON logs on stdout
LOGGING["handlers"]["console"]["formatter"] = "json"  # noqa: F405
LOGGING["root"]["level"] = "INFO"  # noqa: F405
