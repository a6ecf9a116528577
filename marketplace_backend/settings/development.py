# marketplace_backend/settings/development.py

from .base import *  # noqa: F403

# Core settings
DEBUG = True
ENVIRONMENT = env("ENVIRONMENT", default="development")  # noqa: F405 # type: ignore

# Session settings for development
CSRF_COOKIE_SECURE = False
SESSION_COOKIE_SECURE = False

# CORS settings for development
CORS_ALLOW_ALL_ORIGINS = True
CORS_ALLOW_CREDENTIALS = True

# Enable browsable API
REST_FRAMEWORK["DEFAULT_RENDERER_CLASSES"] += [  # noqa: F405
    "rest_framework.renderers.BrowsableAPIRenderer",
]

INSTALLED_APPS += ["debug_toolbar"]  # noqa: F405
MIDDLEWARE += [  # noqa: F405
    "debug_toolbar.middleware.DebugToolbarMiddleware"
]
INTERNAL_IPS = env.list("INTERNAL_IPS", default=["127.0.0.1"])  # noqa: F405

LOGGING["loggers"]["apps"]["level"] = "DEBUG"  # noqa: F405

# Celery settings for development
CELERY_TASK_ALWAYS_EAGER = env.bool(  # noqa: F405
    "CELERY_TASK_ALWAYS_EAGER", default=False
)
CELERY_TASK_EAGER_PROPAGATES = True

# Cache settings for development (more permissive timeouts)
CACHES["default"]["OPTIONS"].update(  # noqa: F405
    {
        "SOCKET_CONNECT_TIMEOUT": 10,
        "SOCKET_TIMEOUT": 10,
    }
)
