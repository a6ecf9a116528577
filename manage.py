#!/usr/bin/env python
"""Django's command-line utility for administrative tasks."""

import os
import sys


def main():
    """Run administrative tasks."""
    # Tests always run against the testing settings unless told otherwise
    default_settings = "marketplace_backend.settings.development"
    if len(sys.argv) > 1 and sys.argv[1] == "test":
        default_settings = "marketplace_backend.settings.testing"
    os.environ.setdefault("DJANGO_SETTINGS_MODULE", default_settings)

    try:
        from django.core.management import execute_from_command_line
    except ImportError as exc:
        raise ImportError(
            "Couldn't import Django. Are you sure it's installed and "
            "available on your PYTHONPATH environment variable? Did you "
            "forget to activate a virtual environment?"
        ) from exc

    if len(sys.argv) == 1:
        print("Available commands: migrate, test, reconcile_stock, etc.")
        execute_from_command_line([sys.argv[0], "help"])
    else:
        execute_from_command_line(sys.argv)


if __name__ == "__main__":
    main()
