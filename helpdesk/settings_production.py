"""
helpdesk/settings_production.py
===============================
Production overrides.
Set DJANGO_SETTINGS_MODULE=helpdesk.settings_production in the host environment.
"""

from .settings import *   # noqa
import os
import dj_database_url

# --- Security -------------------------------------------------------------
SECRET_KEY = os.environ["SECRET_KEY"]
DEBUG      = False

_raw_hosts = os.environ.get("ALLOWED_HOSTS", "")
ALLOWED_HOSTS = [h.strip() for h in _raw_hosts.split(",") if h.strip()]

SESSION_COOKIE_SECURE       = True
CSRF_COOKIE_SECURE          = True
SECURE_PROXY_SSL_HEADER     = ("HTTP_X_FORWARDED_PROTO", "https")

# --- Database -------------------------------------------------------------
# DATABASE_URL is only present at runtime. During collectstatic the SQLite
# default from settings.py is used; migrations run with the real database.
_database_url = os.environ.get("DATABASE_URL")

if _database_url:
    DATABASES = {
        "default": dj_database_url.config(
            default=_database_url,
            conn_max_age=600,
            conn_health_checks=True,
        )
    }

# --- Help desk workflow ---------------------------------------------------
HELPDESK = {
    **HELPDESK,  # noqa: F405
    "MAX_RESUBMISSIONS": int(os.environ.get("HELPDESK_MAX_RESUBMISSIONS", 3)),
}

# --- Logging --------------------------------------------------------------
LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "handlers": {"console": {"class": "logging.StreamHandler"}},
    "root": {"handlers": ["console"], "level": "WARNING"},
    "loggers": {
        "tickets": {
            "handlers": ["console"],
            "level": os.environ.get("HELPDESK_LOG_LEVEL", "INFO"),
            "propagate": False,
        },
    },
}
