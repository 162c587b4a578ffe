# config/settings/dev.py
"""
Local development: DEBUG on, console email, verbose returns logging.
"""

from .base import *  # noqa

DEBUG = True

ALLOWED_HOSTS = ["localhost", "127.0.0.1"]

# add ngrok/cloudflare tunnel origins here when testing Stripe webhooks locally
CSRF_TRUSTED_ORIGINS: list[str] = []

EMAIL_BACKEND = "django.core.mail.backends.console.EmailBackend"

SECURE_SSL_REDIRECT = False
SESSION_COOKIE_SECURE = False
CSRF_COOKIE_SECURE = False
SECURE_HSTS_SECONDS = 0

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "filters": {
        "request_context": {
            "()": "core.logging_filters.RequestContextFilter",
        },
    },
    "formatters": {
        "standard": {
            "format": (
                "[%(levelname)s] %(asctime)s rid=%(request_id)s user=%(user_id)s role=%(role)s "
                "path=%(path)s %(name)s: %(message)s"
            ),
        },
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "filters": ["request_context"],
            "formatter": "standard",
        },
    },
    "root": {
        "handlers": ["console"],
        "level": os.getenv("LOG_LEVEL", "INFO"),
    },
    "loggers": {
        "returns": {"level": os.getenv("RETURNS_LOG_LEVEL", "DEBUG")},
        # Stripe's own client logs request lines at INFO; too chatty locally
        "stripe": {"level": "WARNING"},
    },
}
