"""
Test settings for the storefront back-office.

Uses in-memory SQLite and eager Celery for fast test execution.
"""

from .base import *

DEBUG = False

ALLOWED_HOSTS = ["localhost", "127.0.0.1", "testserver"]

DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": ":memory:",
    }
}

CACHES = {
    "default": {
        "BACKEND": "django.core.cache.backends.locmem.LocMemCache",
        "LOCATION": "unique-snowflake",
    }
}

# Run tasks synchronously
CELERY_TASK_ALWAYS_EAGER = True
CELERY_TASK_EAGER_PROPAGATES = True

LOGGING["loggers"]["django"]["level"] = "WARNING"
LOGGING["loggers"]["storefront"]["level"] = "WARNING"

AUTH_PASSWORD_VALIDATORS = []

PASSWORD_HASHERS = [
    "django.contrib.auth.hashers.MD5PasswordHasher",
]

SENTRY_DSN = ""

# Throttles would leak between test cases through the shared cache
REST_FRAMEWORK["DEFAULT_THROTTLE_RATES"] = {
    "storefront_anon": "10000/minute",
    "storefront_user": "10000/minute",
    "admin_sync": "10000/minute",
    "checkout": "10000/minute",
}

# Integration credentials are blank so tests opt in explicitly
ZOHO_CLIENT_ID = ""
ZOHO_CLIENT_SECRET = ""
ZOHO_REFRESH_TOKEN = ""
ZOHO_ORGANIZATION_ID = ""
AIRTABLE_API_KEY = ""
AIRTABLE_BASE_ID = ""
OPENAI_API_KEY = ""

INTEGRATION_REQUEST_TIMEOUT = 5

# No pauses and no automatic queueing on product creation
CLASSIFIER_DELAY_SECONDS = 0
CLASSIFIER_CLASSIFY_ON_CREATE = False
