"""
Django base settings for the VIP Smoke storefront back-office.

This module contains settings common to all environments.
For more information on this file, see
https://docs.djangoproject.com/en/4.2/topics/settings/
"""

import os
from pathlib import Path
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

BASE_DIR = Path(__file__).resolve().parent.parent.parent


# SECURITY WARNING: keep the secret key used in production secret!
SECRET_KEY = os.getenv(
    "SECRET_KEY",
    "django-insecure-storefront-dev-key-change-in-production"
)

# SECURITY WARNING: don't run with debug turned on in production!
DEBUG = os.getenv("DEBUG", "True") == "True"

ALLOWED_HOSTS = os.getenv("ALLOWED_HOSTS", "localhost,127.0.0.1").split(",")


# Application definition

INSTALLED_APPS = [
    "django.contrib.admin",
    "django.contrib.auth",
    "django.contrib.contenttypes",
    "django.contrib.sessions",
    "django.contrib.messages",
    "django.contrib.staticfiles",
    # Third-party apps
    "rest_framework",
    "drf_spectacular",
    # Local apps
    "storefront",
]

MIDDLEWARE = [
    "django.middleware.security.SecurityMiddleware",
    "django.contrib.sessions.middleware.SessionMiddleware",
    "django.middleware.common.CommonMiddleware",
    "django.middleware.csrf.CsrfViewMiddleware",
    "django.contrib.auth.middleware.AuthenticationMiddleware",
    "django.contrib.messages.middleware.MessageMiddleware",
    "django.middleware.clickjacking.XFrameOptionsMiddleware",
]

ROOT_URLCONF = "config.urls"

TEMPLATES = [
    {
        "BACKEND": "django.template.backends.django.DjangoTemplates",
        "DIRS": [],
        "APP_DIRS": True,
        "OPTIONS": {
            "context_processors": [
                "django.template.context_processors.debug",
                "django.template.context_processors.request",
                "django.contrib.auth.context_processors.auth",
                "django.contrib.messages.context_processors.messages",
            ],
        },
    },
]

WSGI_APPLICATION = "config.wsgi.application"


# Database
# https://docs.djangoproject.com/en/4.2/ref/settings/#databases
# Hosted Postgres (Supabase) in production, configured per environment

DATABASES = {
    # Override in environment-specific settings
}


AUTH_PASSWORD_VALIDATORS = [
    {
        "NAME": "django.contrib.auth.password_validation.UserAttributeSimilarityValidator",
    },
    {
        "NAME": "django.contrib.auth.password_validation.MinimumLengthValidator",
    },
    {
        "NAME": "django.contrib.auth.password_validation.CommonPasswordValidator",
    },
    {
        "NAME": "django.contrib.auth.password_validation.NumericPasswordValidator",
    },
]


# Internationalization

LANGUAGE_CODE = "en-us"

TIME_ZONE = "UTC"

USE_I18N = True

USE_TZ = True


# Static files

STATIC_URL = "static/"
STATIC_ROOT = BASE_DIR / "staticfiles"

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"


# Cache - configured in environment-specific settings

CACHES = {
    # Override in environment-specific settings
}


# Celery Configuration
# https://docs.celeryproject.org/en/stable/django/first-steps-with-django.html

CELERY_BROKER_URL = os.getenv("CELERY_BROKER_URL", "redis://localhost:6379/1")
CELERY_RESULT_BACKEND = os.getenv("CELERY_RESULT_BACKEND", "redis://localhost:6379/1")
CELERY_ACCEPT_CONTENT = ["json"]
CELERY_TASK_SERIALIZER = "json"
CELERY_RESULT_SERIALIZER = "json"
CELERY_TIMEZONE = TIME_ZONE
CELERY_TASK_TRACK_STARTED = True
CELERY_TASK_TIME_LIMIT = 30 * 60  # 30 minutes max for a full catalog sync

CELERY_TASK_ROUTES = {
    "storefront.tasks.sync_*": {"queue": "sync"},
    "storefront.tasks.classify_*": {"queue": "classification"},
    "storefront.tasks.audit_*": {"queue": "default"},
}


# Django REST Framework Configuration

REST_FRAMEWORK = {
    "DEFAULT_AUTHENTICATION_CLASSES": [
        "rest_framework.authentication.SessionAuthentication",
    ],
    "DEFAULT_PERMISSION_CLASSES": [
        "rest_framework.permissions.IsAuthenticated",
    ],
    "DEFAULT_SCHEMA_CLASS": "drf_spectacular.openapi.AutoSchema",
    "DEFAULT_PAGINATION_CLASS": "rest_framework.pagination.PageNumberPagination",
    "PAGE_SIZE": 100,
    "DEFAULT_THROTTLE_RATES": {
        "storefront_anon": os.getenv("STOREFRONT_ANON_RATE", "120/minute"),
        "storefront_user": os.getenv("STOREFRONT_USER_RATE", "600/minute"),
        "admin_sync": os.getenv("ADMIN_SYNC_RATE", "10/hour"),
        "checkout": os.getenv("CHECKOUT_RATE", "20/minute"),
    },
}


# DRF Spectacular (OpenAPI/Swagger) Configuration

SPECTACULAR_SETTINGS = {
    "TITLE": "VIP Smoke Storefront API",
    "DESCRIPTION": "Storefront, catalog sync and compliance API for VIP Smoke",
    "VERSION": "1.0.0",
    "SERVE_INCLUDE_SCHEMA": False,
}


# Logging Configuration
# https://docs.djangoproject.com/en/4.2/topics/logging/

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "verbose": {
            "format": "{levelname} {asctime} {module} {message}",
            "style": "{",
        },
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "verbose",
        },
    },
    "loggers": {
        "django": {
            "handlers": ["console"],
            "level": os.getenv("LOG_LEVEL", "INFO"),
        },
        "storefront": {
            "handlers": ["console"],
            "level": os.getenv("LOG_LEVEL", "INFO"),
        },
    },
}


# External API Configuration

# Zoho Inventory (OAuth2 refresh-token flow)
ZOHO_CLIENT_ID = os.getenv("ZOHO_CLIENT_ID", "")
ZOHO_CLIENT_SECRET = os.getenv("ZOHO_CLIENT_SECRET", "")
ZOHO_REFRESH_TOKEN = os.getenv("ZOHO_REFRESH_TOKEN", "")
ZOHO_ORGANIZATION_ID = os.getenv("ZOHO_ORGANIZATION_ID", "")
ZOHO_ACCOUNTS_URL = os.getenv("ZOHO_ACCOUNTS_URL", "https://accounts.zoho.com")
ZOHO_API_BASE_URL = os.getenv(
    "ZOHO_API_BASE_URL",
    "https://www.zohoapis.com/inventory/v1"
)

# Airtable (external content catalog)
AIRTABLE_API_KEY = os.getenv(
    "AIRTABLE_PERSONAL_ACCESS_TOKEN",
    os.getenv("AIRTABLE_API_KEY", "")
)
AIRTABLE_BASE_ID = os.getenv("AIRTABLE_BASE_ID", "")
AIRTABLE_TABLE_ID = os.getenv("AIRTABLE_TABLE_ID", "SigDistro")
AIRTABLE_API_URL = os.getenv("AIRTABLE_API_URL", "https://api.airtable.com/v0")

# OpenAI chat completions (product classification)
OPENAI_API_KEY = os.getenv("OPENAI_API_KEY", "")
OPENAI_MODEL = os.getenv("OPENAI_MODEL", "gpt-4o")
OPENAI_API_URL = os.getenv("OPENAI_API_URL", "https://api.openai.com/v1")
OPENAI_TIMEOUT = float(os.getenv("OPENAI_TIMEOUT", "60"))

# Timeout for synchronous SaaS requests (seconds)
INTEGRATION_REQUEST_TIMEOUT = int(os.getenv("INTEGRATION_REQUEST_TIMEOUT", "30"))


# Sentry Configuration
# https://docs.sentry.io/platforms/python/guides/django/

SENTRY_DSN = os.getenv("SENTRY_DSN", "")
SENTRY_ENVIRONMENT = os.getenv("SENTRY_ENVIRONMENT", "development")
SENTRY_TRACES_SAMPLE_RATE = float(os.getenv("SENTRY_TRACES_SAMPLE_RATE", "0.2"))

import sentry_sdk

if SENTRY_DSN:
    sentry_sdk.init(
        dsn=SENTRY_DSN,
        send_default_pii=False,
        traces_sample_rate=SENTRY_TRACES_SAMPLE_RATE,
        environment=SENTRY_ENVIRONMENT,
    )


# Storefront pricing

STOREFRONT_TAX_RATE = os.getenv("STOREFRONT_TAX_RATE", "0.08")
STOREFRONT_FREE_SHIPPING_THRESHOLD = os.getenv("STOREFRONT_FREE_SHIPPING_THRESHOLD", "75.00")
STOREFRONT_FLAT_SHIPPING = os.getenv("STOREFRONT_FLAT_SHIPPING", "9.99")


# Product matcher

# Minimum score for a product/record pair to be kept
MATCHER_DEFAULT_THRESHOLD = float(os.getenv("MATCHER_DEFAULT_THRESHOLD", "0.5"))


# Background classification

CLASSIFIER_ENABLED = os.getenv("CLASSIFIER_ENABLED", "True") == "True"
CLASSIFIER_BATCH_SIZE = int(os.getenv("CLASSIFIER_BATCH_SIZE", "5"))
# Pause between two classifications to stay under the LLM rate limit (seconds)
CLASSIFIER_DELAY_SECONDS = float(os.getenv("CLASSIFIER_DELAY_SECONDS", "2.0"))
CLASSIFIER_RULE_CONFIDENCE_CUTOFF = float(
    os.getenv("CLASSIFIER_RULE_CONFIDENCE_CUTOFF", "0.7")
)
CLASSIFIER_AUTO_HIDE_NICOTINE = os.getenv("CLASSIFIER_AUTO_HIDE_NICOTINE", "True") == "True"
CLASSIFIER_AUTO_HIDE_TOBACCO = os.getenv("CLASSIFIER_AUTO_HIDE_TOBACCO", "True") == "True"
# Queue new products for classification as they are created
CLASSIFIER_CLASSIFY_ON_CREATE = os.getenv("CLASSIFIER_CLASSIFY_ON_CREATE", "True") == "True"
