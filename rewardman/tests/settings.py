"""
Django settings for Rewardman tests.
"""

SECRET_KEY = "test-secret-key-for-rewardman-tests"

DEBUG = True

INSTALLED_APPS = [
    "django.contrib.contenttypes",
    "django.contrib.auth",
    "rewardman",
]

DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": ":memory:",
    }
}

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

USE_TZ = True
TIME_ZONE = "America/Guayaquil"

REWARDMAN = {
    "DEFAULT_REGION": "EC",
    "NOTIFICATION_BACKEND": "rewardman.adapters.logging_backend.LoggingNotificationBackend",
}
