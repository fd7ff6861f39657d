"""Development settings."""
from .base import *  # noqa: F401,F403

DEBUG = True
ENABLE_DJANGO_ADMIN = True

# CORS
CORS_ALLOW_ALL_ORIGINS = True

# Longer access tokens while developing against the API by hand.
SIMPLE_JWT["ACCESS_TOKEN_LIFETIME"] = timedelta(hours=8)  # noqa: F405

# Logging
LOGGING["root"]["level"] = "DEBUG"  # noqa: F405
