"""
Test settings. In-memory SQLite, local-memory cache.

Usage:
    pytest  (DJANGO_SETTINGS_MODULE=foodbridge.settings.test via pyproject.toml)
"""

from .base import *

DEPLOYMENT_MODE = 'test'

DEBUG = False

DATABASES = {
    'default': {
        'ENGINE': 'django.db.backends.sqlite3',
        'NAME': ':memory:',
    }
}

CACHES = {
    'default': {
        'BACKEND': 'django.core.cache.backends.locmem.LocMemCache',
        'LOCATION': 'foodbridge-test',
    }
}

PASSWORD_HASHERS = ['django.contrib.auth.hashers.MD5PasswordHasher']

LOGGING = {
    'version': 1,
    'disable_existing_loggers': False,
    'handlers': {
        'null': {
            'class': 'logging.NullHandler',
        },
    },
    'loggers': {
        'donations': {'handlers': ['null'], 'level': 'DEBUG', 'propagate': False},
        'volunteers': {'handlers': ['null'], 'level': 'DEBUG', 'propagate': False},
    },
}
