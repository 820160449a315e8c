# config/settings/test.py

from .base import *  # noqa: F401,F403

DEBUG = False

SECRET_KEY = 'test-secret-key'

ALLOWED_HOSTS = ['testserver', 'localhost']

DATABASES = {
    'default': {
        'ENGINE': 'django.db.backends.sqlite3',
        'NAME': ':memory:',
    }
}

CACHES = {
    'default': {
        'BACKEND': 'django.core.cache.backends.locmem.LocMemCache',
        'LOCATION': 'taskboard-test-cache',
    }
}

SESSION_ENGINE = 'django.contrib.sessions.backends.db'

CHANNEL_LAYERS = {
    'default': {
        'BACKEND': 'channels.layers.InMemoryChannelLayer'
    }
}

PASSWORD_HASHERS = ['django.contrib.auth.hashers.MD5PasswordHasher']

STORAGES['staticfiles'] = {
    'BACKEND': 'django.contrib.staticfiles.storage.StaticFilesStorage',
}

# Quiet test output, errors still reach the console
LOGGING['handlers'] = {
    'console': {
        'level': 'ERROR',
        'class': 'logging.StreamHandler',
        'formatter': 'simple',
    },
}
LOGGING['root'] = {'handlers': ['console'], 'level': 'ERROR'}
LOGGING['loggers'] = {
    'apps': {'handlers': ['console'], 'level': 'ERROR', 'propagate': False},
}
