"""
Test settings for the Tuki bookings service.

SQLite, in-memory storage and eager Celery so the suite runs without services.
"""

import os

os.environ.setdefault('SECRET_KEY', 'test-secret-key')

from .base import *  # noqa

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
    }
}

STORAGES = {
    'default': {
        'BACKEND': 'django.core.files.storage.InMemoryStorage',
    },
    'staticfiles': {
        'BACKEND': 'django.contrib.staticfiles.storage.StaticFilesStorage',
    },
}

EMAIL_BACKEND = 'django.core.mail.backends.locmem.EmailBackend'

CELERY_TASK_ALWAYS_EAGER = True
CELERY_TASK_EAGER_PROPAGATES = False
CELERY_BROKER_URL = 'memory://'
CELERY_RESULT_BACKEND = 'cache+memory://'

FRONTEND_URL = 'http://frontend.test'
PAYMENT_CALLBACK_BASE_URL = 'http://api.test'

EASEBUZZ_KEY = 'TESTKEY'
EASEBUZZ_SALT = 'TESTSALT'
EASEBUZZ_BASE_URL = 'https://testpay.easebuzz.in'
EASEBUZZ_PENDING_RETRIES = 0
EASEBUZZ_PENDING_RETRY_DELAY = 0

LOGGING['root']['level'] = 'WARNING'  # noqa: F405
