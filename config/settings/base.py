"""
Base settings for the Tuki bookings service.

This module contains settings that are common to all environments.
"""

from pathlib import Path
from decouple import config, Csv

# Build paths inside the project like this: BASE_DIR / 'subdir'.
BASE_DIR = Path(__file__).resolve().parent.parent.parent

# Security settings
SECRET_KEY = config('SECRET_KEY')
DEBUG = config('DEBUG', default=False, cast=bool)
ALLOWED_HOSTS = config('ALLOWED_HOSTS', default='localhost,127.0.0.1', cast=Csv())
CSRF_TRUSTED_ORIGINS = config('CSRF_TRUSTED_ORIGINS', default='http://localhost:8000,http://127.0.0.1:8000', cast=Csv())

# Application definition
INSTALLED_APPS = [
    'django.contrib.auth',
    'django.contrib.contenttypes',

    # Third party apps
    'rest_framework',
    'drf_spectacular',
    'corsheaders',

    # Our apps
    'core',
    'apps.events',
    'apps.bookings',
    'payment_processor',  # 🚀 Easebuzz settlement engine
]

MIDDLEWARE = [
    'django.middleware.security.SecurityMiddleware',
    'corsheaders.middleware.CorsMiddleware',
    'django.middleware.common.CommonMiddleware',
]

ROOT_URLCONF = 'config.urls'

TEMPLATES = [
    {
        'BACKEND': 'django.template.backends.django.DjangoTemplates',
        'DIRS': [],
        'APP_DIRS': True,
        'OPTIONS': {
            'context_processors': [
                'django.template.context_processors.request',
            ],
        },
    },
]

WSGI_APPLICATION = 'config.wsgi.application'

# Database - PostgreSQL, overridden by the test settings
DATABASES = {
    'default': {
        'ENGINE': 'django.db.backends.postgresql',
        'NAME': config('DB_NAME', default='tuki_bookings'),
        'USER': config('DB_USER', default='postgres'),
        'PASSWORD': config('DB_PASSWORD', default=''),
        'HOST': config('DB_HOST', default='localhost'),
        'PORT': config('DB_PORT', default='5432'),
        'CONN_MAX_AGE': 0,
    }
}

# Internationalization
LANGUAGE_CODE = 'en-in'
TIME_ZONE = 'Asia/Kolkata'
USE_I18N = True
USE_TZ = True

STATIC_URL = 'static/'

# Media files (ticket PDFs land here through default_storage)
MEDIA_URL = config('MEDIA_URL', default='/media/')
MEDIA_ROOT = BASE_DIR / 'media'

DEFAULT_AUTO_FIELD = 'django.db.models.BigAutoField'

# REST Framework settings
REST_FRAMEWORK = {
    'DEFAULT_AUTHENTICATION_CLASSES': (
        'rest_framework.authentication.SessionAuthentication',
    ),
    'DEFAULT_PERMISSION_CLASSES': (
        'rest_framework.permissions.AllowAny',
    ),
    'DEFAULT_PARSER_CLASSES': (
        'rest_framework.parsers.JSONParser',
        'rest_framework.parsers.FormParser',
        'rest_framework.parsers.MultiPartParser',
    ),
    'DEFAULT_SCHEMA_CLASS': 'drf_spectacular.openapi.AutoSchema',
}

# Django Spectacular settings
SPECTACULAR_SETTINGS = {
    'TITLE': 'Tuki Bookings API',
    'DESCRIPTION': 'Booking, pricing and Easebuzz payment settlement for ticketed events',
    'VERSION': '1.0.0',
    'SERVE_INCLUDE_SCHEMA': True,
    'SCHEMA_PATH_PREFIX': r'/api/v[0-9]',
}

# CORS settings
PAYMENT_ALLOWED_ORIGINS = config(
    'PAYMENT_ALLOWED_ORIGINS',
    default='http://localhost:3000,http://localhost:3001',
    cast=Csv()
)
CORS_ALLOWED_ORIGINS = PAYMENT_ALLOWED_ORIGINS
CORS_ALLOW_CREDENTIALS = True

# 🚀 EMAIL SETTINGS
EMAIL_BACKEND = config('EMAIL_BACKEND', default='django.core.mail.backends.smtp.EmailBackend')
EMAIL_HOST = config('EMAIL_HOST', default='localhost')
EMAIL_PORT = config('EMAIL_PORT', default=465, cast=int)
EMAIL_USE_SSL = config('EMAIL_USE_SSL', default=True, cast=bool)  # Port 465 uses SSL
EMAIL_USE_TLS = config('EMAIL_USE_TLS', default=False, cast=bool)  # SSL and TLS are mutually exclusive
EMAIL_HOST_USER = config('EMAIL_HOST_USER', default='')
EMAIL_HOST_PASSWORD = config('EMAIL_HOST_PASSWORD', default='')
DEFAULT_FROM_EMAIL = config('DEFAULT_FROM_EMAIL', default='Tuki <noreply@tuki.in>')
SERVER_EMAIL = DEFAULT_FROM_EMAIL
EMAIL_TIMEOUT = 10

# Celery settings
CELERY_BROKER_URL = config('CELERY_BROKER_URL', default='redis://localhost:6379/0')
CELERY_RESULT_BACKEND = config('CELERY_RESULT_BACKEND', default='redis://localhost:6379/0')
CELERY_ACCEPT_CONTENT = ['json']
CELERY_TASK_SERIALIZER = 'json'
CELERY_RESULT_SERIALIZER = 'json'
CELERY_TIMEZONE = TIME_ZONE

# Frontend (booking result pages and ticket links)
FRONTEND_URL = config('FRONTEND_URL', default='http://localhost:3001')

# 🚀 EASEBUZZ PAYMENT SETTINGS
EASEBUZZ_KEY = config('EASEBUZZ_KEY', default='')
EASEBUZZ_SALT = config('EASEBUZZ_SALT', default='')
EASEBUZZ_BASE_URL = config('EASEBUZZ_BASE_URL', default='https://testpay.easebuzz.in')
EASEBUZZ_INITIATE_PATH = config('EASEBUZZ_INITIATE_PATH', default='/payment/initiateLink')
EASEBUZZ_PAY_PATH = config('EASEBUZZ_PAY_PATH', default='/pay')
EASEBUZZ_RETRIEVE_URL = config(
    'EASEBUZZ_RETRIEVE_URL',
    default='https://testdashboard.easebuzz.in/transaction/v2.1/retrieve'
)
EASEBUZZ_REQUEST_HASH_SEQUENCE = config(
    'EASEBUZZ_REQUEST_HASH_SEQUENCE',
    default='key|txnid|amount|productinfo|firstname|email|udf1|udf2|udf3|udf4|udf5|udf6|udf7|udf8|udf9|udf10'
)
EASEBUZZ_RESPONSE_HASH_SEQUENCE = config(
    'EASEBUZZ_RESPONSE_HASH_SEQUENCE',
    default='status|udf10|udf9|udf8|udf7|udf6|udf5|udf4|udf3|udf2|udf1|email|firstname|productinfo|amount|txnid|key'
)
EASEBUZZ_VERIFY_CALLBACK_HASH = config('EASEBUZZ_VERIFY_CALLBACK_HASH', default=True, cast=bool)
EASEBUZZ_TIMEOUT_SECONDS = config('EASEBUZZ_TIMEOUT_SECONDS', default=30, cast=int)
EASEBUZZ_PENDING_RETRIES = config('EASEBUZZ_PENDING_RETRIES', default=5, cast=int)
EASEBUZZ_PENDING_RETRY_DELAY = config('EASEBUZZ_PENDING_RETRY_DELAY', default=1.0, cast=float)
PAYMENT_CALLBACK_BASE_URL = config('PAYMENT_CALLBACK_BASE_URL', default='')
PAYMENT_SYNC_BATCH_SIZE = config('PAYMENT_SYNC_BATCH_SIZE', default=25, cast=int)

# Bookings
TICKET_STORAGE_PREFIX = config('TICKET_STORAGE_PREFIX', default='tickets')
REGISTRATION_NAME_MAX_LENGTH = config('REGISTRATION_NAME_MAX_LENGTH', default=80, cast=int)
BOOKING_LIST_MAX_PAGE_SIZE = config('BOOKING_LIST_MAX_PAGE_SIZE', default=50, cast=int)

LOGGING = {
    'version': 1,
    'disable_existing_loggers': False,
    'formatters': {
        'simple': {
            'format': '{levelname} {asctime} {module} {message}',
            'style': '{',
        },
    },
    'handlers': {
        'console': {
            'level': 'INFO',
            'class': 'logging.StreamHandler',
            'formatter': 'simple',
        },
    },
    'root': {
        'handlers': ['console'],
        'level': 'INFO',
    },
    'loggers': {
        'django.request': {
            'handlers': ['console'],
            'level': 'ERROR',
            'propagate': False,
        },
        'payment_processor': {
            'handlers': ['console'],
            'level': 'INFO',
            'propagate': False,
        },
        'apps': {
            'handlers': ['console'],
            'level': 'INFO',
            'propagate': False,
        },
    },
}
