import os
from datetime import timedelta
from decimal import Decimal
from pathlib import Path

from environ import Env

BASE_DIR = Path(__file__).resolve().parent.parent
env = Env()
Env.read_env(os.path.join(BASE_DIR, '.env'))

SECRET_KEY = env('SECRET_KEY', default='django-insecure-fixer-local-development-key')
DEBUG = env.bool('DEBUG', default=True)

ALLOWED_HOSTS = env.list('ALLOWED_HOSTS', default=['localhost', '127.0.0.1'])


INSTALLED_APPS = [
    'django.contrib.admin',
    'django.contrib.auth',
    'django.contrib.contenttypes',
    'django.contrib.sessions',
    'django.contrib.messages',
    'django.contrib.staticfiles',
    'rest_framework',
    'rest_framework_simplejwt',
    'django_filters',
    'drf_yasg',
    'auditlog',
    'accounts',
    'jobs',
    'payments',
    'earnings',
    'escrow',
]

MIDDLEWARE = [
    'django.middleware.security.SecurityMiddleware',
    'django.contrib.sessions.middleware.SessionMiddleware',
    'django.middleware.common.CommonMiddleware',
    'django.middleware.csrf.CsrfViewMiddleware',
    'django.contrib.auth.middleware.AuthenticationMiddleware',
    'django.contrib.messages.middleware.MessageMiddleware',
    'django.middleware.clickjacking.XFrameOptionsMiddleware',
    'auditlog.middleware.AuditlogMiddleware',
    'fixer_api.middleware.UserActivityLoggingMiddleWare',
]

ROOT_URLCONF = 'fixer_api.urls'

TEMPLATES = [
    {
        'BACKEND': 'django.template.backends.django.DjangoTemplates',
        'DIRS': [],
        'APP_DIRS': True,
        'OPTIONS': {
            'context_processors': [
                'django.template.context_processors.debug',
                'django.template.context_processors.request',
                'django.contrib.auth.context_processors.auth',
                'django.contrib.messages.context_processors.messages',
            ],
        },
    },
]

WSGI_APPLICATION = 'fixer_api.wsgi.application'

DATABASES = {
    'default': env.db('DATABASE_URL', default=f"sqlite:///{BASE_DIR / 'db.sqlite3'}"),
}
DATABASES['default']['ATOMIC_REQUESTS'] = False
if DATABASES['default']['ENGINE'] == 'django.db.backends.sqlite3':
    # select_for_update is a no-op on SQLite: writers take the database lock
    # when the transaction starts and wait for each other
    DATABASES['default'].setdefault('OPTIONS', {}).update({'transaction_mode': 'IMMEDIATE', 'timeout': 20})
    DATABASES['default']['TEST'] = {'NAME': str(BASE_DIR / 'test_db.sqlite3')}

AUTH_PASSWORD_VALIDATORS = [
    {'NAME': 'django.contrib.auth.password_validation.UserAttributeSimilarityValidator'},
    {'NAME': 'django.contrib.auth.password_validation.MinimumLengthValidator'},
    {'NAME': 'django.contrib.auth.password_validation.CommonPasswordValidator'},
    {'NAME': 'django.contrib.auth.password_validation.NumericPasswordValidator'},
]

LANGUAGE_CODE = 'en-us'
TIME_ZONE = 'UTC'
USE_I18N = True
USE_TZ = True

AUTH_USER_MODEL = 'accounts.CustomUser'

STATIC_URL = '/static/'
STATIC_ROOT = os.path.join(BASE_DIR, 'static')

DEFAULT_AUTO_FIELD = 'django.db.models.BigAutoField'

REST_FRAMEWORK = {
    'DEFAULT_AUTHENTICATION_CLASSES': [
        'rest_framework_simplejwt.authentication.JWTAuthentication',
    ],
    'DEFAULT_PERMISSION_CLASSES': [
        'rest_framework.permissions.IsAuthenticated',
    ],
    'DEFAULT_FILTER_BACKENDS': [
        'django_filters.rest_framework.DjangoFilterBackend',
    ],
    'DEFAULT_PAGINATION_CLASS': 'rest_framework.pagination.PageNumberPagination',
    'PAGE_SIZE': 20,
}

SIMPLE_JWT = {
    'ACCESS_TOKEN_LIFETIME': timedelta(minutes=env.int('JWT_ACCESS_MINUTES', default=30)),
    'REFRESH_TOKEN_LIFETIME': timedelta(days=env.int('JWT_REFRESH_DAYS', default=7)),
}

SWAGGER_SETTINGS = {
    'SECURITY_DEFINITIONS': {
        'Bearer': {
            'type': 'apiKey',
            'name': 'Authorization',
            'in': 'header',
            'description': 'Enter token as "Bearer <access token>"'
        }
    },
    'USE_SESSION_AUTH': False,
}

LOGGING = {
    'version': 1,
    'disable_existing_loggers': False,
    'formatters': {
        'verbose': {
            'format': '{levelname} {asctime} {module} {message}',
            'style': '{',
        },
    },
    'handlers': {
        'console': {
            'level': 'DEBUG',
            'class': 'logging.StreamHandler',
            'formatter': 'verbose',
        },
    },
    'loggers': {
        '': {
            'handlers': ['console'],
            'level': env('LOG_LEVEL', default='INFO'),
        },
        'audit': {
            'handlers': ['console'],
            'level': 'INFO',
            'propagate': False,
        },
    },
}

SITE_NAME = env('SITE_NAME', default='Fixer')
FRONTEND_DOMAIN = env('FRONTEND_DOMAIN', default='http://localhost:3000')

EMAIL_BACKEND = env('EMAIL_BACKEND', default='django.core.mail.backends.console.EmailBackend')
EMAIL_HOST = env('EMAIL_HOST', default='smtp.gmail.com')
EMAIL_PORT = env.int('EMAIL_PORT', default=587)
EMAIL_USE_TLS = env.bool('EMAIL_USE_TLS', default=True)
EMAIL_HOST_USER = env('EMAIL_HOST_USER', default='')
EMAIL_HOST_PASSWORD = env('EMAIL_HOST_PASSWORD', default='')
DEFAULT_FROM_EMAIL = env('DEFAULT_FROM_EMAIL', default='Fixer <no-reply@fixer.local>')

# Fees. The poster pays base + fee; the worker receives base - fee.
SERVICE_FEE_RATE = env.get_value('SERVICE_FEE_RATE', cast=Decimal, default=Decimal('0.05'))
SERVICE_FEE_MINIMUM = env.get_value('SERVICE_FEE_MINIMUM', cast=Decimal, default=Decimal('2.50'))
WORKER_FEE_RATE = env.get_value('WORKER_FEE_RATE', cast=Decimal, default=SERVICE_FEE_RATE)
WORKER_FEE_MINIMUM = env.get_value('WORKER_FEE_MINIMUM', cast=Decimal, default=SERVICE_FEE_MINIMUM)
MIN_JOB_PAYMENT_AMOUNT = env.get_value('MIN_JOB_PAYMENT_AMOUNT', cast=Decimal, default=Decimal('10.00'))
FUNDING_RETRY_WINDOW_MINUTES = env.int('FUNDING_RETRY_WINDOW_MINUTES', default=60)

PAYMENT_PROVIDER = env('PAYMENT_PROVIDER', default='stripe')
PAYMENT_PROCESSOR_TIMEOUT = env.int('PAYMENT_PROCESSOR_TIMEOUT', default=10)
RECONCILIATION_GRACE_MINUTES = env.int('RECONCILIATION_GRACE_MINUTES', default=15)

STRIPE_SECRET_KEY = env('STRIPE_SECRET_KEY', default='')
STRIPE_PUBLISHABLE_KEY = env('STRIPE_PUBLISHABLE_KEY', default='')
STRIPE_WEBHOOK_SECRET = env('STRIPE_WEBHOOK_SECRET', default='')
# unsigned webhooks are only accepted with DEBUG on and this flag set
STRIPE_WEBHOOK_ALLOW_UNSIGNED = env.bool('STRIPE_WEBHOOK_ALLOW_UNSIGNED', default=False)
STRIPE_CURRENCY = env('STRIPE_CURRENCY', default='usd')

CELERY_BROKER_URL = env('CELERY_BROKER_URL', default='redis://localhost:6379/0')
CELERY_RESULT_BACKEND = env('CELERY_RESULT_BACKEND', default=None)
CELERY_TASK_ALWAYS_EAGER = env.bool('CELERY_TASK_ALWAYS_EAGER', default=False)
CELERY_TASK_ACKS_LATE = True
CELERY_BEAT_SCHEDULE = {
    'sweep-ambiguous-payments': {
        'task': 'payments.tasks.task_sweep_ambiguous_payments',
        'schedule': timedelta(minutes=5),
    },
    'retry-pending-settlements': {
        'task': 'payments.tasks.task_retry_pending_settlements',
        'schedule': timedelta(minutes=30),
    },
}
