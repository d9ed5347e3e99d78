"""
Django settings for the credit ledger service.

Values are read from the environment; a ``.env`` file next to the repository
root is loaded first so local development does not need exported variables.
"""
import os
from pathlib import Path

from dotenv import load_dotenv

BASE_DIR = Path(__file__).resolve().parent.parent

load_dotenv(BASE_DIR.parent / '.env')


def _env_bool(name, default=False):
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in {'1', 'true', 'yes', 'on'}


def _env_int(name, default):
    value = os.environ.get(name)
    if value in (None, ''):
        return default
    return int(value)


SECRET_KEY = os.environ.get('DJANGO_SECRET_KEY', 'django-insecure-local-development-key')

DEBUG = _env_bool('DJANGO_DEBUG', False)

ALLOWED_HOSTS = [host.strip() for host in os.environ.get('DJANGO_ALLOWED_HOSTS', 'localhost,127.0.0.1').split(',') if host.strip()]

INSTALLED_APPS = [
    'django.contrib.admin',
    'django.contrib.auth',
    'django.contrib.contenttypes',
    'django.contrib.sessions',
    'django.contrib.messages',
    'django.contrib.staticfiles',
    'rest_framework',
    'rest_framework.authtoken',
    'django_filters',
    'accounts',
    'credits',
]

MIDDLEWARE = [
    'django.middleware.security.SecurityMiddleware',
    'django.contrib.sessions.middleware.SessionMiddleware',
    'django.middleware.common.CommonMiddleware',
    'django.middleware.csrf.CsrfViewMiddleware',
    'django.contrib.auth.middleware.AuthenticationMiddleware',
    'django.contrib.messages.middleware.MessageMiddleware',
    'django.middleware.clickjacking.XFrameOptionsMiddleware',
]

ROOT_URLCONF = 'creditengine.urls'

TEMPLATES = [
    {
        'BACKEND': 'django.template.backends.django.DjangoTemplates',
        'DIRS': [],
        'APP_DIRS': True,
        'OPTIONS': {
            'context_processors': [
                'django.template.context_processors.request',
                'django.contrib.auth.context_processors.auth',
                'django.contrib.messages.context_processors.messages',
            ],
        },
    },
]

WSGI_APPLICATION = 'creditengine.wsgi.application'
ASGI_APPLICATION = 'creditengine.asgi.application'

DB_ENGINE = os.environ.get('DB_ENGINE', 'django.db.backends.sqlite3')
if DB_ENGINE.endswith('sqlite3'):
    DATABASES = {
        'default': {
            'ENGINE': DB_ENGINE,
            'NAME': os.environ.get('DB_NAME', str(BASE_DIR / 'db.sqlite3')),
            # SQLite ignores SELECT ... FOR UPDATE; IMMEDIATE transactions take
            # the write lock at BEGIN so ledger mutations still serialise.
            'OPTIONS': {
                'transaction_mode': 'IMMEDIATE',
                'timeout': _env_int('DB_SQLITE_TIMEOUT_SECONDS', 20),
            },
            # File-backed so threaded tests get real, separately locked connections.
            'TEST': {
                'NAME': str(BASE_DIR / 'test_db.sqlite3'),
            },
        }
    }
else:
    DATABASES = {
        'default': {
            'ENGINE': DB_ENGINE,
            'NAME': os.environ.get('DB_NAME', 'credits'),
            'USER': os.environ.get('DB_USER', ''),
            'PASSWORD': os.environ.get('DB_PASSWORD', ''),
            'HOST': os.environ.get('DB_HOST', 'localhost'),
            'PORT': os.environ.get('DB_PORT', ''),
            'ATOMIC_REQUESTS': False,
        }
    }

AUTH_USER_MODEL = 'accounts.User'

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

STATIC_URL = 'static/'
STATIC_ROOT = BASE_DIR / 'staticfiles'

DEFAULT_AUTO_FIELD = 'django.db.models.BigAutoField'

REST_FRAMEWORK = {
    'DEFAULT_AUTHENTICATION_CLASSES': [
        'rest_framework.authentication.TokenAuthentication',
        'rest_framework.authentication.SessionAuthentication',
    ],
    'DEFAULT_PERMISSION_CLASSES': [
        'rest_framework.permissions.IsAuthenticated',
    ],
    'DEFAULT_FILTER_BACKENDS': [
        'django_filters.rest_framework.DjangoFilterBackend',
        'rest_framework.filters.OrderingFilter',
    ],
    'EXCEPTION_HANDLER': 'credits.exceptions.credits_exception_handler',
}

# Logging
LOG_LEVEL = os.environ.get('DJANGO_LOG_LEVEL', 'INFO')
CREDITS_LOG_LEVEL = os.environ.get('CREDITS_LOG_LEVEL', LOG_LEVEL)

LOGGING = {
    'version': 1,
    'disable_existing_loggers': False,
    'formatters': {
        'verbose': {
            'format': '{asctime} {levelname} {name} {message}',
            'style': '{',
        },
    },
    'handlers': {
        'console': {
            'class': 'logging.StreamHandler',
            'formatter': 'verbose',
        },
    },
    'root': {
        'handlers': ['console'],
        'level': LOG_LEVEL,
    },
    'loggers': {
        'django': {
            'handlers': ['console'],
            'level': LOG_LEVEL,
            'propagate': False,
        },
        'credits': {
            'handlers': ['console'],
            'level': CREDITS_LOG_LEVEL,
            'propagate': False,
        },
    },
}

# Celery
CELERY_BROKER_URL = os.environ.get('CELERY_BROKER_URL', 'redis://localhost:6379/0')
CELERY_RESULT_BACKEND = os.environ.get('CELERY_RESULT_BACKEND', CELERY_BROKER_URL)
CELERY_TASK_ALWAYS_EAGER = _env_bool('CELERY_TASK_ALWAYS_EAGER', False)

# Payment gateway
STRIPE_SECRET_KEY = os.environ.get('STRIPE_SECRET_KEY', '')
STRIPE_API_VERSION = os.environ.get('STRIPE_API_VERSION', '')
PAYMENT_GATEWAY_CLASS = os.environ.get('PAYMENT_GATEWAY_CLASS', 'credits.services.gateway.StripeGateway')
PAYMENT_CURRENCY = os.environ.get('PAYMENT_CURRENCY', 'eur')
PAYMENT_GATEWAY_TIMEOUT_SECONDS = _env_int('PAYMENT_GATEWAY_TIMEOUT_SECONDS', 10)
PAYMENT_GATEWAY_MAX_RETRIES = _env_int('PAYMENT_GATEWAY_MAX_RETRIES', 2)

# Webhook authentication
PAYMENT_WEBHOOK_SECRET = os.environ.get('PAYMENT_WEBHOOK_SECRET', '')
PAYMENT_WEBHOOK_SIGNATURE_HEADER = os.environ.get('PAYMENT_WEBHOOK_SIGNATURE_HEADER', 'X-Webhook-Signature')
PAYMENT_WEBHOOK_TIMESTAMP_HEADER = os.environ.get('PAYMENT_WEBHOOK_TIMESTAMP_HEADER', 'X-Webhook-Timestamp')
PAYMENT_WEBHOOK_TOLERANCE_SECONDS = _env_int('PAYMENT_WEBHOOK_TOLERANCE_SECONDS', 300)

# Credits
CREDITS_INITIAL_GRANT = _env_int('CREDITS_INITIAL_GRANT', 0)
CREDITS_HISTORY_MAX_LIMIT = _env_int('CREDITS_HISTORY_MAX_LIMIT', 100)
ORDER_MAX_PACKAGE_QUANTITY = _env_int('ORDER_MAX_PACKAGE_QUANTITY', 20)
PENDING_ORDER_TTL_HOURS = _env_int('PENDING_ORDER_TTL_HOURS', 48)

# Purchasable credit bundles; prices in minor currency units.
CREDIT_PACKAGES = {
    'credits5': {'credits': 5, 'price': 500, 'currency': 'eur'},
    'credits10': {'credits': 10, 'price': 900, 'currency': 'eur'},
    'credits30': {'credits': 30, 'price': 2500, 'currency': 'eur', 'popular': True},
    'credits100': {'credits': 100, 'price': 7900, 'currency': 'eur', 'best_value': True},
}

# Free-tier threshold and per-edit price for each AI editing action.
AI_EDIT_PRICING = {
    'textEdit': {'free_threshold': 5, 'price_credits': 1},
    'imageEdit': {'free_threshold': 1, 'price_credits': 1},
}
