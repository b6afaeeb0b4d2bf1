"""
Base settings for kitchen_ops project.
Shared between local (single kitchen) and cloud deployments.
"""

from pathlib import Path
import os

# Build paths inside the project like this: BASE_DIR / 'subdir'.
BASE_DIR = Path(__file__).resolve().parent.parent.parent


# SECURITY WARNING: keep the secret key used in production secret!
SECRET_KEY = os.getenv('SECRET_KEY', 'django-insecure-k1tch3n-0ps-l0cal-0nly-8v#q2m!x7w@r4t$z9e')

# SECURITY WARNING: don't run with debug turned on in production!
DEBUG = os.getenv('DEBUG', 'True').lower() == 'true'

ALLOWED_HOSTS = os.getenv('ALLOWED_HOSTS', '*').split(',')


# Application definition
INSTALLED_APPS = [
    'django.contrib.contenttypes',
    'django.contrib.auth',
    'stock',
    'corsheaders',
]

MIDDLEWARE = [
    'django.middleware.security.SecurityMiddleware',
    'corsheaders.middleware.CorsMiddleware',
    'django.middleware.common.CommonMiddleware',
]

ROOT_URLCONF = 'kitchen_ops.urls'

WSGI_APPLICATION = 'kitchen_ops.wsgi.application'


# Internationalization
LANGUAGE_CODE = 'en-us'
TIME_ZONE = os.getenv('TIME_ZONE', 'Europe/Rome')
USE_I18N = True
USE_TZ = True


# CORS
CORS_ALLOW_ALL_ORIGINS = True


# Default primary key field type
DEFAULT_AUTO_FIELD = 'django.db.models.BigAutoField'


# =============================================================================
# STOCK / PURCHASING
# =============================================================================
# Lookahead used for a fresh StockSettings row (days before expiry that a lot
# is reported as "expiring"). The live value is StockSettings.expiry_alert_days.
STOCK_EXPIRY_ALERT_DAYS = int(os.getenv('STOCK_EXPIRY_ALERT_DAYS', '7'))

# Prefix of human-readable purchase order numbers: ORD-YYYYMM-NNN
PURCHASE_ORDER_NUMBER_PREFIX = os.getenv('PURCHASE_ORDER_NUMBER_PREFIX', 'ORD')


# =============================================================================
# LOGGING
# =============================================================================
LOGGING = {
    'version': 1,
    'disable_existing_loggers': False,
    'formatters': {
        'verbose': {
            'format': '[{asctime}] {levelname} {name}: {message}',
            'style': '{',
        },
    },
    'handlers': {
        'console': {
            'class': 'logging.StreamHandler',
            'formatter': 'verbose',
        },
    },
    'loggers': {
        'stock': {
            'handlers': ['console'],
            'level': 'INFO',
            'propagate': False,
        },
        'django': {
            'handlers': ['console'],
            'level': 'INFO',
        },
    },
}
