"""
Base settings for the foodbridge project.
Shared between local, cloud and test deployments.
"""

from pathlib import Path
import os

from django.urls import reverse_lazy

# Build paths inside the project like this: BASE_DIR / 'subdir'.
BASE_DIR = Path(__file__).resolve().parent.parent.parent


# SECURITY WARNING: keep the secret key used in production secret!
SECRET_KEY = os.getenv('SECRET_KEY', 'django-insecure-foodbridge-dev-key-change-me')

# SECURITY WARNING: don't run with debug turned on in production!
DEBUG = os.getenv('DEBUG', 'True').lower() == 'true'

ALLOWED_HOSTS = os.getenv('ALLOWED_HOSTS', '*').split(',')


# Application definition
INSTALLED_APPS = [
    "unfold",
    "unfold.contrib.filters",
    "unfold.contrib.forms",
    "unfold.contrib.inlines",
    'django.contrib.admin',
    'django.contrib.auth',
    'django.contrib.contenttypes',
    'django.contrib.sessions',
    'django.contrib.messages',
    'django.contrib.staticfiles',
    'donations',
    'volunteers',
    'corsheaders',
    'rest_framework',
    'drf_spectacular',
]

MIDDLEWARE = [
    'django.middleware.security.SecurityMiddleware',
    'django.contrib.sessions.middleware.SessionMiddleware',
    'corsheaders.middleware.CorsMiddleware',
    'django.middleware.common.CommonMiddleware',
    'django.middleware.csrf.CsrfViewMiddleware',
    'django.contrib.auth.middleware.AuthenticationMiddleware',
    'django.contrib.messages.middleware.MessageMiddleware',
    'django.middleware.clickjacking.XFrameOptionsMiddleware',
]

ROOT_URLCONF = 'foodbridge.urls'

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

WSGI_APPLICATION = 'foodbridge.wsgi.application'


# Password validation
AUTH_PASSWORD_VALIDATORS = [
    {'NAME': 'django.contrib.auth.password_validation.UserAttributeSimilarityValidator'},
    {'NAME': 'django.contrib.auth.password_validation.MinimumLengthValidator'},
    {'NAME': 'django.contrib.auth.password_validation.CommonPasswordValidator'},
    {'NAME': 'django.contrib.auth.password_validation.NumericPasswordValidator'},
]


# Internationalization
LANGUAGE_CODE = 'en-us'
TIME_ZONE = os.getenv('TIME_ZONE', 'UTC')
USE_I18N = True
USE_TZ = True


# Static files
STATIC_URL = 'static/'
STATIC_ROOT = BASE_DIR / 'staticfiles'


# CORS
CORS_ALLOW_ALL_ORIGINS = os.getenv('CORS_ALLOW_ALL_ORIGINS', 'True').lower() == 'true'
CORS_ALLOWED_ORIGINS = [o for o in os.getenv('CORS_ALLOWED_ORIGINS', '').split(',') if o]


# Default primary key field type
DEFAULT_AUTO_FIELD = 'django.db.models.BigAutoField'


# Domain tunables
FOODBRIDGE = {
    "DEFAULT_PAGE_SIZE": int(os.getenv('FOODBRIDGE_PAGE_SIZE', '10')),
    "EXPIRING_SOON_DAYS": int(os.getenv('FOODBRIDGE_EXPIRING_SOON_DAYS', '7')),
}


# Unfold Admin Configuration
UNFOLD = {
    "SITE_TITLE": "FoodBridge Admin",
    "SITE_HEADER": "FoodBridge",
    "SITE_URL": "/",
    "SITE_SYMBOL": "volunteer_activism",

    "SIDEBAR": {
        "show_search": True,
        "show_all_applications": True,
        "navigation": [
            {
                "title": "Dashboard",
                "separator": False,
                "items": [
                    {
                        "title": "Dashboard",
                        "icon": "dashboard",
                        "link": reverse_lazy("admin:index"),
                    },
                ],
            },
            {
                "title": "Donations",
                "separator": True,
                "items": [
                    {
                        "title": "Donations",
                        "icon": "inbox",
                        "link": reverse_lazy("admin:donations_donation_changelist"),
                    },
                    {
                        "title": "Inspections",
                        "icon": "fact_check",
                        "link": reverse_lazy("admin:donations_qualityinspection_changelist"),
                    },
                    {
                        "title": "Receipts",
                        "icon": "receipt_long",
                        "link": reverse_lazy("admin:donations_donationreceipt_changelist"),
                    },
                    {
                        "title": "Audit Trail",
                        "icon": "history",
                        "link": reverse_lazy("admin:donations_donationaudittrail_changelist"),
                    },
                ],
            },
            {
                "title": "Stock",
                "separator": True,
                "items": [
                    {
                        "title": "Inventory",
                        "icon": "inventory_2",
                        "link": reverse_lazy("admin:donations_inventoryitem_changelist"),
                    },
                    {
                        "title": "Waste",
                        "icon": "delete",
                        "link": reverse_lazy("admin:donations_wasterecord_changelist"),
                    },
                ],
            },
            {
                "title": "Catalogue",
                "separator": True,
                "items": [
                    {
                        "title": "Donors",
                        "icon": "people",
                        "link": reverse_lazy("admin:donations_donor_changelist"),
                    },
                    {
                        "title": "Products",
                        "icon": "category",
                        "link": reverse_lazy("admin:donations_product_changelist"),
                    },
                ],
            },
            {
                "title": "Volunteers",
                "separator": True,
                "items": [
                    {
                        "title": "Shifts",
                        "icon": "event",
                        "link": reverse_lazy("admin:volunteers_volunteershift_changelist"),
                    },
                ],
            },
        ],
    },
}

CSRF_TRUSTED_ORIGINS = [o for o in os.getenv('CSRF_TRUSTED_ORIGINS', '').split(',') if o]

REST_FRAMEWORK = {
    'DEFAULT_SCHEMA_CLASS': 'drf_spectacular.openapi.AutoSchema',

    'DEFAULT_AUTHENTICATION_CLASSES': [
        'rest_framework.authentication.SessionAuthentication',
    ],

    'DEFAULT_RENDERER_CLASSES': [
        'rest_framework.renderers.JSONRenderer',
        'rest_framework.renderers.BrowsableAPIRenderer',
    ],
}


SPECTACULAR_SETTINGS = {
    'TITLE': 'FoodBridge',
    'DESCRIPTION': 'FoodBridge donation lifecycle API',
    'VERSION': '1.0.0',
}
