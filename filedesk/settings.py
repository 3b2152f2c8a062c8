"""
Django settings for filedesk.

Deploy-time values are read from environment variables.
"""

import os
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent.parent

SECRET_KEY = os.environ.get('DJANGO_SECRET_KEY', 'change-this-secret-in-env')
DEBUG = os.environ.get('DJANGO_DEBUG', 'false').lower() == 'true'
ALLOWED_HOSTS = [h for h in os.environ.get('DJANGO_ALLOWED_HOSTS', 'localhost,127.0.0.1').split(',') if h]

INSTALLED_APPS = [
    'django.contrib.admin',
    'django.contrib.auth',
    'django.contrib.contenttypes',
    'django.contrib.sessions',
    'django.contrib.messages',
    'django.contrib.staticfiles',
    'attachments',
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

ROOT_URLCONF = 'filedesk.urls'

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

WSGI_APPLICATION = 'filedesk.wsgi.application'

DATABASES = {
    'default': {
        'ENGINE': 'django.db.backends.sqlite3',
        'NAME': os.environ.get('DJANGO_DB_PATH', BASE_DIR / 'db.sqlite3'),
    }
}

DEFAULT_AUTO_FIELD = 'django.db.models.BigAutoField'

LANGUAGE_CODE = 'en-us'
TIME_ZONE = 'UTC'
USE_I18N = True
USE_TZ = True

STATIC_URL = 'static/'
LOGIN_URL = '/admin/login/'

# Attachment storage
FILE_UPLOAD_TEMP_DIR = os.environ.get('FILE_UPLOAD_TEMP_DIR') or None
ATTACHMENT_STORAGE_BACKEND = os.environ.get('ATTACHMENT_STORAGE_BACKEND', 'local')
ATTACHMENT_STORAGE_DIR = os.environ.get('ATTACHMENT_STORAGE_DIR', BASE_DIR / 'data' / 'attachments')
ATTACHMENT_S3_BUCKET = os.environ.get('ATTACHMENT_S3_BUCKET', '')
ATTACHMENT_S3_PREFIX = os.environ.get('ATTACHMENT_S3_PREFIX', '')
ATTACHMENT_S3_ENDPOINT_URL = os.environ.get('ATTACHMENT_S3_ENDPOINT_URL') or None
ATTACHMENT_S3_ACCESS_KEY_ID = os.environ.get('ATTACHMENT_S3_ACCESS_KEY_ID') or None
ATTACHMENT_S3_SECRET_ACCESS_KEY = os.environ.get('ATTACHMENT_S3_SECRET_ACCESS_KEY') or None
ATTACHMENT_S3_REGION = os.environ.get('ATTACHMENT_S3_REGION') or None
ATTACHMENT_REMOTE_TIMEOUT = float(os.environ.get('ATTACHMENT_REMOTE_TIMEOUT', '30'))
ATTACHMENT_BASE_URL = os.environ.get('ATTACHMENT_BASE_URL', '')

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
        'level': 'WARNING',
    },
    'loggers': {
        'attachments': {
            'handlers': ['console'],
            'level': os.environ.get('ATTACHMENT_LOG_LEVEL', 'INFO'),
            'propagate': False,
        },
    },
}
