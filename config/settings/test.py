"""Test settings.

In-memory SQLite, eager Celery and a fast password hasher. Set
DB_ENGINE=django.db.backends.postgresql (plus the DB_* variables) to run
the suite, including the multi-connection race tests, against PostgreSQL.
"""

from .base import *  # noqa: F401,F403

DEBUG = False

if DATABASES['default']['ENGINE'] == 'django.db.backends.sqlite3':
    DATABASES['default']['NAME'] = ':memory:'

PASSWORD_HASHERS = ['django.contrib.auth.hashers.MD5PasswordHasher']

CELERY_TASK_ALWAYS_EAGER = True
CELERY_TASK_EAGER_PROPAGATES = True
CELERY_BROKER_URL = 'memory://'
CELERY_RESULT_BACKEND = 'cache+memory://'

LOGGING['loggers']['apps']['level'] = 'WARNING'
