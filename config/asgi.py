"""ASGI config for the hotel reservation engine.

Exposes the ASGI application for async-capable servers. Booking operations
are short transactional requests; any number of server processes may run
against the same database.
"""

import os
from django.core.asgi import get_asgi_application  # type: ignore

# Production servers should set DJANGO_SETTINGS_MODULE explicitly.
os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'config.settings.dev')

application = get_asgi_application()
