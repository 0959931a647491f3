"""WSGI config for itdesk."""

import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "itdesk.settings")

application = get_wsgi_application()
