"""WSGI config for the profiling site."""

import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "profiling_site.settings")

application = get_wsgi_application()
