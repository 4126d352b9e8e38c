"""
WSGI entry point for synchronous deployments (gunicorn, uwsgi).

The dashboard websocket is only served by the ASGI application in
``hms.asgi``.
"""
import os

from django.core.wsgi import get_wsgi_application  # type: ignore

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'hms.settings')

application = get_wsgi_application()
