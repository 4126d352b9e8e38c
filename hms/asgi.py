"""
ASGI entry point serving HTTP through Django and the ward dashboard
websocket through Channels.

Django must be set up before the consumers (and through them the
models) are imported.
"""
import os

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "hms.settings")

from django.core.asgi import get_asgi_application  # noqa: E402

# populates the app registry
django_asgi_app = get_asgi_application()

from channels.auth import AuthMiddlewareStack  # noqa: E402
from channels.routing import ProtocolTypeRouter, URLRouter  # noqa: E402
from channels.security.websocket import AllowedHostsOriginValidator  # noqa: E402

from wards.realtime.routing import websocket_urlpatterns  # noqa: E402

application = ProtocolTypeRouter({
    "http": django_asgi_app,
    "websocket": AllowedHostsOriginValidator(AuthMiddlewareStack(URLRouter(websocket_urlpatterns))),
})
