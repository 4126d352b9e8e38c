from django.urls import path

from wards.realtime.consumers import WardUpdatesConsumer

websocket_urlpatterns = [
    path("ws/wards/", WardUpdatesConsumer.as_asgi()),
]
