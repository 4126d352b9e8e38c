import json

from channels.generic.websocket import AsyncWebsocketConsumer

from wards.permissions import WARD_ROLES
from wards.services.notify import UPDATES_GROUP


class WardUpdatesConsumer(AsyncWebsocketConsumer):
    """Relays ``beds.changed`` events to connected admin dashboards."""
    GROUP = UPDATES_GROUP

    async def connect(self):
        user = self.scope.get("user")
        if not (user and user.is_authenticated and getattr(user, "role", None) in WARD_ROLES):
            await self.close(code=4403)
            return
        await self.channel_layer.group_add(self.GROUP, self.channel_name)
        await self.accept()
        await self.send(json.dumps({"type": "welcome", "message": "connected"}))

    async def disconnect(self, close_code):
        await self.channel_layer.group_discard(self.GROUP, self.channel_name)

    async def beds_changed(self, event):
        # event: {"type": "beds.changed", "action": str, "bedIds": [...], "occupancyId": int|None, "ts": "..."}
        await self.send(json.dumps(event))
