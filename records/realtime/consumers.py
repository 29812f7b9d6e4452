import json
from channels.generic.websocket import AsyncWebsocketConsumer

from records.permissions import is_staff_role


class DashboardConsumer(AsyncWebsocketConsumer):
    """Pushes dashboard refresh events to connected doctors and administrators."""
    GROUP = "dashboard"

    async def connect(self):
        if not is_staff_role(self.scope.get("user")):
            await self.close(code=4003)
            return
        await self.channel_layer.group_add(self.GROUP, self.channel_name)
        await self.accept()
        await self.send(json.dumps({"type": "welcome", "message": "connected"}))

    async def disconnect(self, close_code):
        await self.channel_layer.group_discard(self.GROUP, self.channel_name)

    async def broadcast_refresh(self, event):
        # event: {"type": "broadcast.refresh", "version": int, "ts": "...", "complete": bool, "stats": {...}}
        await self.send(json.dumps(event))
