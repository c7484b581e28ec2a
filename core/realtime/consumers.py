import json
from urllib.parse import parse_qs

from channels.generic.websocket import AsyncWebsocketConsumer

from core.permissions import permissions_for

TOPICS = {
    "alerts", "ambulances", "beds", "capacity", "dispatch", "emergencies", "hospital_status",
    "procurement", "resources", "telemedicine", "transfers", "triage",
}


class UpdatesConsumer(AsyncWebsocketConsumer):
    """Live feed of domain changes.  ``?topics=dispatch,alerts`` narrows the stream."""

    GROUP = "updates"

    async def connect(self):
        user = self.scope.get("user")
        if not (user and user.is_authenticated):
            await self.close(code=4401)
            return
        raw = parse_qs(self.scope.get("query_string", b"").decode()).get("topics", [""])[0]
        self.topics = {t for t in raw.split(",") if t in TOPICS} or None
        await self.channel_layer.group_add(self.GROUP, self.channel_name)
        await self.accept()
        await self.send(json.dumps({
            "type": "welcome",
            "role": user.role,
            "hospitalId": user.hospital_id,
            "countyId": user.county_id,
            "permissions": permissions_for(user),
            "topics": sorted(self.topics) if self.topics else sorted(TOPICS),
        }))

    async def disconnect(self, close_code):
        await self.channel_layer.group_discard(self.GROUP, self.channel_name)

    async def receive(self, text_data=None, bytes_data=None):
        # clients may only ping
        if text_data and text_data.strip() == "ping":
            await self.send(json.dumps({"type": "pong"}))

    async def broadcast_refresh(self, event):
        # event: {"type": "broadcast.refresh", "version": int, "ts": "...", "keys": [...]}
        await self.send(json.dumps(event))

    async def broadcast_update(self, event):
        # event: {"type": "broadcast.update", "topic": "...", "action": "...", "id": ..., "ts": "..."}
        if self.topics and event.get("topic") not in self.topics:
            return
        await self.send(json.dumps(event))
