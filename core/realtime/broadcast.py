import logging

from asgiref.sync import async_to_sync
from channels.layers import get_channel_layer
from django.db import transaction
from django.utils import timezone

logger = logging.getLogger(__name__)


def _send(event: dict) -> None:
    channel_layer = get_channel_layer()
    if channel_layer is None:
        return
    try:
        async_to_sync(channel_layer.group_send)("updates", event)
    except Exception:
        logger.warning("Broadcast of %s/%s failed", event.get("topic"), event.get("action"), exc_info=True)


def broadcast_update(topic: str, action: str, obj_id=None, **extra) -> None:
    """Notify ``ws/updates/`` listeners once the current transaction commits."""
    event = {
        "type": "broadcast.update",
        "topic": topic,
        "action": action,
        "id": obj_id,
        "ts": timezone.now().isoformat(),
        **extra,
    }
    transaction.on_commit(lambda: _send(event))


def broadcast_refresh(keys: list[str]) -> None:
    now = timezone.now()
    _send({"type": "broadcast.refresh", "version": int(now.timestamp()), "ts": now.isoformat(), "keys": keys[:50]})
