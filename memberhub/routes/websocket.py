"""
WebSocket API for real-time collection updates

Clients connect to ``/ws?topics=events,posts`` and receive every broadcast
for those topics while connected. Messages missed while disconnected are
not replayed; clients catch up on their next page fetch.
"""
import asyncio
import json
import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from ..errors import Forbidden, ValidationError
from ..services.broadcast import Subscription, parse_topics

logger = logging.getLogger(__name__)

router = APIRouter()

# Application close codes
CLOSE_INVALID_TOKEN = 4003
CLOSE_INVALID_TOPICS = 4000


def _split_topics(raw):
    if raw is None:
        return None
    return raw.split(",")


def _control_topics(data: dict) -> set:
    """Topics named by a subscribe/unsubscribe message; at least one is required"""
    topics = data.get("topics")
    if not isinstance(topics, list) or not all(isinstance(t, str) for t in topics):
        raise ValidationError("topics must be a list of topic names")
    if not any(t.strip() for t in topics):
        raise ValidationError("At least one topic is required")
    return parse_topics(topics)


async def _forward(websocket: WebSocket, subscription: Subscription):
    """Single writer: drains the subscription queue into the socket"""
    while True:
        message = await subscription.get()
        try:
            await websocket.send_json(message)
        except (RuntimeError, WebSocketDisconnect) as e:
            logger.info(f"Subscriber {subscription.id} send failed: {e}")
            return


@router.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket):
    """WebSocket endpoint for broadcast notifications."""
    broadcaster = websocket.app.state.broadcaster

    user_id = None
    token = websocket.query_params.get("token")
    if token:
        try:
            user_id = websocket.app.state.identity_provider.verify(token).subject
        except Forbidden:
            await websocket.close(code=CLOSE_INVALID_TOKEN)
            return

    try:
        topics = parse_topics(_split_topics(websocket.query_params.get("topics")))
    except ValidationError:
        await websocket.close(code=CLOSE_INVALID_TOPICS)
        return

    await websocket.accept()
    subscription = broadcaster.subscribe(topics, user_id=user_id)
    subscription.offer({"type": "subscribed", "topics": sorted(subscription.topics)})
    sender = asyncio.create_task(_forward(websocket, subscription))

    try:
        while True:
            raw = await websocket.receive_text()
            try:
                data = json.loads(raw)
            except ValueError:
                subscription.offer({"type": "error", "message": "Invalid JSON"})
                continue

            message_type = data.get("type") if isinstance(data, dict) else None

            if message_type == "ping":
                subscription.offer({"type": "pong"})

            elif message_type in ("subscribe", "unsubscribe"):
                try:
                    requested = _control_topics(data)
                except ValidationError as e:
                    subscription.offer({"type": "error", "message": e.message})
                    continue

                if message_type == "subscribe":
                    subscription.topics |= requested
                else:
                    subscription.topics -= requested
                subscription.offer({"type": "subscribed", "topics": sorted(subscription.topics)})

            else:
                subscription.offer({"type": "error", "message": f"Unknown message type: {message_type}"})

    except WebSocketDisconnect:
        logger.info(f"Subscriber {subscription.id} disconnected")
    finally:
        sender.cancel()
        broadcaster.unsubscribe(subscription)
