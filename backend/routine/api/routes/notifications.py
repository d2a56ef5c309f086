from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from routine.core.config import get_settings
from routine.services.notification_hub import topic_hub

router = APIRouter()

settings = get_settings()


@router.websocket("/notifications/ws/{topic}")
async def notifications_websocket(websocket: WebSocket, topic: str) -> None:
    if topic != settings.notification_topic:
        await websocket.close(code=1008)
        return

    await topic_hub.subscribe(topic, websocket)
    try:
        while True:
            # Subscribers only listen; anything they send is treated as a keepalive.
            await websocket.receive_text()
    except WebSocketDisconnect:
        pass
    finally:
        await topic_hub.unsubscribe(topic, websocket)
