import json
from typing import List, Dict
from fastapi import WebSocket
import logging

logger = logging.getLogger(__name__)

class ConnectionManager:
    """Per-topic socket rooms. Delivery is fire-and-forget, at most once."""

    def __init__(self):
        # Map topic -> List[WebSocket]
        self.active_connections: Dict[str, List[WebSocket]] = {}

    async def connect(self, websocket: WebSocket, topic: str):
        await websocket.accept()
        if topic not in self.active_connections:
            self.active_connections[topic] = []
        self.active_connections[topic].append(websocket)
        logger.info(f"WebSocket connected: {topic}. Total in room: {len(self.active_connections[topic])}")

    def disconnect(self, websocket: WebSocket, topic: str):
        if topic in self.active_connections:
            if websocket in self.active_connections[topic]:
                self.active_connections[topic].remove(websocket)
                if not self.active_connections[topic]:
                    del self.active_connections[topic]
            logger.info(f"WebSocket disconnected: {topic}")

    async def broadcast(self, message: str, topic: str):
        for connection in list(self.active_connections.get(topic, [])):
            try:
                await connection.send_text(message)
            except Exception as e:
                logger.error(f"Error broadcasting to {topic}: {e}")

    async def publish(self, topic: str, message: dict):
        await self.broadcast(json.dumps(message, default=str), topic)


def case_updates_topic(tenant_id) -> str:
    return f"case_updates_{tenant_id}"


def draft_editing_topic(draft_id) -> str:
    return f"draft_editing_{draft_id}"


manager = ConnectionManager()
