import json
from typing import Dict, List, Set
from fastapi import WebSocket, WebSocketDisconnect
from fastapi.encoders import jsonable_encoder
from recipe_social.utils.logger import safe_print


class ConnectionManager:
    def __init__(self):
        # Store active connections: {user_id: set of websockets}
        self.active_connections: Dict[str, Set[WebSocket]] = {}
        # Listener handles owned by each socket; all of them go away on disconnect
        self.subscriptions: Dict[WebSocket, List] = {}
        # Open conversation rooms per socket: {websocket: {conversation_id: subscription}}
        self.rooms: Dict[WebSocket, Dict[str, object]] = {}

    async def connect(self, websocket: WebSocket, user_id: str):
        """Accept a user websocket"""
        await websocket.accept()
        self.active_connections.setdefault(user_id, set()).add(websocket)
        self.subscriptions.setdefault(websocket, [])
        self.rooms.setdefault(websocket, {})
        safe_print(f"User {user_id} connected")

    def track(self, websocket: WebSocket, subscription) -> None:
        """Tie a listener's lifetime to the socket"""
        self.subscriptions.setdefault(websocket, []).append(subscription)

    def disconnect(self, websocket: WebSocket, user_id: str):
        """Drop the socket and unsubscribe every listener it owned"""
        for subscription in self.subscriptions.pop(websocket, []):
            subscription.unsubscribe()
        for subscription in self.rooms.pop(websocket, {}).values():
            subscription.unsubscribe()

        if user_id in self.active_connections:
            self.active_connections[user_id].discard(websocket)
            if not self.active_connections[user_id]:
                del self.active_connections[user_id]
        safe_print(f"User {user_id} disconnected")

    def join_room(self, websocket: WebSocket, conversation_id: str, subscription) -> None:
        """Attach a message listener for a conversation, replacing any previous one"""
        rooms = self.rooms.setdefault(websocket, {})
        previous = rooms.pop(conversation_id, None)
        if previous is not None:
            previous.unsubscribe()
        rooms[conversation_id] = subscription

    def leave_room(self, websocket: WebSocket, conversation_id: str) -> bool:
        subscription = self.rooms.get(websocket, {}).pop(conversation_id, None)
        if subscription is None:
            return False
        subscription.unsubscribe()
        return True

    async def send_event(self, websocket: WebSocket, event_type: str, payload) -> None:
        """Serialize a listener snapshot and push it to one socket"""
        message = json.dumps(
            {"type": event_type, "data": jsonable_encoder(payload)},
            ensure_ascii=False,
        )
        try:
            await websocket.send_text(message)
        except WebSocketDisconnect:
            safe_print(f"Dropping {event_type} for a closed socket")

    def sender(self, websocket: WebSocket, event_type: str):
        """Listener callback that forwards snapshots as ``event_type`` frames"""
        async def forward(payload):
            await self.send_event(websocket, event_type, payload)
        return forward


# Global connection manager instance
manager = ConnectionManager()
