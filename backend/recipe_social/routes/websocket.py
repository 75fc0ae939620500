from fastapi import APIRouter, WebSocket, WebSocketDisconnect, Depends, Query
from recipe_social.db.session import SessionLocal
from recipe_social.core.exceptions import RecipeSocialError
from recipe_social.core.firebase import firebase_service
from recipe_social.core.websocket import manager
from recipe_social.services.conversations import (
    get_conversation,
    listen_to_unread_count,
    listen_to_user_conversations,
    require_participant,
)
from recipe_social.services.follows import listen_to_follow_status
from recipe_social.services.messages import listen_to_messages
from recipe_social.services.notifications import listen_to_badge_count, listen_to_user_notifications
from recipe_social.utils.logger import safe_print
import json

router = APIRouter()

# WebSocket close code for a missing or mismatched ID token
POLICY_VIOLATION = 4401


def get_session_factory():
    """Listeners outlive a request, so they open their own sessions from this factory"""
    return SessionLocal


def token_matches(token: str, user_id: str) -> bool:
    if not token:
        return False
    try:
        claims = firebase_service.verify_token(token)
    except ValueError as e:
        safe_print(f"WebSocket auth failed for {user_id}: {e}")
        return False
    return claims.get("uid") == user_id


@router.websocket("/ws/{user_id}")
async def websocket_endpoint(
    websocket: WebSocket,
    user_id: str,
    token: str = Query(""),
    session_factory=Depends(get_session_factory),
):
    """
    Real-time channel for one signed-in user.

    Pushes ``unread_count``, ``badge_count``, ``conversations`` and
    ``notifications`` snapshots on every change, plus ``messages`` for each
    conversation room the client joined, and ``follow_status`` for every user
    passed to ``watch_follow``.
    """
    if not token_matches(token, user_id):
        await websocket.close(code=POLICY_VIOLATION)
        return

    await manager.connect(websocket, user_id)
    try:
        manager.track(websocket, await listen_to_unread_count(
            session_factory, user_id, manager.sender(websocket, "unread_count")))
        manager.track(websocket, await listen_to_badge_count(
            session_factory, user_id, manager.sender(websocket, "badge_count")))
        manager.track(websocket, await listen_to_user_conversations(
            session_factory, user_id, manager.sender(websocket, "conversations")))
        manager.track(websocket, await listen_to_user_notifications(
            session_factory, user_id, manager.sender(websocket, "notifications")))

        while True:
            data = await websocket.receive_text()
            try:
                message_data = json.loads(data)
            except json.JSONDecodeError:
                await send_error(websocket, "Invalid JSON")
                continue

            message_type = message_data.get("type")
            conversation_id = str(message_data.get("conversation_id") or "")

            if message_type == "join_room":
                await handle_join_room(websocket, user_id, conversation_id, session_factory)

            elif message_type == "leave_room":
                if manager.leave_room(websocket, conversation_id):
                    await websocket.send_text(json.dumps({
                        "type": "room_left",
                        "conversation_id": conversation_id
                    }))

            elif message_type == "watch_follow":
                target_id = str(message_data.get("target_id") or "")
                if not target_id or target_id == user_id:
                    await send_error(websocket, "A different target_id is required")
                    continue
                manager.track(websocket, await listen_to_follow_status(
                    session_factory, user_id, target_id, manager.sender(websocket, "follow_status")))

            elif message_type == "ping":
                await websocket.send_text(json.dumps({"type": "pong"}))

            else:
                await send_error(websocket, f"Unknown message type: {message_type}")

    except WebSocketDisconnect:
        pass
    except Exception as e:
        safe_print(f"WebSocket error for {user_id}: {e}")
    finally:
        manager.disconnect(websocket, user_id)


async def send_error(websocket: WebSocket, message: str):
    await websocket.send_text(json.dumps({"type": "error", "message": message}))


async def handle_join_room(websocket: WebSocket, user_id: str, conversation_id: str, session_factory):
    """Subscribe the socket to a conversation's messages after checking membership"""
    if not conversation_id:
        await send_error(websocket, "conversation_id is required")
        return

    db = session_factory()
    try:
        conversation = get_conversation(db, conversation_id)
        require_participant(conversation, user_id)
    except RecipeSocialError as e:
        await send_error(websocket, e.message)
        return
    finally:
        db.close()

    await websocket.send_text(json.dumps({
        "type": "room_joined",
        "conversation_id": conversation_id
    }))
    subscription = await listen_to_messages(
        session_factory, conversation_id, user_id, manager.sender(websocket, "messages"))
    manager.join_room(websocket, conversation_id, subscription)
