"""
Chat API Routes

REST endpoints for the session intents (login, logout, send, profile)
and a WebSocket that streams transcript events to the widget.

The message endpoint is the input boundary: empty or whitespace-only
text is rejected here and never reaches the session, and sends are
refused while the session is loading.
"""

import asyncio
import logging

from fastapi import APIRouter, HTTPException, WebSocket, WebSocketDisconnect
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ValidationError, field_validator

from relay.chat.models import ChatEvent
from relay.chat.sessions import ChatSession, get_session_manager

logger = logging.getLogger(__name__)

router = APIRouter(tags=["chat"])


# ==================== Pydantic Models ====================

class SendMessageRequest(BaseModel):
    """A message typed into the input box."""
    text: str
    
    @field_validator("text")
    @classmethod
    def text_not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Message text must not be empty")
        return value


class OpenProfileRequest(BaseModel):
    """Request to show a sender's profile."""
    sender: str


# ==================== Helpers ====================

def require_session(session_id: str) -> ChatSession:
    """Look up a session or raise 404."""
    session = get_session_manager().get_session(session_id)
    if not session:
        raise HTTPException(status_code=404, detail="Session not found")
    return session


def snapshot_response(session: ChatSession) -> JSONResponse:
    return JSONResponse(session.snapshot().to_broadcast())


async def pump_events(websocket: WebSocket, outbox: asyncio.Queue) -> None:
    """
    Forward queued events to the client until sending fails.
    
    On a send failure the socket is closed so the receive loop ends too.
    """
    while True:
        payload = await outbox.get()
        try:
            await websocket.send_json(payload)
        except Exception as e:
            logger.warning(f"Failed to send event, closing WebSocket: {e}")
            try:
                await websocket.close(code=1011)
            except RuntimeError as close_error:
                logger.debug(f"WebSocket already closed: {close_error}")
            return


# ==================== REST Endpoints ====================

@router.post("/api/chat/sessions")
async def create_session():
    """
    Create a new, logged-out session.
    
    Returns the session ID and initial state.
    """
    manager = get_session_manager()
    try:
        session = await manager.create_session()
    except RuntimeError as e:
        raise HTTPException(status_code=503, detail=str(e))
    
    return JSONResponse({
        "session_id": session.session_id,
        "state": session.snapshot().to_broadcast(),
    })


@router.get("/api/chat/sessions/{session_id}")
async def get_session(session_id: str):
    """Get a session's current state."""
    return snapshot_response(require_session(session_id))


@router.delete("/api/chat/sessions/{session_id}")
async def delete_session(session_id: str):
    """Log out and drop a session."""
    success = await get_session_manager().delete_session(session_id)
    if not success:
        raise HTTPException(status_code=404, detail="Session not found")
    return JSONResponse({"success": True})


@router.post("/api/chat/sessions/{session_id}/login")
async def login(session_id: str, wait: bool = False):
    """
    Log in as the local user. Initialization runs in the background
    unless `wait` is set.
    """
    session = require_session(session_id)
    session.login()
    if wait:
        await session.wait_until_ready()
    return snapshot_response(session)


@router.post("/api/chat/sessions/{session_id}/logout")
async def logout(session_id: str):
    """Log out and reset the session."""
    session = require_session(session_id)
    session.logout()
    return snapshot_response(session)


@router.post("/api/chat/sessions/{session_id}/messages")
async def send_message(session_id: str, request: SendMessageRequest):
    """
    Send a user message and wait for the bot's reply.
    
    Returns both messages, or `accepted: false` if the session ignored
    the send (logged out, or the session was reset mid-reply).
    """
    session = require_session(session_id)
    if session.is_loading:
        raise HTTPException(status_code=409, detail="Session is busy")
    
    before = len(session.transcript)
    reply = await session.send_message(request.text)
    if reply is None:
        return JSONResponse({"accepted": False})
    
    # The user message is the first entry appended by this send
    user_message = session.transcript.messages[before] if len(session.transcript) > before else None
    return JSONResponse({
        "accepted": True,
        "message": user_message.to_broadcast() if user_message else None,
        "reply": reply.to_broadcast(),
    })


@router.post("/api/chat/sessions/{session_id}/profile")
async def open_profile(session_id: str, request: OpenProfileRequest):
    """Open the profile popup for a chatter participant."""
    session = require_session(session_id)
    profile = session.open_profile(request.sender)
    if profile is None:
        return JSONResponse({"open": False})
    return JSONResponse({"open": True, "profile": profile.model_dump()})


@router.delete("/api/chat/sessions/{session_id}/profile")
async def close_profile(session_id: str):
    """Close the profile popup."""
    session = require_session(session_id)
    session.close_profile()
    return JSONResponse({"open": False})


@router.get("/api/chat/health")
async def chat_health():
    """
    Health check for the chat module.
    
    Suitable for monitoring and load balancer probes.
    """
    try:
        manager = get_session_manager()
        return JSONResponse({
            "status": "healthy",
            "provider": manager.service.provider.name,
            "session_count": len(manager.sessions),
        })
    except Exception as e:
        return JSONResponse(
            {"status": "unhealthy", "error": str(e)},
            status_code=503
        )


# ==================== WebSocket Endpoint ====================

@router.websocket("/ws/chat/{session_id}")
async def chat_websocket(websocket: WebSocket, session_id: str):
    """
    WebSocket endpoint for a widget session.
    
    Server → Client messages:
    - { type: "connected", state: {...} }
    - { type: "message", data: { message: {...}, meta: {...} } }
    - { type: "state", data: { status, isLoading, isAuthenticated, profileModal } }
    - { type: "reset", data: {} }
    - { type: "error", message: "..." }
    
    Client → Server messages:
    - { type: "login" }
    - { type: "logout" }
    - { type: "send", text: "..." }
    - { type: "open_profile", sender: "..." }
    - { type: "close_profile" }
    - { type: "get_state" }
    """
    session = get_session_manager().get_session(session_id)
    if not session:
        await websocket.close(code=4004, reason="Session not found")
        return
    
    await websocket.accept()
    logger.info(f"WebSocket connected for session {session_id}")
    
    outbox: asyncio.Queue = asyncio.Queue()
    pending_sends: set[asyncio.Task] = set()
    
    def enqueue(event: ChatEvent):
        outbox.put_nowait(event.to_broadcast())
    
    session.add_event_callback(enqueue)
    pump_task = asyncio.create_task(pump_events(websocket, outbox))
    
    try:
        await websocket.send_json({
            "type": "connected",
            "state": session.snapshot().to_broadcast(),
        })
        
        while True:
            try:
                data = await websocket.receive_json()
            except WebSocketDisconnect:
                break
            
            session.touch()
            
            msg_type = data.get("type")
            
            if msg_type == "login":
                session.login()
            elif msg_type == "logout":
                session.logout()
            elif msg_type == "send":
                try:
                    text = SendMessageRequest(text=data.get("text") or "").text
                except ValidationError:
                    continue
                if session.is_loading:
                    outbox.put_nowait({"type": "error", "message": "Session is busy"})
                    continue
                task = asyncio.create_task(session.send_message(text))
                pending_sends.add(task)
                task.add_done_callback(pending_sends.discard)
            elif msg_type == "open_profile":
                session.open_profile(data.get("sender", ""))
            elif msg_type == "close_profile":
                session.close_profile()
            elif msg_type == "get_state":
                outbox.put_nowait({
                    "type": "state",
                    "data": session.snapshot().to_broadcast(),
                })
            else:
                logger.warning(f"Unknown message type: {msg_type}")
    
    except Exception as e:
        logger.error(f"Chat WebSocket error: {e}")
    
    finally:
        session.remove_event_callback(enqueue)
        pump_task.cancel()
        logger.info(f"WebSocket disconnected for session {session_id}")
