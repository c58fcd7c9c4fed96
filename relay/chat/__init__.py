"""
Chat Simulation Module - Relay

A simulated IRC-like channel. On login a generative model writes a
welcome notice and a handful of chatter lines, which are drip-fed into
the transcript on a fixed period. Anything the user says gets a reply
from the channel bot. Nothing is persisted; logout discards it all.

Components:
- models: Pydantic types for messages, metadata, snapshots, events
- meta: Deterministic colours and random level badges per sender
- transcript: Append-only message store
- dispenser: Timed FIFO delivery of chatter lines
- providers: Abstract inference provider with Gemini and mock backends
- service: Initial batch and reply calls with fallbacks
- sessions: Session controller and in-memory session manager
"""

from .models import (
    ChatEvent,
    ChatterLine,
    DispenserState,
    EventType,
    InitialBatch,
    Message,
    SenderType,
    SessionSnapshot,
    SessionStatus,
    UserMeta,
    UserProfile,
)
from .config import ChatConfig, get_config, reload_config
from .meta import MetadataAssigner, color_for, nick_hash
from .transcript import Transcript
from .dispenser import ChatterDispenser
from .service import ChatService, REPLY_FALLBACK, UNAVAILABLE_WELCOME
from .sessions import ChatSession, SessionManager, get_session_manager, set_session_manager

__all__ = [
    # Models
    "ChatEvent",
    "ChatterLine",
    "DispenserState",
    "EventType",
    "InitialBatch",
    "Message",
    "SenderType",
    "SessionSnapshot",
    "SessionStatus",
    "UserMeta",
    "UserProfile",
    # Config
    "ChatConfig",
    "get_config",
    "reload_config",
    # Core components
    "MetadataAssigner",
    "Transcript",
    "ChatterDispenser",
    "ChatService",
    "ChatSession",
    "SessionManager",
    # Functions
    "color_for",
    "nick_hash",
    "get_session_manager",
    "set_session_manager",
    # Fallback text
    "REPLY_FALLBACK",
    "UNAVAILABLE_WELCOME",
]
