"""
Chat Simulation Models

Pydantic types for transcript messages, chatter lines, user metadata,
and the snapshot handed to the presentation layer.
"""

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class SenderType(str, Enum):
    """Who produced a transcript entry."""
    USER = "USER"            # The logged-in human
    BOT = "BOT"              # Conversational bot reply
    IRC_USER = "IRC_USER"    # Simulated chatter participant
    SYSTEM = "SYSTEM"        # Channel service notice


class SessionStatus(str, Enum):
    """Lifecycle of a chat session."""
    UNAUTHENTICATED = "unauthenticated"
    INITIALIZING = "initializing"
    READY = "ready"
    SENDING = "sending"


class DispenserState(str, Enum):
    """Lifecycle of the chatter dispenser."""
    IDLE = "idle"
    DRAINING = "draining"
    DRAINED = "drained"
    STOPPED = "stopped"


class CamelModel(BaseModel):
    """Base model that serializes with camelCase for the frontend."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Message(CamelModel):
    """A single transcript entry. Immutable once created."""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )

    id: str
    text: str
    sender: str
    sender_type: SenderType
    timestamp: str                              # ISO-8601, UTC

    @classmethod
    def create(cls, text: str, sender: str, sender_type: SenderType) -> "Message":
        """Build a message with a fresh id and the current timestamp."""
        return cls(
            id=str(uuid.uuid4()),
            text=text,
            sender=sender,
            sender_type=sender_type,
            timestamp=datetime.now(timezone.utc).isoformat(),
        )

    def to_broadcast(self) -> dict:
        """Convert to dict for WebSocket broadcast."""
        return self.model_dump(by_alias=True, mode="json")


class ChatterLine(BaseModel):
    """A pending line from a simulated participant."""
    sender: str = Field(min_length=1)
    text: str


class InitialBatch(CamelModel):
    """Structured response of the initial chatter request."""
    welcome_message: ChatterLine
    chatter: list[ChatterLine]


class UserMeta(BaseModel):
    """Display metadata for a sender."""
    color: str
    level: int = Field(default=0, ge=0, le=8)


class CurrentUser(BaseModel):
    """The authenticated user."""
    name: str


class UserProfile(BaseModel):
    """What the profile popup shows for a sender."""
    name: str
    color: str
    level: int = 0


class ProfileModal(CamelModel):
    """Profile popup state."""
    open: bool = False
    selected_user: Optional[UserProfile] = None


class SessionSnapshot(CamelModel):
    """Read-only view of a chat session for the presentation layer."""
    session_id: str
    status: SessionStatus
    is_authenticated: bool
    current_user: Optional[CurrentUser] = None
    is_loading: bool
    channel: str
    messages: list[Message]
    user_meta: dict[str, UserMeta]
    pending_chatter: int
    dispenser_state: DispenserState
    profile_modal: ProfileModal

    def to_broadcast(self) -> dict:
        return self.model_dump(by_alias=True, mode="json")


# === Event Types ===

class EventType(str, Enum):
    """Types of events pushed to session subscribers."""
    MESSAGE = "message"    # A transcript entry was appended
    STATE = "state"        # Loading/status/profile changed
    RESET = "reset"        # Session was torn down


class ChatEvent(BaseModel):
    """Event emitted by a chat session."""
    type: EventType
    data: dict[str, Any] = Field(default_factory=dict)

    def to_broadcast(self) -> dict:
        return {"type": self.type.value, "data": self.data}


# === Utility Functions ===

def generate_session_id() -> str:
    """Generate a short session ID."""
    return str(uuid.uuid4())[:8]
