"""
Chat Session Controller

Owns everything one client sees: authentication, the transcript, sender
metadata, the chatter dispenser and the profile popup. Presentation code
reads snapshots and calls intent methods; nothing else mutates state.

Sessions are in-memory with automatic cleanup after timeout.
"""

import asyncio
import logging
import random
from datetime import datetime, timezone
from typing import Callable, Dict, Optional

from .config import ChatConfig, get_config
from .dispenser import ChatterDispenser
from .meta import MetadataAssigner, reserved_meta
from .models import (
    ChatEvent,
    ChatterLine,
    CurrentUser,
    EventType,
    Message,
    ProfileModal,
    SenderType,
    SessionSnapshot,
    SessionStatus,
    UserMeta,
    UserProfile,
    generate_session_id,
)
from .service import ChatService
from .transcript import Transcript

logger = logging.getLogger(__name__)


EventCallback = Callable[[ChatEvent], None]


class ChatSession:
    """
    A single simulated channel session.
    
    Status machine: unauthenticated -> initializing -> ready <-> sending.
    Sends are accepted only in ready/sending. Every reset bumps the epoch;
    async work started under an older epoch is discarded when it lands.
    """
    
    def __init__(
        self,
        session_id: str,
        service: ChatService,
        config: Optional[ChatConfig] = None,
        rng: Optional[random.Random] = None,
    ):
        config = config or get_config()
        self.session_id = session_id
        self.service = service
        self.channel = config.channel
        self.self_name = config.self_name
        self.bot_name = config.bot_name
        self.system_sender = config.system_sender
        
        if rng is None and config.level_seed is not None:
            rng = random.Random(config.level_seed)
        
        self.transcript = Transcript()
        self.meta = MetadataAssigner(
            rng=rng,
            reserved=reserved_meta(self.bot_name, self.system_sender),
        )
        self.dispenser = ChatterDispenser(
            deliver=self._deliver_chatter,
            interval=config.chatter_interval,
        )
        
        self.created_at = datetime.now(timezone.utc)
        self.last_activity = self.created_at
        
        self._status = SessionStatus.UNAUTHENTICATED
        self._current_user: Optional[CurrentUser] = None
        self._profile_modal = ProfileModal()
        self._pending_replies = 0
        self._epoch = 0
        self._init_task: Optional[asyncio.Task] = None
        self._event_callbacks: list[EventCallback] = []
    
    # ==================== Read-only State ====================
    
    @property
    def channel_label(self) -> str:
        return f"#{self.channel}"
    
    @property
    def status(self) -> SessionStatus:
        return self._status
    
    @property
    def is_authenticated(self) -> bool:
        return self._current_user is not None
    
    @property
    def current_user(self) -> Optional[CurrentUser]:
        return self._current_user
    
    @property
    def is_loading(self) -> bool:
        """True while initializing or while a bot reply is pending."""
        return self._status == SessionStatus.INITIALIZING or self._pending_replies > 0
    
    @property
    def messages(self) -> list[Message]:
        return self.transcript.messages
    
    @property
    def profile_modal(self) -> ProfileModal:
        return self._profile_modal
    
    @property
    def is_running(self) -> bool:
        """Whether any background work is still in flight."""
        init_running = self._init_task is not None and not self._init_task.done()
        return init_running or self.dispenser.is_running or self._pending_replies > 0
    
    @property
    def has_subscribers(self) -> bool:
        """Whether a client (e.g. an open WebSocket) is listening for events."""
        return bool(self._event_callbacks)
    
    def touch(self) -> None:
        """Record client activity without changing state."""
        self.last_activity = datetime.now(timezone.utc)
    
    def get_user_meta(self, sender: str) -> UserMeta:
        return self.meta.get(sender)
    
    def snapshot(self) -> SessionSnapshot:
        """Current state for the presentation layer."""
        return SessionSnapshot(
            session_id=self.session_id,
            status=self._status,
            is_authenticated=self.is_authenticated,
            current_user=self._current_user,
            is_loading=self.is_loading,
            channel=self.channel,
            messages=self.transcript.messages,
            user_meta=self.meta.known(),
            pending_chatter=self.dispenser.pending,
            dispenser_state=self.dispenser.state,
            profile_modal=self._profile_modal,
        )
    
    # ==================== Events ====================
    
    def add_event_callback(self, callback: EventCallback):
        """Add an event callback (e.g., a WebSocket queue)."""
        self._event_callbacks.append(callback)
    
    def remove_event_callback(self, callback: EventCallback):
        """Remove an event callback."""
        if callback in self._event_callbacks:
            self._event_callbacks.remove(callback)
    
    def _emit(self, event: ChatEvent):
        for callback in list(self._event_callbacks):
            try:
                callback(event)
            except Exception as e:
                logger.warning(f"Session {self.session_id}: event callback error: {e}")
    
    def _emit_state(self):
        self._emit(ChatEvent(type=EventType.STATE, data={
            "status": self._status.value,
            "isLoading": self.is_loading,
            "isAuthenticated": self.is_authenticated,
            "profileModal": self._profile_modal.model_dump(by_alias=True, mode="json"),
        }))
    
    # ==================== Transcript ====================
    
    def _append(self, text: str, sender: str, sender_type: SenderType) -> Message:
        if sender_type == SenderType.IRC_USER:
            self.meta.assign(sender)
        
        message = self.transcript.append(Message.create(text, sender, sender_type))
        self._emit(ChatEvent(type=EventType.MESSAGE, data={
            "message": message.to_broadcast(),
            "meta": self.meta.get(sender).model_dump(),
        }))
        return message
    
    def _deliver_chatter(self, line: ChatterLine):
        self._append(line.text, line.sender, SenderType.IRC_USER)
    
    # ==================== Lifecycle ====================
    
    def _reset(self):
        """Tear down all per-login state. Synchronous."""
        self._epoch += 1
        self.dispenser.clear()
        
        if self._init_task is not None and not self._init_task.done():
            self._init_task.cancel()
        self._init_task = None
        
        self.transcript.clear()
        self.meta.reset()
        self._pending_replies = 0
        self._profile_modal = ProfileModal()
    
    def login(self) -> None:
        """
        Authenticate as the fixed local user and start initialization.
        
        Must be called from a running event loop. A second login while
        already authenticated is ignored.
        """
        self.last_activity = datetime.now(timezone.utc)
        if self.is_authenticated:
            logger.debug(f"Session {self.session_id}: already logged in")
            return
        
        self._reset()
        self._current_user = CurrentUser(name=self.self_name)
        self.meta.self_name = self.self_name
        self._status = SessionStatus.INITIALIZING
        
        self._init_task = asyncio.create_task(self._initialize(self._epoch))
        logger.info(f"Session {self.session_id}: logged in as {self.self_name}")
        self._emit_state()
    
    async def _initialize(self, epoch: int):
        """Fetch the initial batch, post the welcome notice, start chatter."""
        batch = await self.service.fetch_initial_batch(self.channel_label)
        
        if epoch != self._epoch:
            logger.debug(f"Session {self.session_id}: discarding stale initial batch")
            return
        
        welcome = batch.welcome_message
        self._append(welcome.text, welcome.sender, SenderType.SYSTEM)
        self.dispenser.load(batch.chatter)
        self._status = SessionStatus.READY
        self._emit_state()
        
        self.dispenser.start()
        logger.info(
            f"Session {self.session_id}: ready in {self.channel_label} "
            f"with {self.dispenser.pending} chatter lines queued"
        )
    
    async def wait_until_ready(self) -> None:
        """Wait for the current initialization to finish (or be cancelled)."""
        task = self._init_task
        if task is not None:
            await asyncio.wait({task})
    
    def logout(self) -> None:
        """Log out and discard every piece of session state."""
        self.last_activity = datetime.now(timezone.utc)
        was_authenticated = self.is_authenticated
        
        self._reset()
        self._current_user = None
        self.meta.self_name = None
        self._status = SessionStatus.UNAUTHENTICATED
        
        if was_authenticated:
            logger.info(f"Session {self.session_id}: logged out")
        self._emit(ChatEvent(type=EventType.RESET))
        self._emit_state()
    
    # ==================== Intents ====================
    
    async def send_message(self, text: str) -> Optional[Message]:
        """
        Post a user message and append the bot's reply.
        
        The user message is appended before any network call. Overlapping
        calls are not serialized here; the input surface disables sending
        while loading.
        
        Returns:
            The bot message, or None if the send was ignored or the session
            was reset while the reply was pending
        """
        self.last_activity = datetime.now(timezone.utc)
        
        if not self.is_authenticated:
            logger.debug(f"Session {self.session_id}: ignoring send while logged out")
            return None
        if self._status not in (SessionStatus.READY, SessionStatus.SENDING):
            logger.debug(f"Session {self.session_id}: ignoring send while {self._status.value}")
            return None
        if not text or not text.strip():
            return None
        
        epoch = self._epoch
        self._append(text, self.self_name, SenderType.USER)
        self._pending_replies += 1
        self._status = SessionStatus.SENDING
        self._emit_state()
        
        try:
            reply = await self.service.fetch_reply(text, self.channel_label, self.transcript.messages)
        except asyncio.CancelledError:
            if epoch == self._epoch:
                self._finish_reply()
            raise
        
        if epoch != self._epoch:
            logger.debug(f"Session {self.session_id}: discarding stale reply")
            return None
        
        bot_message = self._append(reply, self.bot_name, SenderType.BOT)
        self._finish_reply()
        return bot_message
    
    def _finish_reply(self):
        self._pending_replies -= 1
        if self._pending_replies == 0:
            self._status = SessionStatus.READY
        self._emit_state()
    
    def open_profile(self, sender: str) -> Optional[UserProfile]:
        """Open the profile popup for a chatter participant."""
        self.last_activity = datetime.now(timezone.utc)
        if not self.is_authenticated or self.meta.is_fixed(sender):
            return None
        
        meta = self.meta.get(sender)
        profile = UserProfile(name=sender, color=meta.color, level=meta.level)
        self._profile_modal = ProfileModal(open=True, selected_user=profile)
        self._emit_state()
        return profile
    
    def close_profile(self) -> None:
        """Close the profile popup."""
        self.last_activity = datetime.now(timezone.utc)
        self._profile_modal = ProfileModal()
        self._emit_state()


class SessionManager:
    """
    Manages active chat sessions.
    
    Sessions are stored in-memory and cleaned up after inactivity timeout.
    """
    
    def __init__(
        self,
        service: ChatService,
        config: Optional[ChatConfig] = None,
        session_timeout_minutes: Optional[int] = None,
        max_sessions: Optional[int] = None,
    ):
        self.config = config or get_config()
        self.service = service
        self.sessions: Dict[str, ChatSession] = {}
        self.session_timeout_minutes = (
            session_timeout_minutes
            if session_timeout_minutes is not None
            else self.config.session_timeout_minutes
        )
        self.max_sessions = max_sessions if max_sessions is not None else self.config.max_sessions
        self._cleanup_task: Optional[asyncio.Task] = None
    
    def start_cleanup_task(self):
        """Start the background cleanup task."""
        if self._cleanup_task is None or self._cleanup_task.done():
            self._cleanup_task = asyncio.create_task(self._cleanup_loop())
    
    async def _cleanup_loop(self):
        """Periodically clean up inactive sessions."""
        while True:
            await asyncio.sleep(60)  # Check every minute
            await self._cleanup_inactive()
    
    async def _cleanup_inactive(self):
        """Remove sessions that have been inactive too long."""
        now = datetime.now(timezone.utc)
        timeout_seconds = self.session_timeout_minutes * 60
        
        to_remove = []
        for session_id, session in self.sessions.items():
            if session.is_running or session.has_subscribers:
                continue
            age = (now - session.last_activity).total_seconds()
            if age > timeout_seconds:
                to_remove.append(session_id)
        
        for session_id in to_remove:
            logger.info(f"Cleaning up inactive session: {session_id}")
            await self.delete_session(session_id)
    
    async def create_session(self) -> ChatSession:
        """Create a new, logged-out session."""
        if len(self.sessions) >= self.max_sessions:
            # Try to clean up inactive sessions first
            await self._cleanup_inactive()
            
            if len(self.sessions) >= self.max_sessions:
                raise RuntimeError(f"Maximum sessions ({self.max_sessions}) reached")
        
        session_id = generate_session_id()
        session = ChatSession(session_id=session_id, service=self.service, config=self.config)
        self.sessions[session_id] = session
        
        logger.info(f"Created session: {session_id}")
        return session
    
    def get_session(self, session_id: str) -> Optional[ChatSession]:
        """Get a session by ID."""
        return self.sessions.get(session_id)
    
    def list_sessions(self) -> list[SessionSnapshot]:
        """List all sessions."""
        return [session.snapshot() for session in self.sessions.values()]
    
    async def delete_session(self, session_id: str) -> bool:
        """Log out and delete a session."""
        session = self.sessions.pop(session_id, None)
        if session:
            session.logout()
            logger.info(f"Deleted session: {session_id}")
            return True
        return False
    
    async def cleanup_all(self):
        """Clean up all sessions (for shutdown)."""
        for session_id in list(self.sessions.keys()):
            await self.delete_session(session_id)
        
        if self._cleanup_task:
            self._cleanup_task.cancel()
            try:
                await self._cleanup_task
            except asyncio.CancelledError:
                pass
        self._cleanup_task = None


# Global session manager instance
_session_manager: Optional[SessionManager] = None


def get_session_manager() -> SessionManager:
    """Get the global session manager, building its service from config."""
    global _session_manager
    if _session_manager is None:
        config = get_config()
        service = ChatService(
            provider=config.create_provider(),
            bot_name=config.bot_name,
            system_sender=config.system_sender,
            history_window=config.history_window,
            chatter_count=config.chatter_count,
            max_attempts=config.max_attempts,
        )
        _session_manager = SessionManager(service=service, config=config)
    return _session_manager


def set_session_manager(manager: Optional[SessionManager]) -> None:
    """Replace the global session manager (used by the app lifespan and tests)."""
    global _session_manager
    _session_manager = manager
