import asyncio

import pytest

from conftest import StubProvider, settle
from relay.chat.models import DispenserState, EventType, SenderType, SessionStatus
from relay.chat.service import ChatService, UNAVAILABLE_WELCOME
from relay.chat.sessions import ChatSession, SessionManager


def kinds(session):
    return [(m.sender_type, m.text) for m in session.messages]


async def ready_session(session):
    session.login()
    await session.wait_until_ready()
    return session


class TestLogin:
    
    @pytest.mark.asyncio
    async def test_welcome_then_chatter(self, session):
        session.login()
        assert session.is_authenticated
        assert session.current_user.name == "@You"
        assert session.status == SessionStatus.INITIALIZING
        assert session.is_loading
        
        await session.wait_until_ready()
        assert kinds(session) == [(SenderType.SYSTEM, "Welcome!")]
        assert session.messages[0].sender == "ChanServ"
        assert session.status == SessionStatus.READY
        assert not session.is_loading
        assert session.dispenser.state == DispenserState.DRAINING
        
        assert session.dispenser.tick()
        assert kinds(session) == [
            (SenderType.SYSTEM, "Welcome!"),
            (SenderType.IRC_USER, "hi"),
        ]
        assert session.messages[1].sender == "net_surfer"
        meta = session.get_user_meta("net_surfer")
        assert "net_surfer" in session.meta
        
        assert not session.dispenser.tick()
        assert session.dispenser.state == DispenserState.DRAINED
        assert session.get_user_meta("net_surfer") == meta
        session.logout()
    
    @pytest.mark.asyncio
    async def test_failed_init_shows_unavailable_notice(self, chat_config):
        session = ChatSession("fail0001", ChatService(StubProvider(fail=True)), config=chat_config)
        await ready_session(session)
        
        assert kinds(session) == [
            (SenderType.SYSTEM, UNAVAILABLE_WELCOME.format(channel="#google.com")),
        ]
        assert session.dispenser.pending == 0
        assert session.dispenser.state == DispenserState.DRAINED
        assert not session.dispenser.is_running
    
    @pytest.mark.asyncio
    async def test_second_login_is_ignored(self, session, provider):
        await ready_session(session)
        session.login()
        await settle()
        assert len(provider.prompts) == 1
        assert len(session.messages) == 1
        session.logout()
    
    @pytest.mark.asyncio
    async def test_chatter_delivered_on_timer(self, provider, chat_config):
        chat_config.chatter_interval = 0.01
        session = ChatSession("tick0001", ChatService(provider), config=chat_config)
        await ready_session(session)
        await asyncio.sleep(0.1)
        assert kinds(session)[-1] == (SenderType.IRC_USER, "hi")
        assert session.dispenser.state == DispenserState.DRAINED


class TestSendMessage:
    
    @pytest.mark.asyncio
    async def test_user_then_bot(self, session, provider):
        await ready_session(session)
        provider.reply_gate = asyncio.Event()
        
        task = asyncio.create_task(session.send_message("hello"))
        await settle()
        assert kinds(session)[-1] == (SenderType.USER, "hello")
        assert session.messages[-1].sender == "@You"
        assert session.is_loading
        assert session.status == SessionStatus.SENDING
        
        provider.reply_gate.set()
        reply = await task
        assert reply.sender == "GeminiBot"
        assert kinds(session)[-2:] == [
            (SenderType.USER, "hello"),
            (SenderType.BOT, "Hey there!"),
        ]
        assert not session.is_loading
        assert session.status == SessionStatus.READY
        session.logout()
    
    @pytest.mark.asyncio
    async def test_history_includes_new_message(self, session, provider):
        await ready_session(session)
        await session.send_message("hello")
        prompt = provider.prompts[-1]
        assert "ChanServ: Welcome!" in prompt
        assert "@You: hello" in prompt
        session.logout()
    
    @pytest.mark.asyncio
    async def test_blank_text_ignored(self, session):
        await ready_session(session)
        assert await session.send_message("") is None
        assert await session.send_message("   \t") is None
        assert len(session.messages) == 1
        session.logout()
    
    @pytest.mark.asyncio
    async def test_logged_out_send_ignored(self, session, provider):
        assert await session.send_message("hello") is None
        assert session.messages == []
        assert provider.prompts == []
    
    @pytest.mark.asyncio
    async def test_send_while_initializing_ignored(self, session, provider):
        provider.batch_gate = asyncio.Event()
        session.login()
        await settle()
        assert await session.send_message("too early") is None
        assert session.messages == []
        
        provider.batch_gate.set()
        await session.wait_until_ready()
        assert kinds(session) == [(SenderType.SYSTEM, "Welcome!")]
        session.logout()
    
    @pytest.mark.asyncio
    async def test_failed_reply_uses_fallback(self, session, provider):
        await ready_session(session)
        provider.fail = True
        reply = await session.send_message("hello")
        assert reply.text == "Sorry, I'm having trouble connecting to my brain right now."
        assert not session.is_loading
        session.logout()
    
    @pytest.mark.asyncio
    async def test_overlapping_sends(self, session, provider):
        await ready_session(session)
        provider.reply_gate = asyncio.Event()
        
        first = asyncio.create_task(session.send_message("one"))
        second = asyncio.create_task(session.send_message("two"))
        await settle()
        assert [t for _, t in kinds(session)[-2:]] == ["one", "two"]
        
        provider.reply_gate.set()
        await asyncio.gather(first, second)
        assert [k for k, _ in kinds(session)[-2:]] == [SenderType.BOT, SenderType.BOT]
        assert not session.is_loading
        assert session.status == SessionStatus.READY
        session.logout()


class TestLogout:
    
    @pytest.mark.asyncio
    async def test_logout_resets_everything(self, session):
        await ready_session(session)
        session.dispenser.tick()
        session.open_profile("net_surfer")
        session.logout()
        
        assert not session.is_authenticated
        assert session.current_user is None
        assert session.status == SessionStatus.UNAUTHENTICATED
        assert session.messages == []
        assert len(session.meta) == 0
        assert session.dispenser.pending == 0
        assert not session.dispenser.is_running
        assert not session.is_loading
        assert not session.profile_modal.open
    
    @pytest.mark.asyncio
    async def test_stale_initial_batch_is_discarded(self, session, provider):
        provider.batch_gate = asyncio.Event()
        session.login()
        await settle()
        session.logout()
        
        provider.batch_gate.set()
        await settle()
        assert session.messages == []
        assert session.status == SessionStatus.UNAUTHENTICATED
    
    @pytest.mark.asyncio
    async def test_stale_reply_is_discarded(self, session, provider):
        await ready_session(session)
        provider.reply_gate = asyncio.Event()
        task = asyncio.create_task(session.send_message("hello"))
        await settle()
        session.logout()
        
        provider.reply_gate.set()
        assert await task is None
        assert session.messages == []
        assert not session.is_loading
    
    @pytest.mark.asyncio
    async def test_relogin_starts_fresh(self, session, provider):
        await ready_session(session)
        session.dispenser.tick()
        session.logout()
        
        await ready_session(session)
        assert kinds(session) == [(SenderType.SYSTEM, "Welcome!")]
        assert len(session.meta) == 0
        assert len(provider.prompts) == 2
        session.logout()


class TestProfileAndEvents:
    
    @pytest.mark.asyncio
    async def test_profile_for_chatter_only(self, session):
        await ready_session(session)
        session.dispenser.tick()
        
        profile = session.open_profile("net_surfer")
        meta = session.get_user_meta("net_surfer")
        assert profile.name == "net_surfer"
        assert (profile.color, profile.level) == (meta.color, meta.level)
        assert session.profile_modal.open
        assert session.profile_modal.selected_user == profile
        
        before = len(session.messages)
        session.close_profile()
        assert not session.profile_modal.open
        assert session.profile_modal.selected_user is None
        
        assert session.open_profile("@You") is None
        assert session.open_profile("GeminiBot") is None
        assert session.open_profile("ChanServ") is None
        assert len(session.messages) == before
        session.logout()
    
    @pytest.mark.asyncio
    async def test_events_are_emitted(self, session):
        events = []
        session.add_event_callback(events.append)
        await ready_session(session)
        session.logout()
        
        types = [e.type for e in events]
        assert types[0] == EventType.STATE
        assert EventType.MESSAGE in types
        assert EventType.RESET in types
        message_event = next(e for e in events if e.type == EventType.MESSAGE)
        assert message_event.data["message"]["senderType"] == "SYSTEM"
    
    @pytest.mark.asyncio
    async def test_broken_callback_does_not_break_session(self, session):
        def broken(event):
            raise RuntimeError("client went away")
        
        session.add_event_callback(broken)
        await ready_session(session)
        assert len(session.messages) == 1
        session.remove_event_callback(broken)
        session.logout()
    
    @pytest.mark.asyncio
    async def test_snapshot_uses_camel_case(self, session):
        await ready_session(session)
        data = session.snapshot().to_broadcast()
        assert data["isAuthenticated"] is True
        assert data["currentUser"] == {"name": "@You"}
        assert data["channel"] == "google.com"
        assert data["messages"][0]["senderType"] == "SYSTEM"
        assert data["profileModal"] == {"open": False, "selectedUser": None}
        session.logout()


class TestSessionManager:
    
    @pytest.mark.asyncio
    async def test_create_get_delete(self, service, chat_config):
        manager = SessionManager(service=service, config=chat_config)
        session = await manager.create_session()
        assert manager.get_session(session.session_id) is session
        assert len(manager.list_sessions()) == 1
        
        assert await manager.delete_session(session.session_id)
        assert manager.get_session(session.session_id) is None
        assert not await manager.delete_session(session.session_id)
    
    @pytest.mark.asyncio
    async def test_session_limit(self, service, chat_config):
        manager = SessionManager(service=service, config=chat_config, max_sessions=1)
        await manager.create_session()
        with pytest.raises(RuntimeError):
            await manager.create_session()
        await manager.cleanup_all()
        assert manager.sessions == {}
    
    @pytest.mark.asyncio
    async def test_inactive_sessions_cleaned(self, service, chat_config):
        manager = SessionManager(service=service, config=chat_config, session_timeout_minutes=0)
        session = await manager.create_session()
        await ready_session(session)
        session.dispenser.stop()
        await asyncio.sleep(0.01)
        
        assert not session.is_running
        await manager._cleanup_inactive()
        assert manager.sessions == {}
        assert not session.is_authenticated
    
    @pytest.mark.asyncio
    async def test_busy_sessions_survive_cleanup(self, service, chat_config):
        manager = SessionManager(service=service, config=chat_config, session_timeout_minutes=0)
        session = await manager.create_session()
        await ready_session(session)
        await asyncio.sleep(0.01)
        
        assert session.dispenser.is_running
        assert session.is_running
        await manager._cleanup_inactive()
        assert manager.get_session(session.session_id) is session
        assert session.is_authenticated
        session.logout()
    
    @pytest.mark.asyncio
    async def test_subscribed_sessions_survive_cleanup(self, service, chat_config):
        manager = SessionManager(service=service, config=chat_config, session_timeout_minutes=0)
        session = await manager.create_session()
        events = []
        session.add_event_callback(events.append)
        await asyncio.sleep(0.01)
        
        assert session.has_subscribers
        await manager._cleanup_inactive()
        assert manager.get_session(session.session_id) is session
        
        session.remove_event_callback(events.append)
        await manager._cleanup_inactive()
        assert manager.sessions == {}
    
    @pytest.mark.asyncio
    async def test_touch_refreshes_activity(self, session):
        before = session.last_activity
        await asyncio.sleep(0.01)
        session.touch()
        assert session.last_activity > before
        assert session.messages == []
