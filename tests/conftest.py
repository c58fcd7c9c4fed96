"""Pytest configuration and shared fixtures."""
import asyncio
import json
from typing import Optional

import httpx
import pytest
from fastapi.testclient import TestClient

from relay.chat.config import ChatConfig
from relay.chat.providers.base import CompletionResult, InferenceProvider
from relay.chat.service import ChatService
from relay.chat.sessions import ChatSession, SessionManager, set_session_manager


WELCOME_BATCH = {
    "welcomeMessage": {"sender": "ChanServ", "text": "Welcome!"},
    "chatter": [{"sender": "net_surfer", "text": "hi"}],
}


class StubProvider(InferenceProvider):
    """Scriptable provider: canned batch/reply, optional failure, optional gates."""
    
    def __init__(
        self,
        batch: Optional[dict] = None,
        batch_text: Optional[str] = None,
        reply: str = "Hey there!",
        fail: bool = False,
    ):
        self.batch_text = batch_text if batch_text is not None else json.dumps(batch or WELCOME_BATCH)
        self.reply = reply
        self.fail = fail
        self.batch_gate: Optional[asyncio.Event] = None
        self.reply_gate: Optional[asyncio.Event] = None
        self.prompts: list[str] = []
        self.closed = False
    
    @property
    def name(self) -> str:
        return "stub/test"
    
    @property
    def model(self) -> str:
        return "test"
    
    async def complete(self, prompt, max_tokens=1024, temperature=1.0, response_schema=None):
        self.prompts.append(prompt)
        gate = self.batch_gate if response_schema is not None else self.reply_gate
        if gate is not None:
            await gate.wait()
        if self.fail:
            raise httpx.ConnectError("service down")
        text = self.batch_text if response_schema is not None else self.reply
        return CompletionResult(text=text, tokens_used=10, tokens_prompt=5, model="test", latency_ms=1.0)
    
    async def close(self):
        self.closed = True


async def settle(rounds: int = 5):
    """Let pending tasks run up to their next suspension point."""
    for _ in range(rounds):
        await asyncio.sleep(0)


@pytest.fixture
def chat_config():
    """Config with a long chatter interval so tests tick by hand."""
    return ChatConfig(provider="mock", chatter_interval=3600.0, level_seed=7)


@pytest.fixture
def provider():
    return StubProvider()


@pytest.fixture
def service(provider):
    return ChatService(provider=provider)


@pytest.fixture
def session(service, chat_config):
    return ChatSession(session_id="test0001", service=service, config=chat_config)


@pytest.fixture
def client(service, chat_config):
    """TestClient running the app lifespan against a stub-backed manager."""
    from relay.main import app
    
    set_session_manager(SessionManager(service=service, config=chat_config))
    with TestClient(app) as c:
        yield c
    set_session_manager(None)
