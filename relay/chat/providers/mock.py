"""
Mock Provider

Offline provider for dry runs and local development. Produces a
plausible chatter batch for JSON requests and a canned bot reply for
everything else, without any API calls.
"""

import asyncio
import json
import random
from typing import Optional

from .base import InferenceProvider, CompletionResult


NICKS = ["net_surfer", "Pixel_Pioneer", "null_ptr", "dial_up_dreams", "lurker42", "sysop_"]

LINES = [
    "anyone else here from the front page?",
    "lol this site again",
    "brb coffee",
    "that redesign is growing on me",
    "wait what",
    "yeah exactly",
    "hmm",
    "first time in this channel, hi all",
]

REPLIES = [
    "Hey! Happy to help, what are you looking for?",
    "Good question. Short answer: it depends, but usually yes.",
    "Ha, fair point. Anything else on your mind?",
]


class MockProvider(InferenceProvider):
    """
    Mock provider for dry-run mode.
    
    Generates IRC-flavoured content without API calls.
    """
    
    def __init__(
        self,
        model: str = "mock-model",
        latency: float = 0.1,
        rng: Optional[random.Random] = None,
        system_sender: str = "ChanServ",
        chatter_count: int = 4,
    ):
        self._model = model
        self._system_sender = system_sender
        self._chatter_count = chatter_count
        self._latency = latency
        self._rng = rng or random.Random()
    
    @property
    def name(self) -> str:
        return f"mock/{self._model}"
    
    @property
    def model(self) -> str:
        return self._model
    
    async def complete(
        self,
        prompt: str,
        max_tokens: int = 1024,
        temperature: float = 1.0,
        response_schema: Optional[dict] = None,
    ) -> CompletionResult:
        if response_schema is not None:
            text = json.dumps({
                "welcomeMessage": {
                    "sender": self._system_sender,
                    "text": "Welcome! Be nice and keep it on topic.",
                },
                "chatter": [
                    {"sender": self._rng.choice(NICKS), "text": self._rng.choice(LINES)}
                    for _ in range(self._chatter_count)
                ],
            })
        else:
            text = self._rng.choice(REPLIES)
        
        await asyncio.sleep(self._latency)  # Simulate latency
        
        return CompletionResult(
            text=text,
            tokens_used=100,
            tokens_prompt=50,
            model=self._model,
            latency_ms=self._latency * 1000,
        )
