"""
Chat Service Adapter

Wraps the two calls the channel makes to the generative service:
the initial chatter batch and the bot reply. Neither call ever raises
for service trouble; each masks failure with fallback content so the
transcript always shows something coherent.
"""

import logging
import re
from typing import Iterable

from pydantic import ValidationError

from .models import ChatterLine, InitialBatch, Message
from .prompts import INITIAL_BATCH_SCHEMA, build_initial_prompt, build_reply_prompt
from .providers.base import InferenceProvider, ProviderError
from .utils.retry import call_with_retry

logger = logging.getLogger(__name__)


UNAVAILABLE_WELCOME = "Welcome to {channel}! The AI service is currently unavailable."
REPLY_FALLBACK = "Sorry, I'm having trouble connecting to my brain right now."

_FENCE_RE = re.compile(r"^```(?:json)?\s*(.*?)\s*```$", re.DOTALL)


def strip_code_fence(text: str) -> str:
    """Remove a surrounding markdown code fence, if any."""
    text = text.strip()
    match = _FENCE_RE.match(text)
    if match:
        return match.group(1).strip()
    return text


def parse_initial_batch(text: str) -> InitialBatch:
    """
    Parse and validate the initial batch JSON.
    
    Raises:
        ProviderError: If the text is not valid JSON of the expected shape
    """
    try:
        return InitialBatch.model_validate_json(strip_code_fence(text))
    except ValidationError as e:
        raise ProviderError(f"Malformed initial batch: {e.error_count()} errors") from e


class ChatService:
    """
    Adapter between the chat session and an inference provider.
    
    Both operations are one-shot unless `max_attempts` > 1.
    """
    
    def __init__(
        self,
        provider: InferenceProvider,
        bot_name: str = "GeminiBot",
        system_sender: str = "ChanServ",
        history_window: int = 6,
        chatter_count: int = 4,
        max_attempts: int = 1,
    ):
        self.provider = provider
        self.bot_name = bot_name
        self.system_sender = system_sender
        self.history_window = history_window
        self.chatter_count = chatter_count
        self.max_attempts = max_attempts
    
    def fallback_batch(self, channel_label: str) -> InitialBatch:
        """Batch used when the service cannot be reached."""
        return InitialBatch(
            welcome_message=ChatterLine(
                sender=self.system_sender,
                text=UNAVAILABLE_WELCOME.format(channel=channel_label),
            ),
            chatter=[],
        )
    
    async def fetch_initial_batch(self, channel_label: str) -> InitialBatch:
        """
        Fetch the welcome notice and the chatter lines for a channel.
        
        Args:
            channel_label: Channel as shown to participants, e.g. "#google.com"
            
        Returns:
            The validated batch, or the unavailable-service fallback
        """
        prompt = build_initial_prompt(
            channel_label,
            count=self.chatter_count,
            system_sender=self.system_sender,
        )
        
        async def request() -> InitialBatch:
            result = await self.provider.complete(prompt, response_schema=INITIAL_BATCH_SCHEMA)
            return parse_initial_batch(result.text)
        
        try:
            batch = await call_with_retry(request, max_attempts=self.max_attempts)
        except Exception as e:
            logger.error(f"Error fetching initial chatter from {self.provider.name}: {e}")
            return self.fallback_batch(channel_label)
        
        logger.info(f"Fetched initial batch for {channel_label}: {len(batch.chatter)} chatter lines")
        return batch
    
    def context_window(self, history: Iterable[Message]) -> list[Message]:
        """The last `history_window` messages of the history."""
        history = list(history)
        if self.history_window <= 0:
            return []
        return history[-self.history_window:]
    
    async def fetch_reply(
        self,
        user_message: str,
        channel_label: str,
        history: Iterable[Message],
    ) -> str:
        """
        Ask the bot to answer a user message.
        
        Args:
            user_message: The text the user just sent
            channel_label: Channel as shown to participants
            history: Transcript so far, including the user's message
            
        Returns:
            Reply text, or the apologetic fallback on any failure
        """
        prompt = build_reply_prompt(
            user_message,
            channel_label,
            self.context_window(history),
            bot_name=self.bot_name,
        )
        
        async def request() -> str:
            result = await self.provider.complete(prompt)
            text = result.text.strip()
            if not text:
                raise ProviderError("Empty reply")
            return text
        
        try:
            return await call_with_retry(request, max_attempts=self.max_attempts)
        except Exception as e:
            logger.error(f"Error getting bot response from {self.provider.name}: {e}")
            return REPLY_FALLBACK
    
    async def close(self) -> None:
        await self.provider.close()
