"""
Chat Prompt Templates

Prompts for the initial chatter batch and for bot replies, plus the
response schema the initial batch must follow.
"""

from typing import Iterable

from ..models import Message


# Gemini responseSchema for the initial batch (OpenAPI subset, uppercase types)
_LINE_SCHEMA = {
    "type": "OBJECT",
    "properties": {
        "sender": {"type": "STRING"},
        "text": {"type": "STRING"},
    },
    "required": ["sender", "text"],
}

INITIAL_BATCH_SCHEMA = {
    "type": "OBJECT",
    "properties": {
        "welcomeMessage": _LINE_SCHEMA,
        "chatter": {
            "type": "ARRAY",
            "items": _LINE_SCHEMA,
        },
    },
    "required": ["welcomeMessage", "chatter"],
}

# Example nicks to steer the model toward IRC-style handles
EXAMPLE_NICKS = ("net_surfer", "Pixel_Pioneer")


INITIAL_PROMPT = (
    "You are simulating an IRC chat. Generate a welcome message from '{system_sender}' "
    "and {count} subsequent realistic chat messages between various users for the "
    "channel '{channel}'. Users should have typical IRC nicks (e.g., {nicks}). "
    "The response must be a JSON object that strictly adheres to this schema. "
    "Do not include markdown formatting."
)

REPLY_PROMPT = """You are '{bot_name}', a helpful and friendly assistant in an IRC chat room for the website '{channel}'.
Here is the recent chat history:
{history}

A user has just sent the following message:
You: {user_message}

Provide a concise, helpful, and chat-appropriate response as '{bot_name}'. Keep it brief and conversational."""


def format_history(messages: Iterable[Message]) -> str:
    """Render messages as `sender: text` lines."""
    return "\n".join(f"{m.sender}: {m.text}" for m in messages)


def build_initial_prompt(channel: str, count: int = 4, system_sender: str = "ChanServ") -> str:
    """Prompt asking for a welcome notice plus `count` chatter lines."""
    nicks = ", ".join(f"'{nick}'" for nick in EXAMPLE_NICKS)
    return INITIAL_PROMPT.format(
        system_sender=system_sender,
        count=count,
        channel=channel,
        nicks=nicks,
    )


def build_reply_prompt(
    user_message: str,
    channel: str,
    history: Iterable[Message],
    bot_name: str = "GeminiBot",
) -> str:
    """Prompt asking the bot to answer `user_message` given recent history."""
    return REPLY_PROMPT.format(
        bot_name=bot_name,
        channel=channel,
        history=format_history(history),
        user_message=user_message,
    )
