"""
Chat Prompt Templates

Contains:
- Initial chatter prompt and its JSON response schema
- Bot reply prompt with recent-history context
"""

from .templates import (
    INITIAL_BATCH_SCHEMA,
    build_initial_prompt,
    build_reply_prompt,
    format_history,
)

__all__ = [
    "INITIAL_BATCH_SCHEMA",
    "build_initial_prompt",
    "build_reply_prompt",
    "format_history",
]
