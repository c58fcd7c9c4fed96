"""
Chat Transcript

Ordered, append-only list of messages owned by a session.
"""

from .models import Message


class Transcript:
    """Append-only message store with unique ids."""
    
    def __init__(self):
        self._messages: list[Message] = []
        self._ids: set[str] = set()
    
    def append(self, message: Message) -> Message:
        """Append a message. Raises ValueError on a duplicate id."""
        if message.id in self._ids:
            raise ValueError(f"Duplicate message id: {message.id}")
        self._messages.append(message)
        self._ids.add(message.id)
        return message
    
    def recent(self, n: int) -> list[Message]:
        """The last n messages, oldest first."""
        if n <= 0:
            return []
        return self._messages[-n:]
    
    def clear(self) -> None:
        self._messages.clear()
        self._ids.clear()
    
    @property
    def messages(self) -> list[Message]:
        """Copy of all messages in order."""
        return list(self._messages)
    
    def __len__(self) -> int:
        return len(self._messages)
    